"""Request body models for portfolio endpoints."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator


class SellInstructionRequest(BaseModel):
    """One hypothetical disposal; omit `quantity` to sell every open lot."""

    security_id: str = Field(min_length=1)
    quantity: Decimal | None = Field(default=None, gt=0)
    commission: Decimal = Field(default=Decimal("0"), ge=0)


class QuoteRequest(BaseModel):
    """Explicit market quote overriding stored prices."""

    price: Decimal = Field(gt=0)
    currency: str = Field(min_length=3, max_length=3)

    @field_validator("currency")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        return value.strip().upper()


class SimulateSellRequest(BaseModel):
    """What-if request body.

    Attributes:
        sale_date: Hypothetical sale date; the configured valuation date when omitted.
        instructions: Ordered sell instructions.
        quotes: Quote overrides keyed by security identity; stored prices are used otherwise.
    """

    sale_date: date | None = None
    instructions: list[SellInstructionRequest] = Field(min_length=1)
    quotes: dict[str, QuoteRequest] = Field(default_factory=dict)


class RebalanceRequest(BaseModel):
    """Rebalance request body.

    Attributes:
        positions: Held quantity keyed by security identity.
        target_weights: Target weight keyed by security identity.
        prices: Price keyed by security identity.
        available_cash: Uninvested cash that may fund buys.
        min_trade_value: Minimum order value; the configured default when omitted.
        allow_sells: Whether sells may be proposed.
    """

    positions: dict[str, Decimal] = Field(default_factory=dict)
    target_weights: dict[str, Decimal]
    prices: dict[str, Decimal]
    available_cash: Decimal = Field(default=Decimal("0"), ge=0)
    min_trade_value: Decimal | None = Field(default=None, ge=0)
    allow_sells: bool = True


class AccountRebalanceRequest(BaseModel):
    """Rebalance request for a replayed account; positions come from its open lots.

    Attributes:
        target_weights: Target weight keyed by security identity.
        prices: Reporting-currency price overrides; stored closes are used otherwise.
        available_cash: Uninvested cash that may fund buys.
        min_trade_value: Minimum order value; the configured default when omitted.
        allow_sells: Whether sells may be proposed.
    """

    target_weights: dict[str, Decimal]
    prices: dict[str, Decimal] = Field(default_factory=dict)
    available_cash: Decimal = Field(default=Decimal("0"), ge=0)
    min_trade_value: Decimal | None = Field(default=None, ge=0)
    allow_sells: bool = True


class ReconcileRequest(BaseModel):
    """Broker-reported quantity keyed by security identity."""

    reported_quantities: dict[str, Decimal]
