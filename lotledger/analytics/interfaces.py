"""Typed contracts for analytics-layer what-if and rebalancing computations."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from lotledger.domain import RealizedGain


@dataclass(frozen=True)
class Quote:
    """Market quote used for hypothetical disposals.

    Attributes:
        price: Price per share.
        currency: Quote currency code.
    """

    price: Decimal
    currency: str


@dataclass(frozen=True)
class SellInstruction:
    """One hypothetical disposal.

    Attributes:
        security_id: Stable security identity.
        quantity: Quantity to sell, or None to sell every open lot.
        commission: Hypothetical commission in the quote currency.
    """

    security_id: str
    quantity: Decimal | None = None
    commission: Decimal = Decimal("0")


@dataclass(frozen=True)
class SimulationFailure:
    """Structured reason a simulation stopped before its last instruction.

    Attributes:
        instruction_index: Zero-based index of the failing instruction.
        security_id: Security of the failing instruction.
        error_code: Stable machine-readable code.
        message: Human-readable description.
        requested_quantity: Quantity requested, when known.
        available_quantity: Open quantity at the time of failure, when known.
    """

    instruction_index: int
    security_id: str
    error_code: str
    message: str
    requested_quantity: Decimal | None = None
    available_quantity: Decimal | None = None


@dataclass(frozen=True)
class SimulatedGainReport:
    """Result of one what-if simulation.

    Attributes:
        account_id: Simulated account.
        realized_gains: Gains of every instruction applied before any failure.
        failure: Failure that stopped the simulation, if any.
        total_gain_reporting: Sum of reporting-currency gains.
        reporting_currency: Reporting currency code.
    """

    account_id: str
    realized_gains: tuple[RealizedGain, ...]
    failure: SimulationFailure | None
    total_gain_reporting: Decimal
    reporting_currency: str

    @property
    def succeeded(self) -> bool:
        return self.failure is None


class OrderSide(str, Enum):
    """Suggested order direction."""

    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class OrderSuggestion:
    """One whole-share order proposed by the rebalancer.

    Attributes:
        security_id: Stable security identity.
        side: Order direction.
        quantity: Whole-share quantity.
        price: Price used for sizing.
        value: Order value (`quantity * price`).
    """

    security_id: str
    side: OrderSide
    quantity: Decimal
    price: Decimal
    value: Decimal


@dataclass(frozen=True)
class RebalanceConstraints:
    """Execution limits applied to rebalance suggestions.

    Attributes:
        available_cash: Uninvested cash that may fund buys.
        min_trade_value: Orders below this value are dropped.
        allow_sells: Whether sells may be proposed.
    """

    available_cash: Decimal = Decimal("0")
    min_trade_value: Decimal = Decimal("0")
    allow_sells: bool = True

