"""Typed interfaces and replay policies for ledger-layer computations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Protocol

from lotledger.domain import CALENDAR_TAX_YEAR, TaxYearPolicy


class CashInLieuBasisPolicy(str, Enum):
    """How cost basis is treated when a fractional share is settled in cash.

    `PROPORTIONAL` removes the fraction's share of basis and books a realized
    gain for the cash received. `RETAIN` leaves the full basis on the whole
    shares and books only the cash flow.
    """

    PROPORTIONAL = "proportional"
    RETAIN = "retain"


class CashInLieuRateDatePolicy(str, Enum):
    """Date whose currency rate converts cash-in-lieu proceeds."""

    EFFECTIVE_DATE = "effective_date"
    SETTLEMENT_DATE = "settlement_date"


@dataclass(frozen=True)
class LedgerReplayConfig:
    """Replay policy knobs shared by all accounts of one run.

    Attributes:
        tax_year_policy: Tax-year boundary used to label realized gains.
        cash_in_lieu_basis_policy: Basis treatment of fractional shares settled in cash.
        cash_in_lieu_rate_date_policy: Conversion date used for cash-in-lieu proceeds.
        cash_in_lieu_settlement_lag_days: Business days from effective date to settlement.
        cost_basis_tolerance: Maximum absolute basis drift accepted by corporate actions.
    """

    tax_year_policy: TaxYearPolicy = field(default=CALENDAR_TAX_YEAR)
    cash_in_lieu_basis_policy: CashInLieuBasisPolicy = CashInLieuBasisPolicy.RETAIN
    cash_in_lieu_rate_date_policy: CashInLieuRateDatePolicy = CashInLieuRateDatePolicy.EFFECTIVE_DATE
    cash_in_lieu_settlement_lag_days: int = 2
    cost_basis_tolerance: Decimal = Decimal("0.000001")

    def __post_init__(self) -> None:
        if self.cash_in_lieu_settlement_lag_days < 0:
            raise ValueError("cash_in_lieu_settlement_lag_days must be >= 0")
        if self.cost_basis_tolerance < 0:
            raise ValueError("cost_basis_tolerance must be >= 0")


class PriceLookupPort(Protocol):
    """Port definition for closing-price lookup used by cash-in-lieu valuation."""

    def price_lookup_close(self, security_id: str, on_date: date) -> tuple[Decimal, str] | None:
        """Return the closing price of a security on a date.

        Args:
            security_id: Stable security identity.
            on_date: Pricing date.

        Returns:
            tuple[Decimal, str] | None: Price and quote currency, or None when unknown.

        Raises:
            RuntimeError: Raised when the price source is unavailable.
        """


class LedgerPort(Protocol):
    """Port definition for account-level replay execution."""

    def ledger_policy_name(self) -> str:
        """Return policy label for the active ledger computation strategy.

        Returns:
            str: Ledger policy identifier.

        Raises:
            RuntimeError: Raised when policy metadata is unavailable.
        """

    def ledger_replay(self, account_id: str):
        """Replay one account from its stored event history.

        Args:
            account_id: Account identifier.

        Returns:
            LedgerReplayResult: Lot state, realized gains and cash flows.

        Raises:
            LedgerError: Raised when the account history cannot be replayed.
        """


__all__ = [
    "CashInLieuBasisPolicy",
    "CashInLieuRateDatePolicy",
    "LedgerPort",
    "LedgerReplayConfig",
    "PriceLookupPort",
]
