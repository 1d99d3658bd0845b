"""Typed domain models shared across ledger, analytics and reporting layers.

Events are a closed union of frozen dataclasses. Consumers dispatch on the
concrete type and raise for anything they do not recognize, so adding a new
event or corporate-action kind fails loudly instead of being skipped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Union


class TradeSide(str, Enum):
    """Trade direction."""

    BUY = "BUY"
    SELL = "SELL"


class CashMovementKind(str, Enum):
    """Kinds of cash movements reported by brokers."""

    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    DIVIDEND = "DIVIDEND"
    FEE = "FEE"
    TAX_WITHHOLDING = "TAX_WITHHOLDING"
    INTEREST = "INTEREST"


class CashFlowCategory(str, Enum):
    """Categories of derived cash-flow entries."""

    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    DIVIDEND = "DIVIDEND"
    FEE = "FEE"
    TAX_WITHHOLDING = "TAX_WITHHOLDING"
    INTEREST = "INTEREST"
    CASH_IN_LIEU = "CASH_IN_LIEU"


class RealizedGainKind(str, Enum):
    """Origin of a realized-gain record."""

    SALE = "SALE"
    CASH_IN_LIEU = "CASH_IN_LIEU"


@dataclass(frozen=True)
class HealthStatus:
    """Health response contract used by health-check surfaces.

    Attributes:
        status: Overall status text for service health.
        detail: Additional message suitable for operational diagnostics.
    """

    status: str
    detail: str


@dataclass(frozen=True)
class Account:
    """Brokerage account owning one event log.

    Attributes:
        account_id: Internal account identifier.
        broker: Broker label.
        base_currency: Account base currency code.
    """

    account_id: str
    broker: str
    base_currency: str


@dataclass(frozen=True)
class SecurityListing:
    """One symbol validity window for a stable security identity.

    Attributes:
        security_id: Stable security identity (ISIN-like key).
        symbol: Ticker symbol.
        valid_from: First date the symbol refers to the identity.
    """

    security_id: str
    symbol: str
    valid_from: date = date.min


@dataclass(frozen=True)
class TradeEvent:
    """Buy or sell of a security.

    Attributes:
        sequence: Ingestion sequence number, unique per account.
        effective_date: Trade date.
        side: Trade direction.
        symbol: Ticker symbol as reported on the statement.
        quantity: Traded quantity. The sign is ignored; `side` drives direction.
        unit_price: Price per share in `currency`.
        currency: Trade currency code.
        commission: Commission paid in `currency`.
    """

    sequence: int
    effective_date: date
    side: TradeSide
    symbol: str
    quantity: Decimal
    unit_price: Decimal
    currency: str
    commission: Decimal = Decimal("0")


@dataclass(frozen=True)
class CashMovementEvent:
    """Cash movement that does not involve a security trade.

    Attributes:
        sequence: Ingestion sequence number, unique per account.
        effective_date: Booking date.
        kind: Movement kind; drives the sign of the derived cash flow.
        amount: Movement amount. Negative dividends, withholding and interest are
            reversals; otherwise the sign is ignored.
        currency: Movement currency code.
        symbol: Optional issuer symbol for dividends and withholding.
        description: Free-form description.
    """

    sequence: int
    effective_date: date
    kind: CashMovementKind
    amount: Decimal
    currency: str
    symbol: str | None = None
    description: str = ""


@dataclass(frozen=True)
class StockSplit:
    """Forward split; `ratio` new shares per old share."""

    ratio: Decimal


@dataclass(frozen=True)
class ReverseStockSplit:
    """Reverse split; one new share per `ratio` old shares.

    Attributes:
        ratio: Old shares per new share.
        cash_in_lieu_price: Optional per-share price used to settle fractions.
    """

    ratio: Decimal
    cash_in_lieu_price: Decimal | None = None


@dataclass(frozen=True)
class SymbolChange:
    """Ticker rename without change of identity."""

    old_symbol: str
    new_symbol: str


@dataclass(frozen=True)
class SpinOff:
    """Spin-off minting shares of a new security.

    Attributes:
        new_security_id: Stable identity of the spun-off security.
        new_symbol: Ticker of the spun-off security.
        ratio: New shares received per parent share.
        cost_fraction: Fraction of parent cost basis moved to the new shares.
    """

    new_security_id: str
    new_symbol: str
    ratio: Decimal
    cost_fraction: Decimal


CorporateAction = Union[StockSplit, ReverseStockSplit, SymbolChange, SpinOff]


@dataclass(frozen=True)
class CorporateActionEvent:
    """Corporate action applied to all open lots of one security.

    Attributes:
        sequence: Ingestion sequence number, unique per account.
        effective_date: Date the action takes effect.
        symbol: Ticker of the affected security as valid before the action.
        action: Action variant.
    """

    sequence: int
    effective_date: date
    symbol: str
    action: CorporateAction


LedgerEvent = Union[TradeEvent, CashMovementEvent, CorporateActionEvent]


@dataclass(frozen=True)
class Lot:
    """Open tax lot owned by one account.

    Attributes:
        lot_id: Deterministic lot identifier.
        account_id: Owning account identifier.
        security_id: Stable security identity.
        quantity: Open quantity; may be fractional after a split.
        cost_basis: Aggregate cost basis in `currency`, commission included.
        commission: Commission part of `cost_basis`.
        currency: Trade currency of the acquisition.
        acquisition_date: Acquisition date used for FIFO ordering and FX.
        source_sequence: Sequence of the event that created the lot.
    """

    lot_id: str
    account_id: str
    security_id: str
    quantity: Decimal
    cost_basis: Decimal
    commission: Decimal
    currency: str
    acquisition_date: date
    source_sequence: int

    @property
    def unit_cost(self) -> Decimal:
        """Return per-share cost basis."""

        return self.cost_basis / self.quantity


@dataclass(frozen=True)
class LotMatch:
    """One lot fraction consumed by a disposal.

    Attributes:
        lot_id: Consumed lot identifier.
        acquisition_date: Acquisition date of the consumed lot.
        quantity: Consumed quantity.
        cost_basis: Consumed cost basis in `cost_currency`.
        cost_currency: Lot currency.
        proceeds: Gross proceeds share attributed to this fraction.
        commission: Sale commission share attributed to this fraction.
        cost_basis_reporting: Cost basis converted at the acquisition date.
        proceeds_reporting: Proceeds converted at the disposal date.
        commission_reporting: Commission converted at the disposal date.
        gain_reporting: Reporting-currency gain for this fraction.
    """

    lot_id: str
    acquisition_date: date
    quantity: Decimal
    cost_basis: Decimal
    cost_currency: str
    proceeds: Decimal
    commission: Decimal
    cost_basis_reporting: Decimal
    proceeds_reporting: Decimal
    commission_reporting: Decimal
    gain_reporting: Decimal


@dataclass(frozen=True)
class RealizedGain:
    """Realized gain for one disposal event.

    Attributes:
        account_id: Owning account identifier.
        security_id: Stable security identity.
        symbol: Symbol valid on the disposal date.
        sale_sequence: Sequence of the consuming event.
        sale_date: Disposal date.
        quantity: Disposed quantity.
        proceeds: Gross proceeds in `proceeds_currency`.
        proceeds_currency: Disposal currency.
        commission: Disposal commission in `proceeds_currency`.
        cost_basis: Consumed cost basis in `cost_currency`.
        cost_currency: Currency of the consumed lots, or `None` when mixed.
        gain: Original-currency gain, `None` when currencies differ.
        proceeds_reporting: Proceeds converted at the disposal date.
        commission_reporting: Commission converted at the disposal date.
        cost_basis_reporting: Cost converted lot by lot at acquisition dates.
        gain_reporting: Reporting-currency gain.
        reporting_currency: Reporting currency code.
        tax_year: Tax-year bucket.
        kind: Sale or cash-in-lieu settlement.
        simulated: True for what-if projections.
        matches: Consumed lot fractions in FIFO order.
    """

    account_id: str
    security_id: str
    symbol: str
    sale_sequence: int
    sale_date: date
    quantity: Decimal
    proceeds: Decimal
    proceeds_currency: str
    commission: Decimal
    cost_basis: Decimal
    cost_currency: str | None
    gain: Decimal | None
    proceeds_reporting: Decimal
    commission_reporting: Decimal
    cost_basis_reporting: Decimal
    gain_reporting: Decimal
    reporting_currency: str
    tax_year: int
    kind: RealizedGainKind = RealizedGainKind.SALE
    simulated: bool = False
    matches: tuple[LotMatch, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class CashFlowEntry:
    """Derived cash-flow record.

    Attributes:
        account_id: Owning account identifier.
        sequence: Sequence of the originating event.
        date: Booking date.
        currency: Currency code.
        amount: Signed amount; inflows positive.
        reporting_amount: Signed amount converted to the reporting currency.
        category: Cash-flow category.
        symbol: Optional related symbol.
        description: Free-form description.
    """

    account_id: str
    sequence: int
    date: date
    currency: str
    amount: Decimal
    reporting_amount: Decimal
    category: CashFlowCategory
    symbol: str | None = None
    description: str = ""
