"""FIFO ledger replay of one account's event history."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from lotledger.currency import CurrencyConverter
from lotledger.domain import (
    Account,
    CashFlowCategory,
    CashFlowEntry,
    CashMovementEvent,
    CashMovementKind,
    CorporateActionEvent,
    LedgerError,
    LedgerEvent,
    RealizedGain,
    TradeEvent,
    TradeSide,
)
from lotledger.securities import SecurityRegistry

from .corporate_actions import corporate_action_apply, corporate_action_materialize_registry
from .gains import gains_build_realized
from .interfaces import LedgerReplayConfig, PriceLookupPort
from .lot_book import LotBook, OpenLot
from .snapshot import LotState

logger = logging.getLogger(__name__)

_OUTFLOW_KINDS = frozenset({CashMovementKind.WITHDRAWAL, CashMovementKind.FEE, CashMovementKind.TAX_WITHHOLDING})
# A negative amount of these kinds reverses an earlier accrual.
_REVERSIBLE_KINDS = frozenset({CashMovementKind.DIVIDEND, CashMovementKind.TAX_WITHHOLDING, CashMovementKind.INTEREST})


@dataclass(frozen=True)
class LedgerReplayResult:
    """Output payload for one account replay.

    Attributes:
        account_id: Replayed account identifier.
        lot_state: Open lots after the last event.
        realized_gains: Realized gains in event order.
        cash_flows: Signed cash-flow entries in event order.
    """

    account_id: str
    lot_state: LotState
    realized_gains: tuple[RealizedGain, ...]
    cash_flows: tuple[CashFlowEntry, ...]


def ledger_sort_events(events: Iterable[LedgerEvent]) -> list[LedgerEvent]:
    """Order events by effective date and sequence number.

    Args:
        events: Events in arbitrary input order.

    Returns:
        list[LedgerEvent]: Events in replay order.

    Raises:
        ValueError: Raised when two events share a sequence number.
    """

    ordered = sorted(events, key=lambda event: (event.effective_date, event.sequence))
    seen_sequences: set[int] = set()
    for event in ordered:
        if event.sequence in seen_sequences:
            raise ValueError(f"duplicate event sequence={event.sequence}")
        seen_sequences.add(event.sequence)
    return ordered


def ledger_replay_account(  # pylint: disable=too-many-arguments
    account: Account,
    events: Iterable[LedgerEvent],
    registry: SecurityRegistry,
    converter: CurrencyConverter,
    config: LedgerReplayConfig | None = None,
    price_lookup: PriceLookupPort | None = None,
) -> LedgerReplayResult:
    """Replay one account's events into lots, realized gains and cash flows.

    Events are replayed in (effective date, sequence) order regardless of input
    order. The caller's registry is never mutated; renames and spin-off
    listings are applied to a working copy before the first event.

    Args:
        account: Account being replayed.
        events: Account events in arbitrary order.
        registry: Security registry with known listings.
        converter: Currency converter for reporting amounts.
        config: Replay policies, defaulting to `LedgerReplayConfig()`.
        price_lookup: Optional closing-price source for cash-in-lieu valuation.

    Returns:
        LedgerReplayResult: Deterministic replay output.

    Raises:
        ValueError: Raised when account or event data are invalid.
        InsufficientLotsError: Raised when a sale exceeds open lots.
        RateUnavailableError: Raised when a conversion rate is missing.
        UnknownSecurityError: Raised when a symbol cannot be resolved.
        CorporateActionConflictError: Raised when a corporate action breaks lot invariants.
    """

    if account is None:
        raise ValueError("account must not be None")
    if not account.account_id.strip():
        raise ValueError("account.account_id must not be blank")

    replay_config = config or LedgerReplayConfig()
    ordered_events = ledger_sort_events(events)
    working_registry = corporate_action_materialize_registry(registry, ordered_events)

    book = LotBook(account.account_id)
    realized_gains: list[RealizedGain] = []
    cash_flows: list[CashFlowEntry] = []

    for event in ordered_events:
        try:
            if isinstance(event, TradeEvent):
                if event.side == TradeSide.BUY:
                    _ledger_apply_buy(book, event, working_registry)
                else:
                    gain = _ledger_apply_sell(book, event, working_registry, converter, replay_config)
                    if gain is not None:
                        realized_gains.append(gain)
            elif isinstance(event, CashMovementEvent):
                cash_flows.append(_ledger_cash_flow_entry(account.account_id, event, converter))
            elif isinstance(event, CorporateActionEvent):
                outcome = corporate_action_apply(
                    book, event, working_registry, converter, replay_config, price_lookup
                )
                realized_gains.extend(outcome.realized_gains)
                cash_flows.extend(outcome.cash_flows)
            else:
                raise TypeError(f"unsupported ledger event type={type(event).__name__}")
        except LedgerError as error:
            error.context.setdefault("account_id", account.account_id)
            error.context.setdefault("sequence", event.sequence)
            error.context.setdefault("effective_date", event.effective_date.isoformat())
            raise

    lot_state = book.book_snapshot()
    logger.debug(
        "Ledger replay finished account_id=%s events=%s open_lots=%s realized_gains=%s cash_flows=%s",
        account.account_id,
        len(ordered_events),
        len(lot_state.lots),
        len(realized_gains),
        len(cash_flows),
    )
    return LedgerReplayResult(
        account_id=account.account_id,
        lot_state=lot_state,
        realized_gains=tuple(realized_gains),
        cash_flows=tuple(cash_flows),
    )


def _ledger_apply_buy(book: LotBook, event: TradeEvent, registry: SecurityRegistry) -> None:
    quantity = abs(event.quantity)
    if quantity == Decimal("0"):
        return
    if event.unit_price < Decimal("0"):
        raise ValueError(f"trade sequence={event.sequence} unit_price must be >= 0")

    commission = abs(event.commission)
    book.book_add(
        OpenLot(
            lot_id=f"{book.account_id}-{event.sequence}",
            security_id=registry.registry_resolve(event.symbol, event.effective_date),
            quantity=quantity,
            cost_basis=quantity * event.unit_price + commission,
            commission=commission,
            currency=event.currency,
            acquisition_date=event.effective_date,
            source_sequence=event.sequence,
        )
    )


def _ledger_apply_sell(
    book: LotBook,
    event: TradeEvent,
    registry: SecurityRegistry,
    converter: CurrencyConverter,
    config: LedgerReplayConfig,
) -> RealizedGain | None:
    quantity = abs(event.quantity)
    if quantity == Decimal("0"):
        return None

    security_id = registry.registry_resolve(event.symbol, event.effective_date)
    consumed = book.book_consume_fifo(security_id, quantity)
    return gains_build_realized(
        account_id=book.account_id,
        security_id=security_id,
        symbol=registry.registry_symbol_at(security_id, event.effective_date),
        sale_sequence=event.sequence,
        sale_date=event.effective_date,
        unit_price=event.unit_price,
        currency=event.currency,
        commission=abs(event.commission),
        consumed=consumed,
        converter=converter,
        tax_year_policy=config.tax_year_policy,
    )


def _ledger_cash_flow_entry(account_id: str, event: CashMovementEvent, converter: CurrencyConverter) -> CashFlowEntry:
    amount = event.amount if event.kind in _REVERSIBLE_KINDS else abs(event.amount)
    if event.kind in _OUTFLOW_KINDS:
        amount = -amount
    return CashFlowEntry(
        account_id=account_id,
        sequence=event.sequence,
        date=event.effective_date,
        currency=event.currency,
        amount=amount,
        reporting_amount=converter.currency_convert(amount, event.currency, event.effective_date),
        category=CashFlowCategory(event.kind.value),
        symbol=event.symbol,
        description=event.description,
    )


__all__ = ["LedgerReplayResult", "ledger_replay_account", "ledger_sort_events"]
