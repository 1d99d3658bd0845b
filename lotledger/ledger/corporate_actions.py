"""Corporate-action application over an account lot book."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_FLOOR, Decimal
from typing import Iterable

from lotledger.currency import CurrencyConverter, currency_add_business_days
from lotledger.domain import (
    CashFlowCategory,
    CashFlowEntry,
    CorporateActionConflictError,
    CorporateActionEvent,
    LedgerEvent,
    RealizedGain,
    RealizedGainKind,
    ReverseStockSplit,
    SpinOff,
    StockSplit,
    SymbolChange,
)
from lotledger.securities import SecurityRegistry

from .gains import gains_build_realized
from .interfaces import CashInLieuBasisPolicy, CashInLieuRateDatePolicy, LedgerReplayConfig, PriceLookupPort
from .lot_book import LotBook, OpenLot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CorporateActionOutcome:
    """Side outputs of one applied corporate action."""

    realized_gains: tuple[RealizedGain, ...] = ()
    cash_flows: tuple[CashFlowEntry, ...] = ()


def corporate_action_materialize_registry(
    registry: SecurityRegistry,
    ordered_events: Iterable[LedgerEvent],
) -> SecurityRegistry:
    """Return a registry copy carrying every rename and spin-off listing.

    Running this before any lot is touched lets later events that reference a
    new symbol resolve regardless of where they appear in the history.

    Args:
        registry: Source registry, left unchanged.
        ordered_events: Events in replay order.

    Returns:
        SecurityRegistry: Working registry copy.

    Raises:
        UnknownSecurityError: Raised when a rename references an unknown symbol.
        CorporateActionConflictError: Raised when a listing collides with another identity.
    """

    working_registry = registry.registry_copy()
    for event in ordered_events:
        if not isinstance(event, CorporateActionEvent):
            continue
        action = event.action
        if isinstance(action, SymbolChange):
            working_registry.registry_apply_rename(action.old_symbol, action.new_symbol, event.effective_date)
        elif isinstance(action, SpinOff):
            working_registry.registry_register(action.new_security_id, action.new_symbol, event.effective_date)
    return working_registry


def corporate_action_apply(
    book: LotBook,
    event: CorporateActionEvent,
    registry: SecurityRegistry,
    converter: CurrencyConverter,
    config: LedgerReplayConfig,
    price_lookup: PriceLookupPort | None = None,
) -> CorporateActionOutcome:
    """Apply one corporate action to the open lots of the referenced security.

    Args:
        book: Account lot book mutated in place.
        event: Corporate-action event.
        registry: Working registry already carrying renames.
        converter: Currency converter used for cash-in-lieu amounts.
        config: Replay policies.
        price_lookup: Optional closing-price source for cash-in-lieu valuation.

    Returns:
        CorporateActionOutcome: Cash-in-lieu gains and cash flows, if any.

    Raises:
        CorporateActionConflictError: Raised when the action would break lot invariants.
        UnknownSecurityError: Raised when the referenced symbol cannot be resolved.
    """

    action = event.action
    if isinstance(action, SymbolChange):
        registry.registry_apply_rename(action.old_symbol, action.new_symbol, event.effective_date)
        return CorporateActionOutcome()

    security_id = registry.registry_resolve(event.symbol, event.effective_date)
    if not book.book_lots(security_id):
        logger.debug(
            "Corporate action skipped without open lots account_id=%s security_id=%s sequence=%s",
            book.account_id,
            security_id,
            event.sequence,
        )
        return CorporateActionOutcome()

    basis_before = book.book_cost_basis_by_currency(security_id)

    if isinstance(action, StockSplit):
        _corporate_action_require_ratio(event, action.ratio)
        _corporate_action_rescale(book, security_id, lambda value: value * action.ratio)
        outcome = _corporate_action_settle_fraction(
            book, event, security_id, registry, converter, config, price_lookup, None
        )
        basis_after = [book.book_cost_basis_by_currency(security_id)]
    elif isinstance(action, ReverseStockSplit):
        _corporate_action_require_ratio(event, action.ratio)
        _corporate_action_rescale(book, security_id, lambda value: value / action.ratio)
        outcome = _corporate_action_settle_fraction(
            book, event, security_id, registry, converter, config, price_lookup, action.cash_in_lieu_price
        )
        basis_after = [book.book_cost_basis_by_currency(security_id)]
    elif isinstance(action, SpinOff):
        child_security_id = action.new_security_id.strip()
        for currency, amount in book.book_cost_basis_by_currency(child_security_id).items():
            basis_before[currency] = basis_before.get(currency, Decimal("0")) + amount
        _corporate_action_spin_off(book, event, action, security_id)
        outcome = _corporate_action_settle_fraction(
            book, event, child_security_id, registry, converter, config, price_lookup, None
        )
        basis_after = [
            book.book_cost_basis_by_currency(security_id),
            book.book_cost_basis_by_currency(child_security_id),
        ]
    else:
        raise TypeError(f"unsupported corporate action type={type(action).__name__}")

    removed = [
        {match.cost_currency: match.cost_basis}
        for gain in outcome.realized_gains
        for match in gain.matches
    ]
    _corporate_action_verify_basis(event, security_id, basis_before, basis_after + removed, config)
    logger.info(
        "Corporate action applied account_id=%s security_id=%s sequence=%s action=%s",
        book.account_id,
        security_id,
        event.sequence,
        type(action).__name__,
    )
    return outcome


def _corporate_action_require_ratio(event: CorporateActionEvent, ratio: Decimal) -> None:
    if not ratio.is_finite() or ratio <= Decimal("1"):
        raise CorporateActionConflictError(
            f"corporate action sequence={event.sequence} ratio={ratio} must be greater than 1",
            context={"sequence": event.sequence, "symbol": event.symbol},
        )


def _corporate_action_rescale(book: LotBook, security_id: str, scale) -> None:
    """Rescale lot quantities so their sum equals the scaled position total exactly."""

    lots = book.book_lots(security_id)
    target_total = scale(book.book_open_quantity(security_id))
    for lot in lots:
        lot.quantity = scale(lot.quantity)
    lots[-1].quantity = target_total - sum((lot.quantity for lot in lots[:-1]), Decimal("0"))
    if lots[-1].quantity <= Decimal("0"):
        raise CorporateActionConflictError(
            f"rescaling security={security_id} left lot={lots[-1].lot_id} without quantity",
            context={"security_id": security_id, "lot_id": lots[-1].lot_id},
        )


def _corporate_action_spin_off(book: LotBook, event: CorporateActionEvent, action: SpinOff, security_id: str) -> str:
    if not action.ratio.is_finite() or action.ratio <= Decimal("0"):
        raise CorporateActionConflictError(
            f"spin-off sequence={event.sequence} ratio={action.ratio} must be positive",
            context={"sequence": event.sequence},
        )
    if not Decimal("0") <= action.cost_fraction <= Decimal("1"):
        raise CorporateActionConflictError(
            f"spin-off sequence={event.sequence} cost_fraction={action.cost_fraction} must be within [0, 1]",
            context={"sequence": event.sequence},
        )

    child_security_id = action.new_security_id.strip()
    if child_security_id == security_id:
        raise CorporateActionConflictError(
            f"spin-off sequence={event.sequence} child identity equals parent security={security_id}",
            context={"sequence": event.sequence},
        )

    for parent in list(book.book_lots(security_id)):
        moved_basis = parent.cost_basis * action.cost_fraction
        moved_commission = parent.commission * action.cost_fraction
        parent.cost_basis -= moved_basis
        parent.commission -= moved_commission
        child_quantity = parent.quantity * action.ratio
        if child_quantity <= Decimal("0"):
            continue
        book.book_add(
            OpenLot(
                lot_id=f"{parent.lot_id}/spinoff-{event.sequence}",
                security_id=child_security_id,
                quantity=child_quantity,
                cost_basis=moved_basis,
                commission=moved_commission,
                currency=parent.currency,
                acquisition_date=parent.acquisition_date,
                source_sequence=parent.source_sequence,
            )
        )
    return child_security_id


def _corporate_action_settle_fraction(
    book: LotBook,
    event: CorporateActionEvent,
    security_id: str,
    registry: SecurityRegistry,
    converter: CurrencyConverter,
    config: LedgerReplayConfig,
    price_lookup: PriceLookupPort | None,
    cash_in_lieu_price: Decimal | None,
) -> CorporateActionOutcome:
    """Settle a position-level fractional remainder as cash in lieu."""

    total_quantity = book.book_open_quantity(security_id)
    fraction = total_quantity - total_quantity.to_integral_value(rounding=ROUND_FLOOR)
    if fraction == Decimal("0"):
        return CorporateActionOutcome()

    price = cash_in_lieu_price
    quote_currency: str | None = None
    if price is None and price_lookup is not None:
        quote = price_lookup.price_lookup_close(security_id, event.effective_date)
        if quote is not None:
            price, quote_currency = quote
    if price is None:
        raise CorporateActionConflictError(
            f"no cash-in-lieu price for security={security_id} fraction={fraction} "
            f"on {event.effective_date.isoformat()}",
            context={"security_id": security_id, "sequence": event.sequence},
        )

    rate_date = _corporate_action_rate_date(event.effective_date, config)
    retain_basis = config.cash_in_lieu_basis_policy == CashInLieuBasisPolicy.RETAIN
    removed = book.book_remove_newest(security_id, fraction, retain_basis=retain_basis)
    # Explicit action prices are in the lot currency; stored closes carry their own.
    currency = (quote_currency or removed[0].currency).upper()
    symbol = registry.registry_symbol_at(security_id, event.effective_date)
    proceeds = fraction * price

    cash_flow = CashFlowEntry(
        account_id=book.account_id,
        sequence=event.sequence,
        date=rate_date,
        currency=currency,
        amount=proceeds,
        reporting_amount=converter.currency_convert(proceeds, currency, rate_date),
        category=CashFlowCategory.CASH_IN_LIEU,
        symbol=symbol,
        description=f"cash in lieu of {fraction} {symbol}",
    )

    realized_gains: tuple[RealizedGain, ...] = ()
    if any(item.cost_basis or item.commission for item in removed):
        realized_gains = (
            gains_build_realized(
                account_id=book.account_id,
                security_id=security_id,
                symbol=symbol,
                sale_sequence=event.sequence,
                sale_date=event.effective_date,
                unit_price=price,
                currency=currency,
                commission=Decimal("0"),
                consumed=removed,
                converter=converter,
                tax_year_policy=config.tax_year_policy,
                kind=RealizedGainKind.CASH_IN_LIEU,
                conversion_date=rate_date,
            ),
        )

    logger.info(
        "Cash in lieu settled account_id=%s security_id=%s fraction=%s proceeds=%s currency=%s",
        book.account_id,
        security_id,
        fraction,
        proceeds,
        currency,
    )
    return CorporateActionOutcome(realized_gains=realized_gains, cash_flows=(cash_flow,))


def _corporate_action_rate_date(effective_date: date, config: LedgerReplayConfig) -> date:
    if config.cash_in_lieu_rate_date_policy == CashInLieuRateDatePolicy.SETTLEMENT_DATE:
        return currency_add_business_days(effective_date, config.cash_in_lieu_settlement_lag_days)
    return effective_date


def _corporate_action_verify_basis(
    event: CorporateActionEvent,
    security_id: str,
    basis_before: dict[str, Decimal],
    basis_parts: list[dict[str, Decimal]],
    config: LedgerReplayConfig,
) -> None:
    """Check that basis before the action equals the sum of all basis after it, per currency."""

    basis_after: dict[str, Decimal] = {}
    for part in basis_parts:
        for currency, amount in part.items():
            basis_after[currency] = basis_after.get(currency, Decimal("0")) + amount

    for currency in sorted(set(basis_before) | set(basis_after)):
        before = basis_before.get(currency, Decimal("0"))
        after = basis_after.get(currency, Decimal("0"))
        if abs(before - after) > config.cost_basis_tolerance:
            raise CorporateActionConflictError(
                f"corporate action sequence={event.sequence} changed {currency} cost basis of "
                f"security={security_id} from {before} to {after}",
                context={
                    "security_id": security_id,
                    "sequence": event.sequence,
                    "currency": currency,
                    "basis_before": str(before),
                    "basis_after": str(after),
                },
            )


__all__ = [
    "CorporateActionOutcome",
    "corporate_action_apply",
    "corporate_action_materialize_registry",
]
