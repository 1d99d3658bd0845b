"""Immutable lot-state snapshots, position views and reconciliation helpers."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Mapping

from lotledger.currency import CurrencyConverter
from lotledger.domain import Lot


@dataclass(frozen=True)
class Position:
    """Aggregated open position of one security.

    Attributes:
        security_id: Stable security identity.
        quantity: Sum of open lot quantities.
        cost_basis_by_currency: Aggregate open basis keyed by lot currency.
        lot_count: Number of open lots.
    """

    security_id: str
    quantity: Decimal
    cost_basis_by_currency: dict[str, Decimal]
    lot_count: int


@dataclass(frozen=True)
class UnrealizedGain:
    """Mark-to-market view of one security in the reporting currency."""

    security_id: str
    quantity: Decimal
    market_value_reporting: Decimal
    cost_basis_reporting: Decimal
    unrealized_gain_reporting: Decimal


@dataclass(frozen=True)
class PositionMismatch:
    """Difference between replayed and broker-reported quantity."""

    security_id: str
    replayed_quantity: Decimal
    reported_quantity: Decimal

    @property
    def difference(self) -> Decimal:
        return self.replayed_quantity - self.reported_quantity


@dataclass(frozen=True)
class LotState:
    """Open lots of one account after replay, in FIFO order per security.

    Attributes:
        account_id: Account identifier.
        lots: Open lots ordered by security, acquisition date and source sequence.
    """

    account_id: str
    lots: tuple[Lot, ...] = ()

    def lot_state_security_ids(self) -> list[str]:
        return sorted({lot.security_id for lot in self.lots})

    def lot_state_lots_for(self, security_id: str) -> list[Lot]:
        """Return open lots of one security in FIFO order."""

        return [lot for lot in self.lots if lot.security_id == security_id]

    def lot_state_open_quantity(self, security_id: str) -> Decimal:
        return sum((lot.quantity for lot in self.lots if lot.security_id == security_id), Decimal("0"))

    def lot_state_positions(self) -> list[Position]:
        """Aggregate open lots into per-security positions.

        Returns:
            list[Position]: Positions ordered by security identity.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        quantities: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
        bases: dict[str, dict[str, Decimal]] = defaultdict(lambda: defaultdict(lambda: Decimal("0")))
        counts: dict[str, int] = defaultdict(int)
        for lot in self.lots:
            quantities[lot.security_id] += lot.quantity
            bases[lot.security_id][lot.currency] += lot.cost_basis
            counts[lot.security_id] += 1

        return [
            Position(
                security_id=security_id,
                quantity=quantities[security_id],
                cost_basis_by_currency=dict(sorted(bases[security_id].items())),
                lot_count=counts[security_id],
            )
            for security_id in sorted(quantities)
        ]


def snapshot_unrealized_gains(
    lot_state: LotState,
    quotes: Mapping[str, Decimal],
    quote_currencies: Mapping[str, str],
    converter: CurrencyConverter,
    valuation_date: date,
) -> list[UnrealizedGain]:
    """Value open positions at market quotes in the reporting currency.

    Lot basis converts at each lot's acquisition date; market value converts at
    the valuation date. Securities without a quote are skipped.

    Args:
        lot_state: Replayed lot state.
        quotes: Market price keyed by security identity.
        quote_currencies: Quote currency keyed by security identity.
        converter: Currency converter.
        valuation_date: Mark date.

    Returns:
        list[UnrealizedGain]: Valuations ordered by security identity.

    Raises:
        RateUnavailableError: Raised when a conversion rate is missing.
    """

    results: list[UnrealizedGain] = []
    for security_id in lot_state.lot_state_security_ids():
        if security_id not in quotes:
            continue
        lots = lot_state.lot_state_lots_for(security_id)
        quantity = sum((lot.quantity for lot in lots), Decimal("0"))
        quote_currency = quote_currencies.get(security_id, lots[0].currency)
        market_value = converter.currency_convert(quantity * quotes[security_id], quote_currency, valuation_date)
        cost_basis = sum(
            (converter.currency_convert(lot.cost_basis, lot.currency, lot.acquisition_date) for lot in lots),
            Decimal("0"),
        )
        results.append(
            UnrealizedGain(
                security_id=security_id,
                quantity=quantity,
                market_value_reporting=market_value,
                cost_basis_reporting=cost_basis,
                unrealized_gain_reporting=market_value - cost_basis,
            )
        )
    return results


def snapshot_reconcile_positions(
    lot_state: LotState,
    reported_quantities: Mapping[str, Decimal],
) -> list[PositionMismatch]:
    """Compare replayed quantities against broker-reported open positions.

    Args:
        lot_state: Replayed lot state.
        reported_quantities: Broker quantity keyed by security identity.

    Returns:
        list[PositionMismatch]: Mismatches ordered by security identity; empty when reconciled.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    replayed = {position.security_id: position.quantity for position in lot_state.lot_state_positions()}
    mismatches: list[PositionMismatch] = []
    for security_id in sorted(set(replayed) | set(reported_quantities)):
        replayed_quantity = replayed.get(security_id, Decimal("0"))
        reported_quantity = reported_quantities.get(security_id, Decimal("0"))
        if replayed_quantity != reported_quantity:
            mismatches.append(
                PositionMismatch(
                    security_id=security_id,
                    replayed_quantity=replayed_quantity,
                    reported_quantity=reported_quantity,
                )
            )
    return mismatches


__all__ = [
    "LotState",
    "Position",
    "PositionMismatch",
    "UnrealizedGain",
    "snapshot_reconcile_positions",
    "snapshot_unrealized_gains",
]
