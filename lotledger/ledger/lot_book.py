"""Mutable per-account lot book used while replaying or simulating events."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from lotledger.domain import InsufficientLotsError, Lot

from .snapshot import LotState


@dataclass
class OpenLot:
    """Mutable internal lot state used during replay."""

    lot_id: str
    security_id: str
    quantity: Decimal
    cost_basis: Decimal
    commission: Decimal
    currency: str
    acquisition_date: date
    source_sequence: int

    def fifo_key(self) -> tuple[date, int, str]:
        return (self.acquisition_date, self.source_sequence, self.lot_id)


@dataclass(frozen=True)
class ConsumedLotSlice:
    """Portion of one lot removed by a sale or a cash-in-lieu settlement.

    Attributes:
        lot_id: Consumed lot identifier.
        acquisition_date: Acquisition date of the consumed lot.
        currency: Cost-basis currency.
        quantity: Removed quantity.
        cost_basis: Basis removed with the quantity, acquisition commission included.
        commission: Acquisition commission share contained in `cost_basis`.
    """

    lot_id: str
    acquisition_date: date
    currency: str
    quantity: Decimal
    cost_basis: Decimal
    commission: Decimal


class LotBook:
    """Open lots of one account grouped by security in FIFO order."""

    def __init__(self, account_id: str):
        self.account_id = account_id
        self._lots: dict[str, list[OpenLot]] = {}

    @classmethod
    def from_lot_state(cls, lot_state: LotState) -> LotBook:
        """Build a private mutable copy of an immutable lot state."""

        book = cls(lot_state.account_id)
        for lot in lot_state.lots:
            book.book_add(
                OpenLot(
                    lot_id=lot.lot_id,
                    security_id=lot.security_id,
                    quantity=lot.quantity,
                    cost_basis=lot.cost_basis,
                    commission=lot.commission,
                    currency=lot.currency,
                    acquisition_date=lot.acquisition_date,
                    source_sequence=lot.source_sequence,
                )
            )
        return book

    def book_add(self, lot: OpenLot) -> None:
        if lot.quantity <= Decimal("0"):
            raise ValueError(f"lot={lot.lot_id} quantity must be positive")
        lots = self._lots.setdefault(lot.security_id, [])
        lots.append(lot)
        lots.sort(key=OpenLot.fifo_key)

    def book_lots(self, security_id: str) -> list[OpenLot]:
        """Return the live FIFO-ordered lot list of a security."""

        return self._lots.get(security_id, [])

    def book_open_quantity(self, security_id: str) -> Decimal:
        return sum((lot.quantity for lot in self.book_lots(security_id)), Decimal("0"))

    def book_cost_basis_by_currency(self, security_id: str) -> dict[str, Decimal]:
        totals: dict[str, Decimal] = {}
        for lot in self.book_lots(security_id):
            totals[lot.currency] = totals.get(lot.currency, Decimal("0")) + lot.cost_basis
        return totals

    def book_consume_fifo(self, security_id: str, quantity: Decimal) -> list[ConsumedLotSlice]:
        """Remove quantity from the oldest lots first.

        The availability check runs before any lot is touched, so a failed call
        leaves the book unchanged.

        Args:
            security_id: Stable security identity.
            quantity: Positive quantity to remove.

        Returns:
            list[ConsumedLotSlice]: Consumed slices in FIFO order.

        Raises:
            ValueError: Raised when quantity is not positive.
            InsufficientLotsError: Raised when open quantity is smaller than requested.
        """

        if quantity <= Decimal("0"):
            raise ValueError("quantity must be positive")

        available = self.book_open_quantity(security_id)
        if quantity > available:
            raise InsufficientLotsError(
                security_id,
                quantity,
                available,
                context={
                    "account_id": self.account_id,
                    "open_lot_ids": [lot.lot_id for lot in self.book_lots(security_id)],
                },
            )

        lots = self._lots[security_id]
        remaining = quantity
        consumed: list[ConsumedLotSlice] = []
        while remaining > Decimal("0"):
            consumed.append(self._book_take(lots[0], min(remaining, lots[0].quantity)))
            remaining -= consumed[-1].quantity
            if lots[0].quantity == Decimal("0"):
                lots.pop(0)

        if not lots:
            del self._lots[security_id]
        return consumed

    def book_remove_newest(self, security_id: str, quantity: Decimal, *, retain_basis: bool) -> list[ConsumedLotSlice]:
        """Remove a fractional remainder from the most recently acquired lots.

        With `retain_basis` the removed quantity leaves its basis behind on the
        remaining shares; a lot removed entirely hands its basis to the next
        older lot. When no lot survives, basis leaves with the quantity.

        Args:
            security_id: Stable security identity.
            quantity: Positive quantity not exceeding the open quantity.
            retain_basis: Whether remaining shares keep the removed basis.

        Returns:
            list[ConsumedLotSlice]: Removed slices, newest lot first.

        Raises:
            InsufficientLotsError: Raised when open quantity is smaller than requested.
        """

        available = self.book_open_quantity(security_id)
        if quantity > available:
            raise InsufficientLotsError(security_id, quantity, available, context={"account_id": self.account_id})

        lots = self._lots[security_id]
        keep_basis = retain_basis and quantity < available
        remaining = quantity
        removed: list[ConsumedLotSlice] = []
        carried_basis = Decimal("0")
        carried_commission = Decimal("0")
        while remaining > Decimal("0"):
            lot = lots[-1]
            take = min(remaining, lot.quantity)
            if keep_basis:
                removed.append(
                    ConsumedLotSlice(
                        lot_id=lot.lot_id,
                        acquisition_date=lot.acquisition_date,
                        currency=lot.currency,
                        quantity=take,
                        cost_basis=Decimal("0"),
                        commission=Decimal("0"),
                    )
                )
                lot.quantity -= take
            else:
                removed.append(self._book_take(lot, take))
            remaining -= take
            if lot.quantity == Decimal("0"):
                carried_basis += lot.cost_basis
                carried_commission += lot.commission
                lots.pop()

        if keep_basis and (carried_basis or carried_commission):
            lots[-1].cost_basis += carried_basis
            lots[-1].commission += carried_commission
        if not lots:
            del self._lots[security_id]
        return removed

    def book_snapshot(self) -> LotState:
        """Freeze the book into an immutable lot state."""

        return LotState(
            account_id=self.account_id,
            lots=tuple(
                Lot(
                    lot_id=lot.lot_id,
                    account_id=self.account_id,
                    security_id=lot.security_id,
                    quantity=lot.quantity,
                    cost_basis=lot.cost_basis,
                    commission=lot.commission,
                    currency=lot.currency,
                    acquisition_date=lot.acquisition_date,
                    source_sequence=lot.source_sequence,
                )
                for security_id in sorted(self._lots)
                for lot in self._lots[security_id]
            ),
        )

    @staticmethod
    def _book_take(lot: OpenLot, take: Decimal) -> ConsumedLotSlice:
        if take == lot.quantity:
            cost_basis = lot.cost_basis
            commission = lot.commission
        else:
            cost_basis = lot.cost_basis * take / lot.quantity
            commission = lot.commission * take / lot.quantity
        lot.quantity -= take
        lot.cost_basis -= cost_basis
        lot.commission -= commission
        return ConsumedLotSlice(
            lot_id=lot.lot_id,
            acquisition_date=lot.acquisition_date,
            currency=lot.currency,
            quantity=take,
            cost_basis=cost_basis,
            commission=commission,
        )


__all__ = ["ConsumedLotSlice", "LotBook", "OpenLot"]
