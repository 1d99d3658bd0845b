"""Security identity registry tracking ticker symbols over time."""

from __future__ import annotations

import bisect
from datetime import date, timedelta
from typing import Iterable

from lotledger.domain import CorporateActionConflictError, SecurityListing, UnknownSecurityError


class SecurityRegistry:
    """Registry of stable security identities and their dated symbol history.

    Each identity owns an ordered list of (valid_from, symbol) pairs. A symbol is
    valid for an identity from its `valid_from` until the next pair of that
    identity begins. Renames append pairs; they never create identities.
    """

    def __init__(self, listings: Iterable[SecurityListing] = ()):
        """Initialize registry from listing rows.

        Args:
            listings: Initial symbol listings.

        Returns:
            None: Initializer does not return values.

        Raises:
            CorporateActionConflictError: Raised when listings overlap across identities.
        """

        self._history: dict[str, list[tuple[date, str]]] = {}
        self._symbol_index: dict[str, set[str]] = {}
        for listing in sorted(listings, key=lambda item: (item.valid_from, item.security_id, item.symbol)):
            self.registry_register(listing.security_id, listing.symbol, listing.valid_from)

    def registry_register(self, security_id: str, symbol: str, valid_from: date = date.min) -> None:
        """Register one symbol validity window for an identity.

        Args:
            security_id: Stable security identity.
            symbol: Ticker symbol.
            valid_from: First date the symbol names the identity.

        Returns:
            None: Registers the listing as side effect.

        Raises:
            ValueError: Raised when identifiers are blank.
            CorporateActionConflictError: Raised when the symbol already names another identity.
        """

        normalized_security_id = security_id.strip()
        normalized_symbol = symbol.strip().upper()
        if not normalized_security_id:
            raise ValueError("security_id must not be blank")
        if not normalized_symbol:
            raise ValueError("symbol must not be blank")

        history = self._history.setdefault(normalized_security_id, [])
        entry = (valid_from, normalized_symbol)
        if entry in history:
            return
        if history and self._registry_symbol_at_or_none(normalized_security_id, valid_from) == normalized_symbol:
            return

        for existing_from, existing_symbol in history:
            if existing_from == valid_from:
                raise CorporateActionConflictError(
                    f"security={normalized_security_id} already lists symbol={existing_symbol} "
                    f"from {valid_from.isoformat()}",
                    context={"security_id": normalized_security_id, "symbol": normalized_symbol},
                )

        holder = self._registry_find_holder(normalized_symbol, valid_from)
        if holder is not None and holder != normalized_security_id:
            raise CorporateActionConflictError(
                f"symbol={normalized_symbol} already names security={holder} on {valid_from.isoformat()}",
                context={"security_id": normalized_security_id, "holder_security_id": holder},
            )

        bisect.insort(history, entry)
        self._symbol_index.setdefault(normalized_symbol, set()).add(normalized_security_id)

    def registry_resolve(self, symbol: str, on_date: date) -> str:
        """Resolve the identity a symbol names on a date.

        Args:
            symbol: Ticker symbol.
            on_date: Date of the referencing event.

        Returns:
            str: Stable security identity.

        Raises:
            UnknownSecurityError: Raised when no identity carries the symbol on that date.
        """

        normalized_symbol = symbol.strip().upper()
        holder = self._registry_find_holder(normalized_symbol, on_date)
        if holder is None:
            raise UnknownSecurityError(normalized_symbol, on_date)
        return holder

    def registry_symbol_at(self, security_id: str, on_date: date) -> str:
        """Return the symbol valid for an identity on a date.

        Args:
            security_id: Stable security identity.
            on_date: Date to resolve.

        Returns:
            str: Symbol valid on the date.

        Raises:
            UnknownSecurityError: Raised when the identity has no symbol on that date.
        """

        symbol = self._registry_symbol_at_or_none(security_id, on_date)
        if symbol is None:
            raise UnknownSecurityError(security_id, on_date, context={"security_id": security_id})
        return symbol

    def registry_apply_rename(self, old_symbol: str, new_symbol: str, effective_date: date) -> str:
        """Attach a new symbol to the identity currently carrying `old_symbol`.

        Applying the same rename more than once is a no-op.

        Args:
            old_symbol: Symbol valid before the effective date.
            new_symbol: Symbol valid from the effective date.
            effective_date: Rename effective date.

        Returns:
            str: Stable identity that was renamed.

        Raises:
            UnknownSecurityError: Raised when the old symbol cannot be resolved.
            CorporateActionConflictError: Raised when the new symbol names another identity.
        """

        normalized_old = old_symbol.strip().upper()
        normalized_new = new_symbol.strip().upper()

        current_holder = self._registry_find_holder(normalized_new, effective_date)
        if current_holder is not None:
            previous_symbol = None
            if effective_date > date.min:
                previous_symbol = self._registry_symbol_at_or_none(current_holder, effective_date - timedelta(days=1))
            if previous_symbol == normalized_old or normalized_old == normalized_new:
                return current_holder
            raise CorporateActionConflictError(
                f"rename {normalized_old}->{normalized_new} on {effective_date.isoformat()} conflicts with "
                f"security={current_holder}",
                context={"old_symbol": normalized_old, "new_symbol": normalized_new, "holder_security_id": current_holder},
            )

        security_id = self.registry_resolve(normalized_old, effective_date)
        self.registry_register(security_id, normalized_new, effective_date)
        return security_id

    def registry_copy(self) -> SecurityRegistry:
        """Return an independent working copy of the registry.

        Returns:
            SecurityRegistry: Copy sharing no mutable state.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        registry_copy = SecurityRegistry()
        registry_copy._history = {security_id: list(history) for security_id, history in self._history.items()}
        registry_copy._symbol_index = {symbol: set(holders) for symbol, holders in self._symbol_index.items()}
        return registry_copy

    def registry_listings(self) -> list[SecurityListing]:
        """Return all listings ordered by identity and validity date.

        Returns:
            list[SecurityListing]: Listing rows.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        return [
            SecurityListing(security_id=security_id, symbol=symbol, valid_from=valid_from)
            for security_id in sorted(self._history)
            for valid_from, symbol in self._history[security_id]
        ]

    def _registry_symbol_at_or_none(self, security_id: str, on_date: date) -> str | None:
        history = self._history.get(security_id, [])
        position = bisect.bisect_right([valid_from for valid_from, _ in history], on_date)
        if position == 0:
            return None
        return history[position - 1][1]

    def _registry_find_holder(self, symbol: str, on_date: date) -> str | None:
        for security_id in sorted(self._symbol_index.get(symbol, ())):
            if self._registry_symbol_at_or_none(security_id, on_date) == symbol:
                return security_id
        return None


__all__ = ["SecurityRegistry"]
