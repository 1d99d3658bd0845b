"""Project-native typed exceptions for ledger replay failures."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any


class LedgerError(Exception):
    """Base exception for fatal replay and lookup failures.

    Attributes:
        error_code: Stable machine-readable error code.
        context: Structured lot/event context for manual review.
    """

    error_code = "LEDGER_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = dict(context or {})


class InsufficientLotsError(LedgerError, ValueError):
    """Sale quantity exceeds the open lot quantity of a security."""

    error_code = "INSUFFICIENT_LOTS"

    def __init__(
        self,
        security_id: str,
        requested_quantity: Decimal,
        available_quantity: Decimal,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(
            f"insufficient open lots for security={security_id}: "
            f"requested={requested_quantity}, available={available_quantity}",
            context=context,
        )
        self.security_id = security_id
        self.requested_quantity = requested_quantity
        self.available_quantity = available_quantity


class RateUnavailableError(LedgerError, LookupError):
    """No currency rate exists within the fallback window."""

    error_code = "RATE_UNAVAILABLE"

    def __init__(self, currency: str, on_date: date, fallback_window_days: int):
        super().__init__(
            f"no {currency} rate for {on_date.isoformat()} "
            f"within {fallback_window_days} preceding business days",
            context={"currency": currency, "date": on_date.isoformat()},
        )
        self.currency = currency
        self.on_date = on_date


class UnknownSecurityError(LedgerError, LookupError):
    """Symbol cannot be resolved to a security identity at a date."""

    error_code = "UNKNOWN_SECURITY"

    def __init__(self, symbol: str, on_date: date, context: dict[str, Any] | None = None):
        super().__init__(f"unknown security symbol={symbol} on {on_date.isoformat()}", context=context)
        self.symbol = symbol
        self.on_date = on_date


class CorporateActionConflictError(LedgerError, RuntimeError):
    """Corporate action cannot be applied without breaking lot invariants."""

    error_code = "CORPORATE_ACTION_CONFLICT"


__all__ = [
    "LedgerError",
    "InsufficientLotsError",
    "RateUnavailableError",
    "UnknownSecurityError",
    "CorporateActionConflictError",
]
