"""Historical currency conversion with a bounded business-day fallback."""

from __future__ import annotations

import logging
import threading
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping

from lotledger.domain import RateUnavailableError

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


def currency_round(amount: Decimal, places: int = 2) -> Decimal:
    """Round a monetary amount half-up to a fixed number of places.

    Args:
        amount: Amount to round.
        places: Number of fractional digits.

    Returns:
        Decimal: Rounded amount.

    Raises:
        ValueError: Raised when places is negative.
    """

    if places < 0:
        raise ValueError("places must be >= 0")
    quantum = _CENT if places == 2 else Decimal(1).scaleb(-places)
    return amount.quantize(quantum, rounding=ROUND_HALF_UP)


class CurrencyConverter:
    """Date-indexed rate lookup; the single entry point for monetary conversion.

    Rates are expressed as units of the reporting currency per one unit of the
    foreign currency. The table is materialized before replay and never changes
    afterwards, and resolved lookups are memoized so a (currency, date) pair
    yields one rate for the lifetime of the converter.
    """

    def __init__(
        self,
        reporting_currency: str,
        rates: Mapping[tuple[str, date], Decimal],
        fallback_window_days: int = 7,
    ):
        """Initialize converter with an immutable rate table.

        Args:
            reporting_currency: Currency all amounts are converted into.
            rates: Rates keyed by (currency code, date).
            fallback_window_days: Preceding business days searched when a date has no rate.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when the currency, window or any rate is invalid.
        """

        normalized_currency = reporting_currency.strip().upper()
        if not normalized_currency:
            raise ValueError("reporting_currency must not be blank")
        if fallback_window_days < 0:
            raise ValueError("fallback_window_days must be >= 0")

        rate_table: dict[tuple[str, date], Decimal] = {}
        for (currency, rate_date), rate in rates.items():
            if rate <= Decimal("0"):
                raise ValueError(f"rate must be positive for {currency} on {rate_date.isoformat()}")
            rate_table[(currency.strip().upper(), rate_date)] = Decimal(rate)

        self._reporting_currency = normalized_currency
        self._rates = rate_table
        self._fallback_window_days = fallback_window_days
        self._resolved: dict[tuple[str, date], Decimal] = {}
        self._lock = threading.Lock()

    @property
    def reporting_currency(self) -> str:
        """Return the reporting currency code."""

        return self._reporting_currency

    def currency_rate(self, currency: str, on_date: date) -> Decimal:
        """Return the rate effective for a currency on a date.

        Args:
            currency: Foreign currency code.
            on_date: Date the rate must be effective for.

        Returns:
            Decimal: Reporting-currency units per one unit of `currency`.

        Raises:
            RateUnavailableError: Raised when no rate exists within the fallback window.
        """

        normalized_currency = currency.strip().upper()
        if normalized_currency == self._reporting_currency:
            return Decimal("1")

        cache_key = (normalized_currency, on_date)
        with self._lock:
            cached_rate = self._resolved.get(cache_key)
            if cached_rate is not None:
                return cached_rate
            resolved_rate = self._currency_lookup_with_fallback(normalized_currency, on_date)
            self._resolved[cache_key] = resolved_rate
            return resolved_rate

    def currency_convert(self, amount: Decimal, currency: str, on_date: date) -> Decimal:
        """Convert an amount into the reporting currency and round to cents.

        Args:
            amount: Amount in `currency`.
            currency: Source currency code.
            on_date: Transaction date governing the rate.

        Returns:
            Decimal: Rounded reporting-currency amount.

        Raises:
            RateUnavailableError: Raised when no rate is available.
        """

        return currency_round(amount * self.currency_rate(currency, on_date))

    def currency_convert_between(
        self,
        amount: Decimal,
        from_currency: str,
        to_currency: str,
        on_date: date,
    ) -> Decimal:
        """Convert an amount between two currencies through the reporting currency.

        Args:
            amount: Amount in `from_currency`.
            from_currency: Source currency code.
            to_currency: Target currency code.
            on_date: Date governing both rates.

        Returns:
            Decimal: Rounded amount in `to_currency`.

        Raises:
            RateUnavailableError: Raised when either rate is unavailable.
        """

        if from_currency.strip().upper() == to_currency.strip().upper():
            return currency_round(amount)
        from_rate = self.currency_rate(from_currency, on_date)
        to_rate = self.currency_rate(to_currency, on_date)
        return currency_round(amount * from_rate / to_rate)

    def _currency_lookup_with_fallback(self, currency: str, on_date: date) -> Decimal:
        """Find the nearest rate at or before a date within the business-day window.

        Args:
            currency: Normalized currency code.
            on_date: Requested date.

        Returns:
            Decimal: Resolved rate.

        Raises:
            RateUnavailableError: Raised when the window is exhausted.
        """

        exact_rate = self._rates.get((currency, on_date))
        if exact_rate is not None:
            return exact_rate

        remaining_business_days = self._fallback_window_days
        candidate_date = on_date
        while remaining_business_days > 0:
            candidate_date -= timedelta(days=1)
            if candidate_date.weekday() < 5:
                remaining_business_days -= 1
            candidate_rate = self._rates.get((currency, candidate_date))
            if candidate_rate is not None:
                logger.debug(
                    "rate fallback currency=%s requested=%s resolved=%s",
                    currency,
                    on_date.isoformat(),
                    candidate_date.isoformat(),
                )
                return candidate_rate

        raise RateUnavailableError(currency, on_date, self._fallback_window_days)


def currency_add_business_days(start_date: date, business_days: int) -> date:
    """Advance a date by a number of weekdays.

    Args:
        start_date: Starting date.
        business_days: Number of weekdays to advance.

    Returns:
        date: Resulting date.

    Raises:
        ValueError: Raised when business_days is negative.
    """

    if business_days < 0:
        raise ValueError("business_days must be >= 0")
    current_date = start_date
    remaining_days = business_days
    while remaining_days > 0:
        current_date += timedelta(days=1)
        if current_date.weekday() < 5:
            remaining_days -= 1
    return current_date


__all__ = ["CurrencyConverter", "currency_add_business_days", "currency_round"]
