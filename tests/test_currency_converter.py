"""Regression tests for historical rate lookup, fallback and rounding."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from lotledger.currency import CurrencyConverter, currency_add_business_days, currency_round
from lotledger.domain import RateUnavailableError


def test_currency_rate_returns_exact_date_rate() -> None:
    """Return the rate stored for the exact requested date.

    Returns:
        None: Assertions validate exact lookup.

    Raises:
        AssertionError: Raised when lookup picks another date.
    """

    converter = CurrencyConverter(
        reporting_currency="USD",
        rates={
            ("EUR", date(2024, 1, 2)): Decimal("1.10"),
            ("EUR", date(2024, 1, 3)): Decimal("1.12"),
        },
    )

    assert converter.currency_rate("EUR", date(2024, 1, 3)) == Decimal("1.12")
    assert converter.currency_rate("eur", date(2024, 1, 2)) == Decimal("1.10")


def test_currency_rate_is_one_for_reporting_currency() -> None:
    converter = CurrencyConverter(reporting_currency="usd", rates={})

    assert converter.reporting_currency == "USD"
    assert converter.currency_rate("USD", date(2024, 1, 6)) == Decimal("1")


def test_currency_rate_falls_back_to_preceding_business_day_over_weekend() -> None:
    """Resolve a Monday without rates to the preceding Friday within a one-day window.

    Returns:
        None: Assertions validate weekend fallback.

    Raises:
        AssertionError: Raised when weekend days consume the window.
    """

    converter = CurrencyConverter(
        reporting_currency="USD",
        rates={("EUR", date(2024, 1, 5)): Decimal("1.09")},
        fallback_window_days=1,
    )

    assert converter.currency_rate("EUR", date(2024, 1, 8)) == Decimal("1.09")


def test_currency_rate_raises_when_fallback_window_is_exhausted() -> None:
    """Fail loudly instead of defaulting when no rate exists within the window.

    Returns:
        None: Assertions validate failure contract.

    Raises:
        AssertionError: Raised when a missing rate is silently defaulted.
    """

    converter = CurrencyConverter(
        reporting_currency="USD",
        rates={("EUR", date(2024, 1, 2)): Decimal("1.10")},
        fallback_window_days=2,
    )

    with pytest.raises(RateUnavailableError) as error_info:
        converter.currency_rate("EUR", date(2024, 1, 8))

    assert error_info.value.error_code == "RATE_UNAVAILABLE"
    assert error_info.value.currency == "EUR"
    assert error_info.value.context["date"] == "2024-01-08"


def test_currency_convert_rounds_half_up_to_cents() -> None:
    converter = CurrencyConverter(
        reporting_currency="USD",
        rates={("EUR", date(2024, 1, 2)): Decimal("1.1")},
    )

    assert converter.currency_convert(Decimal("10.005"), "USD", date(2024, 1, 2)) == Decimal("10.01")
    assert converter.currency_convert(Decimal("100"), "EUR", date(2024, 1, 2)) == Decimal("110.00")


def test_currency_convert_between_routes_through_reporting_currency() -> None:
    converter = CurrencyConverter(
        reporting_currency="USD",
        rates={
            ("EUR", date(2024, 1, 2)): Decimal("1.1"),
            ("GBP", date(2024, 1, 2)): Decimal("1.25"),
        },
    )

    assert converter.currency_convert_between(Decimal("100"), "EUR", "GBP", date(2024, 1, 2)) == Decimal("88.00")
    assert converter.currency_convert_between(Decimal("1.005"), "EUR", "eur", date(2024, 1, 2)) == Decimal("1.01")


def test_currency_converter_rejects_invalid_configuration() -> None:
    with pytest.raises(ValueError):
        CurrencyConverter(reporting_currency=" ", rates={})
    with pytest.raises(ValueError):
        CurrencyConverter(reporting_currency="USD", rates={}, fallback_window_days=-1)
    with pytest.raises(ValueError):
        CurrencyConverter(reporting_currency="USD", rates={("EUR", date(2024, 1, 2)): Decimal("0")})


def test_currency_add_business_days_skips_weekends() -> None:
    assert currency_add_business_days(date(2024, 1, 5), 2) == date(2024, 1, 9)
    assert currency_add_business_days(date(2024, 1, 5), 0) == date(2024, 1, 5)
    with pytest.raises(ValueError):
        currency_add_business_days(date(2024, 1, 5), -1)


def test_currency_round_supports_custom_places() -> None:
    assert currency_round(Decimal("10.4166666")) == Decimal("10.42")
    assert currency_round(Decimal("10.4166666"), places=4) == Decimal("10.4167")
