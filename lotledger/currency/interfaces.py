"""Typed interfaces for currency-rate collaborators."""

from datetime import date
from decimal import Decimal
from typing import Protocol


class CurrencyRateSourcePort(Protocol):
    """Port definition for materializing a historical rate table before replay."""

    def currency_rate_source_name(self) -> str:
        """Return rate source label for diagnostics.

        Returns:
            str: Rate source identifier.

        Raises:
            RuntimeError: Raised when source metadata is unavailable.
        """

    def currency_rate_table_load(self, reporting_currency: str) -> dict[tuple[str, date], Decimal]:
        """Load the full rate table for one reporting currency.

        Args:
            reporting_currency: Currency the rates convert into.

        Returns:
            dict[tuple[str, date], Decimal]: Rates keyed by (currency, date).

        Raises:
            ConnectionError: Raised when the source cannot be reached.
            ValueError: Raised when the source payload is invalid.
        """
