"""Tax-year boundary policy used to bucket realized gains and cash flows."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class TaxYearPolicy:
    """Jurisdiction tax-year boundary.

    A tax year is labelled by the calendar year in which it starts. The default
    boundary (January 1st) makes the tax year equal to the calendar year.

    Attributes:
        start_month: Month the tax year starts in.
        start_day: Day of month the tax year starts on.
    """

    start_month: int = 1
    start_day: int = 1

    def __post_init__(self) -> None:
        try:
            date(2000, self.start_month, self.start_day)
        except ValueError as error:
            raise ValueError(
                f"invalid tax year start month={self.start_month} day={self.start_day}"
            ) from error
        if (self.start_month, self.start_day) == (2, 29):
            raise ValueError("tax year must not start on February 29")

    def tax_year_for(self, on_date: date) -> int:
        """Return the tax year a date belongs to.

        Args:
            on_date: Event date.

        Returns:
            int: Tax-year label.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        if (on_date.month, on_date.day) >= (self.start_month, self.start_day):
            return on_date.year
        return on_date.year - 1

    def tax_year_bounds(self, tax_year: int) -> tuple[date, date]:
        """Return the inclusive first and exclusive end date of a tax year.

        Args:
            tax_year: Tax-year label.

        Returns:
            tuple[date, date]: Start date and the start date of the following tax year.

        Raises:
            ValueError: Raised when the year is out of supported range.
        """

        return (
            date(tax_year, self.start_month, self.start_day),
            date(tax_year + 1, self.start_month, self.start_day),
        )


CALENDAR_TAX_YEAR = TaxYearPolicy()

__all__ = ["CALENDAR_TAX_YEAR", "TaxYearPolicy"]
