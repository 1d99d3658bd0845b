"""Tax jurisdiction rules used when building tax-statement inputs."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from lotledger.currency import currency_round
from lotledger.domain import CALENDAR_TAX_YEAR, TaxYearPolicy


@dataclass(frozen=True)
class Jurisdiction:
    """Tax jurisdiction parameters.

    Attributes:
        code: Jurisdiction label, for example `US` or `RU`.
        currency: Currency tax amounts are declared in.
        dividend_tax_rate: Dividend tax rate as a fraction.
        tax_year_policy: Tax-year boundary of the jurisdiction.
    """

    code: str
    currency: str
    dividend_tax_rate: Decimal
    tax_year_policy: TaxYearPolicy = field(default=CALENDAR_TAX_YEAR)

    def __post_init__(self) -> None:
        if not self.code.strip():
            raise ValueError("jurisdiction code must not be blank")
        if not self.currency.strip():
            raise ValueError("jurisdiction currency must not be blank")
        if not Decimal("0") <= self.dividend_tax_rate <= Decimal("1"):
            raise ValueError("dividend_tax_rate must be within [0, 1]")

    def jurisdiction_dividend_tax(self, amount: Decimal) -> Decimal:
        """Return the tax due on a dividend amount, rounded to cents."""

        return currency_round(amount * self.dividend_tax_rate)

    def jurisdiction_dividend_tax_to_pay(self, amount: Decimal, paid_tax: Decimal) -> Decimal:
        """Return the tax still owed after tax already withheld at source.

        Args:
            amount: Gross dividend in the jurisdiction currency.
            paid_tax: Tax withheld at source in the jurisdiction currency.

        Returns:
            Decimal: Non-negative remaining tax rounded to cents.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        remaining_tax = self.jurisdiction_dividend_tax(amount) - currency_round(paid_tax)
        return max(Decimal("0.00"), remaining_tax)
