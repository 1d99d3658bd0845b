"""Cash-flow aggregation per tax year, category and currency."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from lotledger.domain import CALENDAR_TAX_YEAR, CashFlowCategory, CashFlowEntry, TaxYearPolicy


@dataclass(frozen=True)
class CashFlowTotal:
    """Total of one (currency, category) bucket."""

    currency: str
    category: CashFlowCategory
    amount: Decimal
    reporting_amount: Decimal
    entry_count: int


@dataclass(frozen=True)
class CashFlowSummary:
    """Cash-flow totals of one tax year.

    Attributes:
        tax_year: Summarized tax year.
        totals: Bucket totals ordered by currency then category.
        reporting_totals_by_category: Reporting-currency total per category.
        net_reporting_amount: Net reporting-currency cash flow of the year.
    """

    tax_year: int
    totals: tuple[CashFlowTotal, ...]
    reporting_totals_by_category: dict[str, Decimal]
    net_reporting_amount: Decimal


def cash_flow_filter_year(
    cash_flows: Iterable[CashFlowEntry],
    tax_year: int,
    tax_year_policy: TaxYearPolicy = CALENDAR_TAX_YEAR,
) -> list[CashFlowEntry]:
    """Return entries of one tax year ordered by date, account and sequence."""

    return sorted(
        (entry for entry in cash_flows if tax_year_policy.tax_year_for(entry.date) == tax_year),
        key=lambda entry: (entry.date, entry.account_id, entry.sequence, entry.category.value),
    )


def cash_flow_summarize(
    cash_flows: Iterable[CashFlowEntry],
    tax_year: int,
    tax_year_policy: TaxYearPolicy = CALENDAR_TAX_YEAR,
) -> CashFlowSummary:
    """Summarize cash-flow entries of one tax year.

    Entries of several accounts may be mixed; aggregation is order-independent.

    Args:
        cash_flows: Cash-flow entries of one or more accounts.
        tax_year: Tax year to summarize.
        tax_year_policy: Tax-year boundary policy.

    Returns:
        CashFlowSummary: Deterministically ordered totals.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    buckets: dict[tuple[str, CashFlowCategory], list[CashFlowEntry]] = {}
    for entry in cash_flow_filter_year(cash_flows, tax_year, tax_year_policy):
        buckets.setdefault((entry.currency, entry.category), []).append(entry)

    totals = tuple(
        CashFlowTotal(
            currency=currency,
            category=category,
            amount=sum((entry.amount for entry in entries), Decimal("0")),
            reporting_amount=sum((entry.reporting_amount for entry in entries), Decimal("0")),
            entry_count=len(entries),
        )
        for (currency, category), entries in sorted(buckets.items(), key=lambda item: (item[0][0], item[0][1].value))
    )

    reporting_totals_by_category: dict[str, Decimal] = {}
    for total in totals:
        reporting_totals_by_category[total.category.value] = (
            reporting_totals_by_category.get(total.category.value, Decimal("0")) + total.reporting_amount
        )

    return CashFlowSummary(
        tax_year=tax_year,
        totals=totals,
        reporting_totals_by_category=dict(sorted(reporting_totals_by_category.items())),
        net_reporting_amount=sum((total.reporting_amount for total in totals), Decimal("0")),
    )
