"""Regression tests for jurisdiction rules, cash-flow summaries and tax-statement input."""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from lotledger.currency import CurrencyConverter
from lotledger.domain import (
    Account,
    CashFlowCategory,
    CashMovementEvent,
    CashMovementKind,
    SecurityListing,
    TaxYearPolicy,
    TradeEvent,
    TradeSide,
)
from lotledger.ledger import LedgerReplayResult, ledger_replay_account
from lotledger.reporting import Jurisdiction, cash_flow_filter_year, cash_flow_summarize, tax_statement_build
from lotledger.securities import SecurityRegistry

_ACME = "US0000000001"


def _replay_sample_account(converter: CurrencyConverter) -> LedgerReplayResult:
    """Replay one account with a sale, a dividend with withholding and interest.

    Args:
        converter: Currency converter used by replay.

    Returns:
        LedgerReplayResult: Replay output fixture.

    Raises:
        LedgerError: Raised when the fixture cannot be replayed.
    """

    events = [
        TradeEvent(1, date(2024, 1, 2), TradeSide.BUY, "ACME", Decimal("10"), Decimal("100"), "USD"),
        TradeEvent(2, date(2024, 2, 1), TradeSide.SELL, "ACME", Decimal("10"), Decimal("120"), "USD"),
        CashMovementEvent(3, date(2023, 12, 15), CashMovementKind.DIVIDEND, Decimal("50"), "USD", symbol="ACME"),
        CashMovementEvent(4, date(2024, 3, 1), CashMovementKind.DIVIDEND, Decimal("100"), "USD", symbol="ACME"),
        CashMovementEvent(5, date(2024, 3, 1), CashMovementKind.TAX_WITHHOLDING, Decimal("10"), "USD", symbol="ACME"),
        CashMovementEvent(6, date(2024, 4, 1), CashMovementKind.INTEREST, Decimal("5"), "USD"),
        CashMovementEvent(7, date(2024, 4, 2), CashMovementKind.FEE, Decimal("2"), "USD"),
    ]
    return ledger_replay_account(
        account=Account(account_id="ACC-1", broker="test-broker", base_currency="USD"),
        events=events,
        registry=SecurityRegistry([SecurityListing(security_id=_ACME, symbol="ACME")]),
        converter=converter,
    )


def test_jurisdiction_dividend_tax_is_never_negative() -> None:
    jurisdiction = Jurisdiction(code="RU", currency="RUB", dividend_tax_rate=Decimal("0.13"))

    assert jurisdiction.jurisdiction_dividend_tax(Decimal("100")) == Decimal("13.00")
    assert jurisdiction.jurisdiction_dividend_tax_to_pay(Decimal("100"), Decimal("10")) == Decimal("3.00")
    assert jurisdiction.jurisdiction_dividend_tax_to_pay(Decimal("100"), Decimal("20")) == Decimal("0.00")


def test_jurisdiction_rejects_invalid_parameters() -> None:
    with pytest.raises(ValueError):
        Jurisdiction(code=" ", currency="USD", dividend_tax_rate=Decimal("0.1"))
    with pytest.raises(ValueError):
        Jurisdiction(code="US", currency="USD", dividend_tax_rate=Decimal("1.5"))


def test_cash_flow_summarize_groups_by_currency_and_category() -> None:
    """Aggregate one tax year by currency and category.

    Returns:
        None: Assertions validate summary totals.

    Raises:
        AssertionError: Raised when other years leak into the summary.
    """

    result = _replay_sample_account(CurrencyConverter(reporting_currency="USD", rates={}))

    summary = cash_flow_summarize(result.cash_flows, 2024)

    assert [(total.currency, total.category) for total in summary.totals] == [
        ("USD", CashFlowCategory.DIVIDEND),
        ("USD", CashFlowCategory.FEE),
        ("USD", CashFlowCategory.INTEREST),
        ("USD", CashFlowCategory.TAX_WITHHOLDING),
    ]
    assert summary.reporting_totals_by_category == {
        "DIVIDEND": Decimal("100.00"),
        "FEE": Decimal("-2.00"),
        "INTEREST": Decimal("5.00"),
        "TAX_WITHHOLDING": Decimal("-10.00"),
    }
    assert summary.net_reporting_amount == Decimal("93.00")


def test_cash_flow_filter_year_honors_fiscal_year_boundary() -> None:
    result = _replay_sample_account(CurrencyConverter(reporting_currency="USD", rates={}))
    april_policy = TaxYearPolicy(start_month=4, start_day=1)

    entries = cash_flow_filter_year(result.cash_flows, 2023, april_policy)

    assert [entry.sequence for entry in entries] == [3, 4, 5]


def test_tax_statement_pairs_dividends_with_withholding_and_skips_simulated_gains() -> None:
    """Build declared sale and dividend lines for one tax year.

    Returns:
        None: Assertions validate statement lines and totals.

    Raises:
        AssertionError: Raised when simulated gains or other years are declared.
    """

    converter = CurrencyConverter(reporting_currency="USD", rates={})
    result = _replay_sample_account(converter)
    simulated_gain = replace(result.realized_gains[0], sale_sequence=99, simulated=True)
    jurisdiction = Jurisdiction(code="US", currency="USD", dividend_tax_rate=Decimal("0.13"))

    statement = tax_statement_build(
        gains=[simulated_gain, *result.realized_gains],
        cash_flows=result.cash_flows,
        jurisdiction=jurisdiction,
        tax_year=2024,
        converter=converter,
    )

    assert [line.sale_sequence for line in statement.stock_sales] == [2]
    assert statement.total_proceeds == Decimal("1200.00")
    assert statement.total_cost_basis == Decimal("1000.00")
    assert statement.total_gain == Decimal("200.00")

    assert len(statement.dividends) == 1
    dividend = statement.dividends[0]
    assert dividend.symbol == "ACME"
    assert dividend.amount == Decimal("100")
    assert dividend.paid_tax == Decimal("10")
    assert dividend.tax == Decimal("13.00")
    assert dividend.tax_to_pay == Decimal("3.00")
    assert statement.total_tax_to_pay == Decimal("3.00")
    assert statement.total_interest == Decimal("5.00")

    rebuilt = tax_statement_build(
        gains=list(reversed(result.realized_gains)),
        cash_flows=list(reversed(result.cash_flows)),
        jurisdiction=jurisdiction,
        tax_year=2024,
        converter=converter,
    )
    assert rebuilt == statement


def test_tax_statement_converts_into_jurisdiction_currency() -> None:
    """Convert proceeds at the sale date and cost at each acquisition date.

    Returns:
        None: Assertions validate cross-currency statement amounts.

    Raises:
        AssertionError: Raised when reporting-currency amounts are declared unchanged.
    """

    converter = CurrencyConverter(
        reporting_currency="USD",
        rates={
            ("EUR", date(2024, 1, 2)): Decimal("1.25"),
            ("EUR", date(2024, 2, 1)): Decimal("1.2"),
            ("EUR", date(2024, 3, 1)): Decimal("1.25"),
            ("EUR", date(2024, 4, 1)): Decimal("1.25"),
        },
    )
    result = _replay_sample_account(converter)

    statement = tax_statement_build(
        gains=result.realized_gains,
        cash_flows=result.cash_flows,
        jurisdiction=Jurisdiction(code="DE", currency="EUR", dividend_tax_rate=Decimal("0.13")),
        tax_year=2024,
        converter=converter,
    )

    sale = statement.stock_sales[0]
    assert sale.proceeds == Decimal("1000.00")
    assert sale.cost_basis == Decimal("800.00")
    assert sale.gain == Decimal("200.00")
    assert statement.dividends[0].amount_local == Decimal("80.00")
    assert statement.dividends[0].paid_tax_local == Decimal("8.00")
    assert statement.dividends[0].tax == Decimal("10.40")
    assert statement.dividends[0].tax_to_pay == Decimal("2.40")
    assert statement.total_interest == Decimal("4.00")


def test_tax_statement_rejects_withholding_without_dividend() -> None:
    converter = CurrencyConverter(reporting_currency="USD", rates={})
    result = _replay_sample_account(converter)
    orphan_cash_flows = [entry for entry in result.cash_flows if entry.category is not CashFlowCategory.DIVIDEND]

    with pytest.raises(ValueError):
        tax_statement_build(
            gains=result.realized_gains,
            cash_flows=orphan_cash_flows,
            jurisdiction=Jurisdiction(code="US", currency="USD", dividend_tax_rate=Decimal("0.13")),
            tax_year=2024,
            converter=converter,
        )


def _replay_cash_movements(events: list[CashMovementEvent]) -> LedgerReplayResult:
    return ledger_replay_account(
        account=Account(account_id="ACC-1", broker="test-broker", base_currency="USD"),
        events=events,
        registry=SecurityRegistry([SecurityListing(security_id=_ACME, symbol="ACME")]),
        converter=CurrencyConverter(reporting_currency="USD", rates={}),
    )


def test_tax_statement_nets_dividend_reversals() -> None:
    """Net reversals into their dividend and drop fully reversed dividends.

    Returns:
        None: Assertions validate dividend lines after reversals.

    Raises:
        AssertionError: Raised when a reversal is declared as income.
    """

    result = _replay_cash_movements(
        [
            CashMovementEvent(1, date(2024, 3, 1), CashMovementKind.DIVIDEND, Decimal("100"), "USD", symbol="ACME"),
            CashMovementEvent(2, date(2024, 3, 1), CashMovementKind.DIVIDEND, Decimal("-30"), "USD", symbol="ACME"),
            CashMovementEvent(
                3, date(2024, 3, 1), CashMovementKind.TAX_WITHHOLDING, Decimal("7"), "USD", symbol="ACME"
            ),
            CashMovementEvent(4, date(2024, 4, 1), CashMovementKind.DIVIDEND, Decimal("50"), "USD", symbol="ACME"),
            CashMovementEvent(5, date(2024, 4, 1), CashMovementKind.DIVIDEND, Decimal("-50"), "USD", symbol="ACME"),
        ]
    )

    statement = tax_statement_build(
        gains=result.realized_gains,
        cash_flows=result.cash_flows,
        jurisdiction=Jurisdiction(code="US", currency="USD", dividend_tax_rate=Decimal("0.13")),
        tax_year=2024,
        converter=CurrencyConverter(reporting_currency="USD", rates={}),
    )

    assert [(line.date, line.amount, line.paid_tax) for line in statement.dividends] == [
        (date(2024, 3, 1), Decimal("70"), Decimal("7")),
    ]
    assert statement.dividends[0].tax == Decimal("9.10")
    assert statement.dividends[0].tax_to_pay == Decimal("2.10")
    assert statement.total_dividends == Decimal("70.00")


@pytest.mark.parametrize(
    ("reversal", "message"),
    [(Decimal("-100"), "fully reversed"), (Decimal("-120"), "exceed")],
)
def test_tax_statement_rejects_tax_on_reversed_dividend(reversal: Decimal, message: str) -> None:
    result = _replay_cash_movements(
        [
            CashMovementEvent(1, date(2024, 3, 1), CashMovementKind.DIVIDEND, Decimal("100"), "USD", symbol="ACME"),
            CashMovementEvent(2, date(2024, 3, 1), CashMovementKind.DIVIDEND, reversal, "USD", symbol="ACME"),
            CashMovementEvent(
                3, date(2024, 3, 1), CashMovementKind.TAX_WITHHOLDING, Decimal("10"), "USD", symbol="ACME"
            ),
        ]
    )

    with pytest.raises(ValueError, match=message):
        tax_statement_build(
            gains=result.realized_gains,
            cash_flows=result.cash_flows,
            jurisdiction=Jurisdiction(code="US", currency="USD", dividend_tax_rate=Decimal("0.13")),
            tax_year=2024,
            converter=CurrencyConverter(reporting_currency="USD", rates={}),
        )
