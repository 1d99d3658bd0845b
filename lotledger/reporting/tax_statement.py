"""Deterministic tax-statement input built from realized gains and cash flows."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable

from lotledger.currency import CurrencyConverter, currency_round
from lotledger.domain import CashFlowCategory, CashFlowEntry, RealizedGain, RealizedGainKind

from .cash_flow import cash_flow_filter_year
from .jurisdiction import Jurisdiction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockSaleLine:
    """One disposal as declared in the jurisdiction currency."""

    account_id: str
    security_id: str
    symbol: str
    sale_sequence: int
    sale_date: date
    kind: RealizedGainKind
    quantity: Decimal
    proceeds: Decimal
    commission: Decimal
    cost_basis: Decimal
    gain: Decimal


@dataclass(frozen=True)
class DividendLine:
    """One dividend paired with the tax withheld at source.

    Attributes:
        account_id: Owning account identifier.
        date: Payment date.
        symbol: Issuer symbol.
        currency: Payment currency.
        amount: Gross dividend in the payment currency.
        paid_tax: Tax withheld at source in the payment currency.
        amount_local: Gross dividend in the jurisdiction currency.
        paid_tax_local: Withheld tax in the jurisdiction currency.
        tax: Tax due in the jurisdiction.
        tax_to_pay: Tax still owed after withholding.
    """

    account_id: str
    date: date
    symbol: str
    currency: str
    amount: Decimal
    paid_tax: Decimal
    amount_local: Decimal
    paid_tax_local: Decimal
    tax: Decimal
    tax_to_pay: Decimal


@dataclass(frozen=True)
class TaxStatementInput:
    """Structured input for an external tax-statement encoder.

    Lines are sorted so repeated builds from the same inputs are identical.
    """

    jurisdiction_code: str
    currency: str
    tax_year: int
    stock_sales: tuple[StockSaleLine, ...]
    dividends: tuple[DividendLine, ...]
    total_proceeds: Decimal
    total_cost_basis: Decimal
    total_gain: Decimal
    total_dividends: Decimal
    total_paid_tax: Decimal
    total_tax_to_pay: Decimal
    total_interest: Decimal


def tax_statement_build(
    gains: Iterable[RealizedGain],
    cash_flows: Iterable[CashFlowEntry],
    jurisdiction: Jurisdiction,
    tax_year: int,
    converter: CurrencyConverter,
) -> TaxStatementInput:
    """Build the tax-statement input of one tax year.

    Simulated gains are never declared. Dividends are paired with withholding
    entries of the same account, date and symbol.

    Args:
        gains: Realized gains of one or more accounts.
        cash_flows: Cash-flow entries of one or more accounts.
        jurisdiction: Jurisdiction declaring the statement.
        tax_year: Tax year to declare.
        converter: Converter used for jurisdiction-currency amounts.

    Returns:
        TaxStatementInput: Deterministic statement input.

    Raises:
        ValueError: Raised when tax was withheld for a dividend that does not exist, or was
            paid on a dividend whose reversals cancel or exceed it.
        RateUnavailableError: Raised when a jurisdiction-currency rate is missing.
    """

    policy = jurisdiction.tax_year_policy
    stock_sales = sorted(
        (
            _tax_statement_sale_line(gain, jurisdiction, converter)
            for gain in gains
            if not gain.simulated and policy.tax_year_for(gain.sale_date) == tax_year
        ),
        key=lambda line: (line.sale_date, line.account_id, line.sale_sequence, line.security_id),
    )

    year_cash_flows = cash_flow_filter_year(cash_flows, tax_year, policy)
    dividends = _tax_statement_dividend_lines(year_cash_flows, jurisdiction, converter)
    total_interest = sum(
        (
            converter.currency_convert_between(entry.amount, entry.currency, jurisdiction.currency, entry.date)
            for entry in year_cash_flows
            if entry.category is CashFlowCategory.INTEREST
        ),
        Decimal("0"),
    )

    logger.debug(
        "Tax statement built jurisdiction=%s tax_year=%s stock_sales=%s dividends=%s",
        jurisdiction.code,
        tax_year,
        len(stock_sales),
        len(dividends),
    )
    return TaxStatementInput(
        jurisdiction_code=jurisdiction.code,
        currency=jurisdiction.currency,
        tax_year=tax_year,
        stock_sales=tuple(stock_sales),
        dividends=tuple(dividends),
        total_proceeds=sum((line.proceeds for line in stock_sales), Decimal("0")),
        total_cost_basis=sum((line.cost_basis for line in stock_sales), Decimal("0")),
        total_gain=sum((line.gain for line in stock_sales), Decimal("0")),
        total_dividends=sum((line.amount_local for line in dividends), Decimal("0")),
        total_paid_tax=sum((line.paid_tax_local for line in dividends), Decimal("0")),
        total_tax_to_pay=sum((line.tax_to_pay for line in dividends), Decimal("0")),
        total_interest=total_interest,
    )


def _tax_statement_sale_line(
    gain: RealizedGain,
    jurisdiction: Jurisdiction,
    converter: CurrencyConverter,
) -> StockSaleLine:
    if gain.reporting_currency == jurisdiction.currency:
        proceeds = gain.proceeds_reporting
        commission = gain.commission_reporting
        cost_basis = gain.cost_basis_reporting
    else:
        proceeds = converter.currency_convert_between(
            gain.proceeds, gain.proceeds_currency, jurisdiction.currency, gain.sale_date
        )
        commission = converter.currency_convert_between(
            gain.commission, gain.proceeds_currency, jurisdiction.currency, gain.sale_date
        )
        cost_basis = sum(
            (
                converter.currency_convert_between(
                    match.cost_basis, match.cost_currency, jurisdiction.currency, match.acquisition_date
                )
                for match in gain.matches
            ),
            Decimal("0"),
        )

    return StockSaleLine(
        account_id=gain.account_id,
        security_id=gain.security_id,
        symbol=gain.symbol,
        sale_sequence=gain.sale_sequence,
        sale_date=gain.sale_date,
        kind=gain.kind,
        quantity=gain.quantity,
        proceeds=proceeds,
        commission=commission,
        cost_basis=cost_basis,
        gain=currency_round(proceeds - commission - cost_basis),
    )


def _tax_statement_dividend_lines(
    cash_flows: list[CashFlowEntry],
    jurisdiction: Jurisdiction,
    converter: CurrencyConverter,
) -> list[DividendLine]:
    dividends: dict[tuple[str, date, str], list[CashFlowEntry]] = {}
    withholdings: dict[tuple[str, date, str], list[CashFlowEntry]] = {}
    for entry in cash_flows:
        if entry.category is CashFlowCategory.DIVIDEND:
            dividends.setdefault((entry.account_id, entry.date, entry.symbol or ""), []).append(entry)
        elif entry.category is CashFlowCategory.TAX_WITHHOLDING:
            withholdings.setdefault((entry.account_id, entry.date, entry.symbol or ""), []).append(entry)

    orphan_keys = sorted(set(withholdings) - set(dividends))
    if orphan_keys:
        account_id, paid_date, symbol = orphan_keys[0]
        raise ValueError(
            f"tax withheld without a matching dividend account={account_id} "
            f"date={paid_date.isoformat()} symbol={symbol or '-'}"
        )

    lines: list[DividendLine] = []
    for key in sorted(dividends):
        account_id, paid_date, symbol = key
        dividend_entries = dividends[key]
        tax_entries = withholdings.get(key, [])
        currency = dividend_entries[0].currency

        amount = sum((entry.amount for entry in dividend_entries), Decimal("0"))
        paid_tax = -sum((entry.amount for entry in tax_entries), Decimal("0"))
        if amount < Decimal("0"):
            raise ValueError(
                f"dividend reversals exceed accruals account={account_id} "
                f"date={paid_date.isoformat()} symbol={symbol or '-'}"
            )
        if amount == Decimal("0"):
            if paid_tax != Decimal("0"):
                raise ValueError(
                    f"tax paid on a fully reversed dividend account={account_id} "
                    f"date={paid_date.isoformat()} symbol={symbol or '-'}"
                )
            continue
        amount_local = sum(
            (
                converter.currency_convert_between(entry.amount, entry.currency, jurisdiction.currency, paid_date)
                for entry in dividend_entries
            ),
            Decimal("0"),
        )
        paid_tax_local = -sum(
            (
                converter.currency_convert_between(entry.amount, entry.currency, jurisdiction.currency, paid_date)
                for entry in tax_entries
            ),
            Decimal("0"),
        )

        lines.append(
            DividendLine(
                account_id=account_id,
                date=paid_date,
                symbol=symbol,
                currency=currency,
                amount=amount,
                paid_tax=paid_tax,
                amount_local=amount_local,
                paid_tax_local=paid_tax_local,
                tax=jurisdiction.jurisdiction_dividend_tax(amount_local),
                tax_to_pay=jurisdiction.jurisdiction_dividend_tax_to_pay(amount_local, paid_tax_local),
            )
        )
    return lines
