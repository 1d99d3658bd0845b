"""Reporting layer package for tax-year totals and tax-statement inputs."""

from .cash_flow import CashFlowSummary, CashFlowTotal, cash_flow_filter_year, cash_flow_summarize
from .jurisdiction import Jurisdiction
from .tax_statement import DividendLine, StockSaleLine, TaxStatementInput, tax_statement_build

__all__ = [
	"CashFlowSummary",
	"CashFlowTotal",
	"DividendLine",
	"Jurisdiction",
	"StockSaleLine",
	"TaxStatementInput",
	"cash_flow_filter_year",
	"cash_flow_summarize",
	"tax_statement_build",
]
