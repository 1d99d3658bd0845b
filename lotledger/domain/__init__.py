"""Domain models used across application layer boundaries."""

from .errors import (
	CorporateActionConflictError,
	InsufficientLotsError,
	LedgerError,
	RateUnavailableError,
	UnknownSecurityError,
)
from .event_codec import domain_event_from_payload, domain_event_to_payload
from .models import (
	Account,
	CashFlowCategory,
	CashFlowEntry,
	CashMovementEvent,
	CashMovementKind,
	CorporateAction,
	CorporateActionEvent,
	HealthStatus,
	LedgerEvent,
	Lot,
	LotMatch,
	RealizedGain,
	RealizedGainKind,
	ReverseStockSplit,
	SecurityListing,
	SpinOff,
	StockSplit,
	SymbolChange,
	TradeEvent,
	TradeSide,
)
from .tax_year import CALENDAR_TAX_YEAR, TaxYearPolicy
from .timeline import domain_build_stage_event

__all__ = [
	"Account",
	"CALENDAR_TAX_YEAR",
	"CashFlowCategory",
	"CashFlowEntry",
	"CashMovementEvent",
	"CashMovementKind",
	"CorporateAction",
	"CorporateActionConflictError",
	"CorporateActionEvent",
	"HealthStatus",
	"InsufficientLotsError",
	"LedgerError",
	"LedgerEvent",
	"Lot",
	"LotMatch",
	"RateUnavailableError",
	"RealizedGain",
	"RealizedGainKind",
	"ReverseStockSplit",
	"SecurityListing",
	"SpinOff",
	"StockSplit",
	"SymbolChange",
	"TaxYearPolicy",
	"TradeEvent",
	"TradeSide",
	"UnknownSecurityError",
	"domain_build_stage_event",
	"domain_event_from_payload",
	"domain_event_to_payload",
]
