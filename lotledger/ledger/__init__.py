"""Ledger layer package for lot replay, corporate actions and lot snapshots."""

from .corporate_actions import CorporateActionOutcome, corporate_action_apply, corporate_action_materialize_registry
from .fifo_engine import LedgerReplayResult, ledger_replay_account, ledger_sort_events
from .gains import gains_build_realized
from .interfaces import (
	CashInLieuBasisPolicy,
	CashInLieuRateDatePolicy,
	LedgerPort,
	LedgerReplayConfig,
	PriceLookupPort,
)
from .lot_book import ConsumedLotSlice, LotBook, OpenLot
from .replay_service import LedgerReplayService, ReplayCollaborators, StoredPriceLookup
from .snapshot import (
	LotState,
	Position,
	PositionMismatch,
	UnrealizedGain,
	snapshot_reconcile_positions,
	snapshot_unrealized_gains,
)

__all__ = [
	"CashInLieuBasisPolicy",
	"CashInLieuRateDatePolicy",
	"ConsumedLotSlice",
	"CorporateActionOutcome",
	"LedgerPort",
	"LedgerReplayConfig",
	"LedgerReplayResult",
	"LedgerReplayService",
	"LotBook",
	"LotState",
	"OpenLot",
	"Position",
	"PositionMismatch",
	"PriceLookupPort",
	"ReplayCollaborators",
	"StoredPriceLookup",
	"UnrealizedGain",
	"corporate_action_apply",
	"corporate_action_materialize_registry",
	"gains_build_realized",
	"ledger_replay_account",
	"ledger_sort_events",
	"snapshot_reconcile_positions",
	"snapshot_unrealized_gains",
]
