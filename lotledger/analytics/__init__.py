"""Analytics layer package for what-if disposals and rebalancing."""

from .interfaces import (
	OrderSide,
	OrderSuggestion,
	Quote,
	RebalanceConstraints,
	SellInstruction,
	SimulatedGainReport,
	SimulationFailure,
)
from .rebalancer import rebalance, rebalance_from_lot_state
from .simulate_sell import QUOTE_UNAVAILABLE, simulate_sell

__all__ = [
	"OrderSide",
	"OrderSuggestion",
	"QUOTE_UNAVAILABLE",
	"Quote",
	"RebalanceConstraints",
	"SellInstruction",
	"SimulatedGainReport",
	"SimulationFailure",
	"rebalance",
	"rebalance_from_lot_state",
	"simulate_sell",
]
