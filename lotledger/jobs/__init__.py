"""Job layer package for workflow orchestration boundaries."""

from .interfaces import AccountReplayOutcome, JobExecutionResult, JobOrchestratorPort
from .replay_orchestrator import REPLAY_COLLABORATOR_LOAD_ERROR, REPLAY_UNEXPECTED_ERROR, PortfolioReplayOrchestrator

__all__ = [
	"AccountReplayOutcome",
	"JobExecutionResult",
	"JobOrchestratorPort",
	"PortfolioReplayOrchestrator",
	"REPLAY_COLLABORATOR_LOAD_ERROR",
	"REPLAY_UNEXPECTED_ERROR",
]
