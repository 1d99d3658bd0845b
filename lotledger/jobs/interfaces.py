"""Typed interfaces for job-layer orchestration responsibilities."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from lotledger.ledger import LedgerReplayResult


@dataclass(frozen=True)
class AccountReplayOutcome:
    """Replay outcome of one account within a run.

    Attributes:
        account_id: Replayed account.
        status: `success` or `failed`.
        error_code: Stable failure code when the replay failed.
        error_message: Failure description when the replay failed.
        error_context: Structured lot/event context of the failure.
        result: Replay result when the replay succeeded.
    """

    account_id: str
    status: str
    error_code: str | None = None
    error_message: str | None = None
    error_context: dict[str, object] = field(default_factory=dict)
    result: LedgerReplayResult | None = None


@dataclass(frozen=True)
class JobExecutionResult:
    """Result contract for long-running workflow execution.

    Attributes:
        job_name: Job identifier.
        status: Final execution state.
        replay_run_id: Persisted run identifier, when runs are persisted.
        account_outcomes: Per-account outcomes ordered by account identifier.
        timeline: Structured stage timeline of the run.
    """

    job_name: str
    status: str
    replay_run_id: str | None = None
    account_outcomes: tuple[AccountReplayOutcome, ...] = ()
    timeline: tuple[dict[str, object], ...] = ()

    @property
    def failed_account_count(self) -> int:
        return sum(1 for outcome in self.account_outcomes if outcome.status != "success")


class JobOrchestratorPort(Protocol):
    """Port definition for orchestrating replay jobs."""

    def job_supported_names(self) -> tuple[str, ...]:
        """Return the set of workflow names this orchestrator can execute.

        Returns:
            tuple[str, ...]: Deterministic list of supported job names.

        Raises:
            RuntimeError: Raised when supported job metadata is unavailable.
        """

    def job_execute(self, job_name: str) -> JobExecutionResult:
        """Execute one named workflow in the job layer.

        Args:
            job_name: Workflow name.

        Returns:
            JobExecutionResult: Final execution status payload.

        Raises:
            RuntimeError: Raised when job execution fails.
        """
