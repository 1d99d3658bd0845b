"""Job-layer replay orchestrator with per-account failure isolation."""

from __future__ import annotations

import logging
import traceback
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

from lotledger.db import EventStoreRepositoryPort, ReplayRunRepositoryPort
from lotledger.domain import LedgerError, domain_build_stage_event
from lotledger.ledger import LedgerReplayService, ReplayCollaborators

from .interfaces import AccountReplayOutcome, JobExecutionResult, JobOrchestratorPort

logger = logging.getLogger(__name__)

REPLAY_UNEXPECTED_ERROR = "REPLAY_UNEXPECTED_ERROR"
REPLAY_COLLABORATOR_LOAD_ERROR = "REPLAY_COLLABORATOR_LOAD_ERROR"


class PortfolioReplayOrchestrator(JobOrchestratorPort):
    """Replay every stored account in parallel from shared read-only collaborators."""

    _REPLAY_JOB_NAME = "replay_run"

    def __init__(
        self,
        replay_service: LedgerReplayService,
        event_repository: EventStoreRepositoryPort,
        replay_run_repository: ReplayRunRepositoryPort | None = None,
        max_workers: int = 4,
    ):
        """Initialize replay orchestrator dependencies.

        Args:
            replay_service: Ledger replay service.
            event_repository: Event store used to enumerate accounts.
            replay_run_repository: Optional run repository for timeline persistence.
            max_workers: Maximum number of accounts replayed concurrently.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when dependencies or limits are invalid.
        """

        if replay_service is None:
            raise ValueError("replay_service must not be None")
        if event_repository is None:
            raise ValueError("event_repository must not be None")
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")

        self._replay_service = replay_service
        self._event_repository = event_repository
        self._replay_run_repository = replay_run_repository
        self._max_workers = max_workers

    def job_supported_names(self) -> tuple[str, ...]:
        """Return supported job names.

        Returns:
            tuple[str, ...]: Supported job names.

        Raises:
            RuntimeError: This implementation does not raise runtime errors.
        """

        return (self._REPLAY_JOB_NAME,)

    def job_execute(self, job_name: str) -> JobExecutionResult:
        """Replay every account and record a stage timeline.

        A failing account never affects the others. The run is `success` only
        when every account replays; any account failure makes it
        `partial_failure`. A collaborator load failure fails the whole run.

        Args:
            job_name: Name of job to execute.

        Returns:
            JobExecutionResult: Final status with per-account outcomes.

        Raises:
            ValueError: Raised when job name is unsupported.
            ReplayRunAlreadyActiveError: Raised when another persisted run is active.
            RuntimeError: Raised when the account list cannot be read.
        """

        normalized_job_name = job_name.strip()
        if normalized_job_name != self._REPLAY_JOB_NAME:
            raise ValueError(f"unsupported job_name={normalized_job_name}")

        timeline: list[dict[str, object]] = [domain_build_stage_event(stage="run", status="started")]
        account_ids = sorted(account.account_id for account in self._event_repository.db_account_list())

        replay_run_id = None
        if self._replay_run_repository is not None:
            run_record = self._replay_run_repository.db_replay_run_create_started(account_count=len(account_ids))
            replay_run_id = run_record.replay_run_id

        timeline.append(domain_build_stage_event(stage="collaborators", status="started"))
        try:
            collaborators = self._replay_service.ledger_load_collaborators()
        except (LedgerError, ConnectionError, TimeoutError, ValueError, RuntimeError) as error:
            logger.error("Replay collaborators failed to load error=%s", error)
            timeline.append(
                domain_build_stage_event(
                    stage="collaborators",
                    status="failed",
                    details={
                        "error_code": getattr(error, "error_code", REPLAY_COLLABORATOR_LOAD_ERROR),
                        "error_type": type(error).__name__,
                        "error_message": str(error),
                        "traceback": traceback.format_exc(),
                    },
                )
            )
            timeline.append(domain_build_stage_event(stage="run", status="failed"))
            return self._job_finalize(normalized_job_name, "failed", replay_run_id, (), timeline)
        timeline.append(domain_build_stage_event(stage="collaborators", status="completed"))

        replay_started_at = datetime.now(timezone.utc)
        with ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="replay") as executor:
            futures = [
                executor.submit(self._job_replay_account, account_id, collaborators) for account_id in account_ids
            ]
            outcomes = tuple(future.result() for future in futures)

        for outcome in outcomes:
            if outcome.status == "success":
                timeline.append(
                    domain_build_stage_event(stage="account_replay", status="completed", account_id=outcome.account_id)
                )
            else:
                timeline.append(
                    domain_build_stage_event(
                        stage="account_replay",
                        status="failed",
                        account_id=outcome.account_id,
                        details={
                            "error_code": outcome.error_code,
                            "error_message": outcome.error_message,
                            "context": outcome.error_context,
                        },
                    )
                )

        failed_account_count = sum(1 for outcome in outcomes if outcome.status != "success")
        status = "success" if failed_account_count == 0 else "partial_failure"
        timeline.append(
            domain_build_stage_event(
                stage="run",
                status=status,
                details={
                    "account_count": len(account_ids),
                    "failed_account_count": failed_account_count,
                    "replay_duration_ms": max(
                        0,
                        int((datetime.now(timezone.utc) - replay_started_at).total_seconds() * 1000),
                    ),
                },
            )
        )
        logger.info(
            "Replay run finished status=%s accounts=%s failed=%s",
            status,
            len(account_ids),
            failed_account_count,
        )
        return self._job_finalize(normalized_job_name, status, replay_run_id, outcomes, timeline)

    def _job_replay_account(self, account_id: str, collaborators: ReplayCollaborators) -> AccountReplayOutcome:
        """Replay one account and convert any failure into a structured outcome.

        Args:
            account_id: Account identifier.
            collaborators: Shared read-only collaborators.

        Returns:
            AccountReplayOutcome: Success with result, or failure with error code.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        try:
            result = self._replay_service.ledger_replay(account_id, collaborators=collaborators)
        except LedgerError as error:
            logger.warning(
                "Account replay failed account_id=%s error_code=%s error=%s",
                account_id,
                error.error_code,
                error,
            )
            return AccountReplayOutcome(
                account_id=account_id,
                status="failed",
                error_code=error.error_code,
                error_message=str(error),
                error_context=dict(error.context),
            )
        except Exception as error:  # pylint: disable=broad-exception-caught
            logger.warning(
                "Account replay failed account_id=%s error_code=%s error=%s",
                account_id,
                REPLAY_UNEXPECTED_ERROR,
                error,
            )
            return AccountReplayOutcome(
                account_id=account_id,
                status="failed",
                error_code=REPLAY_UNEXPECTED_ERROR,
                error_message=f"{type(error).__name__}: {error}",
            )
        return AccountReplayOutcome(account_id=account_id, status="success", result=result)

    def _job_finalize(
        self,
        job_name: str,
        status: str,
        replay_run_id,
        outcomes: tuple[AccountReplayOutcome, ...],
        timeline: list[dict[str, object]],
    ) -> JobExecutionResult:
        if self._replay_run_repository is not None and replay_run_id is not None:
            self._replay_run_repository.db_replay_run_finalize(
                replay_run_id=replay_run_id,
                status=status,
                failed_account_count=sum(1 for outcome in outcomes if outcome.status != "success"),
                diagnostics=timeline,
            )
        return JobExecutionResult(
            job_name=job_name,
            status=status,
            replay_run_id=None if replay_run_id is None else str(replay_run_id),
            account_outcomes=outcomes,
            timeline=tuple(timeline),
        )
