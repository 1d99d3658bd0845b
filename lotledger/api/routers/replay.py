"""Replay API router composition for trigger and run history endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from lotledger.config import AppSettings
from lotledger.db import ReplayRunAlreadyActiveError, ReplayRunRecord, ReplayRunRepositoryPort
from lotledger.jobs import JobExecutionResult, JobOrchestratorPort


def api_create_replay_router(
    settings: AppSettings,
    replay_orchestrator: JobOrchestratorPort,
    replay_run_repository: ReplayRunRepositoryPort | None = None,
) -> APIRouter:
    """Create replay router with trigger and run list endpoints.

    Args:
        settings: Runtime settings used for pagination defaults.
        replay_orchestrator: Job orchestrator for replay trigger execution.
        replay_run_repository: Optional run repository for history reads.

    Returns:
        APIRouter: Router exposing replay APIs.

    Raises:
        ValueError: Raised when dependencies are invalid.
    """

    if settings is None:
        raise ValueError("settings must not be None")
    if replay_orchestrator is None:
        raise ValueError("replay_orchestrator must not be None")

    router = APIRouter(prefix="/replay", tags=["replay"])

    @router.post("/run")
    def api_replay_run_trigger() -> JSONResponse:
        """Trigger one portfolio replay run via orchestrator.

        Returns:
            JSONResponse: Run status with per-account outcomes, 409 when a run is active.

        Raises:
            RuntimeError: Raised when execution fails unexpectedly.
        """

        try:
            execution_result = replay_orchestrator.job_execute(job_name="replay_run")
        except ReplayRunAlreadyActiveError:
            payload = {
                "status": "error",
                "message": "run already active",
            }
            return JSONResponse(content=payload, status_code=status.HTTP_409_CONFLICT)
        return JSONResponse(
            content=api_serialize_job_execution_result(execution_result),
            status_code=status.HTTP_200_OK,
        )

    @router.get("/runs")
    def api_replay_run_list(
        limit: int = Query(default=settings.api_default_limit, ge=1),
        offset: int = Query(default=0, ge=0),
    ) -> JSONResponse:
        """Return replay runs ordered by latest first.

        Args:
            limit: Max rows to return.
            offset: Rows to skip.

        Returns:
            JSONResponse: Runs list payload, 404 when runs are not persisted.

        Raises:
            RuntimeError: Raised when repository read fails.
        """

        if replay_run_repository is None:
            payload = {
                "status": "error",
                "message": "replay run history is not configured",
            }
            return JSONResponse(content=payload, status_code=status.HTTP_404_NOT_FOUND)

        applied_limit = min(limit, settings.api_max_limit)
        run_rows = replay_run_repository.db_replay_run_list(limit=applied_limit, offset=offset)
        payload = {
            "items": [api_serialize_replay_run_record(run_record) for run_record in run_rows],
            "page": {
                "limit": limit,
                "applied_limit": applied_limit,
                "offset": offset,
                "returned": len(run_rows),
            },
        }
        return JSONResponse(content=payload, status_code=status.HTTP_200_OK)

    return router


def api_serialize_job_execution_result(execution_result: JobExecutionResult) -> dict[str, object]:
    """Serialize one replay execution result without lot payloads.

    Args:
        execution_result: Orchestrator result.

    Returns:
        dict[str, object]: JSON-serializable run summary.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    return {
        "job_name": execution_result.job_name,
        "status": execution_result.status,
        "replay_run_id": execution_result.replay_run_id,
        "failed_account_count": execution_result.failed_account_count,
        "accounts": [
            {
                "account_id": outcome.account_id,
                "status": outcome.status,
                "error_code": outcome.error_code,
                "error_message": outcome.error_message,
                "realized_gain_count": None if outcome.result is None else len(outcome.result.realized_gains),
                "open_lot_count": None if outcome.result is None else len(outcome.result.lot_state.lots),
            }
            for outcome in execution_result.account_outcomes
        ],
    }


def api_serialize_replay_run_record(run_record: ReplayRunRecord) -> dict[str, object]:
    return {
        "replay_run_id": str(run_record.replay_run_id),
        "status": run_record.status,
        "account_count": run_record.account_count,
        "failed_account_count": run_record.failed_account_count,
        "started_at_utc": run_record.started_at_utc.isoformat(),
        "ended_at_utc": None if run_record.ended_at_utc is None else run_record.ended_at_utc.isoformat(),
        "duration_ms": run_record.duration_ms,
        "diagnostics": run_record.diagnostics,
    }


__all__ = ["api_create_replay_router", "api_serialize_job_execution_result", "api_serialize_replay_run_record"]
