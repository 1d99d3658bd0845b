"""FastAPI application factory for the ledger service.

This module defines API application composition used by the service runtime.
"""

from fastapi import FastAPI

from lotledger.config import AppSettings
from lotledger.db import DatabaseHealthPort, ReplayRunRepositoryPort
from lotledger.jobs import JobOrchestratorPort
from lotledger.ledger import LedgerReplayService
from lotledger.reporting import Jurisdiction

from .routers import api_create_health_router, api_create_portfolio_router, api_create_replay_router


def create_api_application(
    settings: AppSettings,
    db_health_service: DatabaseHealthPort,
    replay_service: LedgerReplayService,
    replay_orchestrator: JobOrchestratorPort,
    jurisdiction: Jurisdiction,
    replay_run_repository: ReplayRunRepositoryPort | None = None,
) -> FastAPI:
    """Create the FastAPI application instance for the service.

    Args:
        settings: Validated application settings used for runtime metadata.
        db_health_service: Database health service used by health endpoints.
        replay_service: Ledger replay service backing portfolio reads.
        replay_orchestrator: Job orchestrator for replay trigger execution.
        jurisdiction: Tax jurisdiction for tax-statement inputs.
        replay_run_repository: Optional replay run repository for history APIs.

    Returns:
        FastAPI: Framework application instance.

    Raises:
        RuntimeError: Raised if application initialization fails.
    """
    application = FastAPI(title="Tax Lot Ledger")

    @application.get("/", tags=["foundation"])
    def foundation_index() -> dict[str, str]:
        """Return a minimal service descriptor.

        Returns:
            dict[str, str]: Service name, ledger policy and environment.

        Raises:
            RuntimeError: Raised if route handler cannot produce a response.
        """

        return {
            "service": "tax-lot-ledger",
            "ledger_policy": replay_service.ledger_policy_name(),
            "reporting_currency": settings.reporting_currency,
            "environment": settings.environment_name,
        }

    application.include_router(api_create_health_router(db_health_service=db_health_service))
    application.include_router(
        api_create_portfolio_router(
            settings=settings,
            replay_service=replay_service,
            jurisdiction=jurisdiction,
        )
    )
    application.include_router(
        api_create_replay_router(
            settings=settings,
            replay_orchestrator=replay_orchestrator,
            replay_run_repository=replay_run_repository,
        )
    )

    return application
