"""Application bootstrap wiring for startup validation and dependency assembly."""

from fastapi import FastAPI

from lotledger.adapters import RateTableHttpLoader
from lotledger.api import create_api_application
from lotledger.config import AppSettings, config_load_settings
from lotledger.db import (
    EventStoreRepositoryPort,
    SQLAlchemyDatabaseHealthService,
    SQLAlchemyEventStoreService,
    SQLAlchemyReplayRunService,
    db_create_engine,
)
from lotledger.domain import TaxYearPolicy
from lotledger.jobs import PortfolioReplayOrchestrator
from lotledger.ledger import CashInLieuBasisPolicy, CashInLieuRateDatePolicy, LedgerReplayConfig, LedgerReplayService
from lotledger.reporting import Jurisdiction


def bootstrap_build_replay_config(settings: AppSettings) -> LedgerReplayConfig:
    """Translate validated settings into replay policies.

    Args:
        settings: Validated application settings.

    Returns:
        LedgerReplayConfig: Replay policies shared by every account.

    Raises:
        ValueError: Raised when a policy value is invalid.
    """

    return LedgerReplayConfig(
        tax_year_policy=bootstrap_build_tax_year_policy(settings),
        cash_in_lieu_basis_policy=CashInLieuBasisPolicy(settings.cash_in_lieu_basis_policy),
        cash_in_lieu_rate_date_policy=CashInLieuRateDatePolicy(settings.cash_in_lieu_rate_date_policy),
        cash_in_lieu_settlement_lag_days=settings.cash_in_lieu_settlement_lag_days,
        cost_basis_tolerance=settings.cost_basis_tolerance,
    )


def bootstrap_build_tax_year_policy(settings: AppSettings) -> TaxYearPolicy:
    return TaxYearPolicy(start_month=settings.tax_year_start_month, start_day=settings.tax_year_start_day)


def bootstrap_build_jurisdiction(settings: AppSettings) -> Jurisdiction:
    """Build the tax jurisdiction declared in the reporting currency."""

    return Jurisdiction(
        code=settings.jurisdiction_code,
        currency=settings.reporting_currency,
        dividend_tax_rate=settings.dividend_tax_rate,
        tax_year_policy=bootstrap_build_tax_year_policy(settings),
    )


def bootstrap_build_rate_source(settings: AppSettings) -> RateTableHttpLoader | None:
    if settings.fx_rate_source_url is None:
        return None
    return RateTableHttpLoader(
        url=settings.fx_rate_source_url,
        request_timeout_seconds=settings.fx_rate_http_timeout_seconds,
        retry_attempts=settings.fx_rate_retry_attempts,
        retry_backoff_base_seconds=settings.fx_rate_backoff_base_seconds,
        retry_max_backoff_seconds=settings.fx_rate_backoff_max_seconds,
    )


def bootstrap_create_replay_service(
    settings: AppSettings,
    event_repository: EventStoreRepositoryPort,
) -> LedgerReplayService:
    return LedgerReplayService(
        repository=event_repository,
        config=bootstrap_build_replay_config(settings),
        reporting_currency=settings.reporting_currency,
        fx_fallback_window_days=settings.fx_fallback_window_days,
        rate_source=bootstrap_build_rate_source(settings),
    )


def bootstrap_create_application() -> FastAPI:
    """Assemble the runtime application after validating startup configuration.

    Returns:
        FastAPI: Fully initialized FastAPI application instance.

    Raises:
        SettingsLoadError: Raised when startup configuration validation fails.
    """

    settings = config_load_settings()
    engine = db_create_engine(database_url=settings.database_url)
    db_health_service = SQLAlchemyDatabaseHealthService(engine=engine)
    event_repository = SQLAlchemyEventStoreService(engine=engine)
    replay_run_repository = SQLAlchemyReplayRunService(engine=engine)
    replay_service = bootstrap_create_replay_service(settings, event_repository)
    replay_orchestrator = PortfolioReplayOrchestrator(
        replay_service=replay_service,
        event_repository=event_repository,
        replay_run_repository=replay_run_repository,
        max_workers=settings.replay_max_workers,
    )
    return create_api_application(
        settings=settings,
        db_health_service=db_health_service,
        replay_service=replay_service,
        replay_orchestrator=replay_orchestrator,
        jurisdiction=bootstrap_build_jurisdiction(settings),
        replay_run_repository=replay_run_repository,
    )


def bootstrap_create_replay_orchestrator() -> PortfolioReplayOrchestrator:
    """Build replay orchestrator for non-HTTP trigger surfaces.

    Returns:
        PortfolioReplayOrchestrator: Fully wired replay orchestrator instance.

    Raises:
        SettingsLoadError: Raised when startup configuration validation fails.
    """

    settings = config_load_settings()
    engine = db_create_engine(database_url=settings.database_url)
    event_repository = SQLAlchemyEventStoreService(engine=engine)
    return PortfolioReplayOrchestrator(
        replay_service=bootstrap_create_replay_service(settings, event_repository),
        event_repository=event_repository,
        replay_run_repository=SQLAlchemyReplayRunService(engine=engine),
        max_workers=settings.replay_max_workers,
    )
