"""Database layer package for all SQL and persistence boundaries."""

from .event_store import SQLAlchemyEventStoreService
from .health import SQLAlchemyDatabaseHealthService
from .interfaces import (
	DatabaseHealthPort,
	EventStoreRepositoryPort,
	FxRateRecord,
	LedgerEventRecord,
	MarketPriceRecord,
	ReplayRunAlreadyActiveError,
	ReplayRunRecord,
	ReplayRunRepositoryPort,
)
from .replay_run import SQLAlchemyReplayRunService
from .session import db_create_engine

__all__ = [
	"DatabaseHealthPort",
	"EventStoreRepositoryPort",
	"FxRateRecord",
	"LedgerEventRecord",
	"MarketPriceRecord",
	"ReplayRunAlreadyActiveError",
	"ReplayRunRecord",
	"ReplayRunRepositoryPort",
	"SQLAlchemyDatabaseHealthService",
	"SQLAlchemyEventStoreService",
	"SQLAlchemyReplayRunService",
	"db_create_engine",
]
