"""Typed interfaces for database-layer services.

All SQL and ORM access must remain in the db package and its submodules.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Protocol
from uuid import UUID

from lotledger.domain import Account, HealthStatus, LedgerEvent, SecurityListing


class DatabaseHealthPort(Protocol):
    """Port definition for database connectivity verification."""

    def db_connection_label(self) -> str:
        """Return a stable label for the active database connection target.

        Returns:
            str: Database target label for diagnostics.

        Raises:
            RuntimeError: Raised when connection metadata is unavailable.
        """

    def db_check_health(self) -> HealthStatus:
        """Check database connectivity and return deterministic health payload.

        Returns:
            HealthStatus: Database health status payload.

        Raises:
            ConnectionError: Raised when database cannot be reached.
        """


class ReplayRunAlreadyActiveError(RuntimeError):
    """Raised when a replay trigger is rejected because one run is already active."""


@dataclass(frozen=True)
class LedgerEventRecord:
    """Persistence model for one stored ledger event row.

    Attributes:
        account_id: Owning account identifier.
        sequence: Account-unique event sequence number.
        effective_date: Event effective date.
        event_type: Event discriminator (`trade`, `cash_movement`, `corporate_action`).
        payload: Event-type specific JSON payload.
    """

    account_id: str
    sequence: int
    effective_date: date
    event_type: str
    payload: dict[str, Any]


@dataclass(frozen=True)
class FxRateRecord:
    """One historical rate row: reporting-currency units per one unit of `currency`."""

    currency: str
    rate_date: date
    rate: Decimal


@dataclass(frozen=True)
class MarketPriceRecord:
    """One closing-price row for a security."""

    security_id: str
    price_date: date
    close_price: Decimal
    currency: str


@dataclass(frozen=True)
class ReplayRunRecord:
    """Persistence model for one replay run row.

    Attributes:
        replay_run_id: Unique run identifier.
        status: Run status (`started`, `success`, `partial_failure`, `failed`).
        account_count: Number of accounts in scope.
        failed_account_count: Number of accounts whose replay failed.
        started_at_utc: Run start timestamp in UTC.
        ended_at_utc: Optional run end timestamp in UTC.
        duration_ms: Optional run duration in milliseconds.
        diagnostics: Optional structured timeline and failure payload.
    """

    replay_run_id: UUID
    status: str
    account_count: int
    failed_account_count: int
    started_at_utc: datetime
    ended_at_utc: datetime | None
    duration_ms: int | None
    diagnostics: list[dict[str, Any]] | None


class EventStoreRepositoryPort(Protocol):
    """Port definition for reading accounts, events and replay collaborators."""

    def db_account_list(self) -> list[Account]:
        """List all accounts ordered by account identifier.

        Returns:
            list[Account]: Account rows.

        Raises:
            RuntimeError: Raised when database read fails.
        """

    def db_account_get(self, account_id: str) -> Account | None:
        """Fetch one account.

        Args:
            account_id: Account identifier.

        Returns:
            Account | None: Matching account or None.

        Raises:
            ValueError: Raised when account_id is blank.
            RuntimeError: Raised when database read fails.
        """

    def db_ledger_event_list_for_account(self, account_id: str) -> list[LedgerEvent]:
        """List decoded events of one account ordered by date and sequence.

        Args:
            account_id: Account identifier.

        Returns:
            list[LedgerEvent]: Decoded events.

        Raises:
            ValueError: Raised when a stored payload cannot be decoded.
            RuntimeError: Raised when database read fails.
        """

    def db_ledger_event_append(self, account_id: str, events: list[LedgerEvent]) -> int:
        """Persist events for one account.

        Args:
            account_id: Account identifier.
            events: Events to store.

        Returns:
            int: Number of stored rows.

        Raises:
            ValueError: Raised when inputs are invalid.
            RuntimeError: Raised when persistence fails, including duplicate sequences.
        """

    def db_security_listing_list(self) -> list[SecurityListing]:
        """List known symbol listings.

        Returns:
            list[SecurityListing]: Listing rows.

        Raises:
            RuntimeError: Raised when database read fails.
        """

    def db_fx_rate_list(self) -> list[FxRateRecord]:
        """List stored historical rates.

        Returns:
            list[FxRateRecord]: Rate rows ordered by currency and date.

        Raises:
            RuntimeError: Raised when database read fails.
        """

    def db_market_price_list(self) -> list[MarketPriceRecord]:
        """List stored closing prices.

        Returns:
            list[MarketPriceRecord]: Price rows ordered by security and date.

        Raises:
            RuntimeError: Raised when database read fails.
        """


class ReplayRunRepositoryPort(Protocol):
    """Port definition for replay run lifecycle persistence."""

    def db_replay_run_create_started(self, account_count: int) -> ReplayRunRecord:
        """Create one replay run in `started` state.

        Args:
            account_count: Number of accounts in scope.

        Returns:
            ReplayRunRecord: Newly created run.

        Raises:
            ReplayRunAlreadyActiveError: Raised when another run is active.
            RuntimeError: Raised when persistence fails.
        """

    def db_replay_run_finalize(
        self,
        replay_run_id: UUID,
        status: str,
        failed_account_count: int,
        diagnostics: list[dict[str, Any]] | None,
    ) -> ReplayRunRecord:
        """Finalize one replay run.

        Args:
            replay_run_id: Run identifier.
            status: Final status (`success`, `partial_failure`, `failed`).
            failed_account_count: Number of failed accounts.
            diagnostics: Optional structured diagnostics payload.

        Returns:
            ReplayRunRecord: Finalized run.

        Raises:
            LookupError: Raised when the run is not found.
            ValueError: Raised when final status is invalid.
            RuntimeError: Raised when persistence fails.
        """

    def db_replay_run_list(self, limit: int, offset: int) -> list[ReplayRunRecord]:
        """List replay runs newest first.

        Args:
            limit: Maximum number of rows.
            offset: Number of rows to skip.

        Returns:
            list[ReplayRunRecord]: Ordered run rows.

        Raises:
            ValueError: Raised when limit or offset are invalid.
            RuntimeError: Raised when database read fails.
        """
