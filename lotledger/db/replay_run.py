"""Database service for replay run lifecycle persistence and lock enforcement."""

from __future__ import annotations

import hashlib
import json
from typing import Any
from uuid import UUID

from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError

from .interfaces import ReplayRunAlreadyActiveError, ReplayRunRecord, ReplayRunRepositoryPort

_REPLAY_RUN_SELECT_COLUMNS = (
    "SELECT "
    "replay_run_id, status, account_count, failed_account_count, "
    "started_at_utc, ended_at_utc, duration_ms, diagnostics "
    "FROM replay_run "
)


class SQLAlchemyReplayRunService(ReplayRunRepositoryPort):
    """SQLAlchemy-backed replay run service.

    Only one replay run may be active at a time; a transaction-scoped advisory
    lock guards the check-and-insert.
    """

    _FINAL_STATUSES = {"success", "partial_failure", "failed"}

    def __init__(self, engine: Engine):
        """Initialize replay run persistence service.

        Args:
            engine: SQLAlchemy engine used for all persistence operations.

        Returns:
            None: This initializer does not return a value.

        Raises:
            ValueError: Raised when engine is None.
        """

        if engine is None:
            raise ValueError("engine must not be None")
        self._engine = engine

    def db_replay_run_create_started(self, account_count: int) -> ReplayRunRecord:
        """Create a started run while enforcing a single active replay run.

        Args:
            account_count: Number of accounts in scope.

        Returns:
            ReplayRunRecord: Newly created started run.

        Raises:
            ReplayRunAlreadyActiveError: Raised when lock cannot be obtained or an active run exists.
            ValueError: Raised when account_count is negative.
            RuntimeError: Raised when persistence fails.
        """

        if account_count < 0:
            raise ValueError("account_count must be >= 0")

        advisory_key_1, advisory_key_2 = self._build_advisory_lock_keys("replay_run")

        try:
            with self._engine.begin() as connection:
                lock_row = connection.execute(
                    text("SELECT pg_try_advisory_xact_lock(:key_1, :key_2) AS lock_acquired"),
                    {"key_1": advisory_key_1, "key_2": advisory_key_2},
                ).mappings().one()
                if not bool(lock_row["lock_acquired"]):
                    raise ReplayRunAlreadyActiveError("replay run already active")

                active_row = connection.execute(
                    text("SELECT replay_run_id FROM replay_run WHERE status = 'started' LIMIT 1"),
                    {},
                ).first()
                if active_row is not None:
                    raise ReplayRunAlreadyActiveError("replay run already active")

                created_row = connection.execute(
                    text(
                        "INSERT INTO replay_run (status, account_count, failed_account_count, started_at_utc) "
                        "VALUES ('started', :account_count, 0, now()) "
                        "RETURNING replay_run_id"
                    ),
                    {"account_count": account_count},
                ).mappings().one()

                return self._db_fetch_run_by_id_or_raise(connection, created_row["replay_run_id"])
        except SQLAlchemyError as error:
            raise RuntimeError("failed to create started replay run") from error

    def db_replay_run_finalize(
        self,
        replay_run_id: UUID,
        status: str,
        failed_account_count: int,
        diagnostics: list[dict[str, Any]] | None,
    ) -> ReplayRunRecord:
        """Finalize one run with end timestamp and duration.

        Args:
            replay_run_id: Run identifier.
            status: Final status (`success`, `partial_failure`, `failed`).
            failed_account_count: Number of failed accounts.
            diagnostics: Optional structured diagnostics payload.

        Returns:
            ReplayRunRecord: Finalized run row.

        Raises:
            LookupError: Raised when run is not found.
            ValueError: Raised when final status is invalid.
            RuntimeError: Raised when persistence fails.
        """

        if status not in self._FINAL_STATUSES:
            raise ValueError("status must be one of: failed, partial_failure, success")

        diagnostics_payload = None
        if diagnostics is not None:
            diagnostics_payload = json.dumps(diagnostics, default=str)

        try:
            with self._engine.begin() as connection:
                updated_row = connection.execute(
                    text(
                        "UPDATE replay_run SET "
                        "status = :status, "
                        "failed_account_count = :failed_account_count, "
                        "ended_at_utc = now(), "
                        "duration_ms = GREATEST(0, CAST(EXTRACT(EPOCH FROM (now() - started_at_utc)) * 1000 AS BIGINT)), "
                        "diagnostics = CAST(:diagnostics AS jsonb) "
                        "WHERE replay_run_id = :replay_run_id "
                        "RETURNING replay_run_id"
                    ),
                    {
                        "status": status,
                        "failed_account_count": failed_account_count,
                        "diagnostics": diagnostics_payload,
                        "replay_run_id": replay_run_id,
                    },
                ).mappings().first()
                if updated_row is None:
                    raise LookupError("replay run not found")

                return self._db_fetch_run_by_id_or_raise(connection, replay_run_id)
        except SQLAlchemyError as error:
            raise RuntimeError("failed to finalize replay run") from error

    def db_replay_run_list(self, limit: int, offset: int) -> list[ReplayRunRecord]:
        """List runs newest first.

        Args:
            limit: Maximum number of rows.
            offset: Number of rows to skip.

        Returns:
            list[ReplayRunRecord]: Ordered run rows.

        Raises:
            ValueError: Raised when limit or offset are invalid.
            RuntimeError: Raised when database read fails.
        """

        if limit < 1:
            raise ValueError("limit must be >= 1")
        if offset < 0:
            raise ValueError("offset must be >= 0")

        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text(
                        _REPLAY_RUN_SELECT_COLUMNS
                        + "ORDER BY started_at_utc DESC, replay_run_id DESC LIMIT :limit OFFSET :offset"
                    ),
                    {"limit": limit, "offset": offset},
                ).mappings().all()
                return [self._map_replay_run_record(row) for row in rows]
        except SQLAlchemyError as error:
            raise RuntimeError("failed to list replay runs") from error

    def _db_fetch_run_by_id_or_raise(self, connection, replay_run_id: UUID) -> ReplayRunRecord:
        row = connection.execute(
            text(_REPLAY_RUN_SELECT_COLUMNS + "WHERE replay_run_id = :replay_run_id"),
            {"replay_run_id": replay_run_id},
        ).mappings().first()
        if row is None:
            raise LookupError("replay run not found")
        return self._map_replay_run_record(row)

    def _map_replay_run_record(self, row: Any) -> ReplayRunRecord:
        """Map SQLAlchemy row mapping to typed replay run record.

        Args:
            row: SQLAlchemy mapping row.

        Returns:
            ReplayRunRecord: Typed run record.

        Raises:
            TypeError: Raised when row structure is incompatible.
        """

        diagnostics_value = row["diagnostics"]
        if diagnostics_value is not None and not isinstance(diagnostics_value, list):
            raise TypeError("replay_run.diagnostics must be a JSON array when present")

        return ReplayRunRecord(
            replay_run_id=row["replay_run_id"],
            status=row["status"],
            account_count=row["account_count"],
            failed_account_count=row["failed_account_count"],
            started_at_utc=row["started_at_utc"],
            ended_at_utc=row["ended_at_utc"],
            duration_ms=row["duration_ms"],
            diagnostics=diagnostics_value,
        )

    def _build_advisory_lock_keys(self, lock_name: str) -> tuple[int, int]:
        digest = hashlib.sha256(lock_name.encode("utf-8")).digest()
        key_1 = int.from_bytes(digest[0:4], byteorder="big", signed=True)
        key_2 = int.from_bytes(digest[4:8], byteorder="big", signed=True)
        return key_1, key_2
