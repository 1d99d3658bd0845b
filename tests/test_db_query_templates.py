"""Regression tests for fixed SQL templates and row mapping in db-layer services."""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from lotledger.db import SQLAlchemyEventStoreService, SQLAlchemyReplayRunService
from lotledger.domain import (
    CorporateActionEvent,
    ReverseStockSplit,
    TradeEvent,
    TradeSide,
)


class _MappingResultStub:
    """Stub mapping result wrapper for SQLAlchemy-like query responses."""

    def __init__(self, rows: list[dict]):
        """Initialize mapping result rows.

        Args:
            rows: Row mappings returned by a query.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: This stub does not raise value errors.
        """

        self._rows = rows

    def mappings(self) -> _MappingResultStub:
        """Return self to emulate SQLAlchemy mappings chain.

        Returns:
            _MappingResultStub: This object.

        Raises:
            RuntimeError: This stub does not raise runtime errors.
        """

        return self

    def all(self) -> list[dict]:
        """Return all row mappings.

        Returns:
            list[dict]: Query rows.

        Raises:
            RuntimeError: This stub does not raise runtime errors.
        """

        return self._rows

    def first(self) -> dict | None:
        return self._rows[0] if self._rows else None


class _ConnectionStub:
    """Connection stub capturing executed SQL and parameters."""

    def __init__(self, rows: list[dict], error: Exception | None = None):
        """Initialize connection capture state.

        Args:
            rows: Query rows returned by execute().
            error: Optional error raised by execute().

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: This stub does not raise value errors.
        """

        self._rows = rows
        self._error = error
        self.executed_queries: list[str] = []
        self.executed_parameters: list[object] = []

    def __enter__(self) -> _ConnectionStub:
        """Enter context manager.

        Returns:
            _ConnectionStub: This object.

        Raises:
            RuntimeError: This stub does not raise runtime errors.
        """

        return self

    def __exit__(self, exc_type, exc, traceback) -> bool:
        """Exit context manager.

        Args:
            exc_type: Exception type.
            exc: Exception value.
            traceback: Exception traceback.

        Returns:
            bool: False to propagate exceptions.

        Raises:
            RuntimeError: This stub does not raise runtime errors.
        """

        _ = (exc_type, exc, traceback)
        return False

    def execute(self, statement, parameters):
        """Capture execute input and return deterministic row result.

        Args:
            statement: SQLAlchemy text clause or raw string.
            parameters: Bound query parameters.

        Returns:
            _MappingResultStub: Query result stub.

        Raises:
            OperationalError: Raised when the stub is configured to fail.
        """

        statement_text = getattr(statement, "text", str(statement))
        self.executed_queries.append(statement_text)
        self.executed_parameters.append(parameters)
        if self._error is not None:
            raise self._error
        return _MappingResultStub(rows=self._rows)


class _EngineStub:
    """Engine stub that returns a predefined connection object."""

    def __init__(self, connection: _ConnectionStub):
        """Initialize engine with a deterministic connection stub.

        Args:
            connection: Connection stub instance.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: This stub does not raise value errors.
        """

        self._connection = connection

    def connect(self) -> _ConnectionStub:
        return self._connection

    def begin(self) -> _ConnectionStub:
        return self._connection


def test_db_ledger_event_list_decodes_rows_in_stored_order() -> None:
    """Decode stored rows into domain events using the ordered event query.

    Returns:
        None: Assertions validate query template and decoding.

    Raises:
        AssertionError: Raised when rows are not decoded into typed events.
    """

    connection = _ConnectionStub(
        rows=[
            {
                "account_id": "ACC-1",
                "sequence": 1,
                "effective_date": date(2024, 1, 2),
                "event_type": "trade",
                "payload": {
                    "side": "buy",
                    "symbol": "ACME",
                    "quantity": "10",
                    "unit_price": "100.5",
                    "currency": "usd",
                },
            },
            {
                "account_id": "ACC-1",
                "sequence": 2,
                "effective_date": date(2024, 3, 1),
                "event_type": "corporate_action",
                "payload": json.dumps(
                    {"symbol": "ACME", "action": "reverse_split", "ratio": "10", "cash_in_lieu_price": "10.40"}
                ),
            },
        ]
    )
    service = SQLAlchemyEventStoreService(engine=_EngineStub(connection))

    events = service.db_ledger_event_list_for_account(" ACC-1 ")

    assert "ORDER BY effective_date asc, sequence asc" in connection.executed_queries[0]
    assert connection.executed_parameters[0] == {"account_id": "ACC-1"}
    assert events == [
        TradeEvent(1, date(2024, 1, 2), TradeSide.BUY, "ACME", Decimal("10"), Decimal("100.5"), "USD"),
        CorporateActionEvent(
            2,
            date(2024, 3, 1),
            "ACME",
            ReverseStockSplit(ratio=Decimal("10"), cash_in_lieu_price=Decimal("10.40")),
        ),
    ]


def test_db_ledger_event_list_rejects_float_amounts() -> None:
    connection = _ConnectionStub(
        rows=[
            {
                "account_id": "ACC-1",
                "sequence": 1,
                "effective_date": date(2024, 1, 2),
                "event_type": "cash_movement",
                "payload": {"kind": "DEPOSIT", "amount": 10.5, "currency": "USD"},
            }
        ]
    )
    service = SQLAlchemyEventStoreService(engine=_EngineStub(connection))

    with pytest.raises(ValueError):
        service.db_ledger_event_list_for_account("ACC-1")


def test_db_ledger_event_append_serializes_payloads_in_one_statement() -> None:
    """Persist all events of one call through a single parameterized insert.

    Returns:
        None: Assertions validate insert parameters.

    Raises:
        AssertionError: Raised when payloads lose decimal precision.
    """

    connection = _ConnectionStub(rows=[])
    service = SQLAlchemyEventStoreService(engine=_EngineStub(connection))

    stored_count = service.db_ledger_event_append(
        "ACC-1",
        [TradeEvent(1, date(2024, 1, 2), TradeSide.BUY, "ACME", Decimal("10"), Decimal("100.10"), "USD")],
    )

    assert stored_count == 1
    assert "INSERT INTO ledger_event" in connection.executed_queries[0]
    inserted_row = connection.executed_parameters[0][0]
    assert inserted_row["event_type"] == "trade"
    assert json.loads(inserted_row["payload"])["unit_price"] == "100.10"
    assert service.db_ledger_event_append("ACC-1", []) == 0


def test_db_fx_rate_list_maps_rates_to_decimal() -> None:
    connection = _ConnectionStub(rows=[{"currency": "EUR", "rate_date": date(2024, 1, 2), "rate": "1.1050"}])
    service = SQLAlchemyEventStoreService(engine=_EngineStub(connection))

    rates = service.db_fx_rate_list()

    assert rates[0].rate == Decimal("1.1050")
    assert "ORDER BY currency asc, rate_date asc" in connection.executed_queries[0]


def test_db_event_store_wraps_sqlalchemy_errors() -> None:
    connection = _ConnectionStub(rows=[], error=OperationalError("SELECT 1", {}, Exception("down")))
    service = SQLAlchemyEventStoreService(engine=_EngineStub(connection))

    with pytest.raises(RuntimeError):
        service.db_account_list()


def test_db_replay_run_list_uses_newest_first_template() -> None:
    """Use the fixed newest-first template with bound paging parameters.

    Returns:
        None: Assertions validate replay run list query.

    Raises:
        AssertionError: Raised when template or mapping changes.
    """

    replay_run_id = uuid4()
    connection = _ConnectionStub(
        rows=[
            {
                "replay_run_id": replay_run_id,
                "status": "success",
                "account_count": 2,
                "failed_account_count": 0,
                "started_at_utc": datetime(2026, 1, 1, tzinfo=timezone.utc),
                "ended_at_utc": datetime(2026, 1, 1, 0, 0, 1, tzinfo=timezone.utc),
                "duration_ms": 1000,
                "diagnostics": [{"stage": "run", "status": "success"}],
            }
        ]
    )
    service = SQLAlchemyReplayRunService(engine=_EngineStub(connection))

    runs = service.db_replay_run_list(limit=5, offset=10)

    assert "ORDER BY started_at_utc DESC, replay_run_id DESC" in connection.executed_queries[0]
    assert connection.executed_parameters[0] == {"limit": 5, "offset": 10}
    assert runs[0].replay_run_id == replay_run_id
    assert runs[0].diagnostics == [{"stage": "run", "status": "success"}]


def test_db_replay_run_validates_inputs_before_querying() -> None:
    connection = _ConnectionStub(rows=[])
    service = SQLAlchemyReplayRunService(engine=_EngineStub(connection))

    with pytest.raises(ValueError):
        service.db_replay_run_list(limit=0, offset=0)
    with pytest.raises(ValueError):
        service.db_replay_run_create_started(account_count=-1)
    with pytest.raises(ValueError):
        service.db_replay_run_finalize(uuid4(), status="started", failed_account_count=0, diagnostics=None)
    assert connection.executed_queries == []


def test_db_replay_run_finalize_serializes_decimal_diagnostics() -> None:
    """Serialize timeline details that carry decimal context values.

    Returns:
        None: Assertions validate diagnostics serialization.

    Raises:
        AssertionError: Raised when decimal values break the JSON payload.
    """

    replay_run_id = uuid4()
    connection = _ConnectionStub(
        rows=[
            {
                "replay_run_id": replay_run_id,
                "status": "partial_failure",
                "account_count": 1,
                "failed_account_count": 1,
                "started_at_utc": datetime(2026, 1, 1, tzinfo=timezone.utc),
                "ended_at_utc": datetime(2026, 1, 1, 0, 0, 1, tzinfo=timezone.utc),
                "duration_ms": 1000,
                "diagnostics": None,
            }
        ]
    )
    service = SQLAlchemyReplayRunService(engine=_EngineStub(connection))

    service.db_replay_run_finalize(
        replay_run_id,
        status="partial_failure",
        failed_account_count=1,
        diagnostics=[{"stage": "account_replay", "details": {"requested": Decimal("1.5")}}],
    )

    assert "UPDATE replay_run SET" in connection.executed_queries[0]
    diagnostics = json.loads(connection.executed_parameters[0]["diagnostics"])
    assert diagnostics[0]["details"]["requested"] == "1.5"
