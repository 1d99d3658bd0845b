"""Regression tests for portfolio replay orchestration and failure isolation."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

import pytest

from lotledger.db import FxRateRecord, MarketPriceRecord, ReplayRunRecord
from lotledger.domain import Account, LedgerEvent, SecurityListing, TradeEvent, TradeSide
from lotledger.jobs import REPLAY_UNEXPECTED_ERROR, PortfolioReplayOrchestrator
from lotledger.ledger import LedgerReplayConfig, LedgerReplayService

_ACME = "US0000000001"


class _EventStoreStub:
    """In-memory event store with one healthy and two failing accounts."""

    def __init__(self, fail_rates: bool = False):
        """Initialize stub accounts.

        Args:
            fail_rates: Whether rate loading fails.

        Returns:
            None: Initializer does not return values.

        Raises:
            RuntimeError: This stub does not raise runtime errors.
        """

        self.fail_rates = fail_rates
        self.events: dict[str, list[LedgerEvent]] = {
            "ACC-1": [
                TradeEvent(1, date(2024, 1, 2), TradeSide.BUY, "ACME", Decimal("10"), Decimal("10"), "USD"),
                TradeEvent(2, date(2024, 1, 3), TradeSide.SELL, "ACME", Decimal("4"), Decimal("12"), "USD"),
            ],
            "ACC-2": [
                TradeEvent(1, date(2024, 1, 2), TradeSide.BUY, "ACME", Decimal("1"), Decimal("10"), "USD"),
                TradeEvent(2, date(2024, 1, 3), TradeSide.SELL, "ACME", Decimal("5"), Decimal("12"), "USD"),
            ],
            "ACC-3": [],
        }

    def db_account_list(self) -> list[Account]:
        return [Account(account_id=account_id, broker="test-broker", base_currency="USD") for account_id in ("ACC-3", "ACC-1", "ACC-2")]

    def db_account_get(self, account_id: str) -> Account | None:
        return Account(account_id=account_id, broker="test-broker", base_currency="USD")

    def db_ledger_event_list_for_account(self, account_id: str) -> list[LedgerEvent]:
        """Return stored events, failing for the broken account.

        Args:
            account_id: Account identifier.

        Returns:
            list[LedgerEvent]: Stored events.

        Raises:
            RuntimeError: Raised for `ACC-3` to simulate a storage failure.
        """

        if account_id == "ACC-3":
            raise RuntimeError("event payload read failed")
        return list(self.events[account_id])

    def db_security_listing_list(self) -> list[SecurityListing]:
        return [SecurityListing(security_id=_ACME, symbol="ACME")]

    def db_fx_rate_list(self) -> list[FxRateRecord]:
        if self.fail_rates:
            raise RuntimeError("rate table unavailable")
        return []

    def db_market_price_list(self) -> list[MarketPriceRecord]:
        return []


class _ReplayRunRepositoryStub:
    """Replay run repository stub capturing lifecycle calls."""

    def __init__(self):
        self.replay_run_id = uuid4()
        self.created_account_counts: list[int] = []
        self.finalize_calls: list[dict[str, Any]] = []

    def db_replay_run_create_started(self, account_count: int) -> ReplayRunRecord:
        """Return a started run record.

        Args:
            account_count: Number of accounts in scope.

        Returns:
            ReplayRunRecord: Started run.

        Raises:
            RuntimeError: This stub does not raise runtime errors.
        """

        self.created_account_counts.append(account_count)
        return ReplayRunRecord(
            replay_run_id=self.replay_run_id,
            status="started",
            account_count=account_count,
            failed_account_count=0,
            started_at_utc=datetime(2026, 1, 1, tzinfo=timezone.utc),
            ended_at_utc=None,
            duration_ms=None,
            diagnostics=None,
        )

    def db_replay_run_finalize(
        self,
        replay_run_id: UUID,
        status: str,
        failed_account_count: int,
        diagnostics: list[dict[str, Any]] | None,
    ) -> None:
        """Capture finalize arguments.

        Args:
            replay_run_id: Run identifier.
            status: Final status.
            failed_account_count: Failed account count.
            diagnostics: Timeline payload.

        Returns:
            None: Captures arguments as side effect.

        Raises:
            RuntimeError: This stub does not raise runtime errors.
        """

        self.finalize_calls.append(
            {
                "replay_run_id": replay_run_id,
                "status": status,
                "failed_account_count": failed_account_count,
                "diagnostics": diagnostics,
            }
        )


def _build_orchestrator(
    event_repository: _EventStoreStub,
    replay_run_repository: _ReplayRunRepositoryStub | None = None,
) -> PortfolioReplayOrchestrator:
    return PortfolioReplayOrchestrator(
        replay_service=LedgerReplayService(repository=event_repository, config=LedgerReplayConfig()),
        event_repository=event_repository,
        replay_run_repository=replay_run_repository,
        max_workers=2,
    )


def test_replay_orchestrator_isolates_failing_accounts(caplog) -> None:
    """Replay healthy accounts even when others fail.

    Returns:
        None: Assertions validate partial failure outcome.

    Raises:
        AssertionError: Raised when one failure aborts the run.
    """

    run_repository = _ReplayRunRepositoryStub()
    orchestrator = _build_orchestrator(_EventStoreStub(), run_repository)

    with caplog.at_level(logging.WARNING, logger="lotledger.jobs.replay_orchestrator"):
        result = orchestrator.job_execute(job_name=" replay_run ")

    assert result.status == "partial_failure"
    assert result.replay_run_id == str(run_repository.replay_run_id)
    assert [outcome.account_id for outcome in result.account_outcomes] == ["ACC-1", "ACC-2", "ACC-3"]
    assert [outcome.status for outcome in result.account_outcomes] == ["success", "failed", "failed"]
    assert result.failed_account_count == 2

    healthy_outcome, oversold_outcome, broken_outcome = result.account_outcomes
    assert healthy_outcome.result is not None
    assert healthy_outcome.result.realized_gains[0].gain == Decimal("8.00")
    assert oversold_outcome.error_code == "INSUFFICIENT_LOTS"
    assert oversold_outcome.error_context["sequence"] == 2
    assert broken_outcome.error_code == REPLAY_UNEXPECTED_ERROR
    assert "RuntimeError" in broken_outcome.error_message

    warning_messages = [record.getMessage() for record in caplog.records if record.levelno == logging.WARNING]
    assert any("account_id=ACC-2" in message and "INSUFFICIENT_LOTS" in message for message in warning_messages)
    assert any("account_id=ACC-3" in message for message in warning_messages)

    assert run_repository.created_account_counts == [3]
    assert len(run_repository.finalize_calls) == 1
    finalize_call = run_repository.finalize_calls[0]
    assert finalize_call["status"] == "partial_failure"
    assert finalize_call["failed_account_count"] == 2
    account_events = [event for event in finalize_call["diagnostics"] if event["stage"] == "account_replay"]
    assert [(event["account_id"], event["status"]) for event in account_events] == [
        ("ACC-1", "completed"),
        ("ACC-2", "failed"),
        ("ACC-3", "failed"),
    ]


def test_replay_orchestrator_reports_success_when_every_account_replays() -> None:
    event_repository = _EventStoreStub()
    event_repository.events = {"ACC-1": event_repository.events["ACC-1"]}
    event_repository.db_account_list = lambda: [Account(account_id="ACC-1", broker="test-broker", base_currency="USD")]

    result = _build_orchestrator(event_repository).job_execute(job_name="replay_run")

    assert result.status == "success"
    assert result.replay_run_id is None
    assert result.timeline[-1]["status"] == "success"


def test_replay_orchestrator_fails_run_when_collaborators_do_not_load() -> None:
    """Fail the whole run without replaying accounts when collaborators are missing.

    Returns:
        None: Assertions validate failed run outcome.

    Raises:
        AssertionError: Raised when accounts replay without collaborators.
    """

    run_repository = _ReplayRunRepositoryStub()

    result = _build_orchestrator(_EventStoreStub(fail_rates=True), run_repository).job_execute(job_name="replay_run")

    assert result.status == "failed"
    assert result.account_outcomes == ()
    assert run_repository.finalize_calls[0]["status"] == "failed"
    failed_stage = [event for event in result.timeline if event["stage"] == "collaborators" and event["status"] == "failed"]
    assert failed_stage[0]["details"]["error_type"] == "RuntimeError"


def test_replay_orchestrator_rejects_unknown_job_and_bad_limits() -> None:
    orchestrator = _build_orchestrator(_EventStoreStub())

    assert orchestrator.job_supported_names() == ("replay_run",)
    with pytest.raises(ValueError):
        orchestrator.job_execute(job_name="nightly_backfill")
    with pytest.raises(ValueError):
        PortfolioReplayOrchestrator(
            replay_service=LedgerReplayService(repository=_EventStoreStub(), config=LedgerReplayConfig()),
            event_repository=_EventStoreStub(),
            max_workers=0,
        )
