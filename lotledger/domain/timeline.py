"""Shared timeline event helper utilities."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable


def domain_build_stage_event(
    stage: str,
    status: str,
    details: dict[str, Any] | None = None,
    account_id: str | None = None,
    clock: Callable[[], datetime] | None = None,
) -> dict[str, object]:
    """Build one structured timeline event payload.

    Args:
        stage: Stage name.
        status: Stage status marker.
        details: Optional structured details object.
        account_id: Optional account the stage applies to.
        clock: Optional UTC clock override.

    Returns:
        dict[str, object]: Structured timeline event.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    now_utc = (clock or _domain_utc_now)()
    event_payload: dict[str, object] = {
        "stage": stage,
        "status": status,
        "at_utc": now_utc.isoformat(),
    }
    if account_id is not None:
        event_payload["account_id"] = account_id
    if details is not None:
        event_payload["details"] = details
    return event_payload


def _domain_utc_now() -> datetime:
    return datetime.now(timezone.utc)
