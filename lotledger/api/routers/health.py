"""Health endpoint router reporting application and event store state."""

from typing import Any

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from lotledger.db import DatabaseHealthPort


def api_create_health_router(db_health_service: DatabaseHealthPort) -> APIRouter:
    """Create health-check router.

    Args:
        db_health_service: Event store health service.

    Returns:
        APIRouter: Router exposing `/health`.

    Raises:
        ValueError: Raised when db_health_service is invalid.
    """

    if db_health_service is None:
        raise ValueError("db_health_service must not be None")

    router = APIRouter(tags=["health"])

    def _api_health_payload(overall_status: str, database_status: str, detail: str) -> dict[str, Any]:
        return {
            "status": overall_status,
            "app": "up",
            "database": database_status,
            "detail": detail,
            "target": db_health_service.db_connection_label(),
        }

    @router.get("/health")
    def api_health_status() -> JSONResponse:
        """Return 200 when the event store answers and 503 otherwise."""

        try:
            db_health = db_health_service.db_check_health()
        except ConnectionError as error:
            return JSONResponse(
                content=_api_health_payload("degraded", "down", str(error)),
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        return JSONResponse(
            content=_api_health_payload("ok", db_health.status, db_health.detail),
            status_code=status.HTTP_200_OK,
        )

    return router
