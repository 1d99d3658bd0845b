"""API router package for endpoint composition."""

from .health import api_create_health_router
from .portfolio import api_create_portfolio_router
from .replay import api_create_replay_router

__all__ = ["api_create_health_router", "api_create_portfolio_router", "api_create_replay_router"]
