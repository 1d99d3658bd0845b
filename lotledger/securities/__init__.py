"""Securities layer package for stable instrument identity."""

from .registry import SecurityRegistry

__all__ = ["SecurityRegistry"]
