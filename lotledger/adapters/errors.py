"""Project-native typed exceptions for rate-table adapter failures."""

from __future__ import annotations


class RateSourceError(Exception):
    """Base exception for adapter-level rate source failures.

    Attributes:
        status_code: Optional upstream HTTP status code.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RateSourceConnectionError(RateSourceError, ConnectionError):
    """Transport-level connectivity failure while fetching a rate table."""


class RateSourceTimeoutError(RateSourceError, TimeoutError):
    """Transport timeout while fetching a rate table."""


class RateSourcePayloadError(RateSourceError, ValueError):
    """Rate table payload is malformed or does not match the requested currency."""
