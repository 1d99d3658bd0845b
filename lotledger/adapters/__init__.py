"""Adapter layer package for external rate sources."""

from .errors import RateSourceConnectionError, RateSourceError, RateSourcePayloadError, RateSourceTimeoutError
from .rate_table_http import RateTableHttpLoader

__all__ = [
	"RateSourceConnectionError",
	"RateSourceError",
	"RateSourcePayloadError",
	"RateSourceTimeoutError",
	"RateTableHttpLoader",
]
