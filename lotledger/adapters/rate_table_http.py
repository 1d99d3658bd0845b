"""HTTP adapter that materializes a historical rate table from a JSON endpoint.

Expected payload::

    {
        "base": "USD",
        "rates": [
            {"currency": "EUR", "date": "2023-01-02", "rate": "1.0702"},
            ...
        ]
    }

Each rate is the number of `base` units per one unit of `currency`.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Final

import httpx

from lotledger.currency import CurrencyRateSourcePort

from .errors import RateSourceConnectionError, RateSourcePayloadError, RateSourceTimeoutError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _AdapterRetryStrategy:
    """Immutable retry strategy config and calculation helpers.

    Attributes:
        retry_attempts: Number of request attempts.
        backoff_base_seconds: Base delay for exponential backoff.
        max_backoff_seconds: Exponential delay cap before jitter.
        random_unit_interval_provider: Provider returning value in [0.0, 1.0].
    """

    retry_attempts: int
    backoff_base_seconds: float
    max_backoff_seconds: float
    random_unit_interval_provider: Callable[[], float]

    def strategy_calculate_retry_wait_seconds(self, retry_index: int) -> float:
        """Calculate exponential retry wait with cap and jitter in [0.5, 1.5].

        Args:
            retry_index: Zero-based retry attempt index.

        Returns:
            float: Computed wait seconds.

        Raises:
            ValueError: Raised when retry index is negative.
            RuntimeError: Raised when jitter provider returns out-of-range value.
        """

        if retry_index < 0:
            raise ValueError("retry_index must be >= 0")

        backoff_seconds = min(self.backoff_base_seconds * (2**retry_index), self.max_backoff_seconds)
        random_ratio = float(self.random_unit_interval_provider())
        if random_ratio < 0.0 or random_ratio > 1.0:
            raise RuntimeError("random_unit_interval_provider must return a value in [0.0, 1.0]")
        return backoff_seconds * (0.5 + random_ratio)


class RateTableHttpLoader(CurrencyRateSourcePort):
    """Adapter loading a full historical rate table over HTTP with bounded retries."""

    _USER_AGENT: Final[str] = "tax-lot-ledger/1.0 (Python/httpx)"
    _RETRYABLE_STATUS_CODES: Final[frozenset[int]] = frozenset({429, 500, 502, 503, 504})

    def __init__(
        self,
        url: str,
        request_timeout_seconds: float = 10.0,
        retry_attempts: int = 3,
        retry_backoff_base_seconds: float = 1.0,
        retry_max_backoff_seconds: float = 30.0,
        random_unit_interval_provider: Callable[[], float] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize rate-table loader.

        Args:
            url: JSON rate-table endpoint.
            request_timeout_seconds: HTTP request timeout in seconds.
            retry_attempts: Number of request attempts.
            retry_backoff_base_seconds: Base retry delay used by exponential backoff.
            retry_max_backoff_seconds: Maximum retry delay cap before applying jitter.
            random_unit_interval_provider: Optional provider returning random values in [0.0, 1.0].
            sleep: Delay function used between attempts.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when required config values are invalid.
        """

        normalized_url = url.strip()
        if not normalized_url:
            raise ValueError("url must not be blank")
        if request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be > 0")
        if retry_attempts < 1:
            raise ValueError("retry_attempts must be >= 1")
        if retry_backoff_base_seconds < 0:
            raise ValueError("retry_backoff_base_seconds must be >= 0")
        if retry_max_backoff_seconds <= 0:
            raise ValueError("retry_max_backoff_seconds must be > 0")

        self._url = normalized_url
        self._request_timeout_seconds = request_timeout_seconds
        self._retry_strategy = _AdapterRetryStrategy(
            retry_attempts=retry_attempts,
            backoff_base_seconds=retry_backoff_base_seconds,
            max_backoff_seconds=retry_max_backoff_seconds,
            random_unit_interval_provider=random_unit_interval_provider or random.random,
        )
        self._sleep = sleep

    def currency_rate_source_name(self) -> str:
        """Return stable adapter source label."""

        return f"http:{self._url}"

    def currency_rate_table_load(self, reporting_currency: str) -> dict[tuple[str, date], Decimal]:
        """Fetch and parse the rate table for one reporting currency.

        Args:
            reporting_currency: Currency the rates convert into.

        Returns:
            dict[tuple[str, date], Decimal]: Rates keyed by (currency, date).

        Raises:
            RateSourceConnectionError: Raised when all attempts fail on transport or HTTP status.
            RateSourceTimeoutError: Raised when the final attempt times out.
            RateSourcePayloadError: Raised when the payload is malformed or has another base.
        """

        normalized_reporting_currency = reporting_currency.strip().upper()
        payload = self._adapter_fetch_json({"base": normalized_reporting_currency})
        return self._adapter_parse_rate_table(payload, normalized_reporting_currency)

    def _adapter_fetch_json(self, query_parameters: dict[str, str]) -> Any:
        """GET the endpoint, retrying transport failures and retryable statuses."""

        last_error: Exception | None = None
        with httpx.Client(
            timeout=self._request_timeout_seconds,
            headers={"User-Agent": self._USER_AGENT, "Accept": "application/json"},
        ) as client:
            for attempt_index in range(self._retry_strategy.retry_attempts):
                if attempt_index > 0:
                    wait_seconds = self._retry_strategy.strategy_calculate_retry_wait_seconds(attempt_index - 1)
                    logger.warning(
                        "Rate table request retry url=%s attempt=%s wait_seconds=%.2f error=%s",
                        self._url,
                        attempt_index + 1,
                        wait_seconds,
                        last_error,
                    )
                    self._sleep(wait_seconds)

                try:
                    response = client.get(self._url, params=query_parameters)
                except httpx.TimeoutException as error:
                    last_error = RateSourceTimeoutError("rate table request timed out")
                    last_error.__cause__ = error
                    continue
                except httpx.TransportError as error:
                    last_error = RateSourceConnectionError("rate table transport request failed")
                    last_error.__cause__ = error
                    continue

                if response.status_code in self._RETRYABLE_STATUS_CODES:
                    last_error = RateSourceConnectionError(
                        f"rate table upstream returned HTTP {response.status_code}",
                        status_code=response.status_code,
                    )
                    continue
                if response.status_code >= 400:
                    raise RateSourceConnectionError(
                        f"rate table upstream returned HTTP {response.status_code}",
                        status_code=response.status_code,
                    )
                try:
                    return response.json()
                except ValueError as error:
                    raise RateSourcePayloadError("rate table response is not valid JSON") from error

        if last_error is None:
            raise RateSourceConnectionError("rate table request failed")
        raise last_error

    def _adapter_parse_rate_table(self, payload: Any, reporting_currency: str) -> dict[tuple[str, date], Decimal]:
        """Validate payload shape and build the rate table.

        Args:
            payload: Decoded JSON payload.
            reporting_currency: Expected base currency.

        Returns:
            dict[tuple[str, date], Decimal]: Rates keyed by (currency, date).

        Raises:
            RateSourcePayloadError: Raised when payload fields are missing or invalid.
        """

        if not isinstance(payload, dict):
            raise RateSourcePayloadError("rate table payload must be a JSON object")
        base_currency = str(payload.get("base", "")).strip().upper()
        if base_currency != reporting_currency:
            raise RateSourcePayloadError(
                f"rate table base={base_currency or '<missing>'} does not match reporting currency={reporting_currency}"
            )
        rows = payload.get("rates")
        if not isinstance(rows, list):
            raise RateSourcePayloadError("rate table payload must contain a rates array")

        rates: dict[tuple[str, date], Decimal] = {}
        for row_index, row in enumerate(rows):
            if not isinstance(row, dict):
                raise RateSourcePayloadError(f"rates[{row_index}] must be an object")
            try:
                currency = str(row["currency"]).strip().upper()
                rate_date = date.fromisoformat(str(row["date"]))
                rate = Decimal(str(row["rate"]))
            except (KeyError, ValueError, InvalidOperation) as error:
                raise RateSourcePayloadError(f"rates[{row_index}] is invalid: {row}") from error
            if not currency or not rate.is_finite() or rate <= Decimal("0"):
                raise RateSourcePayloadError(f"rates[{row_index}] must carry a currency and a positive rate")
            rates[(currency, rate_date)] = rate

        logger.info("Rate table loaded url=%s base=%s rows=%s", self._url, reporting_currency, len(rates))
        return rates
