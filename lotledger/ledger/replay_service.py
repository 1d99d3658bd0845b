"""Replay service materializing collaborators from the event store."""
# pylint: disable=too-few-public-methods

from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable

from lotledger.currency import CurrencyConverter, CurrencyRateSourcePort
from lotledger.db import EventStoreRepositoryPort, MarketPriceRecord
from lotledger.securities import SecurityRegistry

from .fifo_engine import LedgerReplayResult, ledger_replay_account
from .interfaces import LedgerPort, LedgerReplayConfig, PriceLookupPort

logger = logging.getLogger(__name__)


class StoredPriceLookup(PriceLookupPort):
    """Closing-price lookup over a materialized price table."""

    def __init__(self, prices: Iterable[MarketPriceRecord] = ()):
        self._history: dict[str, list[tuple[date, Decimal, str]]] = {}
        for record in prices:
            self._history.setdefault(record.security_id, []).append(
                (record.price_date, record.close_price, record.currency.upper())
            )
        for history in self._history.values():
            history.sort()

    def price_lookup_close(self, security_id: str, on_date: date) -> tuple[Decimal, str] | None:
        """Return the (price, currency) close recorded exactly on `on_date`, if any."""

        for price_date, close_price, currency in self._history.get(security_id, ()):
            if price_date == on_date:
                return close_price, currency
        return None

    def price_lookup_latest(self, security_id: str, on_date: date) -> tuple[Decimal, str] | None:
        """Return the most recent (price, currency) on or before `on_date`.

        Args:
            security_id: Stable security identity.
            on_date: Valuation date.

        Returns:
            tuple[Decimal, str] | None: Price and quote currency, or None when unpriced.

        Raises:
            RuntimeError: This helper does not raise runtime errors.
        """

        history = self._history.get(security_id, [])
        position = bisect.bisect_right([price_date for price_date, _, _ in history], on_date)
        if position == 0:
            return None
        _, close_price, currency = history[position - 1]
        return close_price, currency


@dataclass(frozen=True)
class ReplayCollaborators:
    """Read-only collaborators shared by every account replay of one run.

    Attributes:
        registry: Security registry built from stored listings.
        converter: Currency converter over the materialized rate table.
        price_lookup: Closing-price lookup over stored prices.
    """

    registry: SecurityRegistry
    converter: CurrencyConverter
    price_lookup: StoredPriceLookup


class LedgerReplayService(LedgerPort):
    """Replay accounts from stored events with collaborators loaded once."""

    def __init__(
        self,
        repository: EventStoreRepositoryPort,
        config: LedgerReplayConfig,
        reporting_currency: str = "USD",
        fx_fallback_window_days: int = 7,
        rate_source: CurrencyRateSourcePort | None = None,
    ):
        """Initialize replay service dependencies.

        Args:
            repository: DB-layer event store repository.
            config: Replay policies.
            reporting_currency: Reporting currency code.
            fx_fallback_window_days: Business-day fallback window for missing rates.
            rate_source: Optional external rate table merged over stored rates.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when dependencies are invalid.
        """

        if repository is None:
            raise ValueError("repository must not be None")
        if config is None:
            raise ValueError("config must not be None")
        if not reporting_currency.strip():
            raise ValueError("reporting_currency must not be blank")

        self._repository = repository
        self._config = config
        self._reporting_currency = reporting_currency.strip().upper()
        self._fx_fallback_window_days = fx_fallback_window_days
        self._rate_source = rate_source

    @property
    def config(self) -> LedgerReplayConfig:
        return self._config

    def ledger_policy_name(self) -> str:
        return "fifo"

    def ledger_load_collaborators(self) -> ReplayCollaborators:
        """Materialize registry, converter and prices before any replay starts.

        Returns:
            ReplayCollaborators: Collaborators shared by all accounts of one run.

        Raises:
            RuntimeError: Raised when repository reads fail.
            ConnectionError: Raised when the external rate source cannot be reached.
            CorporateActionConflictError: Raised when stored listings overlap.
        """

        rates: dict[tuple[str, date], Decimal] = {
            (record.currency, record.rate_date): record.rate for record in self._repository.db_fx_rate_list()
        }
        if self._rate_source is not None:
            rates.update(self._rate_source.currency_rate_table_load(self._reporting_currency))
            logger.info(
                "Merged external rate table source=%s rows=%s",
                self._rate_source.currency_rate_source_name(),
                len(rates),
            )

        collaborators = ReplayCollaborators(
            registry=SecurityRegistry(self._repository.db_security_listing_list()),
            converter=CurrencyConverter(
                reporting_currency=self._reporting_currency,
                rates=rates,
                fallback_window_days=self._fx_fallback_window_days,
            ),
            price_lookup=StoredPriceLookup(self._repository.db_market_price_list()),
        )
        return collaborators

    def ledger_replay(self, account_id: str, collaborators: ReplayCollaborators | None = None) -> LedgerReplayResult:
        """Replay one account from its stored event history.

        Args:
            account_id: Account identifier.
            collaborators: Optional pre-loaded collaborators; loaded on demand when omitted.

        Returns:
            LedgerReplayResult: Lot state, realized gains and cash flows.

        Raises:
            ValueError: Raised when account_id is blank.
            LookupError: Raised when the account does not exist.
            LedgerError: Raised when the account history cannot be replayed.
        """

        normalized_account_id = account_id.strip()
        if not normalized_account_id:
            raise ValueError("account_id must not be blank")

        account = self._repository.db_account_get(normalized_account_id)
        if account is None:
            raise LookupError(f"account not found: {normalized_account_id}")

        loaded_collaborators = collaborators or self.ledger_load_collaborators()
        events = self._repository.db_ledger_event_list_for_account(normalized_account_id)
        return ledger_replay_account(
            account=account,
            events=events,
            registry=loaded_collaborators.registry,
            converter=loaded_collaborators.converter,
            config=self._config,
            price_lookup=loaded_collaborators.price_lookup,
        )
