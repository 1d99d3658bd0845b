"""Database service for the account event store and replay collaborator tables."""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any

from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError

from lotledger.domain import (
    Account,
    LedgerEvent,
    SecurityListing,
    domain_event_from_payload,
    domain_event_to_payload,
)

from .interfaces import EventStoreRepositoryPort, FxRateRecord, LedgerEventRecord, MarketPriceRecord


class SQLAlchemyEventStoreService(EventStoreRepositoryPort):
    """SQLAlchemy implementation of the event store read and append operations."""

    def __init__(self, engine: Engine):
        """Initialize event store service.

        Args:
            engine: SQLAlchemy engine used for persistence and reads.

        Returns:
            None: Initializer does not return values.

        Raises:
            ValueError: Raised when engine is invalid.
        """

        if engine is None:
            raise ValueError("engine must not be None")
        self._engine = engine

    def db_account_list(self) -> list[Account]:
        """List all accounts ordered by account identifier.

        Returns:
            list[Account]: Account rows.

        Raises:
            RuntimeError: Raised when database read fails.
        """

        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text("SELECT account_id, broker, base_currency FROM account ORDER BY account_id asc"),
                    {},
                ).mappings().all()
        except SQLAlchemyError as error:
            raise RuntimeError("account list read failed") from error

        return [self._db_event_store_map_account(row) for row in rows]

    def db_account_get(self, account_id: str) -> Account | None:
        """Fetch one account.

        Args:
            account_id: Account identifier.

        Returns:
            Account | None: Matching account or None.

        Raises:
            ValueError: Raised when account_id is blank.
            RuntimeError: Raised when database read fails.
        """

        normalized_account_id = self._db_event_store_validate_non_empty_text(account_id, "account_id")
        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text("SELECT account_id, broker, base_currency FROM account WHERE account_id = :account_id"),
                    {"account_id": normalized_account_id},
                ).mappings().all()
        except SQLAlchemyError as error:
            raise RuntimeError("account read failed") from error

        if not rows:
            return None
        return self._db_event_store_map_account(rows[0])

    def db_ledger_event_list_for_account(self, account_id: str) -> list[LedgerEvent]:
        """List decoded events of one account ordered by date and sequence.

        Args:
            account_id: Account identifier.

        Returns:
            list[LedgerEvent]: Decoded events.

        Raises:
            ValueError: Raised when a stored payload cannot be decoded.
            RuntimeError: Raised when database read fails.
        """

        return [
            domain_event_from_payload(
                event_type=record.event_type,
                sequence=record.sequence,
                effective_date=record.effective_date,
                payload=record.payload,
            )
            for record in self.db_ledger_event_record_list_for_account(account_id)
        ]

    def db_ledger_event_record_list_for_account(self, account_id: str) -> list[LedgerEventRecord]:
        """List raw event rows of one account ordered by date and sequence.

        Args:
            account_id: Account identifier.

        Returns:
            list[LedgerEventRecord]: Stored event rows.

        Raises:
            ValueError: Raised when account_id is blank or a payload is not an object.
            RuntimeError: Raised when database read fails.
        """

        normalized_account_id = self._db_event_store_validate_non_empty_text(account_id, "account_id")
        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text(
                        "SELECT account_id, sequence, effective_date, event_type, payload "
                        "FROM ledger_event "
                        "WHERE account_id = :account_id "
                        "ORDER BY effective_date asc, sequence asc"
                    ),
                    {"account_id": normalized_account_id},
                ).mappings().all()
        except SQLAlchemyError as error:
            raise RuntimeError("ledger event read failed") from error

        return [
            LedgerEventRecord(
                account_id=row["account_id"],
                sequence=int(row["sequence"]),
                effective_date=row["effective_date"],
                event_type=row["event_type"],
                payload=self._db_event_store_parse_payload(row["payload"]),
            )
            for row in rows
        ]

    def db_ledger_event_append(self, account_id: str, events: list[LedgerEvent]) -> int:
        """Persist events for one account in a single transaction.

        Args:
            account_id: Account identifier.
            events: Events to store.

        Returns:
            int: Number of stored rows.

        Raises:
            ValueError: Raised when inputs are invalid.
            RuntimeError: Raised when persistence fails, including duplicate sequences.
        """

        normalized_account_id = self._db_event_store_validate_non_empty_text(account_id, "account_id")
        if not events:
            return 0

        parameters = []
        for event in events:
            event_type, payload = domain_event_to_payload(event)
            parameters.append(
                {
                    "account_id": normalized_account_id,
                    "sequence": event.sequence,
                    "effective_date": event.effective_date,
                    "event_type": event_type,
                    "payload": json.dumps(payload, sort_keys=True),
                }
            )

        try:
            with self._engine.begin() as connection:
                connection.execute(
                    text(
                        "INSERT INTO ledger_event (account_id, sequence, effective_date, event_type, payload) "
                        "VALUES (:account_id, :sequence, :effective_date, :event_type, CAST(:payload AS jsonb))"
                    ),
                    parameters,
                )
        except SQLAlchemyError as error:
            raise RuntimeError("ledger event append failed") from error
        return len(parameters)

    def db_security_listing_list(self) -> list[SecurityListing]:
        """List known symbol listings.

        Returns:
            list[SecurityListing]: Listing rows ordered by identity and validity date.

        Raises:
            RuntimeError: Raised when database read fails.
        """

        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text(
                        "SELECT security_id, symbol, valid_from "
                        "FROM security_listing "
                        "ORDER BY security_id asc, valid_from asc"
                    ),
                    {},
                ).mappings().all()
        except SQLAlchemyError as error:
            raise RuntimeError("security listing read failed") from error

        return [
            SecurityListing(security_id=row["security_id"], symbol=row["symbol"], valid_from=row["valid_from"])
            for row in rows
        ]

    def db_fx_rate_list(self) -> list[FxRateRecord]:
        """List stored historical rates.

        Returns:
            list[FxRateRecord]: Rate rows ordered by currency and date.

        Raises:
            RuntimeError: Raised when database read fails.
        """

        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text("SELECT currency, rate_date, rate FROM fx_rate ORDER BY currency asc, rate_date asc"),
                    {},
                ).mappings().all()
        except SQLAlchemyError as error:
            raise RuntimeError("fx rate read failed") from error

        return [
            FxRateRecord(currency=row["currency"], rate_date=row["rate_date"], rate=Decimal(str(row["rate"])))
            for row in rows
        ]

    def db_market_price_list(self) -> list[MarketPriceRecord]:
        """List stored closing prices.

        Returns:
            list[MarketPriceRecord]: Price rows ordered by security and date.

        Raises:
            RuntimeError: Raised when database read fails.
        """

        try:
            with self._engine.connect() as connection:
                rows = connection.execute(
                    text(
                        "SELECT security_id, price_date, close_price, currency "
                        "FROM market_price "
                        "ORDER BY security_id asc, price_date asc"
                    ),
                    {},
                ).mappings().all()
        except SQLAlchemyError as error:
            raise RuntimeError("market price read failed") from error

        return [
            MarketPriceRecord(
                security_id=row["security_id"],
                price_date=row["price_date"],
                close_price=Decimal(str(row["close_price"])),
                currency=row["currency"],
            )
            for row in rows
        ]

    def _db_event_store_map_account(self, row: Any) -> Account:
        return Account(account_id=row["account_id"], broker=row["broker"], base_currency=row["base_currency"])

    def _db_event_store_parse_payload(self, payload_value: Any) -> dict[str, Any]:
        """Normalize a JSON column value into a payload dict.

        Args:
            payload_value: Driver-decoded JSON value or serialized JSON text.

        Returns:
            dict[str, Any]: Payload object.

        Raises:
            ValueError: Raised when the payload is not a JSON object.
        """

        if isinstance(payload_value, str):
            payload_value = json.loads(payload_value)
        if not isinstance(payload_value, dict):
            raise ValueError("ledger_event.payload must be a JSON object")
        return payload_value

    def _db_event_store_validate_non_empty_text(self, value: str, field_name: str) -> str:
        stripped_value = value.strip()
        if not stripped_value:
            raise ValueError(f"{field_name} must not be blank")
        return stripped_value
