"""Event store health check backed by a lightweight schema probe."""

from sqlalchemy import Engine, text
from sqlalchemy.exc import SQLAlchemyError

from lotledger.domain import HealthStatus

from .interfaces import DatabaseHealthPort

_EVENT_STORE_PROBE_SQL = text("SELECT count(*) AS account_count FROM account")


class SQLAlchemyDatabaseHealthService(DatabaseHealthPort):
    """Health service that checks the event store schema is reachable, not only the server."""

    def __init__(self, engine: Engine):
        if engine is None:
            raise ValueError("engine must not be None")
        self._engine = engine

    def db_connection_label(self) -> str:
        """Return the target database URL with the password masked."""

        return self._engine.url.render_as_string(hide_password=True)

    def db_check_health(self) -> HealthStatus:
        """Probe the account table of the event store.

        Returns:
            HealthStatus: Healthy status with the number of registered accounts.

        Raises:
            ConnectionError: Raised when the server or the migrated schema is unreachable.
        """

        try:
            with self._engine.connect() as connection:
                account_count = connection.execute(_EVENT_STORE_PROBE_SQL).scalar_one()
        except SQLAlchemyError as error:
            raise ConnectionError("event store connectivity check failed") from error
        return HealthStatus(status="ok", detail=f"event store reachable accounts={account_count}")
