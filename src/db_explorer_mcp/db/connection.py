from __future__ import annotations

import logging
import re
from typing import Any, Callable, Sequence

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from ..dialects import Dialect, MysqlDialect, PostgresDialect, SqliteDialect
from ..errors import DatabaseConnectionError, NotConnectedError, QueryError
from ..logging_utils import log_extra
from .models import ConnectionState

_SQLITE_EXTENSIONS = (".db", ".sqlite", ".sqlite3")
_PASSWORD_RE = re.compile(r"://([^:/@]+):([^@]+)@")
_PASSWORD_PARAM_RE = re.compile(r"([?&]password=)[^&#]*", re.IGNORECASE)
REDACTED = "***"

NOT_CONNECTED_MESSAGE = (
    "Not connected to any database. Use the connect tool with a connection string, "
    "or set the DB_CONNECTION_STRING environment variable."
)


def redact_connection_string(text: str) -> str:
    redacted = _PASSWORD_RE.sub(rf"://\1:{REDACTED}@", text)
    return _PASSWORD_PARAM_RE.sub(rf"\g<1>{REDACTED}", redacted)


def select_dialect(connection_string: str) -> Dialect:
    trimmed = connection_string.strip()
    if trimmed.startswith(("postgres://", "postgresql://")):
        return PostgresDialect()
    if trimmed.startswith("mysql://"):
        return MysqlDialect()
    if trimmed.startswith("sqlite:"):
        return SqliteDialect()
    if trimmed.endswith(_SQLITE_EXTENSIONS) or trimmed == ":memory:":
        return SqliteDialect()
    raise DatabaseConnectionError(
        f'Unrecognized connection string format: "{redact_connection_string(trimmed)}". '
        "Expected: postgres://..., mysql://..., sqlite:///path, or a .db/.sqlite file path"
    )


def read_only_listener(statement: str) -> Callable[[Any, Any], None]:
    """Pool ``connect`` hook that runs ``statement`` on every new DBAPI connection."""

    def _set_read_only(dbapi_connection: Any, connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute(statement)
        finally:
            cursor.close()
        # keep the session setting past the pool's rollback-on-return
        dbapi_connection.commit()

    return _set_read_only


def _enforce_read_only(engine: Engine, statement: str) -> None:
    event.listen(engine, "connect", read_only_listener(statement))


def _unique_keys(keys: Sequence[str]) -> list[str]:
    """Column names with repeats suffixed (``id``, ``id_2``) so no value is dropped."""
    seen: set[str] = set()
    unique = []
    for key in keys:
        candidate, suffix = key, 1
        while candidate in seen:
            suffix += 1
            candidate = f"{key}_{suffix}"
        seen.add(candidate)
        unique.append(candidate)
    return unique


class ConnectionManager:
    """Owns the one live backend connection and the dialect chosen for it."""

    def __init__(self, pool_size: int = 5, default_connection_string: str | None = None) -> None:
        self._pool_size = pool_size
        self._default_connection_string = default_connection_string
        self._auto_connect_attempted = False
        self._state: ConnectionState | None = None
        self._log = logging.getLogger(__name__)

    @property
    def is_connected(self) -> bool:
        return self._state is not None

    @property
    def state(self) -> ConnectionState:
        if self._state is None:
            raise NotConnectedError(NOT_CONNECTED_MESSAGE)
        return self._state

    @property
    def dialect(self) -> Dialect:
        return self.state.dialect

    def connect(self, connection_string: str) -> str:
        self.disconnect()

        dialect = select_dialect(connection_string)
        redacted = redact_connection_string(connection_string.strip())
        engine: Engine | None = None
        try:
            url = dialect.build_url(connection_string.strip())
            engine = create_engine(url, **dialect.engine_options(self._pool_size))
            _enforce_read_only(engine, dialect.read_only_statement)
            with engine.connect() as connection:
                connection.exec_driver_sql("SELECT 1")
        except (SQLAlchemyError, ImportError, ValueError) as exc:
            if engine is not None:
                engine.dispose()
            self._log.warning(
                "Connection failed",
                extra=log_extra(dialect=dialect.name, url=redacted, error_message=str(exc)),
            )
            raise DatabaseConnectionError(
                f"Could not connect to {dialect.display_name} database: {_driver_message(exc)}"
            ) from exc

        self._state = ConnectionState(dialect=dialect, engine=engine, url=redacted)
        self._log.info("Connected", extra=log_extra(dialect=dialect.name, url=redacted))
        return f"Connected to {dialect.display_name} database (read-only mode)"

    def disconnect(self) -> None:
        if self._state is None:
            return
        state, self._state = self._state, None
        state.engine.dispose()
        self._log.info("Disconnected", extra=log_extra(dialect=state.dialect.name, url=state.url))

    def ensure_connected(self) -> ConnectionState:
        """Return the live state, connecting once from the default string if needed."""
        if self._state is not None:
            return self._state
        if self._default_connection_string and not self._auto_connect_attempted:
            self._auto_connect_attempted = True
            self._log.info(
                "Auto-connecting from default connection string",
                extra=log_extra(url=redact_connection_string(self._default_connection_string)),
            )
            self.connect(self._default_connection_string)
            return self.state
        raise NotConnectedError(NOT_CONNECTED_MESSAGE)

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> list[dict[str, Any]]:
        """Run one statement and return its rows as dicts in column order."""
        state = self.state
        try:
            with state.engine.connect() as connection:
                if params:
                    result = connection.exec_driver_sql(sql, tuple(params))
                else:
                    result = connection.exec_driver_sql(
                        sql, execution_options={"no_parameters": True}
                    )
                if not result.returns_rows:
                    return []
                keys = _unique_keys(list(result.keys()))
                rows = [dict(zip(keys, row)) for row in result]
        except SQLAlchemyError as exc:
            self._log.warning(
                "Query failed",
                extra=log_extra(dialect=state.dialect.name, error_message=str(exc)),
            )
            raise QueryError(_driver_message(exc)) from exc

        self._log.debug(
            "Query executed",
            extra=log_extra(dialect=state.dialect.name, row_count=len(rows)),
        )
        return rows


def _driver_message(exc: BaseException) -> str:
    """The backend's own message, without SQLAlchemy's statement echo."""
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return str(exc.orig).strip()
    return str(exc).strip()
