"""
Database access module for schema-runner.

Opens DB-API connections to the target database and describes the SQL
differences between the supported backends. ALL connections should be
opened through this module.

Usage:
    from storage.database import open_connection, get_dialect

    with open_connection(settings) as conn:
        cursor = conn.cursor()
        cursor.execute("CREATE TABLE ...")

Connections are opened in autocommit mode: every statement is applied on
its own unless the caller issues an explicit BEGIN.
"""

import logging
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

from config.settings import ConnectionSettings
from migrations.errors import DatabaseConnectionError

logger = logging.getLogger(__name__)


class Dialect(ABC):
    """SQL details that differ between backends."""

    name = "generic"
    placeholder = "?"

    def qualify(self, schema: str, table: str) -> str:
        return table

    @abstractmethod
    def table_exists_query(self, schema: str, table: str) -> tuple[str, tuple]:
        """Scalar COUNT query and its parameters."""

    def placeholders(self, count: int) -> str:
        """Comma separated placeholders for an IN list."""
        return ", ".join([self.placeholder] * count)

    def bind_timestamp(self, value: datetime) -> Any:
        return value

    def read_timestamp(self, value: Any) -> Optional[datetime]:
        if value is None or isinstance(value, datetime):
            return value
        return datetime.fromisoformat(str(value))


class PostgresDialect(Dialect):
    name = "postgres"
    placeholder = "%s"

    def qualify(self, schema: str, table: str) -> str:
        return f"{schema}.{table}"

    def table_exists_query(self, schema: str, table: str) -> tuple[str, tuple]:
        sql = """
            SELECT COUNT(*)
            FROM information_schema.tables
            WHERE table_name = %s AND table_schema = %s
        """
        return sql, (table, schema)


class SQLiteDialect(Dialect):
    name = "sqlite"
    placeholder = "?"

    def table_exists_query(self, schema: str, table: str) -> tuple[str, tuple]:
        sql = """
            SELECT COUNT(*)
            FROM sqlite_master
            WHERE type = 'table' AND name = ?
        """
        return sql, (table,)

    def bind_timestamp(self, value: datetime) -> Any:
        # sqlite3's implicit datetime adapter is deprecated
        return value.isoformat(sep=" ")


_DIALECTS = {
    "postgres": PostgresDialect(),
    "sqlite": SQLiteDialect(),
}


def get_dialect(backend: str) -> Dialect:
    """Return the dialect for a backend name."""
    try:
        return _DIALECTS[backend]
    except KeyError:
        raise ValueError(f"Unsupported backend: {backend}") from None


def _connect_postgres(settings: ConnectionSettings):
    # Lazy import so the sqlite backend works without the driver installed
    import psycopg2

    try:
        conn = psycopg2.connect(
            host=settings.host,
            port=settings.port,
            dbname=settings.database,
            user=settings.username,
            password=settings.password.get_secret_value(),
            connect_timeout=settings.connect_timeout,
            options=f"-c statement_timeout={settings.command_timeout * 1000}",
        )
    except psycopg2.Error as e:
        raise DatabaseConnectionError(
            f"Could not connect to {settings.describe()}: {e}"
        ) from e

    conn.autocommit = True
    return conn


def _connect_sqlite(settings: ConnectionSettings) -> sqlite3.Connection:
    path = Path(settings.database).expanduser()
    try:
        # mode=rw: a missing file is an error, not a new empty database.
        # isolation_level=None: autocommit, no implicit BEGIN
        return sqlite3.connect(
            f"{path.resolve().as_uri()}?mode=rw",
            uri=True,
            timeout=float(settings.command_timeout),
            isolation_level=None,
        )
    except sqlite3.Error as e:
        raise DatabaseConnectionError(
            f"Could not open {settings.describe()}: {e}"
        ) from e


def connect(settings: ConnectionSettings):
    """Open a new autocommit connection.

    Each call creates a fresh connection; nothing is pooled.

    Raises:
        DatabaseConnectionError: If the connection cannot be opened.
    """
    logger.debug(f"Connecting to {settings.describe()}")
    if settings.backend == "sqlite":
        return _connect_sqlite(settings)
    return _connect_postgres(settings)


@contextmanager
def open_connection(
    settings: ConnectionSettings,
    factory: Optional[Callable[[ConnectionSettings], Any]] = None,
) -> Iterator[Any]:
    """Context manager that opens a connection and always closes it.

    Args:
        settings: Connection settings.
        factory: Connection factory, :func:`connect` by default.
    """
    conn = (factory or connect)(settings)
    try:
        yield conn
    finally:
        conn.close()
