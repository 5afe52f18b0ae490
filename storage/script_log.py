"""Repository for the script execution log table.

The log table has the shape ``(scriptname TEXT, runon TIMESTAMP)``. It is
owned by the database administrators: this module reads and appends to it
but never creates it. A missing table is a valid state meaning that no
script has ever run.
"""

import logging
from contextlib import closing
from datetime import datetime
from typing import Any, Iterable, Optional

from config.settings import LogTableSettings
from storage.database import Dialect

logger = logging.getLogger(__name__)


class ScriptLogRepository:
    """Reads and writes execution log entries on an open connection.

    Errors from the driver propagate to the caller; deciding which of them
    are fatal is up to the execution tracker.
    """

    def __init__(
        self,
        conn: Any,
        dialect: Dialect,
        table: Optional[LogTableSettings] = None,
    ) -> None:
        """Initialize the repository.

        Args:
            conn: Open DB-API connection.
            dialect: SQL dialect of the connection's backend.
            table: Log table location (defaults to ``public.sysdbscriptlog``).
        """
        self.conn = conn
        self.dialect = dialect
        self.table = table or LogTableSettings()

    @property
    def qualified_name(self) -> str:
        return self.dialect.qualify(self.table.schema_name, self.table.name)

    def _scalar(self, sql: str, params: tuple = ()) -> Any:
        with closing(self.conn.cursor()) as cursor:
            cursor.execute(sql, params)
            row = cursor.fetchone()
        return row[0] if row else None

    def table_exists(self) -> bool:
        sql, params = self.dialect.table_exists_query(
            self.table.schema_name, self.table.name
        )
        return (self._scalar(sql, params) or 0) > 0

    def run_count(self, script_name: str) -> int:
        """Number of log entries recorded for a script."""
        sql = (
            f"SELECT COUNT(*) FROM {self.qualified_name} "
            f"WHERE scriptname = {self.dialect.placeholder}"
        )
        return int(self._scalar(sql, (script_name,)) or 0)

    def last_runs(self, script_names: Iterable[str]) -> dict[str, datetime]:
        """Latest run timestamp per script, restricted to ``script_names``.

        Returns:
            Dict mapping script name to its most recent ``runon``. Scripts
            with no entry are absent.
        """
        names = list(dict.fromkeys(script_names))
        if not names:
            return {}

        sql = f"""
            SELECT scriptname, MAX(runon) AS lastrun
            FROM {self.qualified_name}
            WHERE scriptname IN ({self.dialect.placeholders(len(names))})
            GROUP BY scriptname
        """
        with closing(self.conn.cursor()) as cursor:
            cursor.execute(sql, tuple(names))
            rows = cursor.fetchall()

        requested = set(names)
        return {
            row[0]: self.dialect.read_timestamp(row[1])
            for row in rows
            if row[0] in requested
        }

    def record(self, script_name: str, run_on: Optional[datetime] = None) -> None:
        """Append a log entry for a completed script."""
        run_on = run_on or datetime.now()
        placeholder = self.dialect.placeholder
        sql = (
            f"INSERT INTO {self.qualified_name} (scriptname, runon) "
            f"VALUES ({placeholder}, {placeholder})"
        )
        with closing(self.conn.cursor()) as cursor:
            cursor.execute(sql, (script_name, self.dialect.bind_timestamp(run_on)))
        logger.debug(f"Logged {script_name} at {run_on:%Y-%m-%d %H:%M:%S}")
