"""Script execution tracker for schema-runner.

Executes SQL scripts in name order, each at most once, and records every
successful execution in the log table of the target database.

The log table stores:
- Script name (file name including the .sql extension)
- Run timestamp (local time of the successful execution)

Only the name is tracked. A script that was edited after it ran is not
executed again.
"""

import logging
import time
from contextlib import closing
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Sequence

from config.settings import ConnectionSettings, RunnerConfig
from migrations.errors import StatementError
from migrations.models import (
    Lookup,
    RunReport,
    Script,
    ScriptListing,
    ScriptResult,
    ScriptStatus,
)
from migrations.scripts import split_statements
from storage import database
from storage.script_log import ScriptLogRepository

logger = logging.getLogger(__name__)

ScriptCallback = Callable[[ScriptListing, Optional[ScriptResult]], None]


class ScriptTracker:
    """Decides which scripts have run and executes the rest.

    Every database operation opens its own connection: one for the bulk
    status lookup and one per executed script.

    Attributes:
        config: Runner configuration.
        dialect: SQL dialect of the configured backend.
    """

    def __init__(
        self,
        config: Optional[RunnerConfig] = None,
        connect: Optional[Callable[[ConnectionSettings], Any]] = None,
    ) -> None:
        """Initialize the tracker.

        Args:
            config: Runner configuration (defaults if omitted).
            connect: Connection factory, ``storage.database.connect`` by default.
        """
        self.config = config or RunnerConfig()
        self.dialect = database.get_dialect(self.config.connection.backend)
        self._connect = connect or database.connect

    def _log(self, conn: Any) -> ScriptLogRepository:
        return ScriptLogRepository(conn, self.dialect, self.config.log_table)

    # Status lookups. Failures here never abort a run: they are captured
    # in a Lookup and collapsed to a documented default by the caller.

    def lookup_execution_status(self, script_names: Iterable[str]) -> Lookup[dict]:
        names = list(script_names)
        if not names:
            return Lookup(value={})

        def _fetch() -> dict:
            with database.open_connection(self.config.connection, self._connect) as conn:
                log = self._log(conn)
                if not log.table_exists():
                    logger.debug(f"Log table {log.qualified_name} does not exist")
                    return {}
                return log.last_runs(names)

        return Lookup.attempt(_fetch)

    def fetch_execution_status(self, script_names: Iterable[str]) -> dict:
        """Latest run timestamp per script name.

        Returns an empty dict when the log table is missing or the lookup
        fails: status is unknown and nothing is marked as executed.
        """
        lookup = self.lookup_execution_status(script_names)
        if not lookup.known:
            logger.warning(f"Execution status unavailable: {lookup.error}")
        return lookup.or_default({})

    def lookup_has_run(self, conn: Any, script_name: str) -> Lookup[bool]:
        def _check() -> bool:
            log = self._log(conn)
            if not log.table_exists():
                return False
            return log.run_count(script_name) > 0

        return Lookup.attempt(_check)

    def has_run(self, conn: Any, script_name: str) -> bool:
        """Whether a script already has a log entry.

        Unknown counts as not run, so a failed check leads to the script
        being executed again rather than silently skipped.
        """
        lookup = self.lookup_has_run(conn, script_name)
        if not lookup.known:
            logger.debug(f"Run check for {script_name} failed: {lookup.error}")
        return lookup.or_default(False)

    # Execution

    def _run_statements(self, conn: Any, statements: Sequence[str], atomic: bool) -> int:
        """Execute statements in order, returning how many succeeded.

        Raises:
            StatementError: On the first failing statement.
        """
        executed = 0
        with closing(conn.cursor()) as cursor:
            if atomic:
                cursor.execute("BEGIN")
            try:
                for index, statement in enumerate(statements, 1):
                    try:
                        cursor.execute(statement)
                    except Exception as e:
                        raise StatementError(index, statement, e) from e
                    executed += 1
            except StatementError:
                if atomic:
                    cursor.execute("ROLLBACK")
                raise
            if atomic:
                cursor.execute("COMMIT")
        return executed

    def execute(self, script: Script) -> ScriptResult:
        """Execute one script unless it has already run.

        Statements run one by one without a surrounding transaction unless
        ``config.atomic`` is set. On failure, statements that already ran
        stay applied and no log entry is written.

        Returns:
            The script's result. This method does not raise.
        """
        started = time.monotonic()

        def _result(status: ScriptStatus, message: str, **kwargs: Any) -> ScriptResult:
            return ScriptResult(
                name=script.name,
                status=status,
                message=message,
                elapsed_seconds=round(time.monotonic() - started, 3),
                **kwargs,
            )

        try:
            conn = self._connect(self.config.connection)
        except Exception as e:
            logger.error(f"{script.name}: connection failed: {e}")
            return _result(ScriptStatus.FAILED, f"Connection failed: {e}")

        statements: list[str] = []
        executed = 0
        try:
            if self.has_run(conn, script.name):
                logger.info(f"{script.name}: already executed, skipping")
                return _result(ScriptStatus.SKIPPED, "Already executed (skipped)")

            statements = split_statements(script.content)
            executed = self._run_statements(conn, statements, self.config.atomic)

            warning = None
            try:
                self._log(conn).record(script.name)
            except Exception as e:
                warning = f"Failed to log script execution: {e}"
                logger.warning(f"{script.name}: {warning}")

            logger.info(f"{script.name}: executed {executed} statement(s)")
            return _result(
                ScriptStatus.SUCCESS,
                "Executed successfully",
                statements_total=len(statements),
                statements_executed=executed,
                warning=warning,
            )
        except StatementError as e:
            logger.error(f"{script.name}: {e}")
            return _result(
                ScriptStatus.FAILED,
                f"Execution failed: {e}",
                statements_total=len(statements),
                statements_executed=0 if self.config.atomic else e.index - 1,
            )
        except Exception as e:
            logger.error(f"{script.name}: {e}")
            return _result(
                ScriptStatus.FAILED,
                f"Execution failed: {e}",
                statements_total=len(statements),
                statements_executed=executed,
            )
        finally:
            conn.close()

    def run(
        self,
        scripts: Sequence[Script],
        execute: bool = False,
        with_status: Optional[bool] = None,
        on_script: Optional[ScriptCallback] = None,
        directory: Optional[Path] = None,
    ) -> RunReport:
        """List scripts and optionally execute them in name order.

        Args:
            scripts: Scripts to process; they are handled in name order.
            execute: Execute scripts instead of only listing them.
            with_status: Annotate listings with last run times. Defaults to
                True when executing, else ``config.status_when_listing``.
            on_script: Called with each listing and its result (None in list
                mode) as soon as the script is processed.
            directory: Directory recorded in the report.

        Returns:
            RunReport with listings and, in execute mode, results.
        """
        ordered = sorted(scripts, key=lambda s: s.name)
        if directory is None and ordered:
            directory = ordered[0].path.parent
        report = RunReport(directory=directory, executed=execute)

        if with_status is None:
            with_status = execute or self.config.status_when_listing
        status = (
            self.fetch_execution_status(s.name for s in ordered) if with_status else {}
        )

        for script in ordered:
            listing = ScriptListing(script=script, last_run=status.get(script.name))
            report.listings.append(listing)

            result = None
            if execute:
                result = self.execute(script)
                report.results.append(result)

            if on_script is not None:
                on_script(listing, result)

        if execute:
            logger.info(
                f"Run complete: {report.successful} successful "
                f"({report.skipped} skipped), {report.failed} failed"
            )
        return report
