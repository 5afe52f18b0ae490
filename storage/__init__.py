"""schema-runner - Storage Module.

Database connections for the supported backends and the repository for
the script execution log table.

The storage layer is organized as follows:
- database.py: connection factory and backend SQL dialects
- script_log.py: reads and writes against the log table

Example:
    >>> from storage import open_connection, get_dialect, ScriptLogRepository
    >>>
    >>> with open_connection(settings) as conn:
    ...     log = ScriptLogRepository(conn, get_dialect(settings.backend))
    ...     if log.table_exists():
    ...         print(log.last_runs(["001_init.sql"]))
"""

from .database import Dialect, connect, get_dialect, open_connection
from .script_log import ScriptLogRepository

__all__ = [
    "Dialect",
    "ScriptLogRepository",
    "connect",
    "get_dialect",
    "open_connection",
]
