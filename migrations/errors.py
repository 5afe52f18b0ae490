"""Exception types raised by schema-runner."""

from pathlib import Path


class SchemaRunnerError(Exception):
    """Base class for schema-runner errors."""

    pass


class ScriptDirectoryNotFound(SchemaRunnerError):
    """Raised when the script directory does not exist."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        super().__init__(f"Schema directory not found at: {directory}")


class DatabaseConnectionError(SchemaRunnerError):
    """Raised when a database connection cannot be opened."""

    pass


class StatementError(SchemaRunnerError):
    """Raised when one statement of a script fails.

    Attributes:
        index: 1-based position of the statement in the script.
        statement: The statement text.
    """

    def __init__(self, index: int, statement: str, cause: Exception) -> None:
        self.index = index
        self.statement = statement
        self.cause = cause
        super().__init__(f"Statement {index} failed: {cause}")
