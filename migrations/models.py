"""Data models for script listing and execution."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import cached_property
from pathlib import Path
from typing import Callable, Generic, List, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Script:
    """One SQL script file.

    ``content`` is read on first access and kept for the lifetime of the
    object.
    """

    name: str
    path: Path
    size: int  # bytes
    modified: datetime

    @classmethod
    def from_path(cls, path: Path) -> "Script":
        stat = path.stat()
        return cls(
            name=path.name,
            path=path,
            size=stat.st_size,
            modified=datetime.fromtimestamp(stat.st_mtime),
        )

    @property
    def size_kb(self) -> float:
        return round(self.size / 1024.0, 2)

    @cached_property
    def content(self) -> str:
        # utf-8-sig drops a leading byte order mark
        return self.path.read_text(encoding="utf-8-sig")


class ScriptStatus(str, Enum):
    """Terminal state of a script in execute mode."""

    SUCCESS = "success"
    SKIPPED = "skipped"  # already executed, nothing to do
    FAILED = "failed"


@dataclass
class ScriptResult:
    """Outcome of executing one script."""

    name: str
    status: ScriptStatus
    message: str = ""
    statements_total: int = 0
    statements_executed: int = 0
    elapsed_seconds: float = 0.0
    warning: Optional[str] = None  # set when the log write failed

    @property
    def ok(self) -> bool:
        return self.status is not ScriptStatus.FAILED


@dataclass
class ScriptListing:
    """A script with its last run annotation."""

    script: Script
    last_run: Optional[datetime] = None

    @property
    def has_run(self) -> bool:
        return self.last_run is not None


@dataclass
class RunReport:
    """Everything one invocation listed and executed."""

    directory: Optional[Path] = None
    executed: bool = False
    listings: List[ScriptListing] = field(default_factory=list)
    results: List[ScriptResult] = field(default_factory=list)

    @property
    def successful(self) -> int:
        """Scripts that did not fail, skipped ones included."""
        return sum(1 for r in self.results if r.ok)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.status is ScriptStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.status is ScriptStatus.FAILED)


@dataclass(frozen=True)
class Lookup(Generic[T]):
    """Result of a best-effort status query.

    Holds either the value or the error that prevented computing it.
    Callers decide what an unknown result means via :meth:`or_default`.
    """

    value: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def known(self) -> bool:
        return self.error is None

    def or_default(self, default: T) -> T:
        if self.error is not None or self.value is None:
            return default
        return self.value

    @classmethod
    def attempt(cls, func: Callable[[], T]) -> "Lookup[T]":
        """Run ``func`` and capture any exception as an unknown result."""
        try:
            return cls(value=func())
        except Exception as e:
            return cls(error=e)
