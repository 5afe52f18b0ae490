"""Script discovery, statement splitting and scaffolding."""

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from migrations.errors import ScriptDirectoryNotFound
from migrations.models import Script

logger = logging.getLogger(__name__)

# A statement ends at a semicolon immediately followed by a line break.
# Semicolons inside literals or comments are not recognised.
STATEMENT_BOUNDARY = re.compile(r";\r?\n")

NUMBERED_SCRIPT = re.compile(r"^(\d+)_.+\.sql$")


def candidate_directories(cwd: Optional[Path] = None) -> List[Path]:
    """Script directory locations, tried in order.

    Covers running from the project root, from a sibling folder and from
    an in-place checkout of this package.
    """
    cwd = cwd or Path.cwd()
    return [
        cwd / "schema",
        cwd / ".." / "Schema",
        Path(__file__).resolve().parents[2] / "Schema",
    ]


def resolve_script_directory(
    explicit: Optional[str | Path] = None,
    cwd: Optional[Path] = None,
) -> Path:
    """Pick the script directory.

    An explicit directory is returned as is. Otherwise the first existing
    candidate is used; if none exists the last candidate is returned so
    the caller can report it as missing.
    """
    if explicit:
        return Path(explicit).expanduser()

    candidates = candidate_directories(cwd)
    for candidate in candidates:
        if candidate.is_dir():
            return candidate
    return candidates[-1]


def list_scripts(directory: Path, pattern: str = "*.sql") -> List[Script]:
    """List script files in name order.

    Args:
        directory: Directory to scan (not recursive).
        pattern: Glob pattern for script files.

    Returns:
        Scripts sorted by file name using code point order. Empty when
        nothing matches.

    Raises:
        ScriptDirectoryNotFound: If the directory does not exist.
    """
    if not directory.is_dir():
        raise ScriptDirectoryNotFound(directory)

    paths = [p for p in directory.glob(pattern) if p.is_file()]
    scripts = [Script.from_path(p) for p in paths]
    scripts.sort(key=lambda s: s.name)
    logger.debug(f"Found {len(scripts)} script(s) in {directory}")
    return scripts


def split_statements(sql: str) -> List[str]:
    """Split script text into trimmed, non-empty statements.

    Example:
        >>> split_statements("A;\\nB;\\r\\nC")
        ['A', 'B', 'C']
    """
    parts = (part.strip() for part in STATEMENT_BOUNDARY.split(sql))
    return [part for part in parts if part]


def create_script(directory: Path, name: str) -> Path:
    """Create a new numbered script file.

    Args:
        directory: Script directory (created if missing).
        name: Human readable name, slugified into the file name.

    Returns:
        Path to the created file.

    Raises:
        ValueError: If the name has no usable characters.
        FileExistsError: If the target file already exists.
    """
    slug = re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")
    if not slug:
        raise ValueError(f"Cannot build a script name from {name!r}")

    directory.mkdir(parents=True, exist_ok=True)

    numbers = []
    for path in directory.glob("*.sql"):
        match = NUMBERED_SCRIPT.match(path.name)
        if match:
            numbers.append(int(match.group(1)))
    next_number = max(numbers, default=0) + 1

    path = directory / f"{next_number:03d}_{slug}.sql"
    if path.exists():
        raise FileExistsError(f"Script already exists: {path}")

    template = f"""-- Script: {name}
-- Created: {datetime.now().isoformat()[:19]}

-- Write your SQL here
-- Each statement must end with a semicolon followed by a line break

"""
    path.write_text(template, encoding="utf-8")
    logger.info(f"Created {path}")
    return path
