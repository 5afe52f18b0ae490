#!/usr/bin/env python3
"""schema-runner CLI - lists and executes SQL files in the Schema folder.

Scripts are listed in file name order with their size, modification time
and, when the log table can be read, the time they last ran. With
--execute, every script that has not run yet is executed against the
target database and recorded in its sysdbscriptlog table.

Usage:
    python cli/schema_runner.py                       # list files only
    python cli/schema_runner.py --status -d MyDB      # list with last run times
    python cli/schema_runner.py -e -s localhost -d MyDB -u postgres -p secret
    python cli/schema_runner.py --create "add orders table"

Examples:
    schema-runner --execute --backend sqlite -d ./local.db --dir ./schema
    schema-runner -c runner.yaml --execute --strict
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import ConfigError, RunnerConfig, apply_overrides, load_config
from migrations.errors import ScriptDirectoryNotFound
from migrations.models import RunReport, ScriptListing, ScriptResult, ScriptStatus
from migrations.runner import ScriptTracker
from migrations.scripts import create_script, list_scripts, resolve_script_directory

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(module)s:%(lineno)d] - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str, verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else level.upper(),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="schema-runner",
        description="PostgreSQL Schema Script Runner - Lists and executes SQL files in Schema folder",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  schema-runner                                         # List files only
  schema-runner --execute -s localhost -d MyDB          # Execute with default user
  schema-runner -e -s localhost -d MyDB -u postgres -p MyPassword
        """,
    )
    parser.add_argument("--server", "-s", dest="host", help="Database server name (default: localhost)")
    parser.add_argument("--database", "-d", help="Database name, or file path for sqlite (default: postgres)")
    parser.add_argument("--username", "-u", help="Database username (default: postgres)")
    parser.add_argument("--password", "-p", help="Database password")
    parser.add_argument("--port", type=int, help="Database port (default: 5432)")
    parser.add_argument("--backend", choices=["postgres", "sqlite"], help="Database backend (default: postgres)")
    parser.add_argument("--execute", "-e", action="store_true", help="Execute SQL scripts against database")
    parser.add_argument("--dir", dest="script_dir", help="Script directory (default: ./schema, ../Schema)")
    parser.add_argument("--status", action="store_true", help="Show last run times when only listing")
    parser.add_argument(
        "--atomic",
        action="store_true",
        help="Run each script in one transaction (a failed script leaves nothing applied)",
    )
    parser.add_argument("--config", "-c", type=Path, help="YAML configuration file")
    parser.add_argument("--create", metavar="NAME", help="Create a new numbered script and exit")
    parser.add_argument("--strict", action="store_true", help="Exit with status 1 if any script failed")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser


def resolve_config(args: argparse.Namespace) -> RunnerConfig:
    """Merge file, environment and command line settings."""
    config = load_config(args.config)
    return apply_overrides(
        config,
        host=args.host,
        database=args.database,
        username=args.username,
        password=args.password,
        port=args.port,
        backend=args.backend,
        script_dir=args.script_dir,
        status_when_listing=True if args.status else None,
        atomic=True if args.atomic else None,
    )


def print_listing(index: int, listing: ScriptListing, result: Optional[ScriptResult]) -> None:
    script = listing.script
    marker = " ✓" if listing.has_run else ""
    print(f"{index}. {script.name}{marker}")
    print(f"   Size: {script.size_kb} KB")
    print(f"   Modified: {script.modified:%Y-%m-%d %H:%M:%S}")
    if listing.last_run is not None:
        print(f"   Last executed: {listing.last_run:%Y-%m-%d %H:%M:%S}")

    if result is not None:
        if result.status is ScriptStatus.SUCCESS:
            print(f"   ✓ {result.message} ({result.statements_executed} statement(s), {result.elapsed_seconds:.2f}s)")
        elif result.status is ScriptStatus.SKIPPED:
            print(f"   ⚠ {result.message}")
        else:
            print(f"   ✗ {result.message}")
        if result.warning:
            print(f"   Warning: {result.warning}")
    print()


def print_summary(report: RunReport) -> None:
    if report.executed:
        print("=== Execution Summary ===")
        print(f"✓ Successful: {report.successful}")
        if report.skipped:
            print(f"  (already executed: {report.skipped})")
        print(f"✗ Failed: {report.failed}")
        print()
    else:
        print("=== Usage ===")
        print("To execute scripts against a database, use:")
        print()
        print("            # PostgreSQL Authentication:")
        print(
            "schema-runner --execute --server localhost --database YourDatabase "
            "--username postgres --password YourPassword"
        )
        print()


def cmd_create(config: RunnerConfig, name: str) -> int:
    directory = resolve_script_directory(config.script_dir)
    try:
        path = create_script(directory, name)
    except (ValueError, FileExistsError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"Created: {path}")
    return 0


def cmd_run(config: RunnerConfig, execute: bool, strict: bool = False) -> int:
    """List, and with ``execute`` run, the scripts of the schema directory."""
    print("=== SQL Schema Scripts ===")
    directory = resolve_script_directory(config.script_dir)
    print(f"Directory: {directory.resolve()}")
    if execute:
        connection = config.connection
        print(f"Server: {connection.host}")
        print(f"Database: {connection.database}")
        print(f"Username: {connection.username}")
    print()

    try:
        scripts = list_scripts(directory, config.script_pattern)
    except ScriptDirectoryNotFound as e:
        print(f"Error: {e}")
        return 0

    if not scripts:
        print("No SQL files found in the Schema directory.")
        return 0

    print(f"Found {len(scripts)} SQL file(s):")
    print()

    counter = iter(range(1, len(scripts) + 1))

    def _on_script(listing: ScriptListing, result: Optional[ScriptResult]) -> None:
        print_listing(next(counter), listing, result)

    tracker = ScriptTracker(config)
    report = tracker.run(scripts, execute=execute, on_script=_on_script, directory=directory)

    print_summary(report)
    print("=== End of List ===")

    if strict and report.failed:
        return 1
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = resolve_config(args)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(config.log_level, args.verbose)

    if args.create:
        return cmd_create(config, args.create)
    return cmd_run(config, args.execute, args.strict)


if __name__ == "__main__":
    sys.exit(main())
