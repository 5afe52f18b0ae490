"""Tests for script discovery, statement splitting and scaffolding.

Run with: pytest tests/test_scripts.py -v
"""

import os
import tempfile
from pathlib import Path

import pytest

from migrations.errors import ScriptDirectoryNotFound
from migrations.scripts import (
    create_script,
    list_scripts,
    resolve_script_directory,
    split_statements,
)


@pytest.fixture
def script_dir():
    """Create a temporary script directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def write(directory: Path, name: str, text: str = "SELECT 1;\n") -> Path:
    path = directory / name
    path.write_text(text, encoding="utf-8")
    return path


class TestListScripts:
    """Tests for list_scripts."""

    def test_sorted_by_name(self, script_dir):
        """Scripts come back in name order regardless of creation order."""
        for name in ["010_c.sql", "002_b.sql", "001_a.sql", "B_upper.sql"]:
            write(script_dir, name)

        names = [s.name for s in list_scripts(script_dir)]
        # code point order: digits < upper case
        assert names == ["001_a.sql", "002_b.sql", "010_c.sql", "B_upper.sql"]

    def test_only_matching_files(self, script_dir):
        """Non-SQL files and directories are ignored."""
        write(script_dir, "001_a.sql")
        write(script_dir, "notes.txt")
        (script_dir / "nested.sql").mkdir()

        assert [s.name for s in list_scripts(script_dir)] == ["001_a.sql"]

    def test_metadata(self, script_dir):
        """Size and modification time are taken from the file."""
        path = write(script_dir, "001_a.sql", "x" * 2048)
        os.utime(path, (1_700_000_000, 1_700_000_000))

        script = list_scripts(script_dir)[0]
        assert script.size == 2048
        assert script.size_kb == 2.0
        assert script.modified.timestamp() == 1_700_000_000
        assert script.content == "x" * 2048

    def test_byte_order_mark_is_dropped(self, script_dir):
        """Files saved with a UTF-8 BOM read the same as files without one."""
        (script_dir / "001_a.sql").write_bytes(b"\xef\xbb\xbfCREATE TABLE t (id INTEGER);\n")

        script = list_scripts(script_dir)[0]
        assert not script.content.startswith("\ufeff")
        assert split_statements(script.content) == ["CREATE TABLE t (id INTEGER)"]

    def test_listing_is_idempotent(self, script_dir):
        """Listing twice without changes gives identical results."""
        write(script_dir, "002_b.sql")
        write(script_dir, "001_a.sql")

        assert list_scripts(script_dir) == list_scripts(script_dir)

    def test_empty_directory(self, script_dir):
        """An empty directory is not an error."""
        assert list_scripts(script_dir) == []

    def test_missing_directory(self, script_dir):
        """A missing directory raises ScriptDirectoryNotFound."""
        missing = script_dir / "nope"
        with pytest.raises(ScriptDirectoryNotFound) as exc_info:
            list_scripts(missing)
        assert exc_info.value.directory == missing
        assert "Schema directory not found" in str(exc_info.value)


class TestSplitStatements:
    """Tests for the semicolon + line break splitting rule."""

    def test_trailing_statement_without_terminator(self):
        assert split_statements("A;\nB;\nC") == ["A", "B", "C"]

    def test_crlf_boundaries(self):
        assert split_statements("A;\r\nB;\r\n") == ["A", "B"]

    def test_semicolon_without_line_break_does_not_split(self):
        assert split_statements("A; B;\nC") == ["A; B", "C"]

    def test_final_semicolon_at_end_of_file_is_kept(self):
        assert split_statements("A;\nB;") == ["A", "B;"]

    def test_blank_fragments_are_dropped(self):
        assert split_statements("\n  A;\n\n;\n   ;\n") == ["A"]

    def test_whitespace_only_script(self):
        assert split_statements("  \n\t\n") == []

    def test_multiline_statement(self):
        sql = "CREATE TABLE t (\n  id INTEGER\n);\nINSERT INTO t VALUES (1);\n"
        assert split_statements(sql) == [
            "CREATE TABLE t (\n  id INTEGER\n)",
            "INSERT INTO t VALUES (1)",
        ]

    def test_semicolon_line_break_inside_literal_still_splits(self):
        """Literals are not parsed; the textual rule applies everywhere."""
        sql = "INSERT INTO t VALUES ('a;\nb');\n"
        assert split_statements(sql) == ["INSERT INTO t VALUES ('a", "b')"]


class TestResolveScriptDirectory:
    """Tests for the directory fallback order."""

    def test_explicit_directory_wins(self, script_dir):
        assert resolve_script_directory(script_dir / "custom", cwd=script_dir) == script_dir / "custom"

    def test_schema_under_cwd(self, script_dir):
        (script_dir / "schema").mkdir()
        assert resolve_script_directory(cwd=script_dir) == script_dir / "schema"

    def test_sibling_schema_folder(self, script_dir):
        cwd = script_dir / "app"
        cwd.mkdir()
        (script_dir / "Schema").mkdir()
        assert resolve_script_directory(cwd=cwd) == cwd / ".." / "Schema"

    def test_first_existing_candidate(self, script_dir):
        cwd = script_dir / "app"
        (cwd / "schema").mkdir(parents=True)
        (script_dir / "Schema").mkdir()
        assert resolve_script_directory(cwd=cwd) == cwd / "schema"


class TestCreateScript:
    """Tests for create_script."""

    def test_first_script(self, script_dir):
        path = create_script(script_dir, "Add Orders Table")
        assert path.name == "001_add_orders_table.sql"
        assert path.read_text(encoding="utf-8").startswith("-- Script: Add Orders Table")

    def test_next_number(self, script_dir):
        write(script_dir, "001_init.sql")
        write(script_dir, "007_more.sql")
        write(script_dir, "readme.sql")

        path = create_script(script_dir, "next one")
        assert path.name == "008_next_one.sql"

    def test_template_has_no_statement_terminators(self, script_dir):
        """The template holds only comments, so it cannot split mid-comment."""
        path = create_script(script_dir, "empty")
        assert ";" not in path.read_text(encoding="utf-8")

    def test_rejects_empty_name(self, script_dir):
        with pytest.raises(ValueError):
            create_script(script_dir, "!!!")

    def test_creates_directory(self, script_dir):
        target = script_dir / "schema"
        path = create_script(target, "init")
        assert path.parent == target
