"""Tests for blogsearch init and version."""

from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from blogsearch.cli.main import app
from blogsearch.db.connection import Database
from blogsearch.db.migrations import CURRENT_VERSION, schema_version

runner = CliRunner()


def test_init_creates_db_and_config(tmp_path: Path) -> None:
    result = runner.invoke(app, ["init", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert (tmp_path / ".blogsearch.db").exists()
    assert (tmp_path / "blogsearch.yaml").exists()

    conn = Database(tmp_path / ".blogsearch.db").connect(migrate=False)
    assert schema_version(conn) == CURRENT_VERSION
    conn.close()


def test_init_twice_is_idempotent(tmp_path: Path) -> None:
    runner.invoke(app, ["init", str(tmp_path)])
    (tmp_path / "blogsearch.yaml").write_text("search:\n  limit: 3\n", encoding="utf-8")
    result = runner.invoke(app, ["init", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert "migrated" in result.output
    assert (tmp_path / "blogsearch.yaml").read_text(encoding="utf-8") == "search:\n  limit: 3\n"


def test_init_invalid_config_exits_1(tmp_path: Path) -> None:
    (tmp_path / "blogsearch.yaml").write_text("search:\n  limit: 0\n", encoding="utf-8")
    result = runner.invoke(app, ["init", str(tmp_path)])
    assert result.exit_code == 1
    assert "Config error" in result.output


def test_version_command() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert result.output.startswith("blogsearch ")


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "blogsearch" in result.output
