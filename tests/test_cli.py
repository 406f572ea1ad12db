from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from notion_snapshot.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolated(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    for name in ("NOTION_TOKEN", "NOTION_SNAPSHOT_CONFIG", "FULL_RECONCILE", "FETCH_BLOCKS_FOR_DB"):
        monkeypatch.delenv(name, raising=False)


def test_normalize_prints_canonical_id() -> None:
    result = runner.invoke(app, ["normalize", "A1B2C3D4-E5F6-0718-293A-4B5C6D7E8F90"])
    assert result.exit_code == 0
    assert result.stdout.strip().endswith("a1b2c3d4e5f60718293a4b5c6d7e8f90")


def test_normalize_rejects_garbage() -> None:
    result = runner.invoke(app, ["normalize", "not-an-id"])
    assert result.exit_code == 2


def test_sync_without_token_exits_nonzero(tmp_path: Path) -> None:
    result = runner.invoke(app, ["sync"])
    assert result.exit_code == 1
    assert not (tmp_path / ".cache" / "state.json").exists()


def test_failures_reports_quiet_day() -> None:
    result = runner.invoke(app, ["failures", "--date", "2024-01-01"])
    assert result.exit_code == 0
    assert "No asset failures for 2024-01-01" in result.stdout


def test_failures_rejects_bad_date() -> None:
    result = runner.invoke(app, ["failures", "--date", "01/01/2024"])
    assert result.exit_code == 2
