"""Tests for the grant-ingest CLI."""

import json
from pathlib import Path

import pytest

from conftest import build_extract_xml
from grant_ingest.cli.main import main


@pytest.fixture
def env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the CLI at a temporary database and offline extract."""
    offline = tmp_path / "offline" / "GrantsDBExtract20250225v2.xml"
    offline.parent.mkdir(parents=True)
    offline.write_text(build_extract_xml([{"OpportunityID": "RG-1", "CloseDate": "02202099"}]))
    monkeypatch.setenv("GRANT_INGEST_DB", str(tmp_path / "cli.db"))
    monkeypatch.setenv("GRANT_INGEST_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("GRANT_INGEST_OFFLINE_FILE", str(offline))
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    return tmp_path


def test_run_offline_then_query(env: Path, capsys: pytest.CaptureFixture) -> None:
    """run prints stats; store and runs commands read them back."""
    main(["run", "--offline"])
    stats = json.loads(capsys.readouterr().out)
    assert stats["new"] == 1
    assert stats["status"] == "completed"

    main(["store", "count"])
    assert capsys.readouterr().out.strip() == "1"

    main(["runs", "latest"])
    latest = json.loads(capsys.readouterr().out)
    assert latest["run_id"] == stats["run_id"]


def test_runs_latest_without_runs(env: Path) -> None:
    with pytest.raises(SystemExit) as exc:
        main(["runs", "latest"])
    assert exc.value.code == 1


def test_cleanup_expired(env: Path, capsys: pytest.CaptureFixture) -> None:
    main(["run", "--offline"])
    capsys.readouterr()
    main(["cleanup-expired", "--today", "2100-01-01"])
    assert "Deleted 1 expired grants" in capsys.readouterr().out


def test_run_failure_exits_nonzero(env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GRANT_INGEST_OFFLINE_FILE", str(env / "missing.xml"))
    with pytest.raises(SystemExit) as exc:
        main(["run", "--offline"])
    assert exc.value.code == 1
