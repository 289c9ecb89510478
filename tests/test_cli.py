"""Tests for the k2d command line."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from k2d import __version__
from k2d.cli import app
from k2d.store import K2DStore

runner = CliRunner()

TRACKING_MODE = "k2d.hooks.turn_end.get_tracking_mode"


@pytest.fixture
def snapshot_mode():
    with patch(TRACKING_MODE, return_value="snapshot"):
        yield


def _transcript(path: Path) -> Path:
    lines = [
        {"type": "user", "message": {"role": "user", "content": "run the tests"}},
        {
            "type": "assistant",
            "message": {
                "role": "assistant",
                "content": [
                    {"type": "text", "text": "running"},
                    {"type": "tool_use", "id": "t1", "name": "Bash", "input": {"command": "pytest"}},
                    {"type": "tool_use", "id": "t2", "name": "Skill", "input": {"skill": "dev-quality-assurance"}},
                ],
            },
        },
    ]
    path.write_text("\n".join(json.dumps(line) for line in lines) + "\n", encoding="utf-8")
    return path


class TestHookCommand:
    def test_captures_turn_and_prints_json(self, temp_project_dir: Path, tmp_path: Path, snapshot_mode) -> None:
        transcript = _transcript(tmp_path / "abc.jsonl")

        result = runner.invoke(app, ["hook"], input=json.dumps({"transcript_path": str(transcript)}))

        assert result.exit_code == 0
        output = json.loads(result.stdout.strip())
        assert output["skipped"] is False
        assert isinstance(output["turn_id"], int)
        assert "imported" not in output
        with K2DStore(temp_project_dir / "meta" / "k2d.db") as store:
            assert store.get_config("current_session_id") == "abc"
        assert (temp_project_dir / "meta" / "k2d.log").exists()

    def test_stop_hook_active(self, temp_project_dir: Path) -> None:
        payload = {"transcript_path": "/x.jsonl", "stop_hook_active": True}

        result = runner.invoke(app, ["hook"], input=json.dumps(payload))

        assert result.exit_code == 0
        assert json.loads(result.stdout.strip()) == {"skipped": True, "reason": "stop_hook_active"}
        assert not (temp_project_dir / "meta").exists()

    def test_failure_never_exits_non_zero(self, temp_project_dir: Path) -> None:
        result = runner.invoke(app, ["hook"], input="garbage")

        assert result.exit_code == 0
        output = json.loads(result.stdout.strip())
        assert output["skipped"] is True
        assert output["reason"]


class TestInitCommand:
    def test_init_creates_meta_and_database(self, temp_project_dir: Path, snapshot_mode) -> None:
        result = runner.invoke(app, ["init"])

        assert result.exit_code == 0
        assert "initialized" in result.stdout
        assert (temp_project_dir / "meta" / "snapshots").is_dir()
        with K2DStore(temp_project_dir / "meta" / "k2d.db") as store:
            assert store.get_config("tracking_mode") == "snapshot"

    def test_init_twice(self, temp_project_dir: Path, snapshot_mode) -> None:
        runner.invoke(app, ["init"])
        result = runner.invoke(app, ["init"])

        assert result.exit_code == 0
        assert "already initialized" in result.stdout


class TestStatusCommand:
    def test_requires_init(self, temp_project_dir: Path) -> None:
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 1
        assert "not initialized" in result.stdout

    def test_shows_captured_data(self, temp_project_dir: Path, tmp_path: Path, snapshot_mode) -> None:
        transcript = _transcript(tmp_path / "abc.jsonl")
        runner.invoke(app, ["hook"], input=json.dumps({"transcript_path": str(transcript)}))

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "snapshot" in result.stdout
        assert "Bash" in result.stdout
        assert "dev-quality-assurance" in result.stdout
        assert "testing" in result.stdout


def test_version() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout
