"""Tests for the turn-end capture pipeline.

Covers:
- payload parsing and the stop-hook guard
- history import on an empty store
- per-turn capture in snapshot and git tracking modes
- configuration change tracking across runs
- skill lifecycle and phase updates
- failure reporting at the hook boundary
"""

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from k2d.collectors.models import ConfigSnapshot, FileChange
from k2d.exceptions import HookInputError
from k2d.hooks.turn_end import (
    HookInput,
    HookOutput,
    handle_hook,
    parse_hook_input,
    run_turn_end,
)
from k2d.store import K2DStore

TRACKING_MODE = "k2d.hooks.turn_end.get_tracking_mode"
GIT_CHANGES = "k2d.hooks.turn_end.collect_git_changes"


def user(text: str) -> dict[str, Any]:
    return {"type": "user", "message": {"role": "user", "content": text}}


def assistant(text: str, *tools: tuple[str, dict[str, Any]]) -> dict[str, Any]:
    content: list[dict[str, Any]] = [{"type": "text", "text": text}]
    content.extend({"type": "tool_use", "id": f"t_{name}", "name": name, "input": params} for name, params in tools)
    return {"type": "assistant", "message": {"role": "assistant", "content": content}}


@pytest.fixture
def project(tmp_path: Path) -> Path:
    project_root = tmp_path / "project"
    project_root.mkdir()
    (project_root / "app.py").write_text("print('hello')\n")
    return project_root


@pytest.fixture
def run(project: Path) -> Callable[[Path], HookOutput]:
    """Run the pipeline in snapshot mode for a transcript."""

    def _run(transcript: Path) -> HookOutput:
        with patch(TRACKING_MODE, return_value="snapshot"):
            return run_turn_end(HookInput(transcript_path=str(transcript)), project)

    return _run


def _open_store(project: Path) -> K2DStore:
    return K2DStore(project / "meta" / "k2d.db")


# ==========================================================================
# Payload
# ==========================================================================


class TestHookInput:
    def test_parse_minimal_payload(self) -> None:
        payload = parse_hook_input('{"transcript_path": "/tmp/s.jsonl", "extra": 1}')
        assert payload.transcript_path == "/tmp/s.jsonl"
        assert payload.stop_hook_active is False

    @pytest.mark.parametrize("raw", ["not json", "[1, 2]", "{}", '{"transcript_path": ""}'])
    def test_invalid_payloads(self, raw: str) -> None:
        with pytest.raises(HookInputError):
            parse_hook_input(raw)

    def test_output_omits_unset_fields(self) -> None:
        assert json.loads(HookOutput(skipped=False, turn_id=3).to_json()) == {"skipped": False, "turn_id": 3}


class TestStopHookGuard:
    def test_active_guard_skips_without_side_effects(self, project: Path) -> None:
        payload = HookInput(transcript_path="/nowhere.jsonl", stop_hook_active=True)

        output = run_turn_end(payload, project)

        assert output.skipped
        assert output.reason == "stop_hook_active"
        assert not (project / "meta").exists()


# ==========================================================================
# Capture
# ==========================================================================


class TestFirstRun:
    def test_history_is_imported_and_latest_turn_captured(self, project: Path, write_transcript, run) -> None:
        transcript = write_transcript(
            [
                user("implement the parser"),
                assistant("reading", ("Read", {"file_path": "app.py"})),
                user("now run it"),
                assistant("running", ("Bash", {"command": "python app.py"})),
            ],
            name="current",
        )

        output = run(transcript)

        assert not output.skipped
        assert (output.imported, output.imported_sessions, output.imported_tools) == (1, 1, 1)
        with _open_store(project) as store:
            assert store.get_config("tracking_mode") == "snapshot"
            assert store.get_config("initialized_at") is not None
            assert store.get_config("version")
            assert store.get_config("current_session_id") == "current"
            assert store.get_config("current_turn_number") == "2"
            turns = store.get_turns("current")
            assert [(t.turn_number, t.user_message) for t in turns] == [
                (1, "implement the parser"),
                (2, "now run it"),
            ]
            assert turns[-1].id == output.turn_id
            assert store.get_session("current").turn_count == 2

    def test_snapshot_mode_records_files(self, project: Path, write_transcript, run) -> None:
        transcript = write_transcript([user("hi"), assistant("hello")])

        output = run(transcript)

        with _open_store(project) as store:
            changes = store.get_file_changes(output.turn_id)
            assert [(c.file_path, c.change_type) for c in changes] == [("app.py", "A")]
            snapshot_rows = store._get_connection().execute("SELECT * FROM snapshots").fetchall()
            assert len(snapshot_rows) == 1
            assert snapshot_rows[0]["file_count"] == 1
        assert list((project / "meta" / "snapshots").glob("snapshot-*.json"))

    def test_other_sessions_are_imported_with_global_numbers(self, project: Path, write_transcript, run) -> None:
        write_transcript(
            [user("old one"), assistant("a"), user("old two"), assistant("b"), user("dangling")],
            name="a-old",
        )
        write_transcript([user("only a preamble")], name="b-empty")
        current = write_transcript([user("first"), assistant("c"), user("second"), assistant("d")], name="c-current")

        output = run(current)

        assert (output.imported, output.imported_sessions) == (3, 2)
        with _open_store(project) as store:
            assert [t.turn_number for t in store.get_turns("a-old")] == [1, 2]
            assert [t.turn_number for t in store.get_turns("c-current")] == [3, 4]
            assert store.get_session("b-empty") is None
            assert store.get_session("a-old").turn_count == 2

    def test_pending_user_message_keeps_previous_turn(self, project: Path, write_transcript, run) -> None:
        transcript = write_transcript([user("one"), assistant("a"), user("two")], name="current")

        output = run(transcript)

        assert output.imported == 1
        with _open_store(project) as store:
            turns = store.get_turns("current")
            assert [(t.turn_number, t.user_message) for t in turns] == [(1, "one"), (2, "two")]
            assert turns[-1].id == output.turn_id

    def test_history_import_can_be_disabled(self, project: Path, write_transcript) -> None:
        transcript = write_transcript([user("one"), assistant("a"), user("two"), assistant("b")])

        with (
            patch(TRACKING_MODE, return_value="snapshot"),
            patch("k2d.hooks.turn_end.capture_settings") as settings,
        ):
            settings.import_history = False
            output = run_turn_end(HookInput(transcript_path=str(transcript)), project)

        assert output.imported is None
        with _open_store(project) as store:
            assert store.count_turns() == 1


class TestLaterRuns:
    def test_counter_advances_without_import(self, project: Path, write_transcript, run) -> None:
        transcript = write_transcript([user("one"), assistant("a")])
        run(transcript)

        transcript = write_transcript([user("one"), assistant("a"), user("two"), assistant("b")])
        output = run(transcript)

        assert output.imported is None
        with _open_store(project) as store:
            assert store.get_config("current_turn_number") == "2"
            assert [t.user_message for t in store.get_turns("session-1")] == ["one", "two"]

    def test_session_switch(self, project: Path, write_transcript, run) -> None:
        run(write_transcript([user("one"), assistant("a")], name="first"))
        run(write_transcript([user("two"), assistant("b")], name="second"))

        with _open_store(project) as store:
            assert store.get_config("current_session_id") == "second"
            assert store.get_session("second") is not None
            assert store.get_config("current_turn_number") == "2"

    def test_snapshot_changes_between_turns(self, project: Path, write_transcript, run) -> None:
        transcript = write_transcript([user("one"), assistant("a")])
        run(transcript)
        (project / "app.py").write_text("print('changed')\n")
        (project / "new.py").write_text("x = 1\n")

        output = run(transcript)

        with _open_store(project) as store:
            changes = store.get_file_changes(output.turn_id)
            assert [(c.file_path, c.change_type) for c in changes] == [("new.py", "A"), ("app.py", "M")]

    def test_config_changes_tracked(self, project: Path, write_transcript, run) -> None:
        (project / ".claude").mkdir()
        (project / ".claude" / "settings.json").write_text("{}")
        transcript = write_transcript([user("one"), assistant("a")])
        first = run(transcript)

        (project / ".claude" / "settings.json").write_text('{"model": "opus"}')
        second = run(transcript)

        with _open_store(project) as store:
            conn = store._get_connection()
            first_changes = conn.execute(
                "SELECT diff_summary FROM config_changes WHERE turn_id = ?", (first.turn_id,)
            ).fetchall()
            second_changes = conn.execute(
                "SELECT diff_summary FROM config_changes WHERE turn_id = ?", (second.turn_id,)
            ).fetchall()
            assert [row["diff_summary"] for row in first_changes] == ["settings.json created"]
            assert [row["diff_summary"] for row in second_changes] == ["settings.json modified"]
            last = ConfigSnapshot.from_json(store.get_config("last_config_snapshot"))
            assert last.settings == '{"model": "opus"}'

    def test_corrupt_config_snapshot_is_ignored(self, project: Path, write_transcript, run) -> None:
        transcript = write_transcript([user("one"), assistant("a")])
        run(transcript)
        with _open_store(project) as store:
            store.set_config("last_config_snapshot", "{broken")

        output = run(transcript)

        assert not output.skipped


class TestDerivedKnowledge:
    def test_skill_lifecycle_and_phase(self, project: Path, write_transcript) -> None:
        transcript = write_transcript(
            [
                user("fix the bug and add a test"),
                assistant("on it", ("Skill", {"skill": "dev-quality-assurance"}), ("Edit", {"file_path": "a"})),
            ]
        )

        with (
            patch(TRACKING_MODE, return_value="git"),
            patch(GIT_CHANGES, return_value=[FileChange(file_path="src/app.test.ts", change_type="M")]),
        ):
            output = run_turn_end(HookInput(transcript_path=str(transcript)), project)

        with _open_store(project) as store:
            lifecycle = store.get_skill_lifecycle("dev-quality-assurance")
            assert lifecycle is not None
            assert lifecycle.total_usages == 1
            assert lifecycle.introduced_turn_id == output.turn_id
            assert "dev-quality-assurance" in lifecycle.introduction_reason

            phase = store.get_open_phase()
            assert phase is not None
            assert phase.phase_name == "testing"
            assert phase.dominant_skills == ["dev-quality-assurance"]
            assert phase.dominant_tools == ["Skill", "Edit"]
            assert [c.file_path for c in store.get_file_changes(output.turn_id)] == ["src/app.test.ts"]

    def test_unchanged_phase_is_not_recorded_twice(self, project: Path, write_transcript, run) -> None:
        transcript = write_transcript([user("hello"), assistant("hi")])
        run(transcript)
        run(transcript)

        with _open_store(project) as store:
            assert [p.phase_name for p in store.get_project_phases()] == ["development"]


# ==========================================================================
# Hook boundary
# ==========================================================================


class TestHandleHook:
    def test_bad_payload_is_reported(self, project: Path) -> None:
        output = handle_hook("not json", project)
        assert output.skipped
        assert "not valid JSON" in output.reason
        assert (project / "meta" / "k2d.log").exists()

    def test_guarded_run_touches_nothing(self, project: Path) -> None:
        raw = json.dumps({"transcript_path": "/nowhere.jsonl", "stop_hook_active": True})

        output = handle_hook(raw, project)

        assert (output.skipped, output.reason) == (True, "stop_hook_active")
        assert not (project / "meta").exists()

    def test_missing_transcript_is_reported(self, project: Path, tmp_path: Path) -> None:
        raw = json.dumps({"transcript_path": str(tmp_path / "missing" / "s.jsonl")})

        with patch(TRACKING_MODE, return_value="snapshot"):
            output = handle_hook(raw, project)

        assert output.skipped
        assert "Cannot read transcript" in output.reason

    def test_success_round_trip(self, project: Path, write_transcript) -> None:
        transcript = write_transcript([user("hi"), assistant("hello")])
        raw = json.dumps({"session_id": "x", "transcript_path": str(transcript), "stop_hook_active": False})

        with patch(TRACKING_MODE, return_value="snapshot"):
            output = handle_hook(raw, project)

        assert not output.skipped
        assert output.turn_id is not None
