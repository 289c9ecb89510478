"""Tests for agent configuration collection and diffing."""

from pathlib import Path

import pytest

from k2d.collectors.config_changes import collect_claude_config, detect_config_changes
from k2d.collectors.models import ConfigSnapshot


@pytest.fixture
def claude_project(tmp_path: Path) -> Path:
    """A project with one artifact of every kind under .claude/."""
    claude_dir = tmp_path / ".claude"
    (claude_dir / "agents").mkdir(parents=True)
    (claude_dir / "agents" / "reviewer.md").write_text("# reviewer")
    (claude_dir / "agents" / "notes.txt").write_text("not an agent")
    (claude_dir / "rules").mkdir()
    (claude_dir / "rules" / "style.md").write_text("# style")
    (claude_dir / "commands").mkdir()
    (claude_dir / "commands" / "ship.md").write_text("# ship")
    (claude_dir / "skills" / "dev-coding").mkdir(parents=True)
    (claude_dir / "skills" / "dev-coding" / "SKILL.md").write_text("---\nname: dev-coding\n---")
    (claude_dir / "skills" / "half-done").mkdir()
    (claude_dir / "plugins" / "lint" / ".claude-plugin").mkdir(parents=True)
    (claude_dir / "plugins" / "lint" / ".claude-plugin" / "plugin.json").write_text("{}")
    (claude_dir / "settings.json").write_text('{"model": "x"}')
    (claude_dir / ".mcp.json").write_text('{"mcpServers": {}}')
    (tmp_path / "CLAUDE.md").write_text("# Project rules")
    return tmp_path


class TestCollectClaudeConfig:
    def test_collects_every_artifact(self, claude_project: Path) -> None:
        config = collect_claude_config(claude_project)

        assert config.settings == '{"model": "x"}'
        assert config.settings_local is None
        assert config.claude_md == "# Project rules"
        assert config.mcp == '{"mcpServers": {}}'
        assert config.lsp is None
        assert config.agents == ["reviewer"]
        assert config.rules == ["style"]
        assert config.commands == ["ship"]
        assert config.skills == ["dev-coding"]
        assert config.plugins == ["lint"]

    def test_instructions_fall_back_to_claude_dir(self, tmp_path: Path) -> None:
        (tmp_path / ".claude").mkdir()
        (tmp_path / ".claude" / "CLAUDE.md").write_text("nested")
        assert collect_claude_config(tmp_path).claude_md == "nested"

    def test_empty_project(self, tmp_path: Path) -> None:
        config = collect_claude_config(tmp_path)
        assert config == ConfigSnapshot()


class TestDetectConfigChanges:
    def test_removed_list_item_only(self) -> None:
        old = ConfigSnapshot(skills=["a", "b"])
        new = ConfigSnapshot(skills=["a"])

        changes = detect_config_changes(old, new)

        assert len(changes) == 1
        change = changes[0]
        assert (change.config_type, change.item_name, change.change_type) == ("skill", "b", "D")
        assert change.diff_summary == "skill 'b' removed"

    def test_added_list_item(self) -> None:
        changes = detect_config_changes(ConfigSnapshot(rules=[]), ConfigSnapshot(rules=["style"]))
        assert [(c.config_type, c.item_name, c.change_type) for c in changes] == [("rule", "style", "A")]
        assert changes[0].diff_summary == "rule 'style' added"

    def test_scalar_modified(self) -> None:
        changes = detect_config_changes(ConfigSnapshot(settings="{}"), ConfigSnapshot(settings='{"a": 1}'))
        assert len(changes) == 1
        change = changes[0]
        assert change.change_type == "M"
        assert change.diff_summary == "settings.json modified"
        assert (change.before_value, change.after_value) == ("{}", '{"a": 1}')

    def test_scalar_added_and_deleted(self) -> None:
        changes = detect_config_changes(ConfigSnapshot(mcp="{}"), ConfigSnapshot(claude_md="# rules"))
        kinds = {(c.config_type, c.change_type) for c in changes}
        assert kinds == {("claude_md", "A"), ("mcp", "D")}

    def test_no_changes(self) -> None:
        snap = ConfigSnapshot(settings="{}", agents=["x"])
        assert detect_config_changes(snap, snap) == []

    def test_first_collection_reports_every_artifact(self) -> None:
        new = ConfigSnapshot(settings="{}", claude_md="# rules", skills=["dev-coding"], commands=["ship"])

        changes = detect_config_changes(None, new)

        summary = [(c.config_type, c.item_name, c.change_type) for c in changes]
        assert summary == [
            ("settings", None, "A"),
            ("claude_md", None, "A"),
            ("skill", "dev-coding", "A"),
            ("command", "ship", "A"),
        ]
        assert changes[0].diff_summary == "settings.json created"

    def test_first_collection_of_empty_config(self) -> None:
        assert detect_config_changes(None, ConfigSnapshot()) == []


class TestConfigSnapshotJson:
    def test_json_keys(self) -> None:
        snap = ConfigSnapshot(settings="{}", skills=["a"])
        restored = ConfigSnapshot.from_json(snap.to_json())
        assert restored == snap
        assert '"settings_json"' in snap.to_json()
        assert '"skills_list"' in snap.to_json()

    def test_non_object_json_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            ConfigSnapshot.from_json("[1, 2]")

    def test_invalid_json_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            ConfigSnapshot.from_json("{not json")
