"""Data models produced by the collectors.

Plain dataclasses shared by the transcript reconstructor, the file-change
collectors and the configuration collector. None of them know about
SQLite; the store converts them to rows.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from k2d.constants import RESULT_STATUS_SUCCESS, SKILL_TRIGGER_USER


@dataclass
class ToolCall:
    """A single tool invocation made by the assistant."""

    name: str
    tool_type: str
    parameters: dict[str, Any] = field(default_factory=dict)
    result_status: str = RESULT_STATUS_SUCCESS
    result_summary: str | None = None
    execution_time_ms: int | None = None

    @property
    def dedup_key(self) -> tuple[str, str]:
        """Identity within a turn: name plus serialized parameters."""
        return self.name, json.dumps(self.parameters, ensure_ascii=False, default=str)


@dataclass
class SkillUsage:
    """An invocation of the ``Skill`` tool."""

    skill_name: str
    trigger_type: str = SKILL_TRIGGER_USER
    context: str | None = None
    outcome: str | None = None


@dataclass
class McpCall:
    """A call routed to an MCP server (``mcp__<server>__<tool>``)."""

    server_name: str
    tool_name: str
    request: dict[str, Any] = field(default_factory=dict)
    # Not known when the transcript is read
    response: Any = None


@dataclass
class TurnData:
    """One reconstructed conversational turn."""

    user_message: str = ""
    assistant_response: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    skill_usages: list[SkillUsage] = field(default_factory=list)
    mcp_calls: list[McpCall] = field(default_factory=list)

    @property
    def skill_names(self) -> list[str]:
        return [usage.skill_name for usage in self.skill_usages]

    @property
    def tool_names(self) -> list[str]:
        """Distinct tool names in first-seen order."""
        return list(dict.fromkeys(call.name for call in self.tool_calls))


@dataclass
class FileChange:
    """A change to one file, from either tracking strategy."""

    file_path: str
    change_type: str
    diff_content: str | None = None
    commit_hash: str | None = None
    old_hash: str | None = None
    new_hash: str | None = None


@dataclass(frozen=True)
class FileInfo:
    """Content hash and byte size of one file in a snapshot."""

    hash: str
    size: int


@dataclass
class Snapshot:
    """Content-hash inventory of a project tree."""

    files: dict[str, FileInfo] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict[str, Any]:
        return {
            "files": {
                path: {"hash": info.hash, "size": info.size}
                for path, info in sorted(self.files.items())
            },
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Snapshot":
        files = {
            path: FileInfo(hash=str(info["hash"]), size=int(info["size"]))
            for path, info in (data.get("files") or {}).items()
        }
        return cls(files=files, timestamp=str(data.get("timestamp", "")))


@dataclass
class SnapshotDiff:
    """Paths added, modified and deleted between two snapshots."""

    added: list[str] = field(default_factory=list)
    modified: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.modified or self.deleted)


@dataclass
class ConfigSnapshot:
    """State of the agent configuration artifacts at one point in time."""

    settings: str | None = None
    settings_local: str | None = None
    claude_md: str | None = None
    mcp: str | None = None
    lsp: str | None = None
    agents: list[str] = field(default_factory=list)
    skills: list[str] = field(default_factory=list)
    plugins: list[str] = field(default_factory=list)
    rules: list[str] = field(default_factory=list)
    commands: list[str] = field(default_factory=list)

    def to_json(self) -> str:
        """Serialize for the ``last_config_snapshot`` key."""
        return json.dumps(
            {
                "settings_json": self.settings,
                "settings_local_json": self.settings_local,
                "claude_md": self.claude_md,
                "mcp_json": self.mcp,
                "lsp_json": self.lsp,
                "agents_list": self.agents,
                "skills_list": self.skills,
                "plugins_list": self.plugins,
                "rules_list": self.rules,
                "commands_list": self.commands,
            },
            ensure_ascii=False,
        )

    @classmethod
    def from_json(cls, raw: str) -> "ConfigSnapshot":
        """Parse a serialized snapshot.

        Raises:
            ValueError: If ``raw`` is not a JSON object.
        """
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("config snapshot must be a JSON object")
        return cls(
            settings=data.get("settings_json"),
            settings_local=data.get("settings_local_json"),
            claude_md=data.get("claude_md"),
            mcp=data.get("mcp_json"),
            lsp=data.get("lsp_json"),
            agents=list(data.get("agents_list") or []),
            skills=list(data.get("skills_list") or []),
            plugins=list(data.get("plugins_list") or []),
            rules=list(data.get("rules_list") or []),
            commands=list(data.get("commands_list") or []),
        )


@dataclass
class ConfigChange:
    """One difference between two configuration snapshots."""

    config_type: str
    change_type: str
    item_name: str | None = None
    before_value: str | None = None
    after_value: str | None = None
    diff_summary: str | None = None
