"""Typed records for rows read from the k2d store.

Business logic only sees these dataclasses, never ``sqlite3.Row``.
"""

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def _parse_json_list(value: str | None) -> list[Any]:
    if not value:
        return []
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        return []
    return parsed if isinstance(parsed, list) else []


@dataclass
class Session:
    """A captured agent session (one transcript file)."""

    id: str
    project_path: str
    started_at: datetime
    ended_at: datetime | None = None
    turn_count: int = 0

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_path": self.project_path,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "turn_count": self.turn_count,
        }

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Session":
        return cls(
            id=row["id"],
            project_path=row["project_path"],
            started_at=_parse_datetime(row["started_at"]) or datetime.now(),
            ended_at=_parse_datetime(row["ended_at"]),
            turn_count=row["turn_count"] or 0,
        )


@dataclass
class Turn:
    """A persisted conversational turn."""

    id: int
    session_id: str
    turn_number: int
    user_message: str | None = None
    assistant_response: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Turn":
        return cls(
            id=row["id"],
            session_id=row["session_id"],
            turn_number=row["turn_number"],
            user_message=row["user_message"],
            assistant_response=row["assistant_response"],
            created_at=_parse_datetime(row["created_at"]),
        )


@dataclass
class StoredFileChange:
    """A file change row with its owning turn."""

    id: int
    turn_id: int
    file_path: str
    change_type: str
    diff_content: str | None = None
    commit_hash: str | None = None
    old_hash: str | None = None
    new_hash: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "StoredFileChange":
        return cls(
            id=row["id"],
            turn_id=row["turn_id"],
            file_path=row["file_path"],
            change_type=row["change_type"],
            diff_content=row["diff_content"],
            commit_hash=row["commit_hash"],
            old_hash=row["old_hash"],
            new_hash=row["new_hash"],
        )


@dataclass
class ToolCallStat:
    tool_name: str
    count: int


@dataclass
class SkillUsageRecord:
    """A skill usage row, newest first when listed."""

    skill_name: str
    trigger_type: str | None
    outcome: str | None
    used_at: datetime | None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "SkillUsageRecord":
        return cls(
            skill_name=row["skill_name"],
            trigger_type=row["trigger_type"],
            outcome=row["outcome"],
            used_at=_parse_datetime(row["used_at"]),
        )


@dataclass
class SkillLifecycle:
    """Aggregate usage history of one skill.

    Created on first use and only ever updated afterwards; removal is
    recorded by marking the row inactive.
    """

    skill_name: str
    introduced_at: datetime | None = None
    introduced_turn_id: int | None = None
    introduction_reason: str | None = None
    total_usages: int = 0
    last_used_at: datetime | None = None
    success_rate: float | None = None
    is_active: bool = True
    removed_at: datetime | None = None
    removal_reason: str | None = None
    skill_type: str | None = None
    depends_on: list[str] = field(default_factory=list)
    generates: list[str] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "SkillLifecycle":
        return cls(
            skill_name=row["skill_name"],
            introduced_at=_parse_datetime(row["introduced_at"]),
            introduced_turn_id=row["introduced_turn_id"],
            introduction_reason=row["introduction_reason"],
            total_usages=row["total_usages"] or 0,
            last_used_at=_parse_datetime(row["last_used_at"]),
            success_rate=row["success_rate"],
            is_active=bool(row["is_active"]),
            removed_at=_parse_datetime(row["removed_at"]),
            removal_reason=row["removal_reason"],
            skill_type=row["skill_type"],
            depends_on=_parse_json_list(row["depends_on"]),
            generates=_parse_json_list(row["generates"]),
        )


@dataclass
class ProjectPhase:
    """A project phase interval; open while ``ended_at`` is None."""

    id: int
    phase_name: str
    started_at: datetime | None = None
    ended_at: datetime | None = None
    started_turn_id: int | None = None
    ended_turn_id: int | None = None
    dominant_skills: list[str] = field(default_factory=list)
    dominant_tools: list[str] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "ProjectPhase":
        return cls(
            id=row["id"],
            phase_name=row["phase_name"],
            started_at=_parse_datetime(row["started_at"]),
            ended_at=_parse_datetime(row["ended_at"]),
            started_turn_id=row["started_turn_id"],
            ended_turn_id=row["ended_turn_id"],
            dominant_skills=_parse_json_list(row["dominant_skills"]),
            dominant_tools=_parse_json_list(row["dominant_tools"]),
        )
