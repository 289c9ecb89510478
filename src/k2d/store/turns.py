"""Turn operations for the k2d store.

Functions for persisting a turn with its tool calls, skill usages, MCP
calls, file changes and configuration records, and for reading them back.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from k2d.collectors.models import (
    ConfigChange,
    ConfigSnapshot,
    FileChange,
    McpCall,
    SkillUsage,
    ToolCall,
    TurnData,
)
from k2d.store.models import SkillUsageRecord, StoredFileChange, ToolCallStat, Turn
from k2d.store.schema import REQUIRED_TABLES
from k2d.utils.redact import redact_secrets, redact_secrets_in_dict

if TYPE_CHECKING:
    from k2d.store.core import K2DStore

logger = logging.getLogger(__name__)

# Maximum stored length of a tool result summary
RESULT_SUMMARY_MAX_LENGTH = 2000


def _dump_json(value: object) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def create_turn(
    store: K2DStore,
    session_id: str,
    turn_number: int,
    user_message: str,
    assistant_response: str,
) -> int:
    """Insert a turn row and bump the session's turn count.

    Returns:
        The new turn id.
    """
    now = datetime.now().isoformat()
    with store._transaction() as conn:
        cursor = conn.execute(
            """
            INSERT INTO turns (session_id, turn_number, user_message, assistant_response, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (session_id, turn_number, user_message, assistant_response, now),
        )
        conn.execute(
            "UPDATE sessions SET turn_count = turn_count + 1 WHERE id = ?", (session_id,)
        )
    turn_id = cursor.lastrowid
    if turn_id is None:
        raise RuntimeError("turn insert returned no row id")
    return turn_id


def save_tool_calls(store: K2DStore, turn_id: int, tool_calls: list[ToolCall]) -> None:
    now = datetime.now().isoformat()
    rows = []
    for call in tool_calls:
        summary = call.result_summary
        if summary:
            summary = redact_secrets(summary[:RESULT_SUMMARY_MAX_LENGTH])
        rows.append(
            (
                turn_id,
                call.name,
                call.tool_type,
                _dump_json(redact_secrets_in_dict(call.parameters)),
                call.result_status,
                summary,
                call.execution_time_ms,
                now,
            )
        )
    with store._transaction() as conn:
        conn.executemany(
            """
            INSERT INTO tool_calls (turn_id, tool_name, tool_type, parameters, result_status,
                                    result_summary, execution_time_ms, called_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )


def save_skill_usages(store: K2DStore, turn_id: int, usages: list[SkillUsage]) -> None:
    now = datetime.now().isoformat()
    with store._transaction() as conn:
        conn.executemany(
            """
            INSERT INTO skill_usages (turn_id, skill_name, trigger_type, context, outcome, used_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    turn_id,
                    usage.skill_name,
                    usage.trigger_type,
                    redact_secrets(usage.context) if usage.context else None,
                    usage.outcome,
                    now,
                )
                for usage in usages
            ],
        )


def save_mcp_calls(store: K2DStore, turn_id: int, calls: list[McpCall]) -> None:
    now = datetime.now().isoformat()
    with store._transaction() as conn:
        conn.executemany(
            """
            INSERT INTO mcp_calls (turn_id, server_name, tool_name, request, response, called_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    turn_id,
                    call.server_name,
                    call.tool_name,
                    _dump_json(redact_secrets_in_dict(call.request)),
                    _dump_json(call.response) if call.response is not None else None,
                    now,
                )
                for call in calls
            ],
        )


def save_file_changes(store: K2DStore, turn_id: int, changes: list[FileChange]) -> None:
    now = datetime.now().isoformat()
    with store._transaction() as conn:
        conn.executemany(
            """
            INSERT INTO file_changes (turn_id, file_path, change_type, diff_content,
                                      commit_hash, old_hash, new_hash, changed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    turn_id,
                    change.file_path,
                    change.change_type,
                    redact_secrets(change.diff_content) if change.diff_content else None,
                    change.commit_hash,
                    change.old_hash,
                    change.new_hash,
                    now,
                )
                for change in changes
            ],
        )


def save_config_snapshot(store: K2DStore, turn_id: int, config: ConfigSnapshot) -> None:
    with store._transaction() as conn:
        conn.execute(
            """
            INSERT INTO config_snapshots (
                turn_id, settings_json, settings_local_json, claude_md, mcp_json, lsp_json,
                agents_list, skills_list, plugins_list, rules_list, commands_list, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                turn_id,
                config.settings,
                config.settings_local,
                config.claude_md,
                config.mcp,
                config.lsp,
                _dump_json(config.agents),
                _dump_json(config.skills),
                _dump_json(config.plugins),
                _dump_json(config.rules),
                _dump_json(config.commands),
                datetime.now().isoformat(),
            ),
        )


def save_config_changes(store: K2DStore, turn_id: int, changes: list[ConfigChange]) -> None:
    now = datetime.now().isoformat()
    with store._transaction() as conn:
        conn.executemany(
            """
            INSERT INTO config_changes (turn_id, config_type, item_name, change_type,
                                        before_value, after_value, diff_summary, changed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    turn_id,
                    change.config_type,
                    change.item_name,
                    change.change_type,
                    change.before_value,
                    change.after_value,
                    change.diff_summary,
                    now,
                )
                for change in changes
            ],
        )


def save_complete_turn(
    store: K2DStore,
    session_id: str,
    turn_number: int,
    turn_data: TurnData,
    file_changes: list[FileChange],
    config_snapshot: ConfigSnapshot | None,
    config_changes: list[ConfigChange],
) -> int:
    """Persist a turn and every sub-record.

    Each group of rows commits separately; a failure part-way leaves the
    rows written so far in place.

    Returns:
        The new turn id.
    """
    turn_id = create_turn(
        store,
        session_id,
        turn_number,
        turn_data.user_message,
        turn_data.assistant_response,
    )

    if turn_data.tool_calls:
        save_tool_calls(store, turn_id, turn_data.tool_calls)
    if turn_data.skill_usages:
        save_skill_usages(store, turn_id, turn_data.skill_usages)
    if turn_data.mcp_calls:
        save_mcp_calls(store, turn_id, turn_data.mcp_calls)
    if file_changes:
        save_file_changes(store, turn_id, file_changes)
    if config_snapshot is not None:
        save_config_snapshot(store, turn_id, config_snapshot)
    if config_changes:
        save_config_changes(store, turn_id, config_changes)

    logger.debug(
        f"Saved turn {turn_number} (id={turn_id}) for session {session_id}: "
        f"{len(turn_data.tool_calls)} tools, {len(file_changes)} file changes, "
        f"{len(config_changes)} config changes"
    )
    return turn_id


def save_snapshot_record(store: K2DStore, turn_id: int, snapshot_path: Path, file_count: int) -> int:
    """Record where a turn's snapshot was written and how many files it holds."""
    with store._transaction() as conn:
        cursor = conn.execute(
            """
            INSERT INTO snapshots (turn_id, snapshot_path, file_count, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (turn_id, str(snapshot_path), file_count, datetime.now().isoformat()),
        )
    return cursor.lastrowid or 0


def get_turns(store: K2DStore, session_id: str) -> list[Turn]:
    rows = store._get_connection().execute(
        "SELECT * FROM turns WHERE session_id = ? ORDER BY turn_number", (session_id,)
    ).fetchall()
    return [Turn.from_row(row) for row in rows]


def count_turns(store: K2DStore, session_id: str | None = None) -> int:
    conn = store._get_connection()
    if session_id is None:
        row = conn.execute("SELECT COUNT(*) FROM turns").fetchone()
    else:
        row = conn.execute("SELECT COUNT(*) FROM turns WHERE session_id = ?", (session_id,)).fetchone()
    return int(row[0])


def count_rows(store: K2DStore, table: str) -> int:
    """Count rows in one of the known tables."""
    if table not in REQUIRED_TABLES:
        raise ValueError(f"Unknown table: {table}")
    row = store._get_connection().execute(f"SELECT COUNT(*) FROM {table}").fetchone()  # noqa: S608
    return int(row[0])


def get_file_changes(store: K2DStore, turn_id: int) -> list[StoredFileChange]:
    rows = store._get_connection().execute(
        "SELECT * FROM file_changes WHERE turn_id = ? ORDER BY id", (turn_id,)
    ).fetchall()
    return [StoredFileChange.from_row(row) for row in rows]


def get_tool_call_stats(store: K2DStore) -> list[ToolCallStat]:
    rows = store._get_connection().execute(
        """
        SELECT tool_name, COUNT(*) AS count
        FROM tool_calls
        GROUP BY tool_name
        ORDER BY count DESC, tool_name
        """
    ).fetchall()
    return [ToolCallStat(tool_name=row["tool_name"], count=row["count"]) for row in rows]


def get_skill_usages(store: K2DStore, limit: int = 100) -> list[SkillUsageRecord]:
    rows = store._get_connection().execute(
        """
        SELECT skill_name, trigger_type, outcome, used_at
        FROM skill_usages
        ORDER BY used_at DESC, id DESC
        LIMIT ?
        """,
        (limit,),
    ).fetchall()
    return [SkillUsageRecord.from_row(row) for row in rows]
