"""Skill lifecycle and project phase operations for the k2d store."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import TYPE_CHECKING

from k2d.store.models import ProjectPhase, SkillLifecycle

if TYPE_CHECKING:
    from k2d.store.core import K2DStore

logger = logging.getLogger(__name__)


# =============================================================================
# Skill lifecycle
# =============================================================================


def update_skill_lifecycle(store: K2DStore, skill_name: str, turn_id: int, reason: str) -> None:
    """Record one usage of a skill.

    The first usage creates the row with ``total_usages = 1`` and the
    introduction details; later usages only increment the count and move
    ``last_used_at``.
    """
    now = datetime.now().isoformat()
    with store._transaction() as conn:
        cursor = conn.execute(
            """
            UPDATE skill_lifecycle
            SET total_usages = total_usages + 1, last_used_at = ?
            WHERE skill_name = ?
            """,
            (now, skill_name),
        )
        if cursor.rowcount == 0:
            conn.execute(
                """
                INSERT INTO skill_lifecycle (skill_name, introduced_at, introduced_turn_id,
                                             introduction_reason, total_usages, last_used_at)
                VALUES (?, ?, ?, ?, 1, ?)
                """,
                (skill_name, now, turn_id, reason, now),
            )
            logger.info(f"Skill introduced: {skill_name} (turn {turn_id})")


def get_skill_lifecycle(store: K2DStore, skill_name: str) -> SkillLifecycle | None:
    row = store._get_connection().execute(
        "SELECT * FROM skill_lifecycle WHERE skill_name = ?", (skill_name,)
    ).fetchone()
    return SkillLifecycle.from_row(row) if row else None


def list_skill_lifecycles(store: K2DStore) -> list[SkillLifecycle]:
    """All lifecycle rows, most used first."""
    rows = store._get_connection().execute(
        "SELECT * FROM skill_lifecycle ORDER BY total_usages DESC, skill_name"
    ).fetchall()
    return [SkillLifecycle.from_row(row) for row in rows]


def mark_skill_inactive(store: K2DStore, skill_name: str, reason: str | None = None) -> bool:
    """Mark a skill as no longer in use; the row itself is kept.

    Returns:
        True if a lifecycle row was updated.
    """
    with store._transaction() as conn:
        cursor = conn.execute(
            """
            UPDATE skill_lifecycle
            SET is_active = 0, removed_at = ?, removal_reason = ?
            WHERE skill_name = ?
            """,
            (datetime.now().isoformat(), reason, skill_name),
        )
    return cursor.rowcount > 0


# =============================================================================
# Project phases
# =============================================================================


def record_phase_transition(
    store: K2DStore,
    phase_name: str,
    turn_id: int,
    dominant_skills: list[str],
    dominant_tools: list[str],
) -> int:
    """Close the open phase (if any) and open a new one.

    Returns:
        Id of the new phase row.
    """
    now = datetime.now().isoformat()
    with store._transaction() as conn:
        conn.execute(
            """
            UPDATE project_phases
            SET ended_at = ?, ended_turn_id = ?
            WHERE ended_at IS NULL
            """,
            (now, turn_id),
        )
        cursor = conn.execute(
            """
            INSERT INTO project_phases (phase_name, started_at, started_turn_id,
                                        dominant_skills, dominant_tools)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                phase_name,
                now,
                turn_id,
                json.dumps(dominant_skills, ensure_ascii=False),
                json.dumps(dominant_tools, ensure_ascii=False),
            ),
        )
    logger.info(f"Project phase -> {phase_name} (turn {turn_id})")
    return cursor.lastrowid or 0


def get_project_phases(store: K2DStore) -> list[ProjectPhase]:
    rows = store._get_connection().execute(
        "SELECT * FROM project_phases ORDER BY started_at, id"
    ).fetchall()
    return [ProjectPhase.from_row(row) for row in rows]


def get_open_phase(store: K2DStore) -> ProjectPhase | None:
    """The phase without an end time, if any."""
    row = store._get_connection().execute(
        "SELECT * FROM project_phases WHERE ended_at IS NULL ORDER BY id DESC LIMIT 1"
    ).fetchone()
    return ProjectPhase.from_row(row) if row else None
