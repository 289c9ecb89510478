"""Session operations for the k2d store.

Functions for creating, retrieving, and closing sessions.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from k2d.store.models import Session

if TYPE_CHECKING:
    from k2d.store.core import K2DStore

logger = logging.getLogger(__name__)


def create_session(
    store: K2DStore, session_id: str, project_path: str, turn_count: int = 0
) -> Session:
    """Create a new session record.

    Args:
        store: The K2DStore instance.
        session_id: Session identifier (the transcript file stem).
        project_path: Project root directory.
        turn_count: Initial turn count.

    Returns:
        Created Session object.
    """
    session = Session(
        id=session_id,
        project_path=project_path,
        started_at=datetime.now(),
        turn_count=turn_count,
    )

    with store._transaction() as conn:
        conn.execute(
            """
            INSERT INTO sessions (id, project_path, started_at, ended_at, turn_count)
            VALUES (:id, :project_path, :started_at, :ended_at, :turn_count)
            """,
            session.to_row(),
        )

    logger.debug(f"Created session {session_id}")
    return session


def get_session(store: K2DStore, session_id: str) -> Session | None:
    """Get session by ID."""
    row = store._get_connection().execute(
        "SELECT * FROM sessions WHERE id = ?", (session_id,)
    ).fetchone()
    return Session.from_row(row) if row else None


def session_exists(store: K2DStore, session_id: str) -> bool:
    row = store._get_connection().execute(
        "SELECT 1 FROM sessions WHERE id = ?", (session_id,)
    ).fetchone()
    return row is not None


def get_or_create_session(
    store: K2DStore, session_id: str, project_path: str
) -> tuple[Session, bool]:
    """Get existing session or create new one.

    Returns:
        Tuple of (Session, created) where created is True if new session.
    """
    existing = get_session(store, session_id)
    if existing:
        return existing, False
    return create_session(store, session_id, project_path), True


def list_sessions(store: K2DStore, limit: int = 100) -> list[Session]:
    """List sessions, most recently started first."""
    rows = store._get_connection().execute(
        "SELECT * FROM sessions ORDER BY started_at DESC LIMIT ?", (limit,)
    ).fetchall()
    return [Session.from_row(row) for row in rows]


def end_session(store: K2DStore, session_id: str) -> None:
    """Set ``ended_at`` to now."""
    with store._transaction() as conn:
        conn.execute(
            "UPDATE sessions SET ended_at = ? WHERE id = ?",
            (datetime.now().isoformat(), session_id),
        )
    logger.debug(f"Ended session {session_id}")


def set_session_turn_count(store: K2DStore, session_id: str, turn_count: int) -> None:
    with store._transaction() as conn:
        conn.execute("UPDATE sessions SET turn_count = ? WHERE id = ?", (turn_count, session_id))


def recount_session_turns(store: K2DStore, session_id: str) -> int:
    """Set ``turn_count`` from the turns actually stored for the session.

    Returns:
        The new turn count.
    """
    with store._transaction() as conn:
        count = conn.execute(
            "SELECT COUNT(*) FROM turns WHERE session_id = ?", (session_id,)
        ).fetchone()[0]
        conn.execute("UPDATE sessions SET turn_count = ? WHERE id = ?", (count, session_id))
    return int(count)
