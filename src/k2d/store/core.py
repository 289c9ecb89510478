"""Core K2DStore class.

Contains the main K2DStore class with connection management and delegation
to operation modules.
"""

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from types import TracebackType
from typing import Any

from k2d.collectors.models import ConfigChange, ConfigSnapshot, FileChange, TurnData
from k2d.exceptions import StoreOpenError
from k2d.store import kv, lifecycle, sessions, turns
from k2d.store.models import (
    ProjectPhase,
    Session,
    SkillLifecycle,
    SkillUsageRecord,
    StoredFileChange,
    ToolCallStat,
    Turn,
)
from k2d.store.schema import SCHEMA_SQL, SCHEMA_VERSION

logger = logging.getLogger(__name__)


class K2DStore:
    """SQLite-backed store for captured turns and derived knowledge.

    One store is opened per hook run and used from a single thread. Each
    write operation commits on its own; a turn's rows are not wrapped in
    one transaction.
    """

    def __init__(self, db_path: Path):
        """Open (creating if needed) the store.

        Args:
            db_path: Path to the SQLite database file.

        Raises:
            StoreOpenError: If the database cannot be opened or initialized.
        """
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self.created = not db_path.exists() or db_path.stat().st_size == 0
        try:
            self._ensure_schema()
        except (sqlite3.Error, OSError) as e:
            self.close()
            raise StoreOpenError(
                f"Cannot open database: {e}", db_path=db_path, operation="open"
            ) from e

    def _get_connection(self) -> sqlite3.Connection:
        """Get the database connection, opening it on first use."""
        if self._conn is None:
            conn = sqlite3.connect(str(self.db_path), timeout=30.0)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            conn.execute("PRAGMA journal_mode=WAL")
            self._conn = conn
        return self._conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Database transaction error: {e}", exc_info=True)
            raise

    def _ensure_schema(self) -> None:
        """Create database schema if needed."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._transaction() as conn:
            try:
                row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
                current_version = row[0] if row and row[0] is not None else 0
            except sqlite3.OperationalError:
                current_version = 0

            if current_version < SCHEMA_VERSION:
                conn.executescript(SCHEMA_SQL)
                conn.execute("DELETE FROM schema_version")
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
                logger.info(f"K2D store schema initialized (v{SCHEMA_VERSION})")

    def get_schema_version(self) -> int:
        """Get current database schema version, or 0 when missing."""
        try:
            row = self._get_connection().execute("SELECT MAX(version) FROM schema_version").fetchone()
            return row[0] if row and row[0] is not None else 0
        except sqlite3.OperationalError:
            return 0

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "K2DStore":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # ==========================================================================
    # Run-to-run state (delegates to kv.py)
    # ==========================================================================

    def get_config(self, key: str) -> str | None:
        """Get a value from the key/value config table."""
        return kv.get_config(self, key)

    def set_config(self, key: str, value: str) -> None:
        """Insert or replace a value in the key/value config table."""
        kv.set_config(self, key, value)

    def get_all_tables(self) -> list[str]:
        """Get the names of all tables in the database."""
        return kv.get_all_tables(self)

    # ==========================================================================
    # Session operations (delegates to sessions.py)
    # ==========================================================================

    def create_session(self, session_id: str, project_path: str, turn_count: int = 0) -> Session:
        """Create a new session record."""
        return sessions.create_session(self, session_id, project_path, turn_count)

    def get_session(self, session_id: str) -> Session | None:
        """Get session by ID."""
        return sessions.get_session(self, session_id)

    def session_exists(self, session_id: str) -> bool:
        return sessions.session_exists(self, session_id)

    def get_or_create_session(self, session_id: str, project_path: str) -> tuple[Session, bool]:
        """Get an existing session or create it; the flag is True when created."""
        return sessions.get_or_create_session(self, session_id, project_path)

    def list_sessions(self, limit: int = 100) -> list[Session]:
        """List sessions, most recently started first."""
        return sessions.list_sessions(self, limit)

    def end_session(self, session_id: str) -> None:
        """Mark a session as ended now."""
        sessions.end_session(self, session_id)

    def set_session_turn_count(self, session_id: str, turn_count: int) -> None:
        sessions.set_session_turn_count(self, session_id, turn_count)

    def recount_session_turns(self, session_id: str) -> int:
        """Set a session's turn_count to its actual number of turns."""
        return sessions.recount_session_turns(self, session_id)

    # ==========================================================================
    # Turn operations (delegates to turns.py)
    # ==========================================================================

    def save_complete_turn(
        self,
        session_id: str,
        turn_number: int,
        turn_data: TurnData,
        file_changes: list[FileChange] | None = None,
        config_snapshot: ConfigSnapshot | None = None,
        config_changes: list[ConfigChange] | None = None,
    ) -> int:
        """Persist a turn with all its sub-records. Returns the turn id."""
        return turns.save_complete_turn(
            self,
            session_id,
            turn_number,
            turn_data,
            file_changes or [],
            config_snapshot,
            config_changes or [],
        )

    def save_snapshot_record(self, turn_id: int, snapshot_path: Path, file_count: int) -> int:
        """Record snapshot-mode metadata for a turn."""
        return turns.save_snapshot_record(self, turn_id, snapshot_path, file_count)

    def get_turns(self, session_id: str) -> list[Turn]:
        """Get a session's turns ordered by turn number."""
        return turns.get_turns(self, session_id)

    def count_turns(self, session_id: str | None = None) -> int:
        """Count turns, optionally for one session."""
        return turns.count_turns(self, session_id)

    def get_file_changes(self, turn_id: int) -> list[StoredFileChange]:
        return turns.get_file_changes(self, turn_id)

    def get_tool_call_stats(self) -> list[ToolCallStat]:
        """Tool usage counts, most used first."""
        return turns.get_tool_call_stats(self)

    def get_skill_usages(self, limit: int = 100) -> list[SkillUsageRecord]:
        """Recent skill usages, newest first."""
        return turns.get_skill_usages(self, limit)

    def count_rows(self, table: str) -> int:
        return turns.count_rows(self, table)

    # ==========================================================================
    # Skill lifecycle and phases (delegates to lifecycle.py)
    # ==========================================================================

    def update_skill_lifecycle(self, skill_name: str, turn_id: int, reason: str) -> None:
        """Record one usage of a skill, creating its lifecycle row on first use."""
        lifecycle.update_skill_lifecycle(self, skill_name, turn_id, reason)

    def get_skill_lifecycle(self, skill_name: str) -> SkillLifecycle | None:
        return lifecycle.get_skill_lifecycle(self, skill_name)

    def list_skill_lifecycles(self) -> list[SkillLifecycle]:
        return lifecycle.list_skill_lifecycles(self)

    def mark_skill_inactive(self, skill_name: str, reason: str | None = None) -> bool:
        """Mark a skill as removed. Returns False if the skill is unknown."""
        return lifecycle.mark_skill_inactive(self, skill_name, reason)

    def record_phase_transition(
        self,
        phase_name: str,
        turn_id: int,
        dominant_skills: list[str],
        dominant_tools: list[str],
    ) -> int:
        """Close the open phase and open ``phase_name``. Returns the new phase id."""
        return lifecycle.record_phase_transition(
            self, phase_name, turn_id, dominant_skills, dominant_tools
        )

    def get_project_phases(self) -> list[ProjectPhase]:
        """All phases in start order."""
        return lifecycle.get_project_phases(self)

    def get_open_phase(self) -> ProjectPhase | None:
        return lifecycle.get_open_phase(self)

    def get_stats(self) -> dict[str, Any]:
        """Row counts for the main capture tables."""
        return {
            table: self.count_rows(table)
            for table in ("sessions", "turns", "tool_calls", "file_changes", "skill_usages", "config_changes")
        }
