"""Key/value config table operations for the k2d store.

The ``config`` table carries run-to-run state such as the tracking mode,
the current session and the global turn counter.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from k2d.store.core import K2DStore


def get_config(store: K2DStore, key: str) -> str | None:
    """Get a config value, or None when unset."""
    row = store._get_connection().execute("SELECT value FROM config WHERE key = ?", (key,)).fetchone()
    return row["value"] if row else None


def set_config(store: K2DStore, key: str, value: str) -> None:
    """Insert or replace a config value."""
    with store._transaction() as conn:
        conn.execute("INSERT OR REPLACE INTO config (key, value) VALUES (?, ?)", (key, value))


def get_all_tables(store: K2DStore) -> list[str]:
    """Get all table names, sorted."""
    rows = store._get_connection().execute(
        "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name"
    ).fetchall()
    return [row["name"] for row in rows]
