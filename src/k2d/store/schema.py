"""Database schema for the k2d store.

Contains schema version and SQL for creating the database schema.
"""

# Schema version
# v1: Capture tables (sessions, turns, tool/MCP/skill calls, file and config changes,
#     skill lifecycle, project phases, snapshot metadata)
SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

-- ============================================
-- Conversation capture
-- ============================================

-- One row per transcript file (session id = transcript stem)
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    project_path TEXT NOT NULL,
    started_at TEXT NOT NULL,
    ended_at TEXT,
    turn_count INTEGER DEFAULT 0,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS turns (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT NOT NULL REFERENCES sessions(id),
    turn_number INTEGER NOT NULL,
    user_message TEXT,
    assistant_response TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS tool_calls (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    turn_id INTEGER NOT NULL REFERENCES turns(id),
    tool_name TEXT NOT NULL,
    tool_type TEXT,
    parameters TEXT,  -- JSON object
    result_status TEXT,
    result_summary TEXT,
    execution_time_ms INTEGER,
    called_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS file_changes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    turn_id INTEGER NOT NULL REFERENCES turns(id),
    file_path TEXT NOT NULL,
    change_type TEXT NOT NULL CHECK(change_type IN ('A', 'M', 'D')),
    diff_content TEXT,
    commit_hash TEXT,
    old_hash TEXT,
    new_hash TEXT,
    changed_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS mcp_calls (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    turn_id INTEGER NOT NULL REFERENCES turns(id),
    server_name TEXT NOT NULL,
    tool_name TEXT NOT NULL,
    request TEXT,  -- JSON object
    response TEXT,  -- JSON, filled in later if ever
    called_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS skill_usages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    turn_id INTEGER NOT NULL REFERENCES turns(id),
    skill_name TEXT NOT NULL,
    trigger_type TEXT CHECK(trigger_type IN ('user', 'auto')),
    context TEXT,
    outcome TEXT CHECK(outcome IN ('success', 'partial', 'failed')),
    used_at TEXT DEFAULT CURRENT_TIMESTAMP
);

-- ============================================
-- Configuration tracking
-- ============================================

CREATE TABLE IF NOT EXISTS config_snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    turn_id INTEGER NOT NULL REFERENCES turns(id),
    settings_json TEXT,
    settings_local_json TEXT,
    claude_md TEXT,
    mcp_json TEXT,
    lsp_json TEXT,
    agents_list TEXT,  -- JSON arrays
    skills_list TEXT,
    plugins_list TEXT,
    rules_list TEXT,
    commands_list TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS config_changes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    turn_id INTEGER NOT NULL REFERENCES turns(id),
    config_type TEXT NOT NULL,
    item_name TEXT,
    change_type TEXT NOT NULL CHECK(change_type IN ('A', 'M', 'D')),
    before_value TEXT,
    after_value TEXT,
    diff_summary TEXT,
    trigger_context TEXT,
    related_task TEXT,
    changed_at TEXT DEFAULT CURRENT_TIMESTAMP
);

-- ============================================
-- Derived knowledge
-- ============================================

CREATE TABLE IF NOT EXISTS skill_lifecycle (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    skill_name TEXT NOT NULL UNIQUE,
    introduced_at TEXT,
    introduced_turn_id INTEGER,
    introduction_reason TEXT,
    total_usages INTEGER DEFAULT 0,
    last_used_at TEXT,
    success_rate REAL,
    is_active INTEGER DEFAULT 1,
    removed_at TEXT,
    removal_reason TEXT,
    skill_type TEXT,
    depends_on TEXT,  -- JSON array
    generates TEXT  -- JSON array
);

-- At most one row has ended_at IS NULL (the open phase)
CREATE TABLE IF NOT EXISTS project_phases (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    phase_name TEXT NOT NULL,
    started_at TEXT,
    ended_at TEXT,
    started_turn_id INTEGER,
    ended_turn_id INTEGER,
    dominant_skills TEXT,  -- JSON arrays
    dominant_tools TEXT,
    key_outputs TEXT,
    lessons_learned TEXT
);

-- ============================================
-- Support
-- ============================================

-- Snapshot-mode metadata; the inventory itself lives in meta/snapshots/
CREATE TABLE IF NOT EXISTS snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    turn_id INTEGER NOT NULL REFERENCES turns(id),
    snapshot_path TEXT NOT NULL,
    file_count INTEGER NOT NULL DEFAULT 0,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

-- Run-to-run state (tracking_mode, current_session_id, ...)
CREATE TABLE IF NOT EXISTS config (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_turns_session ON turns(session_id);
CREATE INDEX IF NOT EXISTS idx_tool_calls_turn ON tool_calls(turn_id);
CREATE INDEX IF NOT EXISTS idx_file_changes_turn ON file_changes(turn_id);
CREATE INDEX IF NOT EXISTS idx_config_changes_turn ON config_changes(turn_id);
CREATE INDEX IF NOT EXISTS idx_skill_usages_turn ON skill_usages(turn_id);
CREATE INDEX IF NOT EXISTS idx_mcp_calls_turn ON mcp_calls(turn_id);
CREATE INDEX IF NOT EXISTS idx_snapshots_turn ON snapshots(turn_id);
"""

REQUIRED_TABLES = (
    "sessions",
    "turns",
    "tool_calls",
    "file_changes",
    "mcp_calls",
    "skill_usages",
    "config_snapshots",
    "config_changes",
    "skill_lifecycle",
    "project_phases",
    "snapshots",
    "config",
)
