"""Constants for k2d.

This module centralizes the magic strings and numbers used throughout
k2d. Constants are organized by domain:
- Transcript roles and content block types
- Tool classification
- Change kinds and tracking modes
- Config table keys
- Hook payload fields
"""

from typing import Final

# =============================================================================
# Transcript Roles and Content Blocks
# =============================================================================

ROLE_USER: Final[str] = "user"
ROLE_ASSISTANT: Final[str] = "assistant"

BLOCK_TYPE_TEXT: Final[str] = "text"
BLOCK_TYPE_TOOL_USE: Final[str] = "tool_use"
BLOCK_TYPE_TOOL_RESULT: Final[str] = "tool_result"

# =============================================================================
# Tool Classification
# =============================================================================

TOOL_TYPE_FILE: Final[str] = "file"
TOOL_TYPE_CODE: Final[str] = "code"
TOOL_TYPE_SEARCH: Final[str] = "search"
TOOL_TYPE_MCP: Final[str] = "mcp"
TOOL_TYPE_OTHER: Final[str] = "other"

FILE_TOOLS: Final[frozenset[str]] = frozenset({"Read", "Write", "Edit", "Glob", "Grep"})
CODE_TOOLS: Final[frozenset[str]] = frozenset({"Bash", "NotebookEdit"})
SEARCH_TOOLS: Final[frozenset[str]] = frozenset({"WebSearch", "WebFetch"})

MCP_TOOL_PREFIX: Final[str] = "mcp__"
MCP_NAME_SEPARATOR: Final[str] = "__"
# mcp__<server>__<tool>: prefix segment, server, at least one tool segment
MCP_MIN_NAME_SEGMENTS: Final[int] = 3

SKILL_TOOL_NAME: Final[str] = "Skill"
SKILL_PARAM_NAME: Final[str] = "skill"
SKILL_PARAM_ARGS: Final[str] = "args"

RESULT_STATUS_SUCCESS: Final[str] = "success"
RESULT_STATUS_FAILURE: Final[str] = "failure"

SKILL_TRIGGER_USER: Final[str] = "user"
SKILL_TRIGGER_AUTO: Final[str] = "auto"

SKILL_OUTCOME_SUCCESS: Final[str] = "success"
SKILL_OUTCOME_PARTIAL: Final[str] = "partial"
SKILL_OUTCOME_FAILED: Final[str] = "failed"

# =============================================================================
# Change Kinds
# =============================================================================

CHANGE_ADDED: Final[str] = "A"
CHANGE_MODIFIED: Final[str] = "M"
CHANGE_DELETED: Final[str] = "D"

# =============================================================================
# Tracking Modes
# =============================================================================

TRACKING_MODE_GIT: Final[str] = "git"
TRACKING_MODE_SNAPSHOT: Final[str] = "snapshot"

# =============================================================================
# Config Categories (config_changes.config_type)
# =============================================================================

CONFIG_TYPE_SETTINGS: Final[str] = "settings"
CONFIG_TYPE_SETTINGS_LOCAL: Final[str] = "settings_local"
CONFIG_TYPE_CLAUDE_MD: Final[str] = "claude_md"
CONFIG_TYPE_MCP: Final[str] = "mcp"
CONFIG_TYPE_LSP: Final[str] = "lsp"
CONFIG_TYPE_AGENT: Final[str] = "agent"
CONFIG_TYPE_SKILL: Final[str] = "skill"
CONFIG_TYPE_PLUGIN: Final[str] = "plugin"
CONFIG_TYPE_RULE: Final[str] = "rule"
CONFIG_TYPE_COMMAND: Final[str] = "command"

# =============================================================================
# Config Table Keys (run-to-run state)
# =============================================================================

CONFIG_KEY_TRACKING_MODE: Final[str] = "tracking_mode"
CONFIG_KEY_INITIALIZED_AT: Final[str] = "initialized_at"
CONFIG_KEY_VERSION: Final[str] = "version"
CONFIG_KEY_CURRENT_SESSION_ID: Final[str] = "current_session_id"
CONFIG_KEY_CURRENT_TURN_NUMBER: Final[str] = "current_turn_number"
CONFIG_KEY_LAST_CONFIG_SNAPSHOT: Final[str] = "last_config_snapshot"

# =============================================================================
# Hook
# =============================================================================

HOOK_SKIP_REASON_STOP_HOOK_ACTIVE: Final[str] = "stop_hook_active"

# =============================================================================
# Inference
# =============================================================================

CONFIDENCE_HIGH: Final[str] = "high"
CONFIDENCE_MEDIUM: Final[str] = "medium"
CONFIDENCE_LOW: Final[str] = "low"

# Keyword matches needed for a "high" confidence skill inference
HIGH_CONFIDENCE_MIN_MATCHES: Final[int] = 2
# Keyword matches needed for a keyword-driven phase transition
PHASE_TRANSITION_MIN_KEYWORDS: Final[int] = 2
# Any of these in the joined signal text marks a skill as newly introduced
SKILL_INTRODUCED_MARKERS: Final[tuple[str, ...]] = ("introduced", "引入")

# =============================================================================
# Logging
# =============================================================================

LOG_LEVEL_DEBUG: Final[str] = "DEBUG"
LOG_LEVEL_INFO: Final[str] = "INFO"
K2D_LOGGER_NAME: Final[str] = "k2d"
