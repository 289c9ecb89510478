"""Path constants for k2d.

This module defines the on-disk layout k2d reads from and writes to:
the ``meta/`` tree it owns inside a project, and the ``.claude/`` tree it
observes for configuration changes.
"""

# =============================================================================
# Meta Directory Structure (owned by k2d)
# =============================================================================

META_DIR = "meta"
DB_FILENAME = "k2d.db"
LOG_FILENAME = "k2d.log"
SNAPSHOTS_DIR = "snapshots"

SNAPSHOT_FILE_PREFIX = "snapshot-"
SNAPSHOT_FILE_SUFFIX = ".json"

# Relative to the project root; created by bootstrap before the core runs
REQUIRED_META_DIRS = (
    "meta",
    "meta/snapshots",
    "meta/patterns",
    "meta/patterns/workflows",
    "meta/patterns/skill-tactics",
    "meta/patterns/tool-combos",
    "meta/assets",
    "meta/assets/rules",
    "meta/assets/templates",
    "meta/assets/skill-packs",
    "meta/reports",
    "meta/references",
)

# Optional extra redaction patterns (secrets-patterns-db YAML layout)
REDACTION_PATTERNS_FILE = "meta/assets/rules/redaction-patterns.yml"

# Optional extra skill keywords ({skill_name: [keyword, ...]})
SKILL_KEYWORDS_FILE = "meta/assets/rules/skill-keywords.yml"

# =============================================================================
# Agent Configuration Layout (observed, never written)
# =============================================================================

CLAUDE_DIR = ".claude"
CLAUDE_SETTINGS_FILE = "settings.json"
CLAUDE_SETTINGS_LOCAL_FILE = "settings.local.json"
CLAUDE_MCP_FILE = ".mcp.json"
CLAUDE_LSP_FILE = "lsp.json"
CLAUDE_INSTRUCTIONS_FILE = "CLAUDE.md"

CLAUDE_AGENTS_DIR = "agents"
CLAUDE_RULES_DIR = "rules"
CLAUDE_COMMANDS_DIR = "commands"
CLAUDE_SKILLS_DIR = "skills"
CLAUDE_PLUGINS_DIR = "plugins"

# A skills/<name>/ directory only counts as a skill when this file exists
SKILL_MANIFEST_FILE = "SKILL.md"
# A plugins/<name>/ directory only counts as a plugin when this file exists
PLUGIN_MANIFEST_FILE = ".claude-plugin/plugin.json"

# =============================================================================
# Transcripts
# =============================================================================

TRANSCRIPT_FILE_SUFFIX = ".jsonl"

# =============================================================================
# Version Control
# =============================================================================

GIT_DIR = ".git"
