"""Collectors for transcripts, file changes and agent configuration."""

from k2d.collectors.config_changes import collect_claude_config, detect_config_changes
from k2d.collectors.file_changes import (
    collect_git_changes,
    collect_snapshot_changes,
    create_snapshot,
    diff_snapshots,
    load_latest_snapshot,
    parse_git_status,
    save_snapshot,
    snapshot_diff_to_changes,
)
from k2d.collectors.models import (
    ConfigChange,
    ConfigSnapshot,
    FileChange,
    FileInfo,
    McpCall,
    SkillUsage,
    Snapshot,
    SnapshotDiff,
    ToolCall,
    TurnData,
)
from k2d.collectors.transcript import (
    classify_tool_type,
    extract_mcp_calls,
    extract_skill_usages,
    extract_tool_calls,
    parse_full_transcript,
    parse_latest_turn,
)

__all__ = [
    "ConfigChange",
    "ConfigSnapshot",
    "FileChange",
    "FileInfo",
    "McpCall",
    "SkillUsage",
    "Snapshot",
    "SnapshotDiff",
    "ToolCall",
    "TurnData",
    "classify_tool_type",
    "collect_claude_config",
    "collect_git_changes",
    "collect_snapshot_changes",
    "create_snapshot",
    "detect_config_changes",
    "diff_snapshots",
    "extract_mcp_calls",
    "extract_skill_usages",
    "extract_tool_calls",
    "load_latest_snapshot",
    "parse_full_transcript",
    "parse_git_status",
    "parse_latest_turn",
    "save_snapshot",
    "snapshot_diff_to_changes",
]
