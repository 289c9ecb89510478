"""Agent configuration tracking.

Collects the state of the ``.claude/`` configuration artifacts and diffs
two collected states into :class:`ConfigChange` records. Every read is
best-effort: a missing file gives ``None``, a missing directory an empty
list.
"""

import logging
from pathlib import Path

from k2d.collectors.models import ConfigChange, ConfigSnapshot
from k2d.config.paths import (
    CLAUDE_AGENTS_DIR,
    CLAUDE_COMMANDS_DIR,
    CLAUDE_DIR,
    CLAUDE_INSTRUCTIONS_FILE,
    CLAUDE_LSP_FILE,
    CLAUDE_MCP_FILE,
    CLAUDE_PLUGINS_DIR,
    CLAUDE_RULES_DIR,
    CLAUDE_SETTINGS_FILE,
    CLAUDE_SETTINGS_LOCAL_FILE,
    CLAUDE_SKILLS_DIR,
    PLUGIN_MANIFEST_FILE,
    SKILL_MANIFEST_FILE,
)
from k2d.constants import (
    CHANGE_ADDED,
    CHANGE_DELETED,
    CHANGE_MODIFIED,
    CONFIG_TYPE_AGENT,
    CONFIG_TYPE_CLAUDE_MD,
    CONFIG_TYPE_COMMAND,
    CONFIG_TYPE_MCP,
    CONFIG_TYPE_PLUGIN,
    CONFIG_TYPE_RULE,
    CONFIG_TYPE_SETTINGS,
    CONFIG_TYPE_SKILL,
)

logger = logging.getLogger(__name__)


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


def _list_markdown_stems(directory: Path) -> list[str]:
    """Stems of the ``*.md`` files directly inside ``directory``."""
    try:
        return sorted(p.stem for p in directory.glob("*.md") if p.is_file())
    except OSError:
        return []


def _list_marked_dirs(directory: Path, marker: str) -> list[str]:
    """Names of sub-directories that contain ``marker``."""
    if not directory.is_dir():
        return []
    try:
        return sorted(
            child.name for child in directory.iterdir() if child.is_dir() and (child / marker).is_file()
        )
    except OSError:
        return []


def collect_claude_config(project_root: Path | str) -> ConfigSnapshot:
    """Collect the current configuration state of a project."""
    root = Path(project_root)
    claude_dir = root / CLAUDE_DIR

    # Root CLAUDE.md wins over .claude/CLAUDE.md when it has content
    claude_md = _read_text(root / CLAUDE_INSTRUCTIONS_FILE) or _read_text(
        claude_dir / CLAUDE_INSTRUCTIONS_FILE
    )

    return ConfigSnapshot(
        settings=_read_text(claude_dir / CLAUDE_SETTINGS_FILE),
        settings_local=_read_text(claude_dir / CLAUDE_SETTINGS_LOCAL_FILE),
        claude_md=claude_md,
        mcp=_read_text(claude_dir / CLAUDE_MCP_FILE),
        lsp=_read_text(claude_dir / CLAUDE_LSP_FILE),
        agents=_list_markdown_stems(claude_dir / CLAUDE_AGENTS_DIR),
        skills=_list_marked_dirs(claude_dir / CLAUDE_SKILLS_DIR, SKILL_MANIFEST_FILE),
        plugins=_list_marked_dirs(claude_dir / CLAUDE_PLUGINS_DIR, PLUGIN_MANIFEST_FILE),
        rules=_list_markdown_stems(claude_dir / CLAUDE_RULES_DIR),
        commands=_list_markdown_stems(claude_dir / CLAUDE_COMMANDS_DIR),
    )


# (config_type, attribute, file label)
_SCALAR_ARTIFACTS: tuple[tuple[str, str, str], ...] = (
    (CONFIG_TYPE_SETTINGS, "settings", CLAUDE_SETTINGS_FILE),
    (CONFIG_TYPE_CLAUDE_MD, "claude_md", CLAUDE_INSTRUCTIONS_FILE),
    (CONFIG_TYPE_MCP, "mcp", CLAUDE_MCP_FILE),
)

# (config_type, attribute)
_LIST_ARTIFACTS: tuple[tuple[str, str], ...] = (
    (CONFIG_TYPE_AGENT, "agents"),
    (CONFIG_TYPE_SKILL, "skills"),
    (CONFIG_TYPE_PLUGIN, "plugins"),
    (CONFIG_TYPE_RULE, "rules"),
    (CONFIG_TYPE_COMMAND, "commands"),
)


def _scalar_change(
    config_type: str, label: str, before: str | None, after: str | None
) -> ConfigChange | None:
    if before == after:
        return None
    if before is not None and after is not None:
        change_type = CHANGE_MODIFIED
    elif after is not None:
        change_type = CHANGE_ADDED
    else:
        change_type = CHANGE_DELETED
    return ConfigChange(
        config_type=config_type,
        change_type=change_type,
        before_value=before,
        after_value=after,
        diff_summary=f"{label} modified",
    )


def _list_changes(config_type: str, before: list[str], after: list[str]) -> list[ConfigChange]:
    before_set = set(before)
    after_set = set(after)
    changes = [
        ConfigChange(
            config_type=config_type,
            item_name=item,
            change_type=CHANGE_ADDED,
            after_value=item,
            diff_summary=f"{config_type} '{item}' added",
        )
        for item in after
        if item not in before_set
    ]
    changes.extend(
        ConfigChange(
            config_type=config_type,
            item_name=item,
            change_type=CHANGE_DELETED,
            before_value=item,
            diff_summary=f"{config_type} '{item}' removed",
        )
        for item in before
        if item not in after_set
    )
    return changes


def _initial_changes(new: ConfigSnapshot) -> list[ConfigChange]:
    """Every artifact present on the first collection is an addition."""
    changes = [
        ConfigChange(
            config_type=config_type,
            change_type=CHANGE_ADDED,
            after_value=getattr(new, attr),
            diff_summary=f"{label} created",
        )
        for config_type, attr, label in _SCALAR_ARTIFACTS
        if getattr(new, attr) is not None
    ]
    for config_type, attr in _LIST_ARTIFACTS:
        changes.extend(_list_changes(config_type, [], getattr(new, attr)))
    return changes


def detect_config_changes(old: ConfigSnapshot | None, new: ConfigSnapshot) -> list[ConfigChange]:
    """Diff two configuration snapshots.

    Scalar artifacts (settings, instructions, MCP config) compare by exact
    text; list artifacts compare by membership, so a rename is reported as
    one removal and one addition.

    Args:
        old: The previous snapshot, or None on first collection.
        new: The current snapshot.

    Returns:
        Change records, scalars first, then lists in agent/skill/plugin/rule/command order.
    """
    if old is None:
        return _initial_changes(new)

    changes: list[ConfigChange] = []
    for config_type, attr, label in _SCALAR_ARTIFACTS:
        change = _scalar_change(config_type, label, getattr(old, attr), getattr(new, attr))
        if change is not None:
            changes.append(change)

    for config_type, attr in _LIST_ARTIFACTS:
        changes.extend(_list_changes(config_type, getattr(old, attr), getattr(new, attr)))

    if changes:
        logger.debug(f"Detected {len(changes)} configuration changes")
    return changes
