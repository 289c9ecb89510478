"""Meta directory bootstrap.

Creates the ``meta/`` tree k2d owns inside a project. Idempotent.
"""

import logging
from pathlib import Path

from k2d.config.paths import META_DIR, REQUIRED_META_DIRS

logger = logging.getLogger(__name__)


def initialize_meta_directory(project_root: Path) -> Path:
    """Create ``meta/`` and all of its sub-directories.

    Returns:
        Path of the meta directory.
    """
    for rel_dir in REQUIRED_META_DIRS:
        (project_root / rel_dir).mkdir(parents=True, exist_ok=True)
    logger.debug(f"Meta directory ready at {project_root / META_DIR}")
    return project_root / META_DIR


def is_meta_initialized(project_root: Path) -> bool:
    return (project_root / META_DIR).is_dir()


def get_required_dirs() -> list[str]:
    """A copy of the directories bootstrap creates, relative to the project root."""
    return list(REQUIRED_META_DIRS)
