"""Git helpers: environment detection and best-effort command execution.

Every helper here treats git as optional. A missing binary, a non-repo
directory, a hang past the timeout or a non-zero exit all degrade to
``None``/``False`` and are logged, never raised.
"""

import logging
import subprocess
from pathlib import Path

from k2d.config.settings import git_settings
from k2d.constants import TRACKING_MODE_GIT, TRACKING_MODE_SNAPSHOT

logger = logging.getLogger(__name__)


def run_git(args: list[str], cwd: Path | str | None = None) -> str | None:
    """Run a git command and return its stdout.

    Args:
        args: Arguments after ``git`` (e.g. ``["status", "--porcelain"]``).
        cwd: Working directory for the command.

    Returns:
        Captured stdout, or None if git is missing, timed out or failed.
    """
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
            timeout=git_settings.command_timeout_seconds,
        )
        return result.stdout
    except subprocess.CalledProcessError as e:
        logger.debug(f"git {' '.join(args)} failed (exit {e.returncode}): {e.stderr.strip()}")
        return None
    except subprocess.TimeoutExpired:
        logger.warning(f"git {' '.join(args)} timed out")
        return None
    except FileNotFoundError:
        # Git not installed
        logger.debug("git executable not found")
        return None
    except OSError as e:
        logger.debug(f"git {' '.join(args)} could not run: {e}")
        return None


def is_git_available() -> bool:
    """Check whether the git binary can be executed."""
    return run_git(["--version"]) is not None


def is_git_repo(cwd: Path | str) -> bool:
    """Check whether ``cwd`` is inside a git work tree."""
    return run_git(["rev-parse", "--git-dir"], cwd=cwd) is not None


def get_tracking_mode(project_root: Path | str) -> str:
    """Decide how file changes are tracked for a project.

    Returns:
        ``git`` when git is installed and the project is a repository,
        ``snapshot`` otherwise.
    """
    if not is_git_available():
        return TRACKING_MODE_SNAPSHOT
    return TRACKING_MODE_GIT if is_git_repo(project_root) else TRACKING_MODE_SNAPSHOT
