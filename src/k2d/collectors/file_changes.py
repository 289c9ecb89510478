"""File change collection.

Two interchangeable strategies produce the same :class:`FileChange` list:

- **git**: parse ``git status --porcelain`` and attach per-file diffs and
  the current ``HEAD`` revision.
- **snapshot**: hash every project file, persist the inventory under
  ``meta/snapshots`` and diff it against the previous one.

The strategy is chosen once per project and stored as ``tracking_mode``.
"""

import hashlib
import json
import logging
import os
import time
from pathlib import Path

from k2d.collectors.models import FileChange, FileInfo, Snapshot, SnapshotDiff
from k2d.config.paths import META_DIR, SNAPSHOT_FILE_PREFIX, SNAPSHOT_FILE_SUFFIX, SNAPSHOTS_DIR
from k2d.config.settings import capture_settings
from k2d.constants import CHANGE_ADDED, CHANGE_DELETED, CHANGE_MODIFIED
from k2d.utils.git import run_git

logger = logging.getLogger(__name__)

_RENAME_SEPARATOR = " -> "
_HASH_CHUNK_SIZE = 64 * 1024

# =============================================================================
# Git mode
# =============================================================================


def _classify_status(status: str) -> str | None:
    if "?" in status or "A" in status:
        return CHANGE_ADDED
    if "D" in status:
        return CHANGE_DELETED
    if "M" in status or "R" in status or "C" in status:
        return CHANGE_MODIFIED
    return None


def parse_git_status(output: str) -> list[tuple[str, str]]:
    """Parse ``git status --porcelain`` output.

    Each line is ``XY <path>``; rename lines (``old -> new``) are reduced
    to the new path. Leading spaces are significant, so only trailing
    whitespace is stripped from the whole output.

    Returns:
        ``(path, change_type)`` pairs in output order.
    """
    changes: list[tuple[str, str]] = []
    for line in output.rstrip().split("\n"):
        if len(line) < 3:
            continue
        status = line[:2]
        file_path = line[3:].strip()
        if _RENAME_SEPARATOR in file_path:
            file_path = file_path.split(_RENAME_SEPARATOR)[1]

        change_type = _classify_status(status)
        if change_type is not None:
            changes.append((file_path, change_type))
    return changes


def _fetch_diff(cwd: Path, file_path: str, change_type: str) -> str | None:
    diff = run_git(["diff", "HEAD", "--", file_path], cwd=cwd)
    if not diff and change_type == CHANGE_ADDED:
        diff = run_git(["diff", "--cached", "--", file_path], cwd=cwd)
    return diff or None


def collect_git_changes(cwd: Path | str) -> list[FileChange]:
    """Collect working-tree changes using git.

    Returns:
        One change per status line; an empty list when git fails.
    """
    cwd = Path(cwd)
    status_output = run_git(["status", "--porcelain"], cwd=cwd)
    if status_output is None:
        logger.warning(f"Git change collection failed in {cwd}")
        return []

    status_changes = parse_git_status(status_output)
    if not status_changes:
        return []

    head = run_git(["rev-parse", "HEAD"], cwd=cwd)
    commit_hash = head.strip() if head else None

    changes = []
    for file_path, change_type in status_changes:
        diff = None if change_type == CHANGE_DELETED else _fetch_diff(cwd, file_path, change_type)
        changes.append(
            FileChange(
                file_path=file_path,
                change_type=change_type,
                diff_content=diff,
                commit_hash=commit_hash,
            )
        )

    logger.debug(f"Collected {len(changes)} git changes")
    return changes


# =============================================================================
# Snapshot mode
# =============================================================================


def _is_excluded(rel_dir: str, name: str, exclude_dirs: list[str]) -> bool:
    """Bare names match at any depth; entries with a slash match that path suffix."""
    rel_path = f"{rel_dir}/{name}" if rel_dir else name
    for pattern in exclude_dirs:
        if "/" in pattern:
            if rel_path == pattern or rel_path.endswith("/" + pattern):
                return True
        elif name == pattern:
            return True
    return False


def compute_file_hash(file_path: Path) -> str:
    """MD5 of the file contents (change detection, not security)."""
    digest = hashlib.md5(usedforsecurity=False)
    with file_path.open("rb") as f:
        for chunk in iter(lambda: f.read(_HASH_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def create_snapshot(project_root: Path | str, exclude_dirs: list[str] | None = None) -> Snapshot:
    """Hash every file under ``project_root``.

    Dot files are included; files that cannot be read are skipped. The
    project-root ``meta/`` directory is always left out, ``meta`` directories
    deeper in the tree are not.
    """
    root = Path(project_root)
    exclude = exclude_dirs if exclude_dirs is not None else capture_settings.snapshot_exclude_dirs
    files: dict[str, FileInfo] = {}

    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        if rel_dir == ".":
            rel_dir = ""
        dirnames[:] = sorted(
            d
            for d in dirnames
            if not (rel_dir == "" and d == META_DIR) and not _is_excluded(rel_dir, d, exclude)
        )

        for filename in filenames:
            full_path = Path(dirpath) / filename
            rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
            try:
                if not full_path.is_file():
                    continue
                size = full_path.stat().st_size
                files[rel_path] = FileInfo(hash=compute_file_hash(full_path), size=size)
            except OSError as e:
                logger.debug(f"Skipping unreadable file {rel_path}: {e}")

    return Snapshot(files=dict(sorted(files.items())))


def diff_snapshots(old: Snapshot | None, new: Snapshot) -> SnapshotDiff:
    """Compare two snapshots path by path.

    A missing ``old`` snapshot reports every path in ``new`` as added.
    """
    if old is None:
        return SnapshotDiff(added=sorted(new.files))

    diff = SnapshotDiff()
    for file_path in sorted(new.files):
        previous = old.files.get(file_path)
        if previous is None:
            diff.added.append(file_path)
        elif previous.hash != new.files[file_path].hash:
            diff.modified.append(file_path)

    diff.deleted = sorted(path for path in old.files if path not in new.files)
    return diff


def snapshot_diff_to_changes(
    diff: SnapshotDiff, old: Snapshot | None, new: Snapshot
) -> list[FileChange]:
    """Convert a snapshot diff into change records carrying both hashes."""
    old_files = old.files if old is not None else {}

    def _hash(files: dict[str, FileInfo], file_path: str) -> str | None:
        info = files.get(file_path)
        return info.hash if info else None

    changes = [
        FileChange(file_path=p, change_type=CHANGE_ADDED, new_hash=_hash(new.files, p))
        for p in diff.added
    ]
    changes.extend(
        FileChange(
            file_path=p,
            change_type=CHANGE_MODIFIED,
            old_hash=_hash(old_files, p),
            new_hash=_hash(new.files, p),
        )
        for p in diff.modified
    )
    changes.extend(
        FileChange(file_path=p, change_type=CHANGE_DELETED, old_hash=_hash(old_files, p))
        for p in diff.deleted
    )
    return changes


def save_snapshot(meta_dir: Path, snapshot: Snapshot) -> Path:
    """Write ``snapshot-<epoch_ms>.json`` under ``meta/snapshots``.

    Returns:
        Path of the written file.
    """
    snapshots_dir = meta_dir / SNAPSHOTS_DIR
    snapshots_dir.mkdir(parents=True, exist_ok=True)

    epoch_ms = int(time.time() * 1000)
    snapshot_path = snapshots_dir / f"{SNAPSHOT_FILE_PREFIX}{epoch_ms}{SNAPSHOT_FILE_SUFFIX}"
    # Two saves in the same millisecond must not overwrite each other
    while snapshot_path.exists():
        epoch_ms += 1
        snapshot_path = snapshots_dir / f"{SNAPSHOT_FILE_PREFIX}{epoch_ms}{SNAPSHOT_FILE_SUFFIX}"

    snapshot_path.write_text(json.dumps(snapshot.to_dict(), indent=2), encoding="utf-8")
    logger.debug(f"Saved snapshot with {len(snapshot.files)} files to {snapshot_path}")
    return snapshot_path


def load_latest_snapshot(meta_dir: Path) -> Snapshot | None:
    """Load the newest saved snapshot, or None if there is none or it is unreadable."""
    snapshots_dir = meta_dir / SNAPSHOTS_DIR
    if not snapshots_dir.is_dir():
        return None

    candidates = sorted(
        (
            p
            for p in snapshots_dir.iterdir()
            if p.name.startswith(SNAPSHOT_FILE_PREFIX) and p.name.endswith(SNAPSHOT_FILE_SUFFIX)
        ),
        key=lambda p: p.name,
        reverse=True,
    )
    if not candidates:
        return None

    try:
        data = json.loads(candidates[0].read_text(encoding="utf-8"))
        return Snapshot.from_dict(data)
    except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
        logger.warning(f"Failed to load snapshot {candidates[0]}: {e}")
        return None


def collect_snapshot_changes(
    project_root: Path | str, meta_dir: Path
) -> tuple[list[FileChange], Path, Snapshot]:
    """Snapshot the project, diff against the previous snapshot and save the new one.

    Returns:
        ``(changes, saved_snapshot_path, new_snapshot)``.
    """
    previous = load_latest_snapshot(meta_dir)
    current = create_snapshot(project_root)
    changes = snapshot_diff_to_changes(diff_snapshots(previous, current), previous, current)
    snapshot_path = save_snapshot(meta_dir, current)
    return changes, snapshot_path, current
