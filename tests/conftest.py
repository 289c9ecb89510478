"""Pytest configuration and fixtures for k2d tests."""

import json
import logging
import os
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from k2d.store import K2DStore
from k2d.utils import redact


@pytest.fixture
def temp_project_dir(tmp_path: Path) -> Iterator[Path]:
    """Create a temporary project directory and chdir into it.

    Yields:
        Path to the project directory
    """
    project_dir = tmp_path / "project"
    project_dir.mkdir()
    original_cwd = Path.cwd()
    try:
        os.chdir(project_dir)
        yield project_dir
    finally:
        os.chdir(original_cwd)


@pytest.fixture
def store(tmp_path: Path) -> Iterator[K2DStore]:
    """A K2DStore backed by a real temp SQLite database."""
    with K2DStore(tmp_path / "meta" / "k2d.db") as k2d_store:
        yield k2d_store


@pytest.fixture
def write_transcript(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing transcript entries as JSONL.

    Usage:
        path = write_transcript([user("hi"), assistant("hello")], name="abc")
    """
    transcripts_dir = tmp_path / "transcripts"
    transcripts_dir.mkdir(exist_ok=True)

    def _write(entries: list[Any], name: str = "session-1", extra_lines: list[str] | None = None) -> Path:
        path = transcripts_dir / f"{name}.jsonl"
        lines = [json.dumps(entry, ensure_ascii=False) for entry in entries]
        lines.extend(extra_lines or [])
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture(autouse=True)
def reset_redaction_patterns() -> Iterator[None]:
    """Tests that load project patterns must not leak them into other tests."""
    yield
    redact.initialize(None)


@pytest.fixture(autouse=True)
def restore_k2d_logger() -> Iterator[None]:
    """Commands install a file handler on the k2d logger; undo it after each test."""
    k2d_logger = logging.getLogger("k2d")
    saved = (list(k2d_logger.handlers), k2d_logger.level, k2d_logger.propagate)
    yield
    for handler in k2d_logger.handlers:
        if handler not in saved[0]:
            handler.close()
    k2d_logger.handlers[:] = saved[0]
    k2d_logger.setLevel(saved[1])
    k2d_logger.propagate = saved[2]
