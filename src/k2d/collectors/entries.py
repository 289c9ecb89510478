"""Normalized transcript entries.

Transcript lines come in several shapes: the role may sit in ``role``,
``message.role`` or ``type``, and the body may be a plain string or a list
of typed content blocks under ``content`` or ``message.content``. Every
line is normalized once into a :class:`TranscriptEntry` so the turn
reconstructor never inspects optional fields itself.
"""

import json
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from k2d.constants import (
    BLOCK_TYPE_TEXT,
    BLOCK_TYPE_TOOL_RESULT,
    BLOCK_TYPE_TOOL_USE,
    ROLE_ASSISTANT,
    ROLE_USER,
)
from k2d.exceptions import TranscriptNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContentBlock:
    """One typed block of an entry body."""

    type: str
    text: str | None = None
    name: str | None = None
    input: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: Any) -> "ContentBlock | None":
        if not isinstance(raw, dict):
            return None
        block_input = raw.get("input")
        text = raw.get("text")
        name = raw.get("name")
        return cls(
            type=str(raw.get("type") or ""),
            text=text if isinstance(text, str) else None,
            name=name if isinstance(name, str) else None,
            input=block_input if isinstance(block_input, dict) else {},
        )


@dataclass(frozen=True)
class TranscriptEntry:
    """A single normalized transcript event.

    ``body`` is either the plain string content or a tuple of content
    blocks; ``None`` when the line had no usable content.
    """

    role: str | None
    body: str | tuple[ContentBlock, ...] | None = None
    raw_tool_calls: tuple[dict[str, Any], ...] = ()

    @property
    def is_user(self) -> bool:
        return self.role == ROLE_USER

    @property
    def is_assistant(self) -> bool:
        return self.role == ROLE_ASSISTANT

    @property
    def blocks(self) -> tuple[ContentBlock, ...]:
        return self.body if isinstance(self.body, tuple) else ()

    @property
    def is_tool_result_echo(self) -> bool:
        """True when the body consists entirely of ``tool_result`` blocks."""
        blocks = self.blocks
        return bool(blocks) and all(block.type == BLOCK_TYPE_TOOL_RESULT for block in blocks)

    @property
    def is_turn_boundary(self) -> bool:
        """A real user message, as opposed to tool output fed back to the model."""
        return self.is_user and not self.is_tool_result_echo

    @property
    def text(self) -> str:
        """String body verbatim, or the ``text`` blocks joined with newlines."""
        if isinstance(self.body, str):
            return self.body
        return "\n".join(
            block.text or "" for block in self.blocks if block.type == BLOCK_TYPE_TEXT
        )

    @property
    def tool_use_blocks(self) -> list[ContentBlock]:
        return [block for block in self.blocks if block.type == BLOCK_TYPE_TOOL_USE and block.name]


def _resolve_role(raw: dict[str, Any], message: dict[str, Any]) -> str | None:
    for candidate in (raw.get("role"), message.get("role"), raw.get("type")):
        if candidate and isinstance(candidate, str):
            return candidate
    return None


def _resolve_body(raw: dict[str, Any], message: dict[str, Any]) -> str | tuple[ContentBlock, ...] | None:
    content = raw.get("content") or message.get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        blocks = (ContentBlock.from_raw(item) for item in content)
        return tuple(block for block in blocks if block is not None)
    return None


def parse_entry(raw: Any) -> TranscriptEntry | None:
    """Normalize one decoded JSON value into a transcript entry.

    Returns:
        The entry, or None when ``raw`` is not a JSON object.
    """
    if not isinstance(raw, dict):
        return None
    message = raw.get("message")
    if not isinstance(message, dict):
        message = {}

    raw_tool_calls = raw.get("tool_calls")
    tool_calls: tuple[dict[str, Any], ...] = ()
    if isinstance(raw_tool_calls, list):
        tool_calls = tuple(
            call for call in raw_tool_calls if isinstance(call, dict) and isinstance(call.get("name"), str)
        )

    return TranscriptEntry(
        role=_resolve_role(raw, message),
        body=_resolve_body(raw, message),
        raw_tool_calls=tool_calls,
    )


def parse_lines(lines: Iterable[str]) -> Iterator[TranscriptEntry]:
    """Decode JSONL lines into entries, skipping blank and malformed ones."""
    for line_number, line in enumerate(lines, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            raw = json.loads(line)
        except json.JSONDecodeError:
            logger.debug(f"Skipping malformed transcript line {line_number}")
            continue
        entry = parse_entry(raw)
        if entry is not None:
            yield entry


def read_transcript_entries(transcript_path: Path | str) -> list[TranscriptEntry]:
    """Read and normalize every entry of a JSONL transcript.

    Raises:
        TranscriptNotFoundError: If the file is missing or cannot be read.
    """
    path = Path(transcript_path)
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise TranscriptNotFoundError(f"Cannot read transcript: {e}", transcript_path=path) from e

    return list(parse_lines(content.splitlines()))
