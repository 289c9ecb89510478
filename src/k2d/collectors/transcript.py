"""Turn reconstruction from agent transcripts.

A turn is one real user message plus every assistant entry up to the
next real user message. User entries made only of ``tool_result`` blocks
are tool output echoed back to the model and never start a turn.

Both public modes share a single forward fold, :func:`iter_turns`:

- full history keeps every turn that has a user message and at least one
  assistant entry;
- latest turn is simply the last turn the fold produces.
"""

import json
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from k2d.collectors.entries import TranscriptEntry, read_transcript_entries
from k2d.collectors.models import McpCall, SkillUsage, ToolCall, TurnData
from k2d.constants import (
    CODE_TOOLS,
    FILE_TOOLS,
    MCP_MIN_NAME_SEGMENTS,
    MCP_NAME_SEPARATOR,
    MCP_TOOL_PREFIX,
    RESULT_STATUS_FAILURE,
    RESULT_STATUS_SUCCESS,
    SEARCH_TOOLS,
    SKILL_OUTCOME_FAILED,
    SKILL_OUTCOME_SUCCESS,
    SKILL_PARAM_ARGS,
    SKILL_PARAM_NAME,
    SKILL_TOOL_NAME,
    SKILL_TRIGGER_USER,
    TOOL_TYPE_CODE,
    TOOL_TYPE_FILE,
    TOOL_TYPE_MCP,
    TOOL_TYPE_OTHER,
    TOOL_TYPE_SEARCH,
)
from k2d.utils.redact import redact_secrets

logger = logging.getLogger(__name__)


def classify_tool_type(tool_name: str) -> str:
    """Map a tool name to ``file``/``code``/``search``/``mcp``/``other``."""
    if tool_name in FILE_TOOLS:
        return TOOL_TYPE_FILE
    if tool_name in CODE_TOOLS:
        return TOOL_TYPE_CODE
    if tool_name in SEARCH_TOOLS:
        return TOOL_TYPE_SEARCH
    if tool_name.startswith(MCP_TOOL_PREFIX):
        return TOOL_TYPE_MCP
    return TOOL_TYPE_OTHER


def _tool_call_from_raw(raw: dict[str, Any]) -> ToolCall:
    name = raw["name"]
    parameters = raw.get("parameters") or raw.get("input") or {}
    if not isinstance(parameters, dict):
        parameters = {}

    result = raw.get("result")
    if result is not None and not isinstance(result, str):
        result = json.dumps(result, ensure_ascii=False, default=str)

    duration = raw.get("duration_ms")
    if isinstance(duration, bool) or not isinstance(duration, (int, float)):
        duration = None

    return ToolCall(
        name=name,
        tool_type=classify_tool_type(name),
        parameters=parameters,
        result_status=RESULT_STATUS_SUCCESS if raw.get("status") == "success" else RESULT_STATUS_FAILURE,
        result_summary=result or None,
        execution_time_ms=int(duration) if duration else None,
    )


def extract_tool_calls(entry: TranscriptEntry) -> list[ToolCall]:
    """Extract tool calls from one assistant entry.

    Calls listed in the explicit ``tool_calls`` field come first. A
    ``tool_use`` content block is added only when no call with the same
    name was already extracted from this entry.
    """
    tool_calls = [_tool_call_from_raw(raw) for raw in entry.raw_tool_calls]

    for block in entry.tool_use_blocks:
        name = block.name or ""
        if any(call.name == name for call in tool_calls):
            continue
        tool_calls.append(
            ToolCall(
                name=name,
                tool_type=classify_tool_type(name),
                parameters=dict(block.input),
            )
        )

    return tool_calls


def extract_skill_usages(tool_calls: Iterable[ToolCall]) -> list[SkillUsage]:
    """Derive skill usages from ``Skill`` tool calls carrying a ``skill`` parameter."""
    usages: list[SkillUsage] = []
    for call in tool_calls:
        if call.name != SKILL_TOOL_NAME:
            continue
        skill_name = call.parameters.get(SKILL_PARAM_NAME)
        if not skill_name or not isinstance(skill_name, str):
            continue
        args = call.parameters.get(SKILL_PARAM_ARGS)
        usages.append(
            SkillUsage(
                skill_name=skill_name,
                trigger_type=SKILL_TRIGGER_USER,
                context=str(args) if args else None,
                outcome=(
                    SKILL_OUTCOME_SUCCESS
                    if call.result_status == RESULT_STATUS_SUCCESS
                    else SKILL_OUTCOME_FAILED
                ),
            )
        )
    return usages


def split_mcp_tool_name(tool_name: str) -> tuple[str, str] | None:
    """Split ``mcp__<server>__<tool...>`` into ``(server, tool)``.

    The tool part keeps any further ``__`` separators.
    """
    if not tool_name.startswith(MCP_TOOL_PREFIX):
        return None
    parts = tool_name.split(MCP_NAME_SEPARATOR)
    if len(parts) < MCP_MIN_NAME_SEGMENTS:
        return None
    return parts[1], MCP_NAME_SEPARATOR.join(parts[2:])


def extract_mcp_calls(tool_calls: Iterable[ToolCall]) -> list[McpCall]:
    """Derive MCP calls from ``mcp__``-prefixed tool calls."""
    calls: list[McpCall] = []
    for call in tool_calls:
        split = split_mcp_tool_name(call.name)
        if split is None:
            continue
        server_name, tool_name = split
        calls.append(McpCall(server_name=server_name, tool_name=tool_name, request=call.parameters))
    return calls


@dataclass
class RawTurn:
    """Entries grouped under one turn, before aggregation.

    ``user`` is None for assistant activity that precedes any real user
    message in the log.
    """

    user: TranscriptEntry | None = None
    assistants: list[TranscriptEntry] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.user is not None and bool(self.assistants)


def iter_turns(entries: Iterable[TranscriptEntry]) -> Iterator[RawTurn]:
    """Fold entries into turns, yielding each one once it is closed.

    Tool-result echoes and entries with other roles are absorbed into the
    current turn without being recorded. The trailing turn is always
    yielded, even when it holds no assistant entries yet.
    """
    current: RawTurn | None = None
    for entry in entries:
        if entry.is_turn_boundary:
            if current is not None:
                yield current
            current = RawTurn(user=entry)
        elif entry.is_assistant:
            if current is None:
                current = RawTurn()
            current.assistants.append(entry)
    if current is not None:
        yield current


def build_turn(raw: RawTurn) -> TurnData:
    """Aggregate a raw turn into :class:`TurnData`.

    Tool calls are deduplicated by name and serialized parameters, skill
    usages by skill name; MCP calls are kept as-is. Text is redacted.
    """
    fragments: list[str] = []
    tool_calls: list[ToolCall] = []
    seen_calls: set[tuple[str, str]] = set()
    skill_usages: list[SkillUsage] = []
    seen_skills: set[str] = set()
    mcp_calls: list[McpCall] = []

    for entry in raw.assistants:
        text = entry.text
        if text:
            fragments.append(text)

        entry_calls = extract_tool_calls(entry)
        for call in entry_calls:
            if call.dedup_key not in seen_calls:
                seen_calls.add(call.dedup_key)
                tool_calls.append(call)

        for usage in extract_skill_usages(entry_calls):
            if usage.skill_name not in seen_skills:
                seen_skills.add(usage.skill_name)
                skill_usages.append(usage)

        mcp_calls.extend(extract_mcp_calls(entry_calls))

    user_message = raw.user.text if raw.user is not None else ""
    return TurnData(
        user_message=redact_secrets(user_message),
        assistant_response=redact_secrets("\n".join(fragments)),
        tool_calls=tool_calls,
        skill_usages=skill_usages,
        mcp_calls=mcp_calls,
    )


def reconstruct_turns(entries: Iterable[TranscriptEntry], exclude_latest: bool = False) -> list[TurnData]:
    """Every complete turn in the log, oldest first.

    With ``exclude_latest`` the turn :func:`latest_turn` returns is left out.
    A trailing user message still waiting for a reply is that turn, so the
    complete turn before it is kept.
    """
    raw_turns = list(iter_turns(entries))
    if exclude_latest and raw_turns:
        raw_turns.pop()
    return [build_turn(raw) for raw in raw_turns if raw.is_complete]


def latest_turn(entries: Iterable[TranscriptEntry]) -> TurnData:
    """The last turn in the log; an empty turn when the log has none."""
    last: RawTurn | None = None
    for raw in iter_turns(entries):
        last = raw
    return build_turn(last) if last is not None else TurnData()


def parse_full_transcript(transcript_path: Path | str, exclude_latest: bool = False) -> list[TurnData]:
    """Reconstruct every turn from a transcript file.

    Raises:
        TranscriptNotFoundError: If the file is missing or unreadable.
    """
    turns = reconstruct_turns(read_transcript_entries(transcript_path), exclude_latest=exclude_latest)
    logger.debug(f"Parsed {len(turns)} turns from {transcript_path}")
    return turns


def parse_latest_turn(transcript_path: Path | str) -> TurnData:
    """Reconstruct the most recent turn from a transcript file.

    Raises:
        TranscriptNotFoundError: If the file is missing or unreadable.
    """
    return latest_turn(read_transcript_entries(transcript_path))
