"""Turn-end capture pipeline.

Runs once per conversational turn, triggered by the agent's Stop hook.
It reads the hook payload, reconstructs the latest turn from the
transcript, collects file and configuration changes, persists everything
and advances the run-to-run counters kept in the store.

On a fresh store the whole transcript history of the project is imported
first, so the database starts out complete.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from k2d import __version__
from k2d.bootstrap import initialize_meta_directory
from k2d.collectors.config_changes import collect_claude_config, detect_config_changes
from k2d.collectors.file_changes import collect_git_changes, collect_snapshot_changes
from k2d.collectors.models import ConfigSnapshot, FileChange, TurnData
from k2d.collectors.transcript import parse_full_transcript, parse_latest_turn
from k2d.config.paths import (
    DB_FILENAME,
    META_DIR,
    REDACTION_PATTERNS_FILE,
    SKILL_KEYWORDS_FILE,
    TRANSCRIPT_FILE_SUFFIX,
)
from k2d.config.settings import CaptureSettings, capture_settings
from k2d.constants import (
    CONFIG_KEY_CURRENT_SESSION_ID,
    CONFIG_KEY_CURRENT_TURN_NUMBER,
    CONFIG_KEY_INITIALIZED_AT,
    CONFIG_KEY_LAST_CONFIG_SNAPSHOT,
    CONFIG_KEY_TRACKING_MODE,
    CONFIG_KEY_VERSION,
    HOOK_SKIP_REASON_STOP_HOOK_ACTIVE,
    TRACKING_MODE_GIT,
)
from k2d.exceptions import HookInputError, TranscriptError
from k2d.extractors.phase_inference import PhaseInferer
from k2d.extractors.skill_inference import SkillInferer, build_skill_inferer
from k2d.store import K2DStore
from k2d.utils import redact
from k2d.utils.git import get_tracking_mode
from k2d.utils.logging import configure_logging

logger = logging.getLogger(__name__)


class HookInput(BaseModel):
    """Stop-hook payload read from stdin."""

    model_config = ConfigDict(extra="ignore")

    session_id: str = ""
    transcript_path: str = Field(..., min_length=1)
    stop_hook_active: bool = False


class HookOutput(BaseModel):
    """Result printed to stdout; unset fields are omitted."""

    skipped: bool
    reason: str | None = None
    turn_id: int | None = None
    imported: int | None = None
    imported_sessions: int | None = None
    imported_tools: int | None = None

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)


@dataclass
class ImportStats:
    sessions: int = 0
    turns: int = 0
    tools: int = 0


def parse_hook_input(raw: str) -> HookInput:
    """Parse the JSON payload.

    Raises:
        HookInputError: If the payload is not a JSON object or lacks
            ``transcript_path``.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise HookInputError(f"Hook payload is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise HookInputError("Hook payload must be a JSON object")
    try:
        return HookInput.model_validate(data)
    except ValidationError as e:
        field = ".".join(str(part) for part in e.errors()[0]["loc"]) if e.errors() else None
        raise HookInputError("Invalid hook payload", field=field) from e


def session_id_for(transcript_path: Path) -> str:
    """Sessions are keyed by transcript file stem."""
    return transcript_path.stem


def ensure_store_initialized(store: K2DStore, project_root: Path) -> bool:
    """Record tracking mode, initialization time and version on a new store.

    Returns:
        True if the store was initialized by this call.
    """
    if store.get_config(CONFIG_KEY_TRACKING_MODE) is not None:
        return False
    tracking_mode = get_tracking_mode(project_root)
    store.set_config(CONFIG_KEY_TRACKING_MODE, tracking_mode)
    store.set_config(CONFIG_KEY_INITIALIZED_AT, datetime.now().isoformat())
    store.set_config(CONFIG_KEY_VERSION, __version__)
    logger.info(f"Initialized k2d store ({tracking_mode} tracking) at {store.db_path}")
    return True


class TurnEndProcessor:
    """Captures one turn into the store of a project.

    Args:
        project_root: Project the agent is working in.
        store: Open store for ``project_root``.
        skill_inferer: Skill introduction reasoning.
        phase_inferer: Project phase classifier.
        settings: Capture settings.
    """

    def __init__(
        self,
        project_root: Path,
        store: K2DStore,
        skill_inferer: SkillInferer,
        phase_inferer: PhaseInferer,
        settings: CaptureSettings | None = None,
    ):
        self.project_root = project_root
        self.meta_dir = project_root / META_DIR
        self.store = store
        self.skill_inferer = skill_inferer
        self.phase_inferer = phase_inferer
        self.settings = settings or capture_settings

    # ------------------------------------------------------------------
    # History import
    # ------------------------------------------------------------------

    def import_history(self, current_transcript: Path) -> ImportStats:
        """Import every transcript next to ``current_transcript``.

        Sessions already in the store are skipped. The last turn of the
        current session is left for the regular capture of this run.
        """
        stats = ImportStats()
        transcript_dir = current_transcript.parent
        try:
            transcripts = sorted(transcript_dir.glob(f"*{TRANSCRIPT_FILE_SUFFIX}"))
        except OSError as e:
            logger.warning(f"Cannot list transcripts in {transcript_dir}: {e}")
            return stats

        current = current_transcript.resolve()
        for transcript in transcripts:
            is_current = transcript.resolve() == current
            try:
                turn_count, tool_count = self._import_session(
                    transcript, turn_offset=stats.turns, exclude_last_turn=is_current
                )
            except TranscriptError as e:
                if is_current:
                    raise
                logger.warning(f"Skipping unreadable transcript {transcript}: {e}")
                continue

            if turn_count > 0:
                stats.sessions += 1
                stats.turns += turn_count
                stats.tools += tool_count

        self.store.set_config(CONFIG_KEY_CURRENT_TURN_NUMBER, str(stats.turns))
        if stats.turns:
            logger.info(
                f"Imported {stats.turns} historical turns from {stats.sessions} sessions "
                f"({stats.tools} tool calls)"
            )
        return stats

    def _import_session(
        self, transcript: Path, turn_offset: int, exclude_last_turn: bool
    ) -> tuple[int, int]:
        session_id = session_id_for(transcript)
        if self.store.session_exists(session_id):
            return 0, 0

        turns = parse_full_transcript(transcript, exclude_latest=exclude_last_turn)
        if not turns:
            return 0, 0

        self.store.create_session(session_id, str(self.project_root), turn_count=len(turns))
        config_snapshot = collect_claude_config(self.project_root)

        tool_count = 0
        for index, turn in enumerate(turns):
            turn_id = self.store.save_complete_turn(
                session_id,
                turn_offset + index + 1,
                turn,
                config_snapshot=config_snapshot,
            )
            tool_count += len(turn.tool_calls)
            self._update_skill_lifecycle(turn, turn_id)

        return len(turns), tool_count

    # ------------------------------------------------------------------
    # Per-turn capture
    # ------------------------------------------------------------------

    def _switch_session(self, session_id: str) -> None:
        if self.store.get_config(CONFIG_KEY_CURRENT_SESSION_ID) == session_id:
            return
        _, created = self.store.get_or_create_session(session_id, str(self.project_root))
        self.store.set_config(CONFIG_KEY_CURRENT_SESSION_ID, session_id)
        logger.debug(f"Switched to session {session_id} (new={created})")

    def _next_turn_number(self) -> int:
        raw = self.store.get_config(CONFIG_KEY_CURRENT_TURN_NUMBER) or "0"
        try:
            turn_number = int(raw) + 1
        except ValueError:
            logger.warning(f"Invalid turn counter {raw!r}, restarting from the stored turn count")
            turn_number = self.store.count_turns() + 1
        self.store.set_config(CONFIG_KEY_CURRENT_TURN_NUMBER, str(turn_number))
        return turn_number

    def _load_last_config(self) -> ConfigSnapshot | None:
        raw = self.store.get_config(CONFIG_KEY_LAST_CONFIG_SNAPSHOT)
        if not raw:
            return None
        try:
            return ConfigSnapshot.from_json(raw)
        except (ValueError, TypeError) as e:
            logger.warning(f"Ignoring unreadable config snapshot: {e}")
            return None

    def _update_skill_lifecycle(self, turn: TurnData, turn_id: int) -> None:
        for usage in turn.skill_usages:
            inference = self.skill_inferer.infer_introduction_reason(turn.user_message, usage.skill_name)
            self.store.update_skill_lifecycle(usage.skill_name, turn_id, inference.reason)

    def _update_phase(self, turn: TurnData, turn_id: int, file_changes: list[FileChange]) -> None:
        skill_names = turn.skill_names
        phase = self.phase_inferer.infer(
            skill_names=skill_names,
            file_paths=[change.file_path for change in file_changes],
            context=turn.user_message,
        )
        open_phase = self.store.get_open_phase()
        if open_phase is None or open_phase.phase_name != phase:
            self.store.record_phase_transition(phase, turn_id, skill_names, turn.tool_names)

    def capture(self, transcript_path: Path) -> HookOutput:
        """Capture the latest turn of ``transcript_path``."""
        ensure_store_initialized(self.store, self.project_root)

        stats = ImportStats()
        if self.settings.import_history and self.store.count_turns() == 0:
            stats = self.import_history(transcript_path)

        session_id = session_id_for(transcript_path)
        self._switch_session(session_id)
        turn_number = self._next_turn_number()

        turn = parse_latest_turn(transcript_path)

        tracking_mode = self.store.get_config(CONFIG_KEY_TRACKING_MODE)
        snapshot_record: tuple[Path, int] | None = None
        if tracking_mode == TRACKING_MODE_GIT:
            file_changes = collect_git_changes(self.project_root)
        else:
            file_changes, snapshot_path, snapshot = collect_snapshot_changes(
                self.project_root, self.meta_dir
            )
            snapshot_record = (snapshot_path, len(snapshot.files))

        config_snapshot = collect_claude_config(self.project_root)
        config_changes = detect_config_changes(self._load_last_config(), config_snapshot)
        self.store.set_config(CONFIG_KEY_LAST_CONFIG_SNAPSHOT, config_snapshot.to_json())

        turn_id = self.store.save_complete_turn(
            session_id,
            turn_number,
            turn,
            file_changes=file_changes,
            config_snapshot=config_snapshot,
            config_changes=config_changes,
        )
        if snapshot_record is not None:
            self.store.save_snapshot_record(turn_id, *snapshot_record)

        self._update_skill_lifecycle(turn, turn_id)
        self._update_phase(turn, turn_id, file_changes)
        self.store.recount_session_turns(session_id)

        logger.info(
            f"Captured turn {turn_number} (id={turn_id}): {len(turn.tool_calls)} tools, "
            f"{len(file_changes)} file changes, {len(config_changes)} config changes"
        )

        output = HookOutput(skipped=False, turn_id=turn_id)
        if stats.turns > 0:
            output.imported = stats.turns
            output.imported_sessions = stats.sessions
            output.imported_tools = stats.tools
        return output


def run_turn_end(payload: HookInput, project_root: Path) -> HookOutput:
    """Run the capture pipeline for one hook invocation.

    Raises:
        K2DError: On structural failures (unreadable transcript, unusable database).
    """
    if payload.stop_hook_active:
        return HookOutput(skipped=True, reason=HOOK_SKIP_REASON_STOP_HOOK_ACTIVE)

    meta_dir = initialize_meta_directory(project_root)
    redact.initialize(project_root / REDACTION_PATTERNS_FILE)
    skill_inferer = build_skill_inferer(project_root / SKILL_KEYWORDS_FILE)

    with K2DStore(meta_dir / DB_FILENAME) as store:
        processor = TurnEndProcessor(project_root, store, skill_inferer, PhaseInferer())
        return processor.capture(Path(payload.transcript_path))


def handle_hook(raw_input: str, project_root: Path, log_level: str | None = None) -> HookOutput:
    """Hook boundary: never raises, reports failures as a skipped run.

    ``meta/k2d.log`` is only set up once the payload is known not to be a
    guarded run, so a guarded run leaves the project untouched.
    """
    meta_dir = project_root / META_DIR
    try:
        payload = parse_hook_input(raw_input)
    except HookInputError as e:
        configure_logging(meta_dir, log_level)
        logger.error(f"Rejected hook payload: {e}")
        return HookOutput(skipped=True, reason=str(e))

    if payload.stop_hook_active:
        return HookOutput(skipped=True, reason=HOOK_SKIP_REASON_STOP_HOOK_ACTIVE)

    configure_logging(meta_dir, log_level)
    try:
        return run_turn_end(payload, project_root)
    except Exception as e:
        logger.error(f"Turn capture failed: {e}", exc_info=True)
        return HookOutput(skipped=True, reason=str(e))
