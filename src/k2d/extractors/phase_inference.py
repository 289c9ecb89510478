"""Project phase inference.

Maps skills used, files touched and free text to one of seven project
phases. The signal table is immutable and injected into
:class:`PhaseInferer`; the module-level functions use the default table.
"""

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType
from typing import Final

from k2d.constants import PHASE_TRANSITION_MIN_KEYWORDS, SKILL_INTRODUCED_MARKERS

logger = logging.getLogger(__name__)

PHASE_INIT: Final[str] = "init"
PHASE_REQUIREMENTS: Final[str] = "requirements"
PHASE_DESIGN: Final[str] = "design"
PHASE_DEVELOPMENT: Final[str] = "development"
PHASE_TESTING: Final[str] = "testing"
PHASE_DEPLOYMENT: Final[str] = "deployment"
PHASE_MAINTENANCE: Final[str] = "maintenance"

# Priority order; earlier phases win skill-based inference
PHASE_ORDER: Final[tuple[str, ...]] = (
    PHASE_INIT,
    PHASE_REQUIREMENTS,
    PHASE_DESIGN,
    PHASE_DEVELOPMENT,
    PHASE_TESTING,
    PHASE_DEPLOYMENT,
    PHASE_MAINTENANCE,
)

DEFAULT_PHASE: Final[str] = PHASE_DEVELOPMENT

PHASE_DESCRIPTIONS: Final[Mapping[str, str]] = MappingProxyType(
    {
        PHASE_INIT: "Project initialization",
        PHASE_REQUIREMENTS: "Requirements analysis",
        PHASE_DESIGN: "System design",
        PHASE_DEVELOPMENT: "Development and implementation",
        PHASE_TESTING: "Testing and verification",
        PHASE_DEPLOYMENT: "Deployment and release",
        PHASE_MAINTENANCE: "Maintenance and optimization",
    }
)


@dataclass(frozen=True)
class PhaseSignal:
    """Signals that point at one phase."""

    skills: tuple[str, ...] = ()
    file_patterns: tuple[re.Pattern[str], ...] = ()
    keywords: tuple[str, ...] = ()


def _patterns(*regexes: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(regex) for regex in regexes)


DEFAULT_PHASE_SIGNALS: Final[Mapping[str, PhaseSignal]] = MappingProxyType(
    {
        PHASE_INIT: PhaseSignal(
            skills=("meta-42cog", "skill-creator"),
            file_patterns=_patterns(r"\.42cog/", r"(?i)CLAUDE\.md$", r"package\.json$"),
            keywords=("初始化", "新项目", "init", "开始", "创建"),
        ),
        PHASE_REQUIREMENTS: PhaseSignal(
            skills=("pm-product-requirements", "pm-user-story"),
            file_patterns=_patterns(r"(?i)prd\.md$", r"(?i)requirements?\.md$", r"(?i)\.42cog/spec/.*prd"),
            keywords=("需求", "PRD", "功能", "用户故事", "requirement"),
        ),
        PHASE_DESIGN: PhaseSignal(
            skills=("dev-system-architecture", "dev-database-design", "dev-ui-design"),
            file_patterns=_patterns(
                r"(?i)architecture\.md$", r"(?i)schema\.sql$", r"(?i)design\.md$", r"\.42cog/spec/"
            ),
            keywords=("架构", "设计", "schema", "数据库设计", "UI设计"),
        ),
        PHASE_DEVELOPMENT: PhaseSignal(
            skills=("dev-coding",),
            # Source files, excluding *.test.* and *.spec.*
            file_patterns=_patterns(
                r"(?<!\.test|\.spec)\.tsx?$",
                r"(?<!\.test|\.spec)\.jsx?$",
                r"\.py$",
                r"\.go$",
                r"\.rs$",
            ),
            keywords=("实现", "开发", "编码", "implement", "代码"),
        ),
        PHASE_TESTING: PhaseSignal(
            skills=("dev-quality-assurance",),
            file_patterns=_patterns(
                r"\.test\.[jt]sx?$",
                r"\.spec\.[jt]sx?$",
                r"__tests__/",
                r"(?i)test.*\.[jt]sx?$",
                r"(?i)spec.*\.[jt]sx?$",
            ),
            keywords=("测试", "test", "bug", "修复", "QA"),
        ),
        PHASE_DEPLOYMENT: PhaseSignal(
            skills=("dev-deployment-v1",),
            file_patterns=_patterns(r"(?i)dockerfile$", r"\.yml$", r"\.yaml$", r"deploy", r"(?i)ci/cd"),
            keywords=("部署", "上线", "发布", "deploy", "release"),
        ),
        PHASE_MAINTENANCE: PhaseSignal(
            keywords=("维护", "优化", "重构", "refactor", "修复"),
        ),
    }
)


class PhaseInferer:
    """Heuristic phase classifier over an immutable signal table.

    Args:
        signals: Phase name to signals. Phases missing from ``order`` are ignored.
        order: Phase priority, earliest first.
    """

    def __init__(
        self,
        signals: Mapping[str, PhaseSignal] = DEFAULT_PHASE_SIGNALS,
        order: Sequence[str] = PHASE_ORDER,
    ):
        self._signals = MappingProxyType(dict(signals))
        self._order = tuple(phase for phase in order if phase in self._signals)

    @property
    def order(self) -> tuple[str, ...]:
        return self._order

    def _best_scoring(self, scores: Mapping[str, int]) -> str:
        # Defaults to development; otherwise the earliest phase with the top score wins
        best_phase = DEFAULT_PHASE
        best_score = 0
        for phase in self._order:
            if scores.get(phase, 0) > best_score:
                best_phase = phase
                best_score = scores[phase]
        return best_phase

    def from_skills(self, skill_names: Iterable[str]) -> str:
        """Earliest phase whose skill set intersects ``skill_names``."""
        used = set(skill_names)
        for phase in self._order:
            if used.intersection(self._signals[phase].skills):
                return phase
        return DEFAULT_PHASE

    def from_files(self, file_paths: Iterable[str]) -> str:
        """Phase whose file patterns match the given paths most often."""
        scores = dict.fromkeys(self._order, 0)
        for file_path in file_paths:
            for phase in self._order:
                scores[phase] += sum(
                    1 for pattern in self._signals[phase].file_patterns if pattern.search(file_path)
                )
        return self._best_scoring(scores)

    def from_context(self, context: str) -> str:
        """Phase whose keywords occur most often in ``context`` (case-insensitive)."""
        text = context.lower()
        scores = {
            phase: sum(1 for keyword in self._signals[phase].keywords if keyword.lower() in text)
            for phase in self._order
        }
        return self._best_scoring(scores)

    def infer(
        self,
        skill_names: Sequence[str] | None = None,
        file_paths: Sequence[str] | None = None,
        context: str | None = None,
    ) -> str:
        """Majority vote over every sub-inference that has input.

        On a tie the first sub-result (skills, then files, then context) wins.
        """
        votes: list[str] = []
        if skill_names:
            votes.append(self.from_skills(skill_names))
        if file_paths:
            votes.append(self.from_files(file_paths))
        if context:
            votes.append(self.from_context(context))

        if not votes:
            return DEFAULT_PHASE

        counts: dict[str, int] = {}
        for phase in votes:
            counts[phase] = counts.get(phase, 0) + 1

        best_phase = votes[0]
        best_count = 1
        for phase, count in counts.items():
            if count > best_count:
                best_phase = phase
                best_count = count
        return best_phase

    def detect_transition(self, current_phase: str, signals: Iterable[str]) -> str | None:
        """Return the phase the signals point to, or None to stay in ``current_phase``.

        A phase qualifies when one of its skills is named alongside an
        introduction marker, or when enough of its keywords appear.
        """
        text = " ".join(signals).lower()
        introduced = any(marker in text for marker in SKILL_INTRODUCED_MARKERS)

        for phase in self._order:
            if phase == current_phase:
                continue
            signal = self._signals[phase]
            if introduced and any(skill.lower() in text for skill in signal.skills):
                return phase
            matches = sum(1 for keyword in signal.keywords if keyword.lower() in text)
            if matches >= PHASE_TRANSITION_MIN_KEYWORDS:
                return phase
        return None


_default_inferer = PhaseInferer()


def infer_phase_from_skills(skill_names: Iterable[str]) -> str:
    return _default_inferer.from_skills(skill_names)


def infer_phase_from_files(file_paths: Iterable[str]) -> str:
    return _default_inferer.from_files(file_paths)


def infer_phase_from_context(context: str) -> str:
    return _default_inferer.from_context(context)


def infer_project_phase(
    skill_names: Sequence[str] | None = None,
    file_paths: Sequence[str] | None = None,
    context: str | None = None,
) -> str:
    """Infer the project phase with the default signal table."""
    return _default_inferer.infer(skill_names=skill_names, file_paths=file_paths, context=context)


def detect_phase_transition(current_phase: str, signals: Iterable[str]) -> str | None:
    return _default_inferer.detect_transition(current_phase, signals)


def get_phase_description(phase: str) -> str:
    """Human-readable label for a phase; the phase name itself when unknown."""
    return PHASE_DESCRIPTIONS.get(phase, phase)


def get_phase_order() -> list[str]:
    """A fresh copy of the phase priority order."""
    return list(PHASE_ORDER)
