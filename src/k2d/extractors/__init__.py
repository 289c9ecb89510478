"""Heuristic extractors: project phase and skill introduction inference."""

from k2d.extractors.phase_inference import (
    PHASE_ORDER,
    PhaseInferer,
    PhaseSignal,
    detect_phase_transition,
    get_phase_description,
    get_phase_order,
    infer_project_phase,
)
from k2d.extractors.skill_inference import (
    InferenceResult,
    SkillInferer,
    SkillKeywordTableBuilder,
    SkillRecommendation,
    build_skill_inferer,
    get_known_skill_names,
    infer_multiple_skill_reasons,
    infer_skill_introduction_reason,
    recommend_skills,
)

__all__ = [
    "PHASE_ORDER",
    "InferenceResult",
    "PhaseInferer",
    "PhaseSignal",
    "SkillInferer",
    "SkillKeywordTableBuilder",
    "SkillRecommendation",
    "build_skill_inferer",
    "detect_phase_transition",
    "get_known_skill_names",
    "get_phase_description",
    "get_phase_order",
    "infer_multiple_skill_reasons",
    "infer_project_phase",
    "infer_skill_introduction_reason",
    "recommend_skills",
]
