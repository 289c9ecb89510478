"""Skill introduction inference.

Explains why a skill was likely brought into a conversation by matching
its keywords against the surrounding text, and recommends skills for a
piece of text.

The keyword table is immutable once built. Extra keywords are registered
up front through :class:`SkillKeywordTableBuilder`, optionally from a YAML
file of the form ``{skill-name: [keyword, ...]}``.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Final

import yaml

from k2d.constants import (
    CONFIDENCE_HIGH,
    CONFIDENCE_LOW,
    CONFIDENCE_MEDIUM,
    HIGH_CONFIDENCE_MIN_MATCHES,
)
from k2d.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

SkillKeywordTable = Mapping[str, tuple[str, ...]]

DEFAULT_SKILL_KEYWORDS: Final[SkillKeywordTable] = MappingProxyType(
    {
        "meta-42cog": ("新项目", "开始", "初始化", "init", "约束", "规范", "框架"),
        "pm-product-requirements": (
            "需求",
            "功能",
            "用户",
            "PRD",
            "requirement",
            "产品",
            "特性",
            "feature",
        ),
        "pm-user-story": ("用户故事", "user story", "故事", "场景", "scenario"),
        "dev-system-architecture": ("架构", "设计", "技术方案", "architecture", "系统设计", "模块"),
        "dev-database-design": ("数据库", "表", "schema", "database", "model", "模型", "DB", "SQL"),
        "dev-coding": ("实现", "开发", "写代码", "implement", "code", "编码", "编写"),
        "dev-ui-design": ("UI", "界面", "前端", "组件", "样式", "design", "frontend"),
        "dev-quality-assurance": ("测试", "bug", "修复", "test", "fix", "QA", "质量", "单测"),
        "dev-deployment-v1": ("部署", "上线", "发布", "deploy", "release", "上传", "生产"),
        "skill-creator": ("技能", "skill", "创建技能", "新技能"),
        "creative-intelligence": ("头脑风暴", "创意", "构思", "研究", "SCAMPER", "brainstorm"),
        "deep-reading-analyst": ("分析", "理解", "阅读", "文章", "论文", "深入"),
    }
)


@dataclass(frozen=True)
class InferenceResult:
    """Why a skill was probably introduced."""

    reason: str
    confidence: str
    keywords: tuple[str, ...] = ()


@dataclass(frozen=True)
class SkillRecommendation:
    skill: str
    confidence: str
    score: int


@dataclass
class SkillKeywordTableBuilder:
    """Collects keyword registrations and freezes them into a table.

    Example:
        table = SkillKeywordTableBuilder().add("my-skill", ["deploy", "k8s"]).build()
    """

    _keywords: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def from_defaults(cls) -> "SkillKeywordTableBuilder":
        builder = cls()
        for skill, keywords in DEFAULT_SKILL_KEYWORDS.items():
            builder.add(skill, keywords)
        return builder

    def add(self, skill_name: str, keywords: Iterable[str]) -> "SkillKeywordTableBuilder":
        """Append keywords for a skill, creating its entry if needed."""
        self._keywords.setdefault(skill_name, []).extend(keywords)
        return self

    def add_from_yaml(self, path: Path) -> "SkillKeywordTableBuilder":
        """Register keywords from a ``{skill: [keyword, ...]}`` YAML file.

        Raises:
            ConfigurationError: If the file is not valid YAML or has the wrong shape.
        """
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot read skill keywords: {e}", config_file=path) from e

        if data is None:
            return self
        if not isinstance(data, dict):
            raise ConfigurationError("Skill keywords file must be a mapping", config_file=path)

        for skill_name, keywords in data.items():
            if not isinstance(keywords, list) or not all(isinstance(k, str) for k in keywords):
                raise ConfigurationError(
                    "Skill keywords must be a list of strings",
                    config_file=path,
                    key=str(skill_name),
                )
            self.add(str(skill_name), keywords)
        logger.debug(f"Registered keywords for {len(data)} skills from {path}")
        return self

    def build(self) -> SkillKeywordTable:
        return MappingProxyType({skill: tuple(keywords) for skill, keywords in self._keywords.items()})


class SkillInferer:
    """Keyword-based skill reasoning over an immutable table."""

    def __init__(self, keywords: SkillKeywordTable = DEFAULT_SKILL_KEYWORDS):
        self._keywords = keywords

    def _matches(self, context: str, keywords: Iterable[str]) -> list[str]:
        text = context.lower()
        return [keyword for keyword in keywords if keyword.lower() in text]

    def infer_introduction_reason(self, context: str, skill_name: str) -> InferenceResult:
        """Score ``context`` against one skill's keywords.

        Two or more matches give ``high`` confidence, one ``medium``,
        none ``low``.
        """
        matched = self._matches(context, self._keywords.get(skill_name, ()))

        if len(matched) >= HIGH_CONFIDENCE_MIN_MATCHES:
            quoted = ", ".join(f'"{keyword}"' for keyword in matched)
            return InferenceResult(
                reason=f"User request relates to {quoted}, triggering {skill_name}",
                confidence=CONFIDENCE_HIGH,
                keywords=tuple(matched),
            )
        if len(matched) == 1:
            return InferenceResult(
                reason=f'User mentioned "{matched[0]}", which may call for {skill_name}',
                confidence=CONFIDENCE_MEDIUM,
                keywords=tuple(matched),
            )
        return InferenceResult(
            reason="No clear trigger keywords found in context",
            confidence=CONFIDENCE_LOW,
        )

    def infer_multiple(self, context: str, skill_names: Iterable[str]) -> dict[str, InferenceResult]:
        return {name: self.infer_introduction_reason(context, name) for name in skill_names}

    def recommend(self, context: str) -> list[SkillRecommendation]:
        """Skills with at least one keyword match, highest score first.

        Equal scores keep table order.
        """
        recommendations = []
        for skill_name, keywords in self._keywords.items():
            score = len(self._matches(context, keywords))
            if score == 0:
                continue
            confidence = CONFIDENCE_HIGH if score >= HIGH_CONFIDENCE_MIN_MATCHES else CONFIDENCE_MEDIUM
            recommendations.append(SkillRecommendation(skill_name, confidence, score))

        recommendations.sort(key=lambda r: r.score, reverse=True)
        return recommendations

    def known_skill_names(self) -> list[str]:
        return list(self._keywords)


_default_inferer = SkillInferer()


def infer_skill_introduction_reason(context: str, skill_name: str) -> InferenceResult:
    return _default_inferer.infer_introduction_reason(context, skill_name)


def infer_multiple_skill_reasons(context: str, skill_names: Iterable[str]) -> dict[str, InferenceResult]:
    return _default_inferer.infer_multiple(context, skill_names)


def recommend_skills(context: str) -> list[SkillRecommendation]:
    return _default_inferer.recommend(context)


def get_known_skill_names() -> list[str]:
    return _default_inferer.known_skill_names()


def build_skill_inferer(extra_keywords_file: Path | None = None) -> SkillInferer:
    """Create an inferer from the default table plus optional project keywords.

    Raises:
        ConfigurationError: If ``extra_keywords_file`` exists but is invalid.
    """
    builder = SkillKeywordTableBuilder.from_defaults()
    if extra_keywords_file is not None and extra_keywords_file.is_file():
        builder.add_from_yaml(extra_keywords_file)
    return SkillInferer(builder.build())
