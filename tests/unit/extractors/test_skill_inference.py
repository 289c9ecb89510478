"""Tests for skill introduction inference and recommendations."""

from pathlib import Path

import pytest

from k2d.exceptions import ConfigurationError
from k2d.extractors.skill_inference import (
    DEFAULT_SKILL_KEYWORDS,
    SkillInferer,
    SkillKeywordTableBuilder,
    build_skill_inferer,
    get_known_skill_names,
    infer_multiple_skill_reasons,
    infer_skill_introduction_reason,
    recommend_skills,
)


class TestInferIntroductionReason:
    def test_two_matches_is_high_confidence(self) -> None:
        result = infer_skill_introduction_reason("please deploy the release", "dev-deployment-v1")
        assert result.confidence == "high"
        assert result.keywords == ("deploy", "release")
        assert '"deploy", "release"' in result.reason
        assert "dev-deployment-v1" in result.reason

    def test_one_match_is_medium_confidence(self) -> None:
        result = infer_skill_introduction_reason("can you fix this", "dev-quality-assurance")
        assert result.confidence == "medium"
        assert result.keywords == ("fix",)
        assert '"fix"' in result.reason

    def test_no_match_is_low_confidence(self) -> None:
        result = infer_skill_introduction_reason("hello", "dev-coding")
        assert result.confidence == "low"
        assert result.keywords == ()

    def test_unknown_skill_is_low_confidence(self) -> None:
        assert infer_skill_introduction_reason("deploy release", "not-a-skill").confidence == "low"

    def test_matching_is_case_insensitive(self) -> None:
        result = infer_skill_introduction_reason("Write a PRD for the Feature", "pm-product-requirements")
        assert result.confidence == "high"

    def test_infer_multiple(self) -> None:
        results = infer_multiple_skill_reasons("deploy the release", ["dev-deployment-v1", "dev-coding"])
        assert results["dev-deployment-v1"].confidence == "high"
        assert results["dev-coding"].confidence == "low"


class TestRecommendSkills:
    def test_sorted_by_score(self) -> None:
        recommendations = recommend_skills("deploy the release to 生产 and fix the bug")
        assert recommendations[0].skill == "dev-deployment-v1"
        assert recommendations[0].score == 3
        scores = [r.score for r in recommendations]
        assert scores == sorted(scores, reverse=True)

    def test_confidence_follows_score(self) -> None:
        by_skill = {r.skill: r for r in recommend_skills("fix the bug, then deploy")}
        assert by_skill["dev-quality-assurance"].confidence == "high"
        assert by_skill["dev-deployment-v1"].confidence == "medium"

    def test_no_matches(self) -> None:
        assert recommend_skills("zzz") == []

    def test_known_skill_names(self) -> None:
        names = get_known_skill_names()
        assert names == list(DEFAULT_SKILL_KEYWORDS)
        assert "dev-coding" in names


class TestKeywordTableBuilder:
    def test_add_extends_defaults_without_touching_them(self) -> None:
        table = SkillKeywordTableBuilder.from_defaults().add("dev-coding", ["hack"]).add("k8s", ["kubectl"]).build()

        assert table["dev-coding"][-1] == "hack"
        assert "hack" not in DEFAULT_SKILL_KEYWORDS["dev-coding"]
        assert SkillInferer(table).infer_introduction_reason("kubectl apply", "k8s").confidence == "medium"

    def test_built_table_is_read_only(self) -> None:
        table = SkillKeywordTableBuilder().add("a", ["x"]).build()
        with pytest.raises(TypeError):
            table["b"] = ("y",)  # type: ignore[index]

    def test_add_from_yaml(self, tmp_path: Path) -> None:
        keywords_file = tmp_path / "skill-keywords.yml"
        keywords_file.write_text("data-pipeline:\n  - etl\n  - airflow\n", encoding="utf-8")

        inferer = build_skill_inferer(keywords_file)

        assert inferer.infer_introduction_reason("airflow etl job", "data-pipeline").confidence == "high"
        assert "dev-coding" in inferer.known_skill_names()

    def test_missing_yaml_uses_defaults(self, tmp_path: Path) -> None:
        inferer = build_skill_inferer(tmp_path / "missing.yml")
        assert inferer.known_skill_names() == list(DEFAULT_SKILL_KEYWORDS)

    def test_empty_yaml_is_accepted(self, tmp_path: Path) -> None:
        keywords_file = tmp_path / "empty.yml"
        keywords_file.write_text("", encoding="utf-8")
        assert build_skill_inferer(keywords_file).known_skill_names() == list(DEFAULT_SKILL_KEYWORDS)

    @pytest.mark.parametrize(
        "content",
        [
            "- just\n- a list\n",
            "skill: not-a-list\n",
            "skill:\n  - 1\n  - 2\n",
            "skill: [unclosed\n",
        ],
    )
    def test_invalid_yaml_raises(self, tmp_path: Path, content: str) -> None:
        keywords_file = tmp_path / "bad.yml"
        keywords_file.write_text(content, encoding="utf-8")
        with pytest.raises(ConfigurationError):
            SkillKeywordTableBuilder().add_from_yaml(keywords_file)
