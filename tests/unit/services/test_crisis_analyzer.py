"""
Unit Tests for Crisis Analyzer

Tests keyword matching, false-positive suppression, scoring and the
never-raise contract.
"""

import json
import re
from pathlib import Path

import pytest

from astral.domain.enums.risk_level import RiskLevel
from astral.services.crisis.analyzer import CrisisAnalyzer
from astral.services.crisis.keyword_rules import (
    DEFAULT_RULESET,
    RULESET_VERSION,
    KeywordRuleset,
    PatternRule,
)


@pytest.fixture
def analyzer() -> CrisisAnalyzer:
    """Analyzer with the default ruleset."""
    return CrisisAnalyzer()


class TestShortInput:
    """Input below the minimum length yields a neutral result."""

    @pytest.mark.parametrize("text", ["", "hi", "   sad   ", "end it"])
    def test_short_text_is_neutral(self, analyzer: CrisisAnalyzer, text: str) -> None:
        """Test that text below the minimum length is neutral."""
        result = analyzer.analyze(text)

        assert result.risk_level == RiskLevel.NONE
        assert result.risk_score == 0.0
        assert result.confidence == 0.0
        assert result.error is None

    def test_non_string_input_is_neutral(self, analyzer: CrisisAnalyzer) -> None:
        """Test that None is neutral without an error."""
        result = analyzer.analyze(None)

        assert result.is_neutral
        assert result.error is None


class TestRiskLevels:
    """Level assignment from keyword categories."""

    def test_direct_statement_is_critical(self, analyzer: CrisisAnalyzer) -> None:
        """Test that a direct suicidal statement is CRITICAL."""
        result = analyzer.analyze("I want to end it all")

        assert result.risk_level == RiskLevel.CRITICAL
        assert "suicidal" in result.categories
        assert result.escalation_required
        assert result.emergency_services

    def test_curly_apostrophe_is_normalized(self, analyzer: CrisisAnalyzer) -> None:
        """Test that typographic apostrophes still match."""
        result = analyzer.analyze("I don’t want to live anymore")

        assert result.risk_level == RiskLevel.CRITICAL

    def test_hopelessness_with_isolation_is_medium(self, analyzer: CrisisAnalyzer) -> None:
        """Test the combined score of two medium categories."""
        result = analyzer.analyze("I feel so hopeless and alone")

        assert result.risk_level == RiskLevel.MEDIUM
        assert result.categories == frozenset({"hopelessness", "isolation"})
        assert result.risk_score == pytest.approx(6.0 + 3.5 * 0.25)
        assert result.escalation_required
        assert not result.emergency_services

    def test_distress_is_low(self, analyzer: CrisisAnalyzer) -> None:
        """Test that everyday distress is LOW."""
        result = analyzer.analyze("Just stressed about exams this week")

        assert result.risk_level == RiskLevel.LOW
        assert not result.escalation_required

    def test_neutral_text(self, analyzer: CrisisAnalyzer) -> None:
        """Test that ordinary text is neutral but hashed."""
        result = analyzer.analyze("The weather was lovely and we went for a walk")

        assert result.is_neutral
        assert result.categories == frozenset()
        assert result.text_hash

    def test_multiple_high_severity_categories_clamp_to_max(self, analyzer: CrisisAnalyzer) -> None:
        """Test that the score is clamped at 10."""
        result = analyzer.analyze("I want to hurt myself and I made a plan")

        assert result.categories >= {"self-harm", "planning"}
        assert result.risk_score == 10.0
        assert result.risk_level == RiskLevel.CRITICAL

    def test_method_inquiry_pattern(self, analyzer: CrisisAnalyzer) -> None:
        """Test the method inquiry regex."""
        result = analyzer.analyze("how many pills would it take")

        assert "pattern:method_inquiry" in result.matched_keywords
        assert result.risk_score == pytest.approx(7.5)
        assert result.risk_level == RiskLevel.HIGH

    def test_category_tier_is_a_floor(self, analyzer: CrisisAnalyzer) -> None:
        """Test that a category tier sets the minimum level."""
        # A single self-harm keyword scores 8 but the tier alone guarantees HIGH
        result = analyzer.analyze("sometimes I think about self-harm")

        assert result.risk_level >= RiskLevel.HIGH


class TestFalsePositives:
    """Benign contexts cancel keyword matches."""

    @pytest.mark.parametrize(
        "text",
        [
            "I'm cutting my hair tomorrow before work",
            "Our team is cutting costs this quarter",
            "Suicide prevention week starts on Monday",
            "Please just leave me alone for a minute",
            "The kids played with a water gun all day",
            "I was trapped in traffic for an hour",
        ],
    )
    def test_benign_context_is_neutral(self, analyzer: CrisisAnalyzer, text: str) -> None:
        """Test that benign phrases cancel their keyword."""
        result = analyzer.analyze(text)

        assert result.risk_level == RiskLevel.NONE

    def test_keyword_outside_false_positive_still_matches(self, analyzer: CrisisAnalyzer) -> None:
        """Test that a keyword without benign context matches."""
        result = analyzer.analyze("I have been cutting again and hiding it")

        assert "self-harm" in result.categories
        assert result.risk_level >= RiskLevel.HIGH


class TestDeterminism:
    """Repeatable output."""

    def test_same_text_same_result(self, analyzer: CrisisAnalyzer) -> None:
        """Test that analysis is deterministic apart from the id."""
        text = "I feel worthless and nobody cares about me"

        first = analyzer.analyze(text)
        second = analyzer.analyze(text)

        assert first.risk_level == second.risk_level
        assert first.risk_score == second.risk_score
        assert first.categories == second.categories
        assert first.matched_keywords == second.matched_keywords
        assert first.confidence == second.confidence
        assert first.text_hash == second.text_hash
        assert first.analysis_id != second.analysis_id

    def test_confidence_is_bounded(self, analyzer: CrisisAnalyzer) -> None:
        """Test the confidence range."""
        result = analyzer.analyze("hopeless worthless trapped overwhelmed scared lonely")

        assert 0.5 < result.confidence <= 0.95

    def test_result_carries_ruleset_version(self, analyzer: CrisisAnalyzer) -> None:
        """Test that results name their ruleset."""
        result = analyzer.analyze("I feel overwhelmed today")

        assert result.ruleset_version == RULESET_VERSION


class TestErrorBoundary:
    """analyze() never raises."""

    def test_internal_failure_returns_neutral_with_error(self) -> None:
        """Test that an internal error yields a neutral result."""
        broken = KeywordRuleset(
            version="broken",
            categories=(),
            patterns=(PatternRule("orphan", "ghost", re.compile("hello")),),
        )
        analyzer = CrisisAnalyzer(ruleset=broken)

        result = analyzer.analyze("hello there my friend")

        assert result.is_neutral
        assert result.error == "analysis failed: KeyError"
        assert result.ruleset_version == "broken"


class TestCustomRuleset:
    """Rulesets from data."""

    def test_ruleset_loaded_from_file(self, tmp_path: Path) -> None:
        """Test a ruleset read from JSON."""
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({
            "version": "test-1",
            "categories": [
                {
                    "tag": "distress",
                    "weight": 4.5,
                    "tier": "medium",
                    "keywords": [
                        "drowning",
                        {"keyword": "sinking", "false_positive_patterns": ["sinking ship"]},
                    ],
                },
            ],
            "patterns": [],
        }))

        analyzer = CrisisAnalyzer(ruleset=KeywordRuleset.from_file(path))

        assert analyzer.analyze("I feel like I am drowning").risk_level == RiskLevel.MEDIUM
        assert analyzer.analyze("We watched a sinking ship film").risk_level == RiskLevel.NONE
        assert analyzer.analyze("I feel like I am sinking").ruleset_version == "test-1"

    def test_pattern_with_unknown_category_is_rejected(self) -> None:
        """Test that a pattern must name a known category."""
        with pytest.raises(ValueError):
            KeywordRuleset.from_dict({
                "categories": [{"tag": "a", "weight": 1, "keywords": ["x"]}],
                "patterns": [{"name": "p", "category": "b", "regex": "y"}],
            })

    def test_default_ruleset_categories(self) -> None:
        """Test the built-in category tags."""
        tags = {c.tag for c in DEFAULT_RULESET.categories}

        assert {"suicidal", "self-harm", "hopelessness", "isolation"} <= tags
