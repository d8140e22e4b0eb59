"""
Crisis Analyzer

Deterministic keyword and pattern analysis of free text.

SAFETY-CRITICAL: This module decides the risk level shown to users.
False negatives are WORSE than false positives. Category tiers act
as floors so a single direct statement is never diluted by scoring.

PRIVACY: Raw text is never stored or logged. Results carry a hash.
"""

import time
from collections import defaultdict
from typing import Optional

from astral.config.logging_config import get_logger
from astral.domain.enums.risk_level import RiskLevel
from astral.domain.errors import InputRejected
from astral.domain.models.crisis_models import (
    AnalysisContext,
    CrisisAnalysisResult,
    hash_text,
)
from astral.infrastructure.metrics import track_analysis
from astral.services.crisis.keyword_rules import DEFAULT_RULESET, KeywordRuleset

logger = get_logger(__name__)

MAX_SCORE = 10.0
EXTRA_CATEGORY_FACTOR = 0.25
EXTRA_KEYWORD_BONUS = 0.5
MULTI_HIGH_SEVERITY_MULTIPLIER = 1.5
MAX_CONFIDENCE = 0.95


def _normalize(text: str) -> str:
    return text.replace("’", "'").replace("‘", "'").strip()


class CrisisAnalyzer:
    """
    Keyword/category crisis analyzer.

    Pure with respect to its ruleset: the same text always produces
    the same level, score, categories and confidence.

    Scoring:
    - Strongest matched category contributes its full weight
    - Each additional category contributes 25% of its weight
    - Each extra keyword within a category adds 0.5
    - Two or more high-severity categories multiply the score by 1.5
    - The result is clamped to [0, 10]

    The level is the higher of the score band and the highest tier
    among matched categories.
    """

    def __init__(
        self,
        ruleset: Optional[KeywordRuleset] = None,
        min_length: int = 10,
    ) -> None:
        self._ruleset = ruleset or DEFAULT_RULESET
        self._min_length = min_length

    @property
    def ruleset(self) -> KeywordRuleset:
        return self._ruleset

    @property
    def min_length(self) -> int:
        return self._min_length

    def analyze(
        self,
        text: str,
        context: Optional[AnalysisContext] = None,
    ) -> CrisisAnalysisResult:
        """
        Analyze text for crisis risk.

        Never raises. Short input yields a neutral result; internal
        failures yield a neutral result with ``error`` set.

        Args:
            text: User input
            context: Optional language/source context

        Returns:
            CrisisAnalysisResult
        """
        context = context or AnalysisContext()
        started = time.perf_counter()
        try:
            result = self._analyze(text, context)
        except InputRejected:
            return CrisisAnalysisResult.neutral(
                text if isinstance(text, str) else "",
                ruleset_version=self._ruleset.version,
                language=context.language,
            )
        except Exception as e:
            logger.error(
                "Crisis analysis failed, returning neutral result",
                error_type=type(e).__name__,
                ruleset_version=self._ruleset.version,
            )
            track_analysis(RiskLevel.NONE.label, time.perf_counter() - started, failed=True)
            return CrisisAnalysisResult.neutral(
                ruleset_version=self._ruleset.version,
                language=context.language,
                error=f"analysis failed: {type(e).__name__}",
            )

        track_analysis(result.risk_level.label, time.perf_counter() - started)
        if result.risk_level >= RiskLevel.MEDIUM:
            logger.info(
                "Crisis indicators detected",
                risk_level=result.risk_level.label,
                risk_score=round(result.risk_score, 2),
                categories=sorted(result.categories),
                text_hash=result.text_hash[:12],
            )
        return result

    def _analyze(self, text: str, context: AnalysisContext) -> CrisisAnalysisResult:
        if not isinstance(text, str):
            raise InputRejected("Text must be a string")
        normalized = _normalize(text)
        if len(normalized) < self._min_length:
            raise InputRejected("Text shorter than minimum analysis length")

        matches: dict[str, list[str]] = defaultdict(list)
        covered_words = 0

        for category in self._ruleset.categories:
            for rule in category.keywords:
                for match in rule.find(normalized):
                    matches[category.tag].append(rule.phrase)
                    covered_words += len(match.group(0).split())

        for rule in self._ruleset.patterns:
            for match in rule.pattern.finditer(normalized):
                matches[rule.category].append(f"pattern:{rule.name}")
                covered_words += len(match.group(0).split())

        text_hash = hash_text(normalized)
        if not matches:
            return CrisisAnalysisResult(
                text_hash=text_hash,
                text_length=len(normalized),
                ruleset_version=self._ruleset.version,
                language=context.language,
            )

        matched = sorted(
            (self._ruleset.category(tag) for tag in matches),
            key=lambda c: c.weight,
            reverse=True,
        )
        strongest = matched[0]
        score = strongest.weight
        for other in matched[1:]:
            score += other.weight * EXTRA_CATEGORY_FACTOR
        for hits in matches.values():
            score += EXTRA_KEYWORD_BONUS * (len(hits) - 1)
        if sum(1 for c in matched if c.is_high_severity) >= 2:
            score *= MULTI_HIGH_SEVERITY_MULTIPLIER
        score = max(0.0, min(MAX_SCORE, score))

        tier_floor = max(c.tier for c in matched)
        level = max(RiskLevel.from_score(score), tier_floor)

        total_matches = sum(len(hits) for hits in matches.values())
        word_count = max(1, len(normalized.split()))
        coverage = min(1.0, covered_words / word_count)
        confidence = min(MAX_CONFIDENCE, 0.5 + 0.1 * total_matches + 0.4 * coverage)

        keywords = tuple(kw for cat in matched for kw in matches[cat.tag])

        return CrisisAnalysisResult(
            text_hash=text_hash,
            text_length=len(normalized),
            risk_score=score,
            risk_level=level,
            categories=frozenset(matches),
            matched_keywords=keywords,
            confidence=confidence,
            escalation_required=level >= RiskLevel.MEDIUM,
            emergency_services=level == RiskLevel.CRITICAL,
            ruleset_version=self._ruleset.version,
            language=context.language,
        )
