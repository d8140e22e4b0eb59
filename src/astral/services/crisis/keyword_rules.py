"""
Crisis Keyword Rules

Versioned keyword and pattern tables used by the CrisisAnalyzer.

CLINICAL_VALIDATION_REQUIRED: Keywords, weights and tiers must be
reviewed by clinicians before any change ships. Bump RULESET_VERSION
whenever the built-in tables change.

Matching is phrase-based with word boundaries. Each keyword may carry
false-positive contexts ("cutting hair", "vitamin pills") which cancel
a match when they overlap it.
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Union

from astral.config.logging_config import get_logger
from astral.domain.enums.risk_level import RiskLevel

logger = get_logger(__name__)

RULESET_VERSION = "builtin-2024.1"

# Categories at or above this weight count as high severity
HIGH_SEVERITY_WEIGHT = 7.0


def compile_phrase(phrase: str) -> re.Pattern:
    """Compile a phrase into a case-insensitive, word-bounded pattern."""
    words = [re.escape(w) for w in phrase.lower().split()]
    return re.compile(r"\b" + r"\s+".join(words) + r"\b", re.IGNORECASE)


@dataclass(frozen=True)
class KeywordRule:
    """A single keyword phrase with its false-positive contexts."""

    phrase: str
    false_positives: tuple[str, ...] = ()
    pattern: re.Pattern = field(init=False, repr=False, compare=False)
    fp_patterns: tuple[re.Pattern, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "pattern", compile_phrase(self.phrase))
        object.__setattr__(
            self, "fp_patterns", tuple(compile_phrase(p) for p in self.false_positives)
        )

    def find(self, text: str) -> Iterator[re.Match]:
        """Yield matches not overlapped by a false-positive context."""
        excluded = [m.span() for fp in self.fp_patterns for m in fp.finditer(text)]
        for match in self.pattern.finditer(text):
            start, end = match.span()
            if any(start < fp_end and fp_start < end for fp_start, fp_end in excluded):
                continue
            yield match


@dataclass(frozen=True)
class KeywordCategory:
    """
    A weighted group of keywords.

    Attributes:
        tag: Category tag reported in results
        weight: Contribution to the 0-10 score
        tier: Minimum risk level when any keyword matches
        keywords: Keyword rules in this category
    """

    tag: str
    weight: float
    tier: RiskLevel
    keywords: tuple[KeywordRule, ...]

    @property
    def is_high_severity(self) -> bool:
        return self.weight >= HIGH_SEVERITY_WEIGHT


@dataclass(frozen=True)
class PatternRule:
    """A regex rule that contributes a match to a category."""

    name: str
    category: str
    pattern: re.Pattern


@dataclass(frozen=True)
class KeywordRuleset:
    """Immutable, versioned set of categories and pattern rules."""

    version: str
    categories: tuple[KeywordCategory, ...]
    patterns: tuple[PatternRule, ...] = ()

    def category(self, tag: str) -> KeywordCategory:
        for cat in self.categories:
            if cat.tag == tag:
                return cat
        raise KeyError(tag)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KeywordRuleset":
        """
        Build a ruleset from its JSON form.

        Keywords are either plain strings or objects with ``keyword`` and
        ``false_positive_patterns`` keys.
        """
        categories = []
        for raw in data["categories"]:
            rules = []
            for kw in raw.get("keywords", []):
                if isinstance(kw, str):
                    rules.append(KeywordRule(kw))
                else:
                    rules.append(
                        KeywordRule(kw["keyword"], tuple(kw.get("false_positive_patterns", ())))
                    )
            categories.append(
                KeywordCategory(
                    tag=raw["tag"],
                    weight=float(raw["weight"]),
                    tier=RiskLevel.from_label(raw.get("tier", "low")),
                    keywords=tuple(rules),
                )
            )
        tags = {c.tag for c in categories}
        patterns = []
        for raw in data.get("patterns", []):
            if raw["category"] not in tags:
                raise ValueError(f"Pattern {raw['name']!r} references unknown category {raw['category']!r}")
            patterns.append(
                PatternRule(raw["name"], raw["category"], re.compile(raw["regex"], re.IGNORECASE))
            )
        return cls(
            version=str(data.get("version", "custom")),
            categories=tuple(categories),
            patterns=tuple(patterns),
        )

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "KeywordRuleset":
        """Load a ruleset from a JSON file."""
        with open(path, encoding="utf-8") as fh:
            ruleset = cls.from_dict(json.load(fh))
        logger.info(
            "Keyword ruleset loaded",
            path=str(path),
            version=ruleset.version,
            categories=len(ruleset.categories),
        )
        return ruleset


def _rules(*phrases: str, **false_positives: tuple[str, ...]) -> tuple[KeywordRule, ...]:
    """Build keyword rules; kwargs map a phrase slug to its false positives."""
    rules = []
    for phrase in phrases:
        slug = phrase.replace(" ", "_").replace("-", "_").replace("'", "")
        rules.append(KeywordRule(phrase, false_positives.get(slug, ())))
    return tuple(rules)


# =============================================================================
# BUILT-IN RULESET
# CLINICAL_VALIDATION_REQUIRED
# =============================================================================

DEFAULT_RULESET = KeywordRuleset(
    version=RULESET_VERSION,
    categories=(
        KeywordCategory(
            tag="suicidal",
            weight=10.0,
            tier=RiskLevel.CRITICAL,
            keywords=_rules(
                "kill myself",
                "end my life",
                "end it all",
                "want to die",
                "suicide",
                "suicidal",
                "take my own life",
                "better off dead",
                "no reason to live",
                "don't want to live",
                "wish i was dead",
                "wish i were dead",
                "not worth living",
                suicide=("suicide prevention", "suicide squad", "suicide awareness"),
            ),
        ),
        KeywordCategory(
            tag="self-harm",
            weight=8.0,
            tier=RiskLevel.HIGH,
            keywords=_rules(
                "hurt myself",
                "harm myself",
                "self harm",
                "self-harm",
                "cut myself",
                "cutting",
                "burn myself",
                "punish myself",
                cutting=("cutting hair", "cutting my hair", "cutting grass", "cutting costs",
                         "cutting edge", "cutting back", "cutting board"),
            ),
        ),
        KeywordCategory(
            tag="planning",
            weight=7.0,
            tier=RiskLevel.HIGH,
            keywords=_rules(
                "made a plan",
                "have a plan",
                "suicide note",
                "wrote a note",
                "giving away my",
                "said my goodbyes",
                "final arrangements",
            ),
        ),
        KeywordCategory(
            tag="method",
            weight=7.0,
            tier=RiskLevel.MEDIUM,
            keywords=_rules(
                "pills",
                "overdose",
                "hang myself",
                "jump off",
                "gun",
                "rope",
                "razor",
                pills=("vitamin pills", "allergy pills", "birth control pills", "sleeping pills prescribed"),
                gun=("water gun", "nerf gun", "glue gun", "toy gun"),
                rope=("jump rope", "skipping rope", "rope course"),
                jump_off=("jump off the diving board",),
            ),
        ),
        KeywordCategory(
            tag="hopelessness",
            weight=6.0,
            tier=RiskLevel.MEDIUM,
            keywords=_rules(
                "hopeless",
                "no hope",
                "no way out",
                "no point",
                "give up",
                "giving up",
                "can't go on",
                "never get better",
                "nothing matters",
                "worthless",
                "trapped",
                "burden",
                trapped=("trapped in traffic",),
                burden=("financial burden", "tax burden", "burden of proof"),
                no_point=("no point in arguing",),
            ),
        ),
        KeywordCategory(
            tag="isolation",
            weight=3.5,
            tier=RiskLevel.LOW,
            keywords=_rules(
                "alone",
                "lonely",
                "isolated",
                "no one cares",
                "nobody cares",
                "no friends",
                "no one understands",
                alone=("leave me alone",),
            ),
        ),
        KeywordCategory(
            tag="distress",
            weight=3.0,
            tier=RiskLevel.LOW,
            keywords=_rules(
                "overwhelmed",
                "panic",
                "anxious",
                "scared",
                "can't cope",
                "falling apart",
                "breaking down",
                "exhausted",
                "stressed",
            ),
        ),
    ),
    patterns=(
        PatternRule(
            "method_inquiry",
            "method",
            re.compile(
                r"how\s+(many|much)\s+\w+\s+(would\s+it\s+take|does\s+it\s+take|to\s+take)|"
                r"(how|best\s+way)\s+to\s+(kill|hurt|end)\s+(myself|my\s+life)|"
                r"painless\s+(way|death)",
                re.IGNORECASE,
            ),
        ),
        PatternRule(
            "farewell_message",
            "planning",
            re.compile(
                r"goodbye\s+forever|"
                r"won't\s+be\s+(here|around)\s+(much\s+longer|anymore|tomorrow)|"
                r"better\s+off\s+without\s+me|"
                r"this\s+is\s+my\s+last\s+(message|goodbye)",
                re.IGNORECASE,
            ),
        ),
    ),
)
