"""
Crisis Models

Data models for crisis analysis, escalation actions and alerts.

SAFETY-CRITICAL: This module defines what the UI is told about risk.
All definitions require clinical and legal review.

PRIVACY: Analysis results carry a hash of the input, never the raw text.
"""

import hashlib
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

from astral.domain.enums.risk_level import ActionKind, ActionStatus, RiskLevel
from astral.domain.models.resource_models import CrisisResource


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def hash_text(text: str) -> str:
    """
    Hash normalized input text.

    Args:
        text: Raw user input

    Returns:
        Hex SHA-256 digest of the lowercased, whitespace-collapsed text
    """
    normalized = " ".join(text.lower().split())
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class AnalysisContext:
    """
    Optional context passed alongside text.

    Attributes:
        language: Language code of the input
        user_id: Pseudonymous user identifier
        source: Where the text came from (chat, journal, ...)
    """

    language: str = "en"
    user_id: Optional[str] = None
    source: str = "input"


@dataclass(frozen=True)
class CrisisAnalysisResult:
    """
    Result of analyzing one piece of text.

    Immutable once produced. Appended to the bounded analysis history.

    Attributes:
        analysis_id: Unique identifier
        text_hash: SHA-256 of the normalized input
        text_length: Length of the stripped input
        risk_score: Numeric risk (0.0-10.0)
        risk_level: Canonical risk level
        categories: Matched category tags
        matched_keywords: Keywords and pattern names that matched
        confidence: Share of the text explained by known patterns (0.0-1.0)
        escalation_required: Level is MEDIUM or above
        emergency_services: Level is CRITICAL
        ruleset_version: Version of the keyword ruleset used
        language: Language code of the input
        timestamp: When the analysis completed
        error: Internal failure message, if the result is a safe fallback
    """

    analysis_id: UUID = field(default_factory=uuid4)
    text_hash: str = ""
    text_length: int = 0
    risk_score: float = 0.0
    risk_level: RiskLevel = RiskLevel.NONE
    categories: frozenset[str] = field(default_factory=frozenset)
    matched_keywords: tuple[str, ...] = field(default_factory=tuple)
    confidence: float = 0.0
    escalation_required: bool = False
    emergency_services: bool = False
    ruleset_version: str = ""
    language: str = "en"
    timestamp: datetime = field(default_factory=utcnow)
    error: Optional[str] = None

    @classmethod
    def neutral(
        cls,
        text: str = "",
        ruleset_version: str = "",
        language: str = "en",
        error: Optional[str] = None,
    ) -> "CrisisAnalysisResult":
        """Build a zero-risk result for rejected or failed analyses."""
        return cls(
            text_hash=hash_text(text) if text else "",
            text_length=len(text.strip()) if text else 0,
            ruleset_version=ruleset_version,
            language=language,
            error=error,
        )

    @property
    def is_neutral(self) -> bool:
        return self.risk_level == RiskLevel.NONE

    def to_dict(self) -> dict[str, Any]:
        return {
            "analysis_id": str(self.analysis_id),
            "text_hash": self.text_hash,
            "risk_score": round(self.risk_score, 2),
            "risk_level": self.risk_level.label,
            "categories": sorted(self.categories),
            "matched_keywords": list(self.matched_keywords),
            "confidence": round(self.confidence, 3),
            "flags": {
                "escalation_required": self.escalation_required,
                "emergency_services": self.emergency_services,
            },
            "ruleset_version": self.ruleset_version,
            "timestamp": self.timestamp.isoformat(),
            "error": self.error,
        }


@dataclass
class EscalationAction:
    """
    An action recommended by the escalation state machine.

    Owned by the state machine until taken by the execution layer,
    which reports the outcome through mark_action.
    """

    kind: ActionKind
    description: str
    priority: int = 5
    action_id: UUID = field(default_factory=uuid4)
    status: ActionStatus = ActionStatus.PENDING
    analysis_id: Optional[UUID] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.action_id),
            "kind": self.kind.value,
            "description": self.description,
            "priority": self.priority,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class CrisisAlert:
    """
    Current-view projection of the latest qualifying analysis.

    Exactly one current alert exists per session. It is replaced
    wholesale by each qualifying analysis and hidden on dismissal.
    """

    severity: RiskLevel
    message: str
    actions: tuple[EscalationAction, ...] = field(default_factory=tuple)
    resources: tuple[CrisisResource, ...] = field(default_factory=tuple)
    emergency_mode: bool = False
    timestamp: datetime = field(default_factory=utcnow)
    analysis_id: Optional[UUID] = None
    shown: bool = True

    def dismissed(self) -> "CrisisAlert":
        """Return a hidden copy of this alert."""
        return replace(self, shown=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "show": self.shown,
            "severity": self.severity.label,
            "message": self.message,
            "actions": [a.to_dict() for a in self.actions],
            "resources": [r.to_dict() for r in self.resources],
            "emergency_mode": self.emergency_mode,
            "timestamp": self.timestamp.isoformat(),
            "analysis_id": str(self.analysis_id) if self.analysis_id else None,
        }
