"""
Risk Level and Action Enumerations

Defines the single canonical risk classification used across
analysis, escalation, alerting and metrics.

CLINICAL_REVIEW_REQUIRED: Level boundaries and the actions attached
to them should be validated by mental health professionals.
"""

from enum import IntEnum, StrEnum


class RiskLevel(IntEnum):
    """
    Crisis risk classification.

    Higher values indicate higher risk. Each analysis independently
    determines the current level; levels are never accumulated.
    """

    NONE = 0
    """No crisis indicators detected."""

    LOW = 1
    """
    Low risk - mild distress or isolation language.
    - Supportive content is appropriate
    """

    MEDIUM = 2
    """
    Medium risk - hopelessness or repeated distress signals.
    - Escalation actions are generated
    - Resources are offered proactively
    """

    HIGH = 3
    """
    High risk - self-harm language, methods or planning.
    - Crisis line contact is recommended
    """

    CRITICAL = 4
    """
    Critical risk - direct suicidal ideation.
    - Emergency mode is always enabled
    - Fixed emergency action list, independent of categories

    SAFETY_NOTE: This is a hard business rule, never inferred.
    """

    @property
    def label(self) -> str:
        """Lowercase name used in API payloads and metrics labels."""
        return self.name.lower()

    @classmethod
    def from_label(cls, label: str) -> "RiskLevel":
        """
        Parse a level from its lowercase label.

        Args:
            label: One of none, low, medium, high, critical

        Returns:
            Matching RiskLevel
        """
        return cls[label.strip().upper()]

    @classmethod
    def from_score(cls, score: float) -> "RiskLevel":
        """
        Map a 0-10 risk score to its score band.

        Args:
            score: Clamped risk score

        Returns:
            Level for the score band
        """
        if score >= 9.0:
            return cls.CRITICAL
        if score >= 7.0:
            return cls.HIGH
        if score >= 4.0:
            return cls.MEDIUM
        if score > 0.0:
            return cls.LOW
        return cls.NONE


class ActionKind(StrEnum):
    """Kinds of escalation actions surfaced to the execution layer."""

    CALL_EMERGENCY = "call-emergency"
    """Call the local emergency number."""

    CONTACT_HOTLINE = "contact-hotline"
    """Call a crisis hotline."""

    TEXT_CRISIS_LINE = "text-crisis-line"
    """Reach a text-based crisis line."""

    SHOW_RESOURCES = "show-resources"
    """Present crisis resources in the UI."""

    GROUNDING_EXERCISE = "grounding-exercise"
    """Offer a grounding or breathing exercise."""

    NOTIFY_RESPONDER = "notify-responder"
    """Notify a trusted contact or responder (requires consent)."""


class ActionStatus(StrEnum):
    """Execution status of an escalation action."""

    PENDING = "pending"
    EXECUTED = "executed"
    FAILED = "failed"


class RiskTrend(StrEnum):
    """Trend of risk across the recent analysis history."""

    IMPROVING = "improving"
    DETERIORATING = "deteriorating"
    STABLE = "stable"
    INSUFFICIENT_DATA = "insufficient_data"
