"""Crisis services package - analysis, escalation and debounced detection."""

from astral.services.crisis.analyzer import CrisisAnalyzer
from astral.services.crisis.debouncer import Debouncer
from astral.services.crisis.detection_service import CrisisDetectionService, DetectionState
from astral.services.crisis.escalation import EscalationStateMachine
from astral.services.crisis.keyword_rules import DEFAULT_RULESET, KeywordRuleset

__all__ = [
    "CrisisAnalyzer",
    "KeywordRuleset",
    "DEFAULT_RULESET",
    "EscalationStateMachine",
    "Debouncer",
    "CrisisDetectionService",
    "DetectionState",
]
