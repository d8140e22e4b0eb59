"""
Escalation State Machine

Turns analysis results into the current crisis alert and the
escalation actions offered to the user.

SAFETY-CRITICAL: This module controls how the system responds
to high-risk situations. All logic requires clinical review.

State is driven solely by the latest analysis. History is kept
only for trend reporting and is never used to raise or lower
the current level.
"""

from collections import deque
from typing import Callable, Optional, Sequence
from uuid import UUID

from astral.config.logging_config import get_logger
from astral.domain.enums.risk_level import ActionKind, ActionStatus, RiskLevel, RiskTrend
from astral.domain.models.crisis_models import (
    CrisisAlert,
    CrisisAnalysisResult,
    EscalationAction,
)
from astral.domain.models.resource_models import CrisisResource
from astral.infrastructure.metrics import (
    track_action_status,
    track_alert_dismissed,
    track_escalation,
)

logger = get_logger(__name__)

EscalationCallback = Callable[[CrisisAnalysisResult, list[EscalationAction]], None]
ResourceProvider = Callable[[RiskLevel], Sequence[CrisisResource]]

TREND_WINDOW = 10
TREND_MIN_SAMPLES = 3
TREND_DELTA = 1.0

# SAFETY_NOTE: Messages are supportive and never instruct medical actions.
ALERT_MESSAGES: dict[RiskLevel, str] = {
    RiskLevel.LOW: (
        "It sounds like things are hard right now. "
        "Some calming exercises are available whenever you want them."
    ),
    RiskLevel.MEDIUM: (
        "What you're feeling matters. "
        "Support is available, and you don't have to go through this alone."
    ),
    RiskLevel.HIGH: (
        "I'm concerned about what you're sharing. "
        "Please consider reaching out to a crisis line now. Trained people are ready to listen."
    ),
    RiskLevel.CRITICAL: (
        "Your safety matters right now. "
        "If you are in immediate danger, please call your local emergency number or a crisis line."
    ),
}


def _critical_actions() -> list[EscalationAction]:
    """Fixed emergency action list. Independent of matched categories."""
    return [
        EscalationAction(ActionKind.CALL_EMERGENCY, "Call your local emergency number", priority=1),
        EscalationAction(ActionKind.CONTACT_HOTLINE, "Call a 24/7 crisis hotline", priority=1),
        EscalationAction(ActionKind.TEXT_CRISIS_LINE, "Text a crisis line", priority=2),
        EscalationAction(ActionKind.SHOW_RESOURCES, "Show crisis resources", priority=2),
    ]


def build_actions(result: CrisisAnalysisResult) -> list[EscalationAction]:
    """
    Build the action set for a qualifying analysis.

    Args:
        result: Analysis at MEDIUM or above

    Returns:
        Actions ordered by priority
    """
    level = result.risk_level
    if level == RiskLevel.CRITICAL:
        actions = _critical_actions()
    elif level == RiskLevel.HIGH:
        actions = [
            EscalationAction(ActionKind.CONTACT_HOTLINE, "Call a 24/7 crisis hotline", priority=1),
            EscalationAction(ActionKind.TEXT_CRISIS_LINE, "Text a crisis line", priority=2),
            EscalationAction(ActionKind.SHOW_RESOURCES, "Show crisis resources", priority=2),
            EscalationAction(ActionKind.GROUNDING_EXERCISE, "Try a grounding exercise", priority=3),
        ]
    else:
        actions = [
            EscalationAction(ActionKind.SHOW_RESOURCES, "Show support resources", priority=2),
            EscalationAction(ActionKind.GROUNDING_EXERCISE, "Try a breathing exercise", priority=3),
            EscalationAction(ActionKind.CONTACT_HOTLINE, "Talk to someone at a support line", priority=3),
        ]
    if level < RiskLevel.CRITICAL and "isolation" in result.categories:
        actions.append(
            EscalationAction(ActionKind.NOTIFY_RESPONDER, "Reach out to someone you trust", priority=4)
        )
    for action in actions:
        action.analysis_id = result.analysis_id
    return sorted(actions, key=lambda a: a.priority)


class EscalationStateMachine:
    """
    Escalation state machine.

    States: none -> low -> medium -> high -> critical, set fresh by
    each analysis.

    Rules:
    - level >= alert threshold: a new alert replaces the current one
    - level >= MEDIUM: one action set is generated and
      on_escalation_required fires exactly once
    - CRITICAL: emergency mode with the fixed emergency action list
    - dismiss() hides the alert only; history and future escalation
      are unaffected

    Usage:
        machine = EscalationStateMachine(on_escalation_required=notify)
        alert = machine.apply(result)
    """

    def __init__(
        self,
        alert_threshold: RiskLevel = RiskLevel.LOW,
        history_size: int = 100,
        on_escalation_required: Optional[EscalationCallback] = None,
        resource_provider: Optional[ResourceProvider] = None,
    ) -> None:
        self._threshold = max(alert_threshold, RiskLevel.LOW)
        self._history: deque[CrisisAnalysisResult] = deque(maxlen=history_size)
        self._on_escalation = on_escalation_required
        self._resource_provider = resource_provider
        self._state = RiskLevel.NONE
        self._alert: Optional[CrisisAlert] = None
        self._pending: list[EscalationAction] = []
        self._taken: dict[UUID, EscalationAction] = {}

    @property
    def state(self) -> RiskLevel:
        return self._state

    @property
    def alert_threshold(self) -> RiskLevel:
        return self._threshold

    @property
    def current_alert(self) -> Optional[CrisisAlert]:
        """Latest alert, including a dismissed one."""
        return self._alert

    @property
    def visible_alert(self) -> Optional[CrisisAlert]:
        if self._alert is not None and self._alert.shown:
            return self._alert
        return None

    @property
    def history(self) -> tuple[CrisisAnalysisResult, ...]:
        return tuple(self._history)

    @property
    def pending_actions(self) -> tuple[EscalationAction, ...]:
        return tuple(self._pending)

    def set_escalation_callback(self, callback: Optional[EscalationCallback]) -> None:
        self._on_escalation = callback

    def apply(self, result: CrisisAnalysisResult) -> Optional[CrisisAlert]:
        """
        Apply an analysis result.

        Args:
            result: Completed analysis

        Returns:
            The new alert when the result qualified, otherwise None
        """
        self._history.append(result)
        previous = self._state
        self._state = result.risk_level

        if result.risk_level < self._threshold:
            return None

        actions: list[EscalationAction] = []
        if result.risk_level >= RiskLevel.MEDIUM:
            actions = build_actions(result)
            self._pending = list(actions)
            track_escalation(result.risk_level.label)

        self._alert = CrisisAlert(
            severity=result.risk_level,
            message=ALERT_MESSAGES[result.risk_level],
            actions=tuple(actions),
            resources=self._resources_for(result.risk_level),
            emergency_mode=result.risk_level == RiskLevel.CRITICAL,
            analysis_id=result.analysis_id,
        )

        if actions:
            log = logger.warning if result.risk_level >= RiskLevel.HIGH else logger.info
            log(
                "Escalation required",
                analysis_id=str(result.analysis_id),
                previous_level=previous.label,
                new_level=result.risk_level.label,
                actions=[a.kind.value for a in actions],
                emergency_mode=self._alert.emergency_mode,
            )
            self._notify(result, actions)

        return self._alert

    def dismiss(self) -> None:
        """Hide the current alert. Safe to call repeatedly."""
        if self._alert is None or not self._alert.shown:
            return
        self._alert = self._alert.dismissed()
        track_alert_dismissed(self._alert.severity.label)
        logger.info("Crisis alert dismissed", severity=self._alert.severity.label)

    def take_actions(self) -> list[EscalationAction]:
        """Hand pending actions to the execution layer, removing them."""
        taken, self._pending = self._pending, []
        for action in taken:
            self._taken[action.action_id] = action
        return taken

    def mark_action(self, action_id: UUID, status: ActionStatus) -> bool:
        """
        Record the execution result of a taken action.

        Returns:
            False when the action is unknown
        """
        action = self._taken.get(action_id)
        if action is None:
            action = next((a for a in self._pending if a.action_id == action_id), None)
        if action is None:
            return False
        action.status = status
        if status != ActionStatus.PENDING:
            self._taken.pop(action_id, None)
        track_action_status(action.kind.value, status.value)
        return True

    def trend(self) -> RiskTrend:
        """
        Risk trend over the most recent analyses.

        Compares the mean score of the older half of the window with
        the newer half.
        """
        window = list(self._history)[-TREND_WINDOW:]
        if len(window) < TREND_MIN_SAMPLES:
            return RiskTrend.INSUFFICIENT_DATA
        middle = len(window) // 2
        older = window[:middle]
        newer = window[middle:]
        older_avg = sum(r.risk_score for r in older) / len(older)
        newer_avg = sum(r.risk_score for r in newer) / len(newer)
        delta = newer_avg - older_avg
        if delta > TREND_DELTA:
            return RiskTrend.DETERIORATING
        if delta < -TREND_DELTA:
            return RiskTrend.IMPROVING
        return RiskTrend.STABLE

    def _resources_for(self, level: RiskLevel) -> tuple[CrisisResource, ...]:
        if self._resource_provider is None:
            return ()
        try:
            return tuple(self._resource_provider(level))
        except Exception as e:
            logger.error("Resource lookup for alert failed", error_type=type(e).__name__)
            return ()

    def _notify(self, result: CrisisAnalysisResult, actions: list[EscalationAction]) -> None:
        if self._on_escalation is None:
            return
        try:
            self._on_escalation(result, list(actions))
        except Exception as e:
            logger.error(
                "Escalation callback failed",
                analysis_id=str(result.analysis_id),
                error_type=type(e).__name__,
            )
