"""
Crisis Detection Service

Observable state container connecting debounced input, the analyzer
and the escalation state machine.

SAFETY-CRITICAL: A stale, slow analysis must never overwrite a newer
one. Every analysis takes a monotonic sequence number and a result is
applied only if it is newer than the last applied result.
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional
from uuid import UUID

from astral.config.logging_config import get_logger
from astral.domain.enums.risk_level import ActionStatus, RiskTrend
from astral.domain.models.capability_models import OptimizationStrategy
from astral.domain.models.crisis_models import (
    AnalysisContext,
    CrisisAlert,
    CrisisAnalysisResult,
    EscalationAction,
)
from astral.infrastructure.metrics import STALE_ANALYSES_DISCARDED
from astral.services.crisis.analyzer import CrisisAnalyzer
from astral.services.crisis.debouncer import Debouncer
from astral.services.crisis.escalation import EscalationStateMachine

logger = get_logger(__name__)


@dataclass(frozen=True)
class DetectionState:
    """Snapshot published to subscribers."""

    alert: Optional[CrisisAlert] = None
    is_analyzing: bool = False
    last_result: Optional[CrisisAnalysisResult] = None
    error: Optional[str] = None
    history_size: int = 0
    trend: RiskTrend = RiskTrend.INSUFFICIENT_DATA

    def to_dict(self) -> dict:
        return {
            "alert": self.alert.to_dict() if self.alert else None,
            "is_analyzing": self.is_analyzing,
            "last_result": self.last_result.to_dict() if self.last_result else None,
            "error": self.error,
            "history_size": self.history_size,
            "trend": self.trend.value,
        }


StateListener = Callable[[DetectionState], None]


class CrisisDetectionService:
    """
    Crisis detection state container.

    Analysis runs off the event loop via asyncio.to_thread. Results
    are applied to the state machine in completion order, discarding
    any result older than the last one applied.
    """

    def __init__(
        self,
        analyzer: CrisisAnalyzer,
        escalation: EscalationStateMachine,
        debounce_ms: int = 500,
        constrained_debounce_ms: int = 1000,
    ) -> None:
        self._analyzer = analyzer
        self._escalation = escalation
        self._debounce_ms = debounce_ms
        self._constrained_debounce_ms = constrained_debounce_ms
        self._debouncer = Debouncer(debounce_ms / 1000)
        self._listeners: list[StateListener] = []
        self._requested_seq = 0
        self._applied_seq = 0
        self._in_flight = 0
        self._last_result: Optional[CrisisAnalysisResult] = None
        self._error: Optional[str] = None

    @property
    def analyzer(self) -> CrisisAnalyzer:
        return self._analyzer

    @property
    def escalation(self) -> EscalationStateMachine:
        return self._escalation

    @property
    def debouncer(self) -> Debouncer:
        return self._debouncer

    @property
    def state(self) -> DetectionState:
        return DetectionState(
            alert=self._escalation.visible_alert,
            is_analyzing=self._in_flight > 0 or self._debouncer.has_pending,
            last_result=self._last_result,
            error=self._error,
            history_size=len(self._escalation.history),
            trend=self._escalation.trend(),
        )

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """
        Register a state listener.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def analyze(
        self,
        text: str,
        context: Optional[AnalysisContext] = None,
    ) -> CrisisAnalysisResult:
        """
        Analyze text immediately and apply the result.

        Text below the minimum length returns a neutral result without
        touching alert state.
        """
        if not isinstance(text, str) or len(text.strip()) < self._analyzer.min_length:
            return self._analyzer.analyze(text if isinstance(text, str) else "", context)

        self._requested_seq += 1
        sequence = self._requested_seq
        self._in_flight += 1
        self._publish()
        try:
            result = await asyncio.to_thread(self._analyzer.analyze, text, context)
        except Exception as e:
            logger.error("Analysis worker failed", error_type=type(e).__name__)
            result = CrisisAnalysisResult.neutral(
                ruleset_version=self._analyzer.ruleset.version,
                error=f"analysis failed: {type(e).__name__}",
            )
        finally:
            self._in_flight -= 1

        if sequence <= self._applied_seq:
            STALE_ANALYSES_DISCARDED.inc()
            logger.debug(
                "Discarding stale analysis",
                sequence=sequence,
                applied_sequence=self._applied_seq,
            )
            self._publish()
            return result

        self._applied_seq = sequence
        self._last_result = result
        self._error = result.error
        try:
            self._escalation.apply(result)
        except Exception as e:
            logger.error("Escalation failed", error_type=type(e).__name__)
            self._error = f"escalation failed: {type(e).__name__}"
        self._publish()
        return result

    def analyze_debounced(
        self,
        text: str,
        context: Optional[AnalysisContext] = None,
    ) -> int:
        """
        Schedule analysis after the debounce window.

        Returns:
            Debouncer sequence number of the scheduled call
        """
        sequence = self._debouncer.schedule(lambda: self.analyze(text, context))
        self._publish()
        return sequence

    async def wait_idle(self) -> None:
        """Wait for pending and in-flight debounced analyses."""
        await self._debouncer.wait()

    def dismiss_alert(self) -> None:
        self._escalation.dismiss()
        self._publish()

    def take_actions(self) -> list[EscalationAction]:
        actions = self._escalation.take_actions()
        self._publish()
        return actions

    def mark_action(self, action_id: UUID, status: ActionStatus) -> bool:
        return self._escalation.mark_action(action_id, status)

    def apply_strategy(self, strategy: OptimizationStrategy) -> None:
        """Adjust the debounce window to the current optimization strategy."""
        delay_ms = strategy.analysis_debounce_ms
        if strategy.reduced_animations or strategy.reduced_data_usage:
            delay_ms = max(delay_ms, self._constrained_debounce_ms)
        self._debouncer.delay = delay_ms / 1000
        logger.debug("Debounce window updated", debounce_ms=delay_ms)

    async def close(self) -> None:
        self._debouncer.cancel_pending()
        await self._debouncer.wait()

    def _publish(self) -> None:
        if not self._listeners:
            return
        snapshot = self.state
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error("Detection state listener failed", error_type=type(e).__name__)
