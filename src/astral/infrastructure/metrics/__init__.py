"""Metrics infrastructure package."""

from astral.infrastructure.metrics.prometheus_metrics import (
    # Crisis metrics
    CRISIS_ANALYSES_TOTAL,
    CRISIS_ANALYSIS_ERRORS,
    STALE_ANALYSES_DISCARDED,
    # Escalation metrics
    ESCALATIONS_TOTAL,
    ALERTS_DISMISSED,
    # Sync metrics
    SYNC_ITEMS_TOTAL,
    SYNC_QUEUE_SIZE,
    SYNC_FLUSH_DURATION,
    # Connectivity metrics
    NETWORK_TRANSITIONS,
    PROBES_UNAVAILABLE,
    STRATEGY_CHANGES,
    HTTP_REQUESTS_TOTAL,
    # Helpers
    track_analysis,
    track_escalation,
    track_alert_dismissed,
    track_action_status,
    track_sync_outcome,
    track_queue_state,
    track_network_transition,
    track_probe_unavailable,
    track_strategy_change,
    track_cached_resources,
    update_system_info,
    # Router
    metrics_router,
)

__all__ = [
    "CRISIS_ANALYSES_TOTAL",
    "CRISIS_ANALYSIS_ERRORS",
    "STALE_ANALYSES_DISCARDED",
    "ESCALATIONS_TOTAL",
    "ALERTS_DISMISSED",
    "SYNC_ITEMS_TOTAL",
    "SYNC_QUEUE_SIZE",
    "SYNC_FLUSH_DURATION",
    "NETWORK_TRANSITIONS",
    "PROBES_UNAVAILABLE",
    "STRATEGY_CHANGES",
    "HTTP_REQUESTS_TOTAL",
    "track_analysis",
    "track_escalation",
    "track_alert_dismissed",
    "track_action_status",
    "track_sync_outcome",
    "track_queue_state",
    "track_network_transition",
    "track_probe_unavailable",
    "track_strategy_change",
    "track_cached_resources",
    "update_system_info",
    "metrics_router",
]
