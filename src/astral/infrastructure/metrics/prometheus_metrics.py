"""
Prometheus Metrics

Metrics for crisis detection and offline resilience observability.
Exposes metrics at /metrics endpoint for Prometheus scraping.

ARCHITECTURE: Metrics are decoupled from business logic.
Only increment/observe; never block on metrics operations.

PRIVACY: Labels never carry user text, payloads or identifiers.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)
from fastapi import APIRouter, Response

from astral import __version__
from astral.config.logging_config import get_logger

logger = get_logger(__name__)

# =============================================================================
# CRISIS ANALYSIS METRICS
# =============================================================================

CRISIS_ANALYSES_TOTAL = Counter(
    "astral_crisis_analyses_total",
    "Crisis analyses by resulting risk level",
    ["risk_level"],  # none, low, medium, high, critical
)

CRISIS_ANALYSIS_ERRORS = Counter(
    "astral_crisis_analysis_errors_total",
    "Analyses that failed internally and returned a neutral result",
)

CRISIS_ANALYSIS_DURATION = Histogram(
    "astral_crisis_analysis_duration_seconds",
    "Time spent analyzing a single text",
    buckets=[0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5],
)

STALE_ANALYSES_DISCARDED = Counter(
    "astral_crisis_stale_analyses_discarded_total",
    "Analysis results discarded because a newer one was already applied",
)

# =============================================================================
# ESCALATION METRICS
# =============================================================================

ESCALATIONS_TOTAL = Counter(
    "astral_escalations_total",
    "Escalation action sets generated by level",
    ["risk_level"],
)

ALERTS_DISMISSED = Counter(
    "astral_alerts_dismissed_total",
    "Crisis alerts dismissed by the user",
    ["severity"],
)

ESCALATION_ACTIONS = Counter(
    "astral_escalation_actions_total",
    "Escalation action outcomes reported by the execution layer",
    ["kind", "status"],
)

# =============================================================================
# SYNC QUEUE METRICS
# =============================================================================

SYNC_ITEMS_TOTAL = Counter(
    "astral_sync_items_total",
    "Sync item submit outcomes",
    ["outcome"],  # success, transient, terminal, exhausted
)

SYNC_QUEUE_SIZE = Gauge(
    "astral_sync_queue_size",
    "Items currently waiting in the sync queue",
)

SYNC_FLUSH_DURATION = Histogram(
    "astral_sync_flush_duration_seconds",
    "Duration of a sync flush pass",
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0],
)

SYNC_PERSISTENCE_DEGRADED = Gauge(
    "astral_sync_persistence_degraded",
    "1 when the sync queue runs in memory-only mode",
)

# =============================================================================
# CONNECTIVITY & CAPABILITY METRICS
# =============================================================================

NETWORK_TRANSITIONS = Counter(
    "astral_network_transitions_total",
    "Announced connectivity transitions",
    ["state"],  # online, offline
)

PROBES_UNAVAILABLE = Counter(
    "astral_capability_probes_unavailable_total",
    "Platform probes that fell back to safe defaults",
    ["probe"],
)

STRATEGY_CHANGES = Counter(
    "astral_strategy_changes_total",
    "Optimization strategy changes by cache strategy",
    ["cache_strategy"],
)

CACHED_RESOURCES = Gauge(
    "astral_cached_resources",
    "Resources held in the offline cache",
    ["crisis"],  # true, false
)

# =============================================================================
# API METRICS
# =============================================================================

HTTP_REQUESTS_TOTAL = Counter(
    "astral_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

# =============================================================================
# SYSTEM INFO
# =============================================================================

SYSTEM_INFO = Info(
    "astral_system",
    "Astral core information",
)

SYSTEM_INFO.info({
    "version": __version__,
    "environment": "development",
})


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def track_analysis(risk_level: str, duration_seconds: float, failed: bool = False) -> None:
    """Record a completed analysis."""
    CRISIS_ANALYSES_TOTAL.labels(risk_level=risk_level).inc()
    CRISIS_ANALYSIS_DURATION.observe(duration_seconds)
    if failed:
        CRISIS_ANALYSIS_ERRORS.inc()


def track_escalation(risk_level: str) -> None:
    """Record an escalation action set."""
    ESCALATIONS_TOTAL.labels(risk_level=risk_level).inc()


def track_alert_dismissed(severity: str) -> None:
    ALERTS_DISMISSED.labels(severity=severity).inc()


def track_action_status(kind: str, status: str) -> None:
    ESCALATION_ACTIONS.labels(kind=kind, status=status).inc()


def track_sync_outcome(outcome: str) -> None:
    """Record a single item submit outcome."""
    SYNC_ITEMS_TOTAL.labels(outcome=outcome).inc()


def track_queue_state(size: int, degraded: bool) -> None:
    SYNC_QUEUE_SIZE.set(size)
    SYNC_PERSISTENCE_DEGRADED.set(1 if degraded else 0)


def track_network_transition(online: bool) -> None:
    NETWORK_TRANSITIONS.labels(state="online" if online else "offline").inc()


def track_probe_unavailable(probe: str) -> None:
    PROBES_UNAVAILABLE.labels(probe=probe).inc()


def track_strategy_change(cache_strategy: str) -> None:
    STRATEGY_CHANGES.labels(cache_strategy=cache_strategy).inc()


def track_cached_resources(crisis_count: int, other_count: int) -> None:
    CACHED_RESOURCES.labels(crisis="true").set(crisis_count)
    CACHED_RESOURCES.labels(crisis="false").set(other_count)


# =============================================================================
# METRICS ENDPOINT
# =============================================================================

metrics_router = APIRouter(tags=["metrics"])


@metrics_router.get("/metrics")
async def metrics() -> Response:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format for scraping.
    """
    return Response(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST,
    )


def update_system_info(environment: str, version: str = __version__) -> None:
    """Update system info metric with current environment."""
    SYSTEM_INFO.info({
        "version": version,
        "environment": environment,
    })
