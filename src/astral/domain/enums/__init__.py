"""Domain enums package."""

from astral.domain.enums.risk_level import ActionKind, ActionStatus, RiskLevel, RiskTrend

__all__ = ["ActionKind", "ActionStatus", "RiskLevel", "RiskTrend"]
