"""Orchestration package - composition root for the resilience core."""

from astral.services.orchestration.resilience_core import ResilienceCore

__all__ = ["ResilienceCore"]
