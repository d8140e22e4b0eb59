"""
Astral Configuration Module

Provides centralized configuration management with:
- Environment-based settings loading
- Validation of tunable thresholds
- Secure handling of secrets
"""

from astral.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
