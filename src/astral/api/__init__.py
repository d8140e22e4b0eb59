"""HTTP adapter for the resilience core."""
