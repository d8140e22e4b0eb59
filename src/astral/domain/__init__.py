"""Astral domain layer: enums, models and the error taxonomy."""
