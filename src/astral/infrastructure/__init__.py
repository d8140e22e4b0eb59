"""
Astral Infrastructure Layer

Durable storage, metrics and error monitoring.
Storage is reached only through the KeyValueStore interface.
"""
