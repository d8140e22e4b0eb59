"""
Durable local storage components.
"""

from astral.infrastructure.storage.connection import Base, StorageManager
from astral.infrastructure.storage.key_value_store import (
    InMemoryKeyValueStore,
    KeyValueStore,
    SqlKeyValueStore,
)

__all__ = [
    "Base",
    "StorageManager",
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "SqlKeyValueStore",
]
