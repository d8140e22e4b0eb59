"""
Key-Value Store

Durable storage boundary for the offline core. Values are JSON
documents. Implementations raise StorageError on any read/write
failure; callers decide how to degrade.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from astral.config.logging_config import get_logger
from astral.domain.errors import StorageError
from astral.infrastructure.storage.connection import StorageManager
from astral.infrastructure.storage.models import KeyValueModel

logger = get_logger(__name__)


def _encode(value: Any) -> str:
    """Serialize a document. Unserializable values raise ValueError, not StorageError."""
    try:
        return json.dumps(value, separators=(",", ":"), sort_keys=True)
    except TypeError as e:
        raise ValueError(f"Value is not JSON serializable: {e}") from e


class KeyValueStore(ABC):
    """Abstract durable key-value storage."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Read a document, None when absent."""

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Write a document, replacing any previous value."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a document. Missing keys are ignored."""

    @abstractmethod
    async def usage_bytes(self) -> int:
        """Total serialized size of stored documents."""

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class InMemoryKeyValueStore(KeyValueStore):
    """
    Process-local store.

    Documents are kept serialized so callers never share mutable
    state with the store, matching durable backends.
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = _encode(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def usage_bytes(self) -> int:
        return sum(len(v.encode("utf-8")) for v in self._data.values())

    def keys(self) -> list[str]:
        return sorted(self._data)


class SqlKeyValueStore(KeyValueStore):
    """
    SQLAlchemy-backed store.

    Usage:
        manager = StorageManager(settings.storage.url)
        await manager.initialize()
        store = SqlKeyValueStore(manager)
    """

    def __init__(self, manager: StorageManager) -> None:
        self._manager = manager

    @property
    def manager(self) -> StorageManager:
        return self._manager

    async def get(self, key: str) -> Optional[Any]:
        try:
            async with self._manager.session() as session:
                row = await session.get(KeyValueModel, key)
                return None if row is None else row.value
        except (SQLAlchemyError, RuntimeError) as e:
            raise StorageError(f"Failed to read key {key!r}", {"error": str(e)}) from e

    async def set(self, key: str, value: Any) -> None:
        size = len(_encode(value).encode("utf-8"))
        try:
            async with self._manager.session() as session:
                row = await session.get(KeyValueModel, key)
                if row is None:
                    session.add(KeyValueModel(key=key, value=value, size_bytes=size))
                else:
                    row.value = value
                    row.size_bytes = size
        except (SQLAlchemyError, RuntimeError) as e:
            raise StorageError(f"Failed to write key {key!r}", {"error": str(e)}) from e

    async def delete(self, key: str) -> None:
        try:
            async with self._manager.session() as session:
                row = await session.get(KeyValueModel, key)
                if row is not None:
                    await session.delete(row)
        except (SQLAlchemyError, RuntimeError) as e:
            raise StorageError(f"Failed to delete key {key!r}", {"error": str(e)}) from e

    async def usage_bytes(self) -> int:
        try:
            async with self._manager.session() as session:
                total = await session.scalar(select(func.coalesce(func.sum(KeyValueModel.size_bytes), 0)))
                return int(total or 0)
        except (SQLAlchemyError, RuntimeError) as e:
            raise StorageError("Failed to compute storage usage", {"error": str(e)}) from e

    async def health_check(self) -> bool:
        return await self._manager.health_check()

    async def close(self) -> None:
        await self._manager.close()
