"""
Storage Connection Management

Async SQLAlchemy engine for the durable local store with:
- Schema creation on startup
- Health checks
- Graceful shutdown
- Transaction management

The default backend is a local SQLite file through aiosqlite.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from astral.config.logging_config import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    """
    SQLAlchemy declarative base for local storage models.
    """
    pass


class StorageManager:
    """
    Manages the storage engine and sessions.

    Usage:
        storage = StorageManager("sqlite+aiosqlite:///./astral.db")
        await storage.initialize()
        async with storage.session() as session:
            # use session
        await storage.close()
    """

    def __init__(self, url: str, echo: bool = False) -> None:
        """
        Initialize storage manager (engine not created).

        Args:
            url: SQLAlchemy async database URL
            echo: Log SQL statements
        """
        self._url = url
        self._echo = echo
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
        self._initialized = False

    async def initialize(self) -> None:
        """
        Create the engine, session factory and tables.

        Should be called once during application startup.
        """
        if self._initialized:
            logger.warning("Storage already initialized")
            return

        # In-memory SQLite must share a single connection
        engine_kwargs: dict = {"echo": self._echo}
        if ":memory:" in self._url:
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}

        self._engine = create_async_engine(self._url, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        # Import models so their tables are registered on Base.metadata
        from astral.infrastructure.storage import models  # noqa: F401

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self._initialized = True
        logger.info("Local storage initialized", backend=self._engine.dialect.name)

    async def close(self) -> None:
        """
        Dispose of the engine.

        Should be called during application shutdown.
        """
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            self._initialized = False
            logger.info("Local storage closed")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get a session with commit on success and rollback on error.

        Yields:
            AsyncSession: Storage session
        """
        if not self._session_factory:
            raise RuntimeError("Storage not initialized. Call initialize() first.")

        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def health_check(self) -> bool:
        """
        Check storage connectivity.

        Returns:
            True if storage is reachable, False otherwise
        """
        if not self._engine:
            return False

        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error("Storage health check failed", error=str(e))
            return False

    @property
    def engine(self) -> AsyncEngine | None:
        return self._engine

    @property
    def is_initialized(self) -> bool:
        return self._initialized
