"""
Key-Value Storage Model

Single table holding JSON documents by key: the serialized sync
queue and the cached crisis resources.

PRIVACY: Queued payloads may contain sensitive user content and
should be encrypted at rest on shared devices.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from astral.infrastructure.storage.connection import Base


class KeyValueModel(Base):
    """
    Key-value table ORM model.

    Table: key_values
    """

    __tablename__ = "key_values"

    key: Mapped[str] = mapped_column(
        String(128),
        primary_key=True,
        doc="Storage key",
    )

    value: Mapped[Any] = mapped_column(
        JSON,
        nullable=True,
        doc="JSON document",
    )

    size_bytes: Mapped[int] = mapped_column(
        default=0,
        doc="Serialized size of the document",
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        doc="Last write time",
    )

    def __repr__(self) -> str:
        return f"<KeyValueModel(key={self.key}, size_bytes={self.size_bytes})>"
