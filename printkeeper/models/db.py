"""
SQLAlchemy ORM models for persistent storage.

Each store (printing cache, preference ledger) persists as one serialized
blob row keyed by store name.
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class StoredBlobDB(Base):
    """
    A serialized store document.

    The blob embeds its own store-wide version tag; the database does not
    interpret its contents.
    """

    __tablename__ = "stored_blobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    blob: Mapped[str] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<StoredBlobDB(key={self.key}, size={len(self.blob)})>"
