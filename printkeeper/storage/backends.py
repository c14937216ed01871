"""
Blob storage backends.

A backend is a string-keyed get/set/remove over small serialized blobs.
Backends never raise: every call returns a Result carrying either the value
or a StorageError (quota exceeded, unavailable).

Backends:
- MemoryBlobStorage: process-local dict, used for sessions and tests
- SqlBlobStorage: one row per key in the `stored_blobs` table
"""

import logging
from typing import Protocol

from sqlalchemy import create_engine, delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from printkeeper.models.db import Base, StoredBlobDB
from printkeeper.models.failure import FailureKind
from printkeeper.models.result import Result

logger = logging.getLogger(__name__)


class BlobStorage(Protocol):
    """Persistence contract consumed by the stores."""

    def read(self, key: str) -> Result[str]:
        """Return the blob for key, or a successful None when absent."""
        ...

    def write(self, key: str, blob: str) -> Result[None]:
        """Replace the blob for key in one write."""
        ...

    def delete(self, key: str) -> Result[None]:
        """Remove key. Removing an absent key succeeds."""
        ...


def _quota_error(key: str, size: int, quota: int) -> Result[None]:
    return Result.failure(
        FailureKind.STORAGE_QUOTA_EXCEEDED,
        f"blob of {size} bytes exceeds quota of {quota} bytes",
        key=key,
    )


def _blob_size(blob: str) -> int:
    return len(blob.encode("utf-8"))


class MemoryBlobStorage:
    """
    In-memory backend.

    Args:
        quota_bytes: Optional per-blob size cap. Writes above it fail with
            STORAGE_QUOTA_EXCEEDED, mirroring browser storage limits.
    """

    def __init__(self, quota_bytes: int | None = None) -> None:
        self.quota_bytes = quota_bytes
        self._blobs: dict[str, str] = {}

    def read(self, key: str) -> Result[str]:
        return Result.success(self._blobs.get(key))

    def write(self, key: str, blob: str) -> Result[None]:
        size = _blob_size(blob)
        if self.quota_bytes is not None and size > self.quota_bytes:
            return _quota_error(key, size, self.quota_bytes)
        self._blobs[key] = blob
        return Result.success()

    def delete(self, key: str) -> Result[None]:
        self._blobs.pop(key, None)
        return Result.success()

    def keys(self) -> list[str]:
        return list(self._blobs)


class SqlBlobStorage:
    """
    SQLAlchemy-backed storage.

    Each write runs in its own transaction so a blob is either fully
    replaced or left untouched.

    Args:
        engine: SQLAlchemy engine (tables are created on construction)
        quota_bytes: Optional per-blob size cap
    """

    def __init__(self, engine: Engine, quota_bytes: int | None = None) -> None:
        self.engine = engine
        self.quota_bytes = quota_bytes
        self._session_factory = sessionmaker(engine, class_=Session, expire_on_commit=False)
        Base.metadata.create_all(engine)

    @classmethod
    def from_url(
        cls, url: str, quota_bytes: int | None = None, echo: bool = False
    ) -> "SqlBlobStorage":
        """Create storage from a database URL (e.g. sqlite:///printkeeper.db)."""
        engine = create_engine(url, echo=echo, pool_pre_ping=True)
        return cls(engine, quota_bytes=quota_bytes)

    def read(self, key: str) -> Result[str]:
        try:
            with self._session_factory() as session:
                row = session.execute(
                    select(StoredBlobDB).where(StoredBlobDB.key == key)
                ).scalar_one_or_none()
                return Result.success(row.blob if row else None)
        except SQLAlchemyError as e:
            logger.error("STORAGE_READ_FAILED: key=%s error=%s", key, e)
            return Result.failure(FailureKind.STORAGE_UNAVAILABLE, str(e), key=key)

    def write(self, key: str, blob: str) -> Result[None]:
        size = _blob_size(blob)
        if self.quota_bytes is not None and size > self.quota_bytes:
            return _quota_error(key, size, self.quota_bytes)

        try:
            with self._session_factory() as session, session.begin():
                row = session.execute(
                    select(StoredBlobDB).where(StoredBlobDB.key == key)
                ).scalar_one_or_none()
                if row:
                    row.blob = blob
                else:
                    session.add(StoredBlobDB(key=key, blob=blob))
            return Result.success()
        except SQLAlchemyError as e:
            logger.error("STORAGE_WRITE_FAILED: key=%s error=%s", key, e)
            return Result.failure(FailureKind.STORAGE_UNAVAILABLE, str(e), key=key)

    def delete(self, key: str) -> Result[None]:
        try:
            with self._session_factory() as session, session.begin():
                session.execute(delete(StoredBlobDB).where(StoredBlobDB.key == key))
            return Result.success()
        except SQLAlchemyError as e:
            logger.error("STORAGE_DELETE_FAILED: key=%s error=%s", key, e)
            return Result.failure(FailureKind.STORAGE_UNAVAILABLE, str(e), key=key)
