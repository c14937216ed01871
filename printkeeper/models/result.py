"""
Result type for persistence calls.

Storage backends and the versioned blob layer return Result values instead
of raising, so public store methods can keep a non-throwing contract while
tests can still observe exactly which failure occurred.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

from printkeeper.models.failure import FailureKind

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class StorageError:
    """
    A persistence failure.

    Attributes:
        kind: STORAGE_QUOTA_EXCEEDED, STORAGE_CORRUPTED or STORAGE_UNAVAILABLE
        message: Technical description for logs
        key: Storage key involved, if any
    """

    kind: FailureKind
    message: str
    key: str | None = None

    @property
    def is_quota(self) -> bool:
        return self.kind == FailureKind.STORAGE_QUOTA_EXCEEDED


@dataclass(frozen=True, slots=True)
class Result(Generic[T]):
    """Either a value or a StorageError, never both."""

    value: T | None = None
    error: StorageError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None) -> "Result[T]":
        """Create a successful result."""
        return cls(value=value)

    @classmethod
    def failure(
        cls,
        kind: FailureKind,
        message: str,
        key: str | None = None,
    ) -> "Result[T]":
        """Create a failed result."""
        return cls(error=StorageError(kind=kind, message=message, key=key))
