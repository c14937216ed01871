from printkeeper.models.failure import (
    FailureDetail,
    FailureKind,
    KnownError,
    OutcomeType,
    describe_unknown_failure,
)
from printkeeper.models.result import Result, StorageError

__all__ = [
    "FailureDetail",
    "FailureKind",
    "KnownError",
    "OutcomeType",
    "Result",
    "StorageError",
    "describe_unknown_failure",
]
