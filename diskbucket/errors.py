"""Result and error types returned by bucket operations.

Expected failures (bad input, a busy lock, an unwritable directory) are
reported through `Result` values so callers inspect `result.error.kind`
instead of catching exceptions. The exception classes below are used only
inside the package and are converted at the `Bucket` boundary.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    LOCK_TIMEOUT = "lock_timeout"
    IO_FAILURE = "io_failure"
    NOT_FOUND = "not_found"
    INDEX_COMMIT = "index_commit"


@dataclass(frozen=True)
class BucketError:
    kind: ErrorKind
    message: str
    context: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.kind.value}: {self.message} ({ctx_str})"
        return f"{self.kind.value}: {self.message}"


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a bucket operation: either a value or an error."""

    value: Optional[T] = None
    error: Optional[BucketError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, **context: Any) -> "Result[T]":
        return cls(error=BucketError(kind, message, dict(context)))

    @classmethod
    def from_error(cls, error: BucketError) -> "Result[T]":
        return cls(error=error)


class DiskBucketError(Exception):
    """Base exception for failures raised inside the package.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging.
    """

    def __init__(self, message: str, context: Dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message


class LockTimeout(DiskBucketError):
    """Raised when the bucket lock cannot be acquired within the timeout."""
