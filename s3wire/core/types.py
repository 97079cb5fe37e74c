"""
Core Value Types for the S3 Wire Client

Result/Either containers used where a failure is an expected outcome
(configuration loading, header parsing, caller-side retries) rather than
an exceptional one. Protocol failures on the request path are raised as
typed exceptions from s3wire.core.errors.

Also provides:
- Timestamp: nanosecond wall-clock value used for error correlation
- ByteRange: inclusive byte range rendered as an HTTP Range header
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Generic,
    Literal,
    Optional,
    TypeVar,
    Union,
)

# =============================================================================
# TYPE VARIABLES
# =============================================================================
T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type
U = TypeVar("U")  # Transform result type


# =============================================================================
# RESULT CONTAINERS
# =============================================================================
@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Success variant of Result."""

    value: T

    def is_ok(self) -> Literal[True]:
        return True

    def is_err(self) -> Literal[False]:
        return False

    def unwrap(self) -> T:
        """Extract the wrapped value."""
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        return Ok(fn(self.value))

    def flat_map(self, fn: Callable[[T], Result[U, E]]) -> Result[U, E]:
        """Chain another fallible step."""
        return fn(self.value)

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """
    Failure variant of Result.

    The error is usually a message string (configuration parsing) or an
    S3WireError instance (retry helper).
    """

    error: E

    def is_ok(self) -> Literal[False]:
        return False

    def is_err(self) -> Literal[True]:
        return True

    def unwrap(self) -> Any:
        """
        Unwrapping a failure is a programming error.

        Raises:
            The wrapped exception when the error is one, otherwise
            RuntimeError carrying the error text.
        """
        if isinstance(self.error, BaseException):
            raise self.error
        raise RuntimeError(f"Called unwrap() on Err: {self.error}")

    def unwrap_or(self, default: T) -> T:
        return default

    def map(self, fn: Callable[[Any], U]) -> Err[E]:
        return self

    def flat_map(self, fn: Callable[[Any], Result[U, E]]) -> Err[E]:
        return self

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result = Union[Ok[T], Err[E]]


# =============================================================================
# TIMESTAMP
# =============================================================================
@dataclass(frozen=True, slots=True, order=True)
class Timestamp:
    """
    Wall-clock instant stored as nanoseconds since the Unix epoch.

    Attached to every error so log lines and error payloads can be
    correlated with server-side request logs.
    """

    nanos: int

    @classmethod
    def now(cls) -> Timestamp:
        return cls(nanos=time.time_ns())

    @classmethod
    def from_seconds(cls, seconds: float) -> Timestamp:
        return cls(nanos=int(seconds * 1_000_000_000))

    @property
    def seconds(self) -> float:
        return self.nanos / 1_000_000_000

    @property
    def millis(self) -> int:
        return self.nanos // 1_000_000

    def elapsed_millis(self) -> float:
        """Milliseconds elapsed since this timestamp."""
        return (time.time_ns() - self.nanos) / 1_000_000

    def __repr__(self) -> str:
        return f"Timestamp({self.nanos}ns)"


# =============================================================================
# BYTE RANGE FOR PARTIAL OBJECT READS
# =============================================================================
@dataclass(frozen=True, slots=True)
class ByteRange:
    """
    Inclusive byte range for GetObject.

    An open-ended range (end is None) reads from start to the end of the
    object.

    Invariant: 0 <= start <= end
    """

    start: int
    end: Optional[int] = None

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError(f"start must be >= 0, got {self.start}")
        if self.end is not None and self.end < self.start:
            raise ValueError(f"end ({self.end}) must be >= start ({self.start})")

    @property
    def length(self) -> Optional[int]:
        """Number of bytes in range, or None when open-ended."""
        if self.end is None:
            return None
        return self.end - self.start + 1

    def to_http_header(self) -> str:
        """Render as an HTTP Range header value."""
        if self.end is None:
            return f"bytes={self.start}-"
        return f"bytes={self.start}-{self.end}"

    def __repr__(self) -> str:
        end = "" if self.end is None else self.end
        return f"ByteRange({self.start}-{end})"


__all__ = [
    "Ok",
    "Err",
    "Result",
    "Timestamp",
    "ByteRange",
]
