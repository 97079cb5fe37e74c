"""
Error Hierarchy for the S3 Wire Client

Every failure surfaced to a caller is exactly one of these types:

- ConfigurationError: bad endpoint, region mismatch, invalid argument.
  Fails fast and is never retried.
- SigningError: missing signing preconditions or an unusable key.
- TransportError: connection, timeout or source I/O failure. The caller
  may retry.
- ProtocolError / ErrorResponseError: the server answered, and the answer
  is an error (mapped S3 error code) or is not understandable.
- MultipartAbortError: only raised while cleaning up a failed multipart
  upload; it is recorded on the original error and never propagates.
- ReliabilityError: caller-side retry helper gave up.

Each error includes:
- Unique error code for programmatic handling
- Human-readable message for logging
- Optional cause for root cause analysis
- Timestamp and id for correlation with server request logs

Usage:
    try:
        await client.put_object("bucket", "key", data, length)
    except ErrorResponseError as e:
        if e.response.code == "NoSuchBucket":
            ...
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from s3wire.core.types import Timestamp


# =============================================================================
# ERROR CODE ENUMERATION
# =============================================================================
class ErrorCode(Enum):
    """
    Unique error codes grouped by subsystem:
    - 1xxx: Configuration errors
    - 2xxx: Signing errors
    - 3xxx: Transport errors
    - 4xxx: Protocol errors
    - 5xxx: Multipart cleanup errors
    - 6xxx: Reliability errors
    """

    # Configuration errors (1xxx)
    CONFIG_INVALID_ENDPOINT = 1001
    CONFIG_INVALID_PORT = 1002
    CONFIG_REGION_CONFLICT = 1003
    CONFIG_INVALID_ARGUMENT = 1004
    CONFIG_UNSUPPORTED_CHECKSUM = 1005
    CONFIG_INVALID_PART_SIZE = 1006
    CONFIG_INVALID_BUCKET_NAME = 1007

    # Signing errors (2xxx)
    SIGNING_MISSING_DATE = 2001
    SIGNING_MISSING_REGION = 2002
    SIGNING_INVALID_KEY = 2003

    # Transport errors (3xxx)
    TRANSPORT_CONNECTION_FAILED = 3001
    TRANSPORT_TIMEOUT = 3002
    TRANSPORT_INSUFFICIENT_DATA = 3003

    # Protocol errors (4xxx)
    PROTOCOL_INVALID_RESPONSE = 4001
    PROTOCOL_ERROR_RESPONSE = 4002
    PROTOCOL_SERVER_FAULT = 4003

    # Multipart errors (5xxx)
    MULTIPART_ABORT_FAILED = 5001

    # Reliability errors (6xxx)
    RELIABILITY_RETRY_EXHAUSTED = 6001


# =============================================================================
# BASE ERROR CLASS
# =============================================================================
@dataclass(eq=False)
class S3WireError(Exception):
    """
    Base class for all client errors.

    Provides common infrastructure for error handling:
    - Unique error ID for log correlation
    - Error code for programmatic handling
    - Timestamp of creation
    - Cause chain for root cause analysis
    """

    code: ErrorCode
    message: str
    error_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: Timestamp = field(default_factory=Timestamp.now)
    cause: Optional[BaseException] = None
    context: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Initialize Exception base class with message
        super().__init__(self.message)
        if self.cause is not None:
            self.__cause__ = self.cause

    @property
    def retryable(self) -> bool:
        """Whether a caller may reasonably retry the failed call."""
        return False

    def with_context(self, **kwargs: Any) -> S3WireError:
        """Return a copy of this error with additional context."""
        return replace(self, context={**self.context, **kwargs})

    def to_dict(self) -> dict[str, Any]:
        """Serialize error to a dictionary for structured logging."""
        return {
            "error_id": self.error_id,
            "code": self.code.name,
            "code_value": self.code.value,
            "message": self.message,
            "timestamp_nanos": self.timestamp.nanos,
            "context": {k: v for k, v in self.context.items() if k != "suppressed"},
        }

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message} (id={self.error_id[:8]})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code.name}, "
            f"message={self.message!r}, "
            f"error_id={self.error_id!r})"
        )


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================
@dataclass(eq=False)
class ConfigurationError(S3WireError):
    """
    Invalid client or call configuration.

    Detected before any network I/O wherever possible.
    """

    @classmethod
    def invalid_endpoint(cls, endpoint: str, reason: str) -> ConfigurationError:
        return cls(
            code=ErrorCode.CONFIG_INVALID_ENDPOINT,
            message=f"invalid endpoint '{endpoint}': {reason}",
            context={"endpoint": endpoint},
        )

    @classmethod
    def invalid_port(cls, port: int) -> ConfigurationError:
        return cls(
            code=ErrorCode.CONFIG_INVALID_PORT,
            message=f"port must be in range of 1 to 65535, got {port}",
            context={"port": port},
        )

    @classmethod
    def region_conflict(
        cls,
        request_region: str,
        client_region: str,
    ) -> ConfigurationError:
        """Request region differs from the region the client is pinned to."""
        return cls(
            code=ErrorCode.CONFIG_REGION_CONFLICT,
            message=(
                f"region must be {client_region}, but passed {request_region}"
            ),
            context={
                "request_region": request_region,
                "client_region": client_region,
            },
        )

    @classmethod
    def invalid_argument(cls, name: str, reason: str) -> ConfigurationError:
        return cls(
            code=ErrorCode.CONFIG_INVALID_ARGUMENT,
            message=f"invalid {name}: {reason}",
            context={"argument": name},
        )

    @classmethod
    def unsupported_checksum(
        cls,
        algorithm: str,
        checksum_type: str,
    ) -> ConfigurationError:
        """Algorithm cannot be used for the requested checksum type."""
        return cls(
            code=ErrorCode.CONFIG_UNSUPPORTED_CHECKSUM,
            message=f"algorithm {algorithm} does not support {checksum_type} checksum",
            context={"algorithm": algorithm, "checksum_type": checksum_type},
        )

    @classmethod
    def invalid_part_size(cls, reason: str, **context: Any) -> ConfigurationError:
        return cls(
            code=ErrorCode.CONFIG_INVALID_PART_SIZE,
            message=reason,
            context=context,
        )

    @classmethod
    def invalid_bucket_name(cls, bucket: str, reason: str) -> ConfigurationError:
        return cls(
            code=ErrorCode.CONFIG_INVALID_BUCKET_NAME,
            message=f"bucket name '{bucket}' {reason}",
            context={"bucket": bucket},
        )


# =============================================================================
# SIGNING ERRORS
# =============================================================================
@dataclass(eq=False)
class SigningError(S3WireError):
    """Signature could not be produced. Never partially applied."""

    @classmethod
    def missing_date(cls) -> SigningError:
        return cls(
            code=ErrorCode.SIGNING_MISSING_DATE,
            message="x-amz-date header is required for signing",
        )

    @classmethod
    def missing_region(cls) -> SigningError:
        return cls(
            code=ErrorCode.SIGNING_MISSING_REGION,
            message="region is required for signing",
        )

    @classmethod
    def invalid_key(cls, cause: Optional[BaseException] = None) -> SigningError:
        return cls(
            code=ErrorCode.SIGNING_INVALID_KEY,
            message="secret key cannot be used for signing",
            cause=cause,
        )


# =============================================================================
# TRANSPORT ERRORS
# =============================================================================
@dataclass(eq=False)
class TransportError(S3WireError):
    """
    Connection, timeout or source I/O failures.

    The request may or may not have reached the server.
    """

    @property
    def retryable(self) -> bool:
        return self.code != ErrorCode.TRANSPORT_INSUFFICIENT_DATA

    @classmethod
    def connection_failed(
        cls,
        url: str,
        cause: Optional[BaseException] = None,
    ) -> TransportError:
        return cls(
            code=ErrorCode.TRANSPORT_CONNECTION_FAILED,
            message=f"request to {url} failed: {cause}",
            cause=cause,
            context={"url": url},
        )

    @classmethod
    def timeout(
        cls,
        url: str,
        cause: Optional[BaseException] = None,
    ) -> TransportError:
        return cls(
            code=ErrorCode.TRANSPORT_TIMEOUT,
            message=f"request to {url} timed out",
            cause=cause,
            context={"url": url},
        )

    @classmethod
    def insufficient_data(cls, expected: int, actual: int) -> TransportError:
        """Source ended before the declared object size was read."""
        return cls(
            code=ErrorCode.TRANSPORT_INSUFFICIENT_DATA,
            message=f"insufficient data; expected={expected}, got={actual}",
            context={"expected": expected, "actual": actual},
        )


# =============================================================================
# PROTOCOL ERRORS
# =============================================================================
@dataclass(frozen=True, slots=True)
class ErrorResponse:
    """S3 error document, parsed from XML or synthesized from a status code."""

    code: str
    message: str
    bucket_name: Optional[str] = None
    object_name: Optional[str] = None
    resource: Optional[str] = None
    request_id: Optional[str] = None
    host_id: Optional[str] = None


@dataclass(eq=False)
class ProtocolError(S3WireError):
    """Server response that cannot be interpreted."""

    status: int = 0

    @classmethod
    def invalid_response(
        cls,
        status: int,
        reason: str,
        content_type: Optional[str] = None,
        body: str = "",
    ) -> ProtocolError:
        return cls(
            code=ErrorCode.PROTOCOL_INVALID_RESPONSE,
            message=f"invalid response (status {status}): {reason}",
            status=status,
            context={"content_type": content_type, "body": body[:1024]},
        )


@dataclass(eq=False)
class ErrorResponseError(ProtocolError):
    """
    Server returned a mapped S3 error.

    `response.code` carries the S3 error code (NoSuchKey, AccessDenied, ...);
    `region` is the bucket region advertised by the server, if any.
    """

    response: ErrorResponse = field(
        default_factory=lambda: ErrorResponse(code="", message="")
    )
    region: Optional[str] = None

    @property
    def retryable(self) -> bool:
        return self.status >= 500

    @property
    def request_id(self) -> Optional[str]:
        return self.response.request_id

    @classmethod
    def from_response(
        cls,
        response: ErrorResponse,
        status: int,
        region: Optional[str] = None,
    ) -> ErrorResponseError:
        code = (
            ErrorCode.PROTOCOL_SERVER_FAULT
            if response.code == "ServerFault"
            else ErrorCode.PROTOCOL_ERROR_RESPONSE
        )
        return cls(
            code=code,
            message=f"{response.code}: {response.message}",
            status=status,
            response=response,
            region=region,
            context={
                "resource": response.resource,
                "request_id": response.request_id,
                "host_id": response.host_id,
            },
        )


# =============================================================================
# MULTIPART CLEANUP ERRORS
# =============================================================================
@dataclass(eq=False)
class MultipartAbortError(S3WireError):
    """AbortMultipartUpload failed while cleaning up after another failure."""

    @classmethod
    def abort_failed(
        cls,
        upload_id: str,
        cause: Optional[BaseException] = None,
    ) -> MultipartAbortError:
        return cls(
            code=ErrorCode.MULTIPART_ABORT_FAILED,
            message=f"failed to abort multipart upload {upload_id}",
            cause=cause,
            context={"upload_id": upload_id},
        )


# =============================================================================
# RELIABILITY ERRORS
# =============================================================================
@dataclass(eq=False)
class ReliabilityError(S3WireError):
    """Errors from the caller-side retry helper."""

    @classmethod
    def retry_exhausted(
        cls,
        attempts: int,
        last_error: Optional[BaseException] = None,
    ) -> ReliabilityError:
        """All retry attempts exhausted."""
        return cls(
            code=ErrorCode.RELIABILITY_RETRY_EXHAUSTED,
            message=f"Retry exhausted after {attempts} attempts: {last_error}",
            cause=last_error,
            context={"attempts": attempts},
        )


__all__ = [
    "ErrorCode",
    "S3WireError",
    "ConfigurationError",
    "SigningError",
    "TransportError",
    "ErrorResponse",
    "ProtocolError",
    "ErrorResponseError",
    "MultipartAbortError",
    "ReliabilityError",
]
