"""
Core module: value types, error hierarchy, constants and configuration.
"""

from s3wire.core.types import Result, Ok, Err, Timestamp, ByteRange
from s3wire.core.errors import (
    ErrorCode,
    S3WireError,
    ConfigurationError,
    SigningError,
    TransportError,
    ErrorResponse,
    ProtocolError,
    ErrorResponseError,
    MultipartAbortError,
    ReliabilityError,
)
from s3wire.core.config import (
    ClientConfig,
    Credentials,
    CredentialsProvider,
    StaticProvider,
    EnvironmentProvider,
)

__all__ = [
    "Result",
    "Ok",
    "Err",
    "Timestamp",
    "ByteRange",
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
    "ClientConfig",
    "Credentials",
    "CredentialsProvider",
    "StaticProvider",
    "EnvironmentProvider",
]
