"""
S3 Wire Client

The protocol core of an S3-compatible object storage client:
- Endpoint Resolver: AWS host construction, virtual-host vs path style
- Signer: SigV4 header, presigned URL, aws-chunked, STS and POST policy
- Checksums: MD5, SHA-1, SHA-256, CRC32, CRC32C, CRC64/NVME
- Multipart: part sizing, part reading and upload orchestration with abort
- Execution Engine: region resolution and caching, response classification

All network I/O is asynchronous (asyncio + httpx).
"""

__version__ = "1.0.0"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================
from s3wire.core.types import Result, Ok, Err, ByteRange
from s3wire.core.errors import (
    ErrorCode,
    S3WireError,
    ConfigurationError,
    SigningError,
    TransportError,
    ProtocolError,
    ErrorResponse,
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

from s3wire.checksum import Algorithm, ChecksumType
from s3wire.http import Body, Headers, QueryParams, Transport, HttpxTransport
from s3wire.http.request import Method, S3Request
from s3wire.multipart import ObjectWriteResult, Part
from s3wire.client import S3Client, RegionCache, BucketInfo, ObjectStat
from s3wire.reliability import RetryPolicy, retry_with_backoff
from s3wire.observability import setup_logging

__all__ = [
    "__version__",
    # Core
    "Result",
    "Ok",
    "Err",
    "ByteRange",
    "ErrorCode",
    "S3WireError",
    "ConfigurationError",
    "SigningError",
    "TransportError",
    "ProtocolError",
    "ErrorResponse",
    "ErrorResponseError",
    "MultipartAbortError",
    "ReliabilityError",
    "ClientConfig",
    "Credentials",
    "CredentialsProvider",
    "StaticProvider",
    "EnvironmentProvider",
    # Wire
    "Algorithm",
    "ChecksumType",
    "Body",
    "Headers",
    "QueryParams",
    "Transport",
    "HttpxTransport",
    "Method",
    "S3Request",
    # Client
    "S3Client",
    "RegionCache",
    "BucketInfo",
    "ObjectStat",
    "ObjectWriteResult",
    "Part",
    "RetryPolicy",
    "retry_with_backoff",
    "setup_logging",
]
