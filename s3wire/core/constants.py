"""
Protocol Constants for the S3 Wire Client

All S3 limits, sentinel hashes and wire defaults centralized here.
"""

from typing import Final

# =============================================================================
# SIZE UNITS
# =============================================================================
KB: Final[int] = 1024
MB: Final[int] = 1024 * KB
GB: Final[int] = 1024 * MB
TB: Final[int] = 1024 * GB

# =============================================================================
# MULTIPART LIMITS
# =============================================================================
MIN_MULTIPART_SIZE: Final[int] = 5 * MB
MAX_PART_SIZE: Final[int] = 5 * GB
MAX_OBJECT_SIZE: Final[int] = 5 * TB
MAX_MULTIPART_COUNT: Final[int] = 10_000
UNKNOWN_SIZE: Final[int] = -1

# Stream-backed parts are buffered in chained chunks of this size
PART_CHUNK_SIZE: Final[int] = 8 * MB

# Hashers and file-backed bodies read in blocks of this size
IO_BLOCK_SIZE: Final[int] = 16 * KB

# =============================================================================
# SIGNING
# =============================================================================
SIGN_ALGORITHM: Final[str] = "AWS4-HMAC-SHA256"
CHUNK_SIGN_ALGORITHM: Final[str] = "AWS4-HMAC-SHA256-PAYLOAD"
SERVICE_S3: Final[str] = "s3"
SERVICE_STS: Final[str] = "sts"
AMZ_DATE_FORMAT: Final[str] = "%Y%m%dT%H%M%SZ"
SIGNER_DATE_FORMAT: Final[str] = "%Y%m%d"

UNSIGNED_PAYLOAD: Final[str] = "UNSIGNED-PAYLOAD"
STREAMING_PAYLOAD: Final[str] = "STREAMING-AWS4-HMAC-SHA256-PAYLOAD"
ZERO_SHA256_HASH: Final[str] = (
    "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
)
ZERO_MD5_HASH: Final[str] = "1B2M2Y8AsgTpgAmY7PhCfg=="

STREAMING_CHUNK_SIZE: Final[int] = 64 * KB

# Presigned URL expiry bounds (seconds)
MIN_PRESIGN_EXPIRY: Final[int] = 1
MAX_PRESIGN_EXPIRY: Final[int] = 7 * 24 * 3600
DEFAULT_PRESIGN_EXPIRY: Final[int] = MAX_PRESIGN_EXPIRY

# =============================================================================
# REGIONS
# =============================================================================
US_EAST_1: Final[str] = "us-east-1"

# =============================================================================
# TRANSPORT DEFAULTS (seconds)
# =============================================================================
DEFAULT_CONNECT_TIMEOUT_S: Final[float] = 300.0
DEFAULT_WRITE_TIMEOUT_S: Final[float] = 300.0
DEFAULT_READ_TIMEOUT_S: Final[float] = 300.0

# =============================================================================
# RETRY
# =============================================================================
RETRY_BASE_MS: Final[int] = 100
RETRY_MAX_MS: Final[int] = 10_000
RETRY_MAX_ATTEMPTS: Final[int] = 3

# =============================================================================
# CONTENT TYPES
# =============================================================================
DEFAULT_CONTENT_TYPE: Final[str] = "application/octet-stream"
XML_CONTENT_TYPE: Final[str] = "application/xml"
