"""
Checksum algorithm selection and multi-hash passes.

Algorithms are selected through the Algorithm enum; a pass that needs
several digests keeps one hasher per algorithm in a dict and feeds every
hasher from the same buffer, so the source is read exactly once.
"""

from __future__ import annotations

import base64
from enum import Enum
from typing import BinaryIO, Iterable, Mapping, Optional

from s3wire.checksum.hashers import (
    BytesLike,
    CRC32,
    CRC32C,
    CRC64NVME,
    Hasher,
    MD5,
    SHA1,
    SHA256,
)
from s3wire.core import constants as C
from s3wire.core.errors import ConfigurationError, TransportError
from s3wire.core.types import Result, Ok, Err


class ChecksumType(Enum):
    """How an object checksum relates to multipart boundaries."""

    COMPOSITE = "COMPOSITE"
    FULL_OBJECT = "FULL_OBJECT"


class Algorithm(Enum):
    CRC32 = "CRC32"
    CRC32C = "CRC32C"
    CRC64NVME = "CRC64NVME"
    SHA1 = "SHA1"
    SHA256 = "SHA256"
    MD5 = "MD5"

    def __str__(self) -> str:
        return self.value.lower()

    @property
    def header(self) -> str:
        """HTTP header carrying this checksum."""
        if self is Algorithm.MD5:
            return "Content-MD5"
        return f"x-amz-checksum-{self.value.lower()}"

    @property
    def full_object_support(self) -> bool:
        return self in (Algorithm.CRC32, Algorithm.CRC32C, Algorithm.CRC64NVME)

    @property
    def composite_support(self) -> bool:
        return self in (Algorithm.CRC32, Algorithm.CRC32C, Algorithm.SHA1, Algorithm.SHA256)

    def supports(self, checksum_type: ChecksumType) -> bool:
        if checksum_type is ChecksumType.COMPOSITE:
            return self.composite_support
        return self.full_object_support

    def validate(self, checksum_type: ChecksumType) -> None:
        """
        Raises:
            ConfigurationError: this algorithm cannot produce the given
                checksum type (MD5 supports neither).
        """
        if not self.supports(checksum_type):
            raise ConfigurationError.unsupported_checksum(self.value, checksum_type.value)

    def hasher(self) -> Hasher:
        return _HASHERS[self]()

    @classmethod
    def from_string(cls, name: str) -> Result[Algorithm, str]:
        """Parse an algorithm name, case-insensitive."""
        try:
            return Ok(cls(name.strip().upper()))
        except ValueError:
            return Err(f"unknown checksum algorithm: {name}")


_HASHERS = {
    Algorithm.CRC32: CRC32,
    Algorithm.CRC32C: CRC32C,
    Algorithm.CRC64NVME: CRC64NVME,
    Algorithm.SHA1: SHA1,
    Algorithm.SHA256: SHA256,
    Algorithm.MD5: MD5,
}


# =============================================================================
# ENCODING HELPERS
# =============================================================================
def hex_string(digest: bytes) -> str:
    return digest.hex()


def base64_string(digest: bytes) -> str:
    return base64.b64encode(digest).decode("ascii")


def sha256_hex(data: BytesLike) -> str:
    hasher = SHA256()
    hasher.update(data)
    return hasher.sum().hex()


def md5_base64(data: BytesLike) -> str:
    hasher = MD5()
    hasher.update(data)
    return base64_string(hasher.sum())


# =============================================================================
# MULTI-HASH PASSES
# =============================================================================
def new_hasher_map(algorithms: Iterable[Optional[Algorithm]]) -> dict[Algorithm, Hasher]:
    """One hasher per distinct algorithm, in first-seen order. None entries are skipped."""
    hashers: dict[Algorithm, Hasher] = {}
    for algorithm in algorithms:
        if algorithm is not None and algorithm not in hashers:
            hashers[algorithm] = algorithm.hasher()
    return hashers


def update_hashers(
    hashers: Mapping[Algorithm, Hasher],
    data: BytesLike,
    offset: int = 0,
    length: Optional[int] = None,
) -> None:
    for hasher in hashers.values():
        hasher.update(data, offset, length)


def update_hashers_from_reader(
    hashers: Mapping[Algorithm, Hasher],
    reader: BinaryIO,
    size: int,
) -> None:
    """
    Feed exactly size bytes read from a file or stream to every hasher.

    Raises:
        TransportError: the reader ends before size bytes.
    """
    total = 0
    while total < size:
        block = reader.read(min(size - total, C.IO_BLOCK_SIZE))
        if not block:
            raise TransportError.insufficient_data(size, total)
        update_hashers(hashers, block)
        total += len(block)


def make_headers(
    hashers: Mapping[Algorithm, Hasher],
    add_content_sha256: bool,
    add_sha256_checksum: bool,
) -> dict[str, str]:
    """
    Request headers for the digests in hashers.

    SHA256 is emitted as x-amz-content-sha256 (hex) when add_content_sha256
    is set and as an x-amz-checksum-sha256 header only when
    add_sha256_checksum is set. Every other algorithm is emitted as its
    checksum header plus x-amz-sdk-checksum-algorithm.
    """
    headers: dict[str, str] = {}
    for algorithm, hasher in hashers.items():
        digest = hasher.sum()
        if algorithm is Algorithm.SHA256:
            if add_content_sha256:
                headers["x-amz-content-sha256"] = hex_string(digest)
            if not add_sha256_checksum:
                continue
        headers["x-amz-sdk-checksum-algorithm"] = algorithm.value
        headers[algorithm.header] = base64_string(digest)
    return headers


__all__ = [
    "Algorithm",
    "ChecksumType",
    "hex_string",
    "base64_string",
    "sha256_hex",
    "md5_base64",
    "new_hasher_map",
    "update_hashers",
    "update_hashers_from_reader",
    "make_headers",
]
