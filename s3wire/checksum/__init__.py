"""
Checksum subsystem: streaming hashers and algorithm selection.
"""

from s3wire.checksum.hashers import (
    Hasher,
    MD5,
    SHA1,
    SHA256,
    CRC32,
    CRC32C,
    CRC64NVME,
    crc64nvme_bytewise,
)
from s3wire.checksum.algorithms import (
    Algorithm,
    ChecksumType,
    hex_string,
    base64_string,
    sha256_hex,
    md5_base64,
    new_hasher_map,
    update_hashers,
    update_hashers_from_reader,
    make_headers,
)

__all__ = [
    "Hasher",
    "MD5",
    "SHA1",
    "SHA256",
    "CRC32",
    "CRC32C",
    "CRC64NVME",
    "crc64nvme_bytewise",
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
