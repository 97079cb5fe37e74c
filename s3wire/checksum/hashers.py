"""
Streaming Hashers: MD5, SHA1, SHA256, CRC32, CRC32C, CRC64NVME

Every hasher exposes the same capability:

    update(data, offset=0, length=None)   feed bytes
    sum() -> bytes                        digest so far (big-endian for CRCs)
    reset()                               start over

sum() never finalizes the hasher; more data may be fed afterwards.

CRC lookup tables are generated once at import with numpy and converted to
plain int lists, since the per-byte loops index them from Python.

CRC64NVME processes 8-byte words with slicing-by-8 tables and falls back
to byte-at-a-time for the trailing remainder. crc64nvme_bytewise() is the
byte-at-a-time reference the slicing path must agree with.
"""

from __future__ import annotations

import hashlib
import zlib
from abc import ABC, abstractmethod
from typing import Optional, Union

import numpy as np

BytesLike = Union[bytes, bytearray, memoryview]

CRC32C_POLY = 0x82F63B78
CRC64NVME_POLY = 0x9A6C9329AC4BC9B5

_MASK32 = 0xFFFFFFFF
_MASK64 = 0xFFFFFFFFFFFFFFFF


# =============================================================================
# TABLE GENERATION
# =============================================================================
def _reflected_table(poly: int) -> np.ndarray:
    """256-entry table for a reflected (LSB-first) CRC polynomial."""
    one = np.uint64(1)
    table = np.arange(256, dtype=np.uint64)
    poly_u = np.uint64(poly)
    for _ in range(8):
        table = np.where(table & one, (table >> one) ^ poly_u, table >> one)
    return table


def _slicing_tables(base: np.ndarray, count: int) -> list[list[int]]:
    """
    Slicing tables T[0..count-1] where T[k][i] is the CRC of byte i followed
    by k zero bytes.
    """
    tables = [base]
    low = np.uint64(0xFF)
    shift = np.uint64(8)
    for _ in range(1, count):
        prev = tables[-1]
        tables.append(base[(prev & low).astype(np.intp)] ^ (prev >> shift))
    return [t.tolist() for t in tables]


_CRC32C_TABLE: list[int] = _reflected_table(CRC32C_POLY).tolist()
_CRC64_TABLES: list[list[int]] = _slicing_tables(_reflected_table(CRC64NVME_POLY), 8)


def _view(data: BytesLike, offset: int, length: Optional[int]) -> memoryview:
    view = memoryview(data)
    if view.format != "B" or view.ndim != 1:
        view = view.cast("B")
    end = len(view) if length is None else offset + length
    return view[offset:end]


# =============================================================================
# HASHER INTERFACE
# =============================================================================
class Hasher(ABC):
    """Streaming hash capability shared by all checksum algorithms."""

    @abstractmethod
    def update(self, data: BytesLike, offset: int = 0, length: Optional[int] = None) -> None:
        ...

    @abstractmethod
    def sum(self) -> bytes:
        ...

    @abstractmethod
    def reset(self) -> None:
        ...


class _DigestHasher(Hasher):
    """Adapter over a hashlib constructor."""

    __slots__ = ("_name", "_hash")

    def __init__(self, name: str) -> None:
        self._name = name
        self._hash = hashlib.new(name)

    def update(self, data: BytesLike, offset: int = 0, length: Optional[int] = None) -> None:
        self._hash.update(_view(data, offset, length))

    def sum(self) -> bytes:
        return self._hash.digest()

    def reset(self) -> None:
        # hashlib objects have no reset
        self._hash = hashlib.new(self._name)


class MD5(_DigestHasher):
    def __init__(self) -> None:
        super().__init__("md5")


class SHA1(_DigestHasher):
    def __init__(self) -> None:
        super().__init__("sha1")


class SHA256(_DigestHasher):
    def __init__(self) -> None:
        super().__init__("sha256")


# =============================================================================
# CRC HASHERS
# =============================================================================
class CRC32(Hasher):
    """IEEE CRC32 (zlib polynomial)."""

    __slots__ = ("_crc",)

    def __init__(self) -> None:
        self._crc = 0

    def update(self, data: BytesLike, offset: int = 0, length: Optional[int] = None) -> None:
        self._crc = zlib.crc32(_view(data, offset, length), self._crc)

    def sum(self) -> bytes:
        return self._crc.to_bytes(4, "big")

    def reset(self) -> None:
        self._crc = 0

    @property
    def value(self) -> int:
        return self._crc


class CRC32C(Hasher):
    """CRC32 with the Castagnoli polynomial, byte-at-a-time."""

    __slots__ = ("_crc",)

    def __init__(self) -> None:
        self._crc = 0

    def update(self, data: BytesLike, offset: int = 0, length: Optional[int] = None) -> None:
        table = _CRC32C_TABLE
        crc = self._crc ^ _MASK32
        for b in _view(data, offset, length):
            crc = table[(crc ^ b) & 0xFF] ^ (crc >> 8)
        self._crc = crc ^ _MASK32

    def sum(self) -> bytes:
        return self._crc.to_bytes(4, "big")

    def reset(self) -> None:
        self._crc = 0

    @property
    def value(self) -> int:
        return self._crc


def _crc64nvme_update(crc: int, view: memoryview) -> int:
    t0, t1, t2, t3, t4, t5, t6, t7 = _CRC64_TABLES
    crc ^= _MASK64
    aligned = len(view) - (len(view) % 8)
    for i in range(0, aligned, 8):
        crc ^= int.from_bytes(view[i:i + 8], "little")
        crc = (
            t7[crc & 0xFF]
            ^ t6[(crc >> 8) & 0xFF]
            ^ t5[(crc >> 16) & 0xFF]
            ^ t4[(crc >> 24) & 0xFF]
            ^ t3[(crc >> 32) & 0xFF]
            ^ t2[(crc >> 40) & 0xFF]
            ^ t1[(crc >> 48) & 0xFF]
            ^ t0[crc >> 56]
        )
    for b in view[aligned:]:
        crc = t0[(crc ^ b) & 0xFF] ^ (crc >> 8)
    return crc ^ _MASK64


def crc64nvme_bytewise(data: BytesLike, crc: int = 0) -> int:
    """Byte-at-a-time CRC64NVME reference."""
    t0 = _CRC64_TABLES[0]
    crc ^= _MASK64
    for b in _view(data, 0, None):
        crc = t0[(crc ^ b) & 0xFF] ^ (crc >> 8)
    return crc ^ _MASK64


class CRC64NVME(Hasher):
    """CRC64 with the NVMe polynomial, slicing-by-8."""

    __slots__ = ("_crc",)

    def __init__(self) -> None:
        self._crc = 0

    def update(self, data: BytesLike, offset: int = 0, length: Optional[int] = None) -> None:
        self._crc = _crc64nvme_update(self._crc, _view(data, offset, length))

    def sum(self) -> bytes:
        return self._crc.to_bytes(8, "big")

    def reset(self) -> None:
        self._crc = 0

    @property
    def value(self) -> int:
        return self._crc


__all__ = [
    "BytesLike",
    "Hasher",
    "MD5",
    "SHA1",
    "SHA256",
    "CRC32",
    "CRC32C",
    "CRC64NVME",
    "crc64nvme_bytewise",
]
