"""
Request body descriptors.

A Body carries its byte length, any precomputed hashes, and a data source.
The data source is one of:

- bytes: small in-memory payloads (XML documents, single PUTs)
- FileSegment: a byte range of a borrowed, seekable file handle; bytes are
  re-read from disk while the body is sent, never buffered whole
- ChunkList: views over a chain of fixed-size in-memory buffers
- an async iterable of bytes for opaque pass-through bodies

Bodies are sent by iterating aiter_content(); file reads run in a worker
thread so the event loop never blocks on disk I/O.
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from typing import AsyncIterable, AsyncIterator, BinaryIO, Optional, Union

from s3wire.checksum import SHA256, md5_base64, sha256_hex
from s3wire.core import constants as C
from s3wire.core.errors import TransportError


# =============================================================================
# DATA SOURCES
# =============================================================================
@dataclass(frozen=True, slots=True)
class FileSegment:
    """length bytes of handle starting at position."""

    handle: BinaryIO
    position: int
    length: int
    # Serializes seek+read pairs on a handle shared by concurrent parts
    lock: threading.Lock = field(default_factory=threading.Lock, compare=False)

    def read_at(self, offset: int, size: int) -> bytes:
        """Read size bytes at position + offset without disturbing other readers."""
        with self.lock:
            self.handle.seek(self.position + offset)
            return self.handle.read(size)

    async def aiter_content(self, block_size: int = C.IO_BLOCK_SIZE * 4) -> AsyncIterator[bytes]:
        sent = 0
        while sent < self.length:
            size = min(block_size, self.length - sent)
            block = await asyncio.to_thread(self.read_at, sent, size)
            if not block:
                # File shrank underneath us
                raise TransportError.insufficient_data(self.length, sent)
            sent += len(block)
            yield block


@dataclass(frozen=True, slots=True)
class ChunkList:
    """Ordered views over filled regions of reusable chunk buffers."""

    chunks: tuple[memoryview, ...]

    @property
    def length(self) -> int:
        return sum(len(c) for c in self.chunks)

    def tobytes(self) -> bytes:
        return b"".join(bytes(c) for c in self.chunks)

    async def aiter_content(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            yield bytes(chunk)


BodyData = Union[bytes, FileSegment, ChunkList, AsyncIterable[bytes]]


# =============================================================================
# BODY DESCRIPTOR
# =============================================================================
@dataclass(frozen=True)
class Body:
    """
    Immutable request body descriptor.

    passthrough bodies are sent unsigned (UNSIGNED-PAYLOAD) and never
    hashed by the client.
    """

    data: BodyData = b""
    length: int = 0
    content_type: Optional[str] = None
    sha256_hash: Optional[str] = None
    md5_hash: Optional[str] = None
    passthrough: bool = False

    @classmethod
    def of(
        cls,
        data: Union[bytes, str],
        content_type: Optional[str] = None,
    ) -> Body:
        """In-memory body with SHA-256 and MD5 computed up front."""
        raw = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        return cls(
            data=raw,
            length=len(raw),
            content_type=content_type,
            sha256_hash=sha256_hex(raw),
            md5_hash=md5_base64(raw),
        )

    @classmethod
    def raw(cls, data: bytes, content_type: Optional[str] = None) -> Body:
        """In-memory body without precomputed hashes."""
        return cls(data=data, length=len(data), content_type=content_type)

    @classmethod
    def stream(
        cls,
        data: AsyncIterable[bytes],
        length: int,
        content_type: Optional[str] = None,
    ) -> Body:
        """Opaque pass-through body."""
        return cls(data=data, length=length, content_type=content_type, passthrough=True)

    @property
    def in_memory(self) -> bool:
        return isinstance(self.data, (bytes, bytearray))

    def compute_sha256(self) -> Optional[str]:
        """SHA-256 hex of the payload when known or cheaply computable."""
        if self.sha256_hash is not None:
            return self.sha256_hash
        if isinstance(self.data, (bytes, bytearray)):
            return sha256_hex(self.data)
        if isinstance(self.data, ChunkList):
            hasher = SHA256()
            for chunk in self.data.chunks:
                hasher.update(chunk)
            return hasher.sum().hex()
        return None

    def content(self) -> Union[bytes, AsyncIterator[bytes]]:
        """Payload in the form the transport sends."""
        data = self.data
        if isinstance(data, (bytes, bytearray)):
            return bytes(data)
        if isinstance(data, (FileSegment, ChunkList)):
            return data.aiter_content()
        return _forward(data)


async def _forward(source: AsyncIterable[bytes]) -> AsyncIterator[bytes]:
    async for block in source:
        yield block


EMPTY_BODY = Body(
    data=b"",
    length=0,
    sha256_hash=C.ZERO_SHA256_HASH,
    md5_hash=C.ZERO_MD5_HASH,
)


__all__ = [
    "FileSegment",
    "ChunkList",
    "BodyData",
    "Body",
    "EMPTY_BODY",
]
