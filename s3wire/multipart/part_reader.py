"""
Part Reader

Splits a seekable file or a forward-only stream into ordered, hashed parts.

File sources:
    Each part is hashed by reading it once, then handed out as a
    FileSegment; the transport re-reads the bytes from disk. The handle is
    borrowed and its position is restored after hashing.

Stream sources:
    Each part is copied into a ChunkChain: fixed-size buffers allocated
    once and reset between parts, so peak memory is one part per chain.
    After a part of an unknown-size stream is read, one more byte is read
    ahead; end of stream at that point makes the current part the last
    one. The byte is kept in pending_byte and starts the next part.

get_part is synchronous and blocking; the orchestrator runs it in a worker
thread.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import BinaryIO, Iterable, Optional

from s3wire.checksum import (
    Algorithm,
    Hasher,
    base64_string,
    make_headers,
    new_hasher_map,
    update_hashers,
    update_hashers_from_reader,
)
from s3wire.core import constants as C
from s3wire.core.errors import ConfigurationError, TransportError
from s3wire.http.body import Body, ChunkList, FileSegment


# =============================================================================
# CHUNK CHAIN
# =============================================================================
class ChunkChain:
    """
    Reusable in-memory buffer for one part.

    capacity bytes are split over buffers of at most chunk_size bytes.
    reset() rewinds the fill counters; buffers are never reallocated.
    """

    __slots__ = ("_buffers", "_filled", "_capacity")

    def __init__(self, capacity: int, chunk_size: int = C.PART_CHUNK_SIZE) -> None:
        self._capacity = capacity
        self._buffers: list[bytearray] = []
        remaining = capacity
        while remaining > 0:
            size = min(chunk_size, remaining)
            self._buffers.append(bytearray(size))
            remaining -= size
        self._filled = [0] * len(self._buffers)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def length(self) -> int:
        return sum(self._filled)

    def reset(self) -> None:
        for i in range(len(self._filled)):
            self._filled[i] = 0

    def write(self, data: bytes) -> None:
        """
        Append data after the bytes already written.

        Raises:
            ValueError: data does not fit in the remaining capacity.
        """
        view = memoryview(data)
        if len(view) > self._capacity - self.length:
            raise ValueError("chunk chain capacity exceeded")
        index = 0
        while view:
            while self._filled[index] == len(self._buffers[index]):
                index += 1
            start = self._filled[index]
            take = min(len(view), len(self._buffers[index]) - start)
            self._buffers[index][start:start + take] = view[:take]
            self._filled[index] += take
            view = view[take:]

    def to_chunk_list(self) -> ChunkList:
        return ChunkList(tuple(
            memoryview(buf)[:filled]
            for buf, filled in zip(self._buffers, self._filled)
            if filled
        ))


# =============================================================================
# PART SOURCE
# =============================================================================
@dataclass(frozen=True)
class PartSource:
    """One part: its number, its body and the digests computed while reading."""

    part_number: int
    body: Body
    hashers: dict[Algorithm, Hasher] = field(default_factory=dict, compare=False)

    @property
    def size(self) -> int:
        return self.body.length

    @property
    def sha256(self) -> str:
        return self.body.sha256_hash or ""

    def checksum(self, algorithm: Algorithm) -> Optional[str]:
        """Base64 digest for algorithm, if it was computed for this part."""
        hasher = self.hashers.get(algorithm)
        if hasher is None:
            return None
        return base64_string(hasher.sum())

    def checksum_headers(self, add_sha256_checksum: bool) -> dict[str, str]:
        return make_headers(self.hashers, False, add_sha256_checksum)


# =============================================================================
# PART READER
# =============================================================================
class PartReader:
    """
    Sequential producer of PartSource values.

    Usage:
        reader = PartReader.from_stream(stream, -1, 5 * MB, -1)
        while (part := reader.get_part()) is not None:
            ...
    """

    def __init__(
        self,
        source: BinaryIO,
        object_size: int,
        part_size: int,
        part_count: int,
        algorithms: Iterable[Optional[Algorithm]] = (),
        is_file: bool = False,
    ) -> None:
        self._source = source
        self._object_size = object_size
        self._part_size = part_size
        self._part_count = part_count
        self._algorithms = tuple(a for a in algorithms if a is not None)
        self._is_file = is_file

        self._part_number = 0
        self._total_read = 0
        self._eof = False
        self.pending_byte: Optional[bytes] = None

        self._offset = source.tell() if is_file else 0
        self._file_lock = threading.Lock()
        self._chain: Optional[ChunkChain] = None

    @classmethod
    def from_file(
        cls,
        handle: BinaryIO,
        object_size: int,
        part_size: int,
        part_count: int,
        algorithms: Iterable[Optional[Algorithm]] = (),
    ) -> PartReader:
        """
        Raises:
            ConfigurationError: object_size is unknown.
        """
        if object_size < 0:
            raise ConfigurationError.invalid_argument(
                "object size", "object size must be provided for file sources"
            )
        return cls(handle, object_size, part_size, part_count, algorithms, is_file=True)

    @classmethod
    def from_stream(
        cls,
        stream: BinaryIO,
        object_size: int,
        part_size: int,
        part_count: int,
        algorithms: Iterable[Optional[Algorithm]] = (),
    ) -> PartReader:
        return cls(stream, object_size, part_size, part_count, algorithms, is_file=False)

    @property
    def part_count(self) -> int:
        """Total parts, or -1 while an unknown-size stream is not exhausted."""
        return self._part_count

    @property
    def part_size(self) -> int:
        return self._part_size

    @property
    def is_file(self) -> bool:
        return self._is_file

    @property
    def eof(self) -> bool:
        return self._eof

    def new_chain(self) -> ChunkChain:
        """A chain large enough for any part of this reader."""
        return ChunkChain(self._part_size)

    def get_part(self, chain: Optional[ChunkChain] = None) -> Optional[PartSource]:
        """
        Read the next part, or return None after the last one.

        chain receives stream bytes; when omitted, a chain owned by the
        reader is reused across calls.

        Raises:
            ConfigurationError: an unknown-size stream needs more than
                10,000 parts; raised before anything more is read.
            TransportError: the source ended before the declared size.
        """
        if self._part_number == self._part_count:
            return None
        if self._part_number >= C.MAX_MULTIPART_COUNT:
            raise ConfigurationError.invalid_part_size(
                f"stream does not fit in {C.MAX_MULTIPART_COUNT} parts of "
                f"{self._part_size} bytes",
                part_size=self._part_size,
            )
        self._part_number += 1

        size = self._part_size
        if self._part_number == self._part_count:
            size = self._object_size - self._total_read

        hashers = new_hasher_map((Algorithm.SHA256, *self._algorithms))
        if self._is_file:
            data, read = self._read_file(size, hashers)
        else:
            if chain is None:
                if self._chain is None:
                    self._chain = self.new_chain()
                chain = self._chain
            data, read = self._read_stream(size, hashers, chain)

        self._total_read += read
        if self._object_size < 0 and self._eof:
            self._part_count = self._part_number

        sha256 = hashers[Algorithm.SHA256].sum().hex()
        if Algorithm.SHA256 not in self._algorithms:
            del hashers[Algorithm.SHA256]
        return PartSource(
            part_number=self._part_number,
            body=Body(data=data, length=read, sha256_hash=sha256),
            hashers=hashers,
        )

    def _read_file(self, size: int, hashers: dict[Algorithm, Hasher]) -> tuple[FileSegment, int]:
        position = self._offset
        with self._file_lock:
            origin = self._source.tell()
            try:
                self._source.seek(position)
                update_hashers_from_reader(hashers, self._source, size)
            finally:
                self._source.seek(origin)
        self._offset += size
        return FileSegment(self._source, position, size, self._file_lock), size

    def _read_stream(
        self,
        size: int,
        hashers: dict[Algorithm, Hasher],
        chain: ChunkChain,
    ) -> tuple[ChunkList, int]:
        chain.reset()
        total = 0

        if self.pending_byte is not None:
            chain.write(self.pending_byte)
            update_hashers(hashers, self.pending_byte)
            total += 1
            self.pending_byte = None

        while total < size:
            block = self._source.read(min(size - total, C.IO_BLOCK_SIZE))
            if not block:
                self._eof = True
                if self._object_size < 0:
                    break
                raise TransportError.insufficient_data(
                    self._object_size, self._total_read + total
                )
            chain.write(block)
            update_hashers(hashers, block)
            total += len(block)

        if not self._eof and self._object_size < 0:
            lookahead = self._source.read(1)
            if lookahead:
                self.pending_byte = lookahead
            else:
                self._eof = True

        return chain.to_chunk_list(), total


__all__ = ["ChunkChain", "PartSource", "PartReader"]
