"""
aws-chunked payload encoding with chained chunk signatures.

Wire format of each chunk:

    <hex size>;chunk-signature=<64 hex>\\r\\n<data>\\r\\n

followed by a final zero-length chunk. The first chunk's signature chains
from the seed signature of the request headers; each later chunk chains
from the one before, so chunks are produced and sent strictly in order.
"""

from __future__ import annotations

import hashlib
from datetime import datetime
from typing import AsyncIterator, Iterator

from s3wire.core import constants as C
from s3wire.signer.sigv4 import chunk_signature

# ";chunk-signature=" + 64 hex + "\r\n" + "\r\n"
_CHUNK_METADATA_LEN = 17 + 64 + 2 + 2


def encoded_length(size: int, chunk_size: int = C.STREAMING_CHUNK_SIZE) -> int:
    """Content-Length of the aws-chunked encoding of size payload bytes."""
    full, remainder = divmod(size, chunk_size)
    length = full * (len(f"{chunk_size:x}") + _CHUNK_METADATA_LEN + chunk_size)
    if remainder:
        length += len(f"{remainder:x}") + _CHUNK_METADATA_LEN + remainder
    return length + 1 + _CHUNK_METADATA_LEN


class ChunkedEncoder:
    """
    Produces signed aws-chunked frames for an in-memory payload.

    Usage:
        encoder = ChunkedEncoder(data, seed_signature, date, region, secret)
        body = Body.stream(encoder.aiter_frames(), encoder.length)
    """

    __slots__ = ("_data", "_seed", "_date", "_region", "_secret_key", "_chunk_size")

    def __init__(
        self,
        data: bytes,
        seed_signature: str,
        date: datetime,
        region: str,
        secret_key: str,
        chunk_size: int = C.STREAMING_CHUNK_SIZE,
    ) -> None:
        self._data = memoryview(data)
        self._seed = seed_signature
        self._date = date
        self._region = region
        self._secret_key = secret_key
        self._chunk_size = chunk_size

    @property
    def length(self) -> int:
        return encoded_length(len(self._data), self._chunk_size)

    def _frame(self, chunk: memoryview, prev_signature: str) -> tuple[bytes, str]:
        digest = hashlib.sha256(chunk).hexdigest()
        sig = chunk_signature(digest, self._date, self._region, self._secret_key, prev_signature)
        head = f"{len(chunk):x};chunk-signature={sig}\r\n".encode("ascii")
        return head + bytes(chunk) + b"\r\n", sig

    def frames(self) -> Iterator[bytes]:
        prev = self._seed
        for offset in range(0, len(self._data), self._chunk_size):
            frame, prev = self._frame(self._data[offset:offset + self._chunk_size], prev)
            yield frame
        final, _ = self._frame(memoryview(b""), prev)
        yield final

    async def aiter_frames(self) -> AsyncIterator[bytes]:
        for frame in self.frames():
            yield frame


__all__ = ["ChunkedEncoder", "encoded_length"]
