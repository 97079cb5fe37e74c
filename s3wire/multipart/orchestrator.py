"""
Multipart Upload Orchestrator

State machine for one upload:

    IDLE -> READING -> PART_READY -> UPLOADING -> PART_COMPLETE
                ^                                     |
                +------------- next part -------------+
    READING (no more parts) -> FINALIZING -> COMPLETED
    any state after CreateMultipartUpload -> ABORTED

Compensation follows the saga pattern: once an upload id exists, any
failure triggers exactly one AbortMultipartUpload before the original
error propagates. A failing abort is recorded on the original error and
never replaces it. No abort is attempted without an upload id.

Parts may be issued concurrently (bounded by parallel_uploads) but are
read strictly in order and completed sorted by part number.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Optional, Protocol

from s3wire.checksum import Algorithm, ChecksumType
from s3wire.core import constants as C
from s3wire.core.errors import ConfigurationError, MultipartAbortError, S3WireError
from s3wire.core.types import Timestamp
from s3wire.http.body import Body
from s3wire.http.headers import Headers
from s3wire.multipart.part_reader import ChunkChain, PartReader, PartSource

logger = logging.getLogger(__name__)


# =============================================================================
# DATA MODEL
# =============================================================================
class UploadState(Enum):
    IDLE = auto()
    READING = auto()
    PART_READY = auto()
    UPLOADING = auto()
    PART_COMPLETE = auto()
    FINALIZING = auto()
    COMPLETED = auto()
    ABORTED = auto()

    @property
    def is_terminal(self) -> bool:
        return self in (UploadState.COMPLETED, UploadState.ABORTED)


_TRANSITIONS: dict[UploadState, frozenset[UploadState]] = {
    UploadState.IDLE: frozenset({UploadState.READING, UploadState.ABORTED}),
    UploadState.READING: frozenset({
        UploadState.PART_READY, UploadState.FINALIZING, UploadState.ABORTED,
    }),
    UploadState.PART_READY: frozenset({UploadState.UPLOADING, UploadState.ABORTED}),
    # Concurrent uploads return to READING while earlier parts are in flight
    UploadState.UPLOADING: frozenset({
        UploadState.PART_COMPLETE, UploadState.READING, UploadState.ABORTED,
    }),
    UploadState.PART_COMPLETE: frozenset({
        UploadState.READING, UploadState.FINALIZING, UploadState.ABORTED,
    }),
    UploadState.FINALIZING: frozenset({UploadState.COMPLETED, UploadState.ABORTED}),
    UploadState.COMPLETED: frozenset(),
    UploadState.ABORTED: frozenset(),
}


@dataclass(frozen=True, slots=True)
class Part:
    """Completed part as listed in CompleteMultipartUpload."""

    part_number: int
    etag: str
    size: int = 0
    checksums: tuple[tuple[Algorithm, str], ...] = ()


@dataclass(frozen=True, slots=True)
class ObjectWriteResult:
    bucket: str
    object_name: str
    etag: Optional[str] = None
    version_id: Optional[str] = None
    upload_id: Optional[str] = None
    headers: Headers = field(default_factory=Headers, compare=False)


@dataclass
class MultipartUploadSession:
    """
    Mutable state of one upload id.

    parts is pre-sized and indexed by part_number - 1; an unknown part
    count reserves the protocol maximum.
    """

    bucket: str
    object_name: str
    upload_id: str
    part_count: int = C.UNKNOWN_SIZE
    state: UploadState = UploadState.IDLE
    parts: list[Optional[Part]] = field(default_factory=list)
    started_at: Timestamp = field(default_factory=Timestamp.now)

    def __post_init__(self) -> None:
        if not self.parts:
            slots = self.part_count if self.part_count > 0 else C.MAX_MULTIPART_COUNT
            self.parts = [None] * slots

    def transition(self, to: UploadState) -> None:
        """
        Raises:
            RuntimeError: to is not reachable from the current state.
        """
        if to is self.state:
            return
        if to not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"invalid upload state transition {self.state.name} -> {to.name}")
        self.state = to

    def record(self, part: Part) -> None:
        self.parts[part.part_number - 1] = part

    def completed_parts(self) -> list[Part]:
        """Recorded parts in ascending part-number order."""
        return [p for p in self.parts if p is not None]


# =============================================================================
# SERVER OPERATIONS
# =============================================================================
class MultipartApi(Protocol):
    """The S3 calls an upload is driven through."""

    async def put_object_body(
        self, bucket: str, object_name: str, body: Body, headers: Headers,
    ) -> ObjectWriteResult:
        ...

    async def create_multipart_upload(
        self, bucket: str, object_name: str, headers: Headers,
    ) -> str:
        ...

    async def upload_part(
        self,
        bucket: str,
        object_name: str,
        upload_id: str,
        part_number: int,
        body: Body,
        headers: Headers,
    ) -> str:
        ...

    async def complete_multipart_upload(
        self, bucket: str, object_name: str, upload_id: str, parts: list[Part],
    ) -> ObjectWriteResult:
        ...

    async def abort_multipart_upload(
        self, bucket: str, object_name: str, upload_id: str,
    ) -> None:
        ...


# =============================================================================
# ORCHESTRATOR
# =============================================================================
class MultipartUploader:
    """
    Drives one put-object through a single PUT or a multipart upload.

    checksum selects an extra per-part checksum; SHA-256 is always
    computed for signing. checksum_type FULL_OBJECT asks the server to
    combine per-part CRCs into one object checksum.
    """

    def __init__(
        self,
        api: MultipartApi,
        parallel_uploads: int = 1,
        checksum: Optional[Algorithm] = None,
        checksum_type: ChecksumType = ChecksumType.COMPOSITE,
    ) -> None:
        self._api = api
        self._parallel = max(parallel_uploads, 1)
        self._checksum = checksum
        self._checksum_type = checksum_type

    async def upload(
        self,
        bucket: str,
        object_name: str,
        reader: PartReader,
        headers: Optional[Headers] = None,
    ) -> ObjectWriteResult:
        """
        Raises:
            ConfigurationError: the checksum cannot be used for multipart, or
                the source needs more than 10,000 parts.
            S3WireError: any create, upload or complete failure, after the
                upload has been aborted.
        """
        headers = headers or Headers()
        if reader.part_count == 1:
            return await self._put_single(bucket, object_name, reader, headers)

        size_known = reader.part_count > 1
        if self._checksum is not None and size_known:
            self._checksum.validate(self._checksum_type)

        first = await asyncio.to_thread(reader.get_part)
        if reader.part_count == 1:
            return await self._put_part_as_object(bucket, object_name, first, headers)

        if self._checksum is not None and not size_known:
            self._checksum.validate(self._checksum_type)

        create_headers = headers.copy()
        if self._checksum is not None:
            create_headers.set("x-amz-checksum-algorithm", self._checksum.value)
            create_headers.set("x-amz-checksum-type", self._checksum_type.value)

        upload_id = await self._api.create_multipart_upload(bucket, object_name, create_headers)
        session = MultipartUploadSession(bucket, object_name, upload_id, reader.part_count)
        logger.info(
            "Created multipart upload %s for %s/%s", upload_id, bucket, object_name,
        )

        try:
            parallel = self._parallel
            if reader.part_count > 0:
                parallel = min(parallel, reader.part_count)
            if parallel == 1:
                await self._upload_sequentially(session, reader, first)
            else:
                await self._upload_in_parallel(session, reader, first, parallel)

            session.transition(UploadState.FINALIZING)
            result = await self._api.complete_multipart_upload(
                bucket, object_name, upload_id, session.completed_parts(),
            )
            session.transition(UploadState.COMPLETED)
            logger.info(
                "Completed multipart upload %s with %d parts in %.1fms",
                upload_id,
                len(session.completed_parts()),
                session.started_at.elapsed_millis(),
            )
            return result
        except BaseException as e:
            await self._abort(session, e)
            raise

    # -------------------------------------------------------------------------
    # single PUT
    # -------------------------------------------------------------------------
    async def _put_single(
        self,
        bucket: str,
        object_name: str,
        reader: PartReader,
        headers: Headers,
    ) -> ObjectWriteResult:
        part = await asyncio.to_thread(reader.get_part)
        return await self._put_part_as_object(bucket, object_name, part, headers)

    async def _put_part_as_object(
        self,
        bucket: str,
        object_name: str,
        part: Optional[PartSource],
        headers: Headers,
    ) -> ObjectWriteResult:
        if part is None:
            part = PartSource(0, Body.of(b""))
        put_headers = headers.copy()
        put_headers.extend(part.checksum_headers(self._checksum is Algorithm.SHA256))
        return await self._api.put_object_body(bucket, object_name, part.body, put_headers)

    # -------------------------------------------------------------------------
    # parts
    # -------------------------------------------------------------------------
    async def _upload_one(self, session: MultipartUploadSession, part: PartSource) -> Part:
        if not 1 <= part.part_number <= len(session.parts):
            raise ConfigurationError.invalid_part_size(
                f"part number {part.part_number} is outside 1..{len(session.parts)}",
                part_number=part.part_number,
            )
        headers = Headers(part.checksum_headers(self._checksum is Algorithm.SHA256))
        etag = await self._api.upload_part(
            session.bucket,
            session.object_name,
            session.upload_id,
            part.part_number,
            part.body,
            headers,
        )
        checksums: tuple[tuple[Algorithm, str], ...] = ()
        if self._checksum is not None:
            value = part.checksum(self._checksum)
            if value:
                checksums = ((self._checksum, value),)
        uploaded = Part(part.part_number, etag, part.size, checksums)
        session.record(uploaded)
        logger.debug(
            "Uploaded part %d (%d bytes) of %s", part.part_number, part.size, session.upload_id,
        )
        return uploaded

    async def _upload_sequentially(
        self,
        session: MultipartUploadSession,
        reader: PartReader,
        first: PartSource,
    ) -> None:
        part: Optional[PartSource] = first
        session.transition(UploadState.READING)
        while part is not None:
            session.transition(UploadState.PART_READY)
            session.transition(UploadState.UPLOADING)
            await self._upload_one(session, part)
            session.transition(UploadState.PART_COMPLETE)
            session.transition(UploadState.READING)
            part = await asyncio.to_thread(reader.get_part)

    async def _upload_in_parallel(
        self,
        session: MultipartUploadSession,
        reader: PartReader,
        first: PartSource,
        parallel: int,
    ) -> None:
        """
        Keep up to parallel parts in flight.

        A stream source needs one chain per in-flight part; a chain returns
        to the pool only after its part's upload finished. The first part
        lives in the reader's own chain, which is not reused until the
        reader is asked for a part without a chain.
        """
        semaphore = asyncio.Semaphore(parallel)
        free: list[ChunkChain] = []
        if not reader.is_file:
            free = [reader.new_chain() for _ in range(parallel)]
        pending: set[asyncio.Task[Part]] = set()

        async def upload(part: PartSource, chain: Optional[ChunkChain]) -> Part:
            try:
                return await self._upload_one(session, part)
            finally:
                if chain is not None:
                    free.append(chain)
                semaphore.release()

        try:
            session.transition(UploadState.READING)
            part: Optional[PartSource] = first
            chain: Optional[ChunkChain] = None
            await semaphore.acquire()
            while part is not None:
                session.transition(UploadState.PART_READY)
                session.transition(UploadState.UPLOADING)
                pending.add(asyncio.create_task(upload(part, chain)))
                _raise_first_failure(pending)

                await semaphore.acquire()
                session.transition(UploadState.READING)
                chain = free.pop() if free else None
                part = await asyncio.to_thread(reader.get_part, chain)
                if part is None and chain is not None:
                    free.append(chain)
            semaphore.release()

            await asyncio.gather(*pending)
        except BaseException:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            raise

    # -------------------------------------------------------------------------
    # compensation
    # -------------------------------------------------------------------------
    async def _abort(self, session: MultipartUploadSession, error: BaseException) -> None:
        logger.warning(
            "Aborting multipart upload %s for %s/%s: %s",
            session.upload_id, session.bucket, session.object_name, error,
        )
        try:
            await self._api.abort_multipart_upload(
                session.bucket, session.object_name, session.upload_id,
            )
        except Exception as abort_error:
            suppressed = MultipartAbortError.abort_failed(session.upload_id, abort_error)
            _attach_suppressed(error, suppressed)
            logger.warning("Abort of %s failed: %s", session.upload_id, abort_error)
        session.state = UploadState.ABORTED


def _raise_first_failure(tasks: set[asyncio.Task[Any]]) -> None:
    for task in tasks:
        if task.done() and not task.cancelled() and task.exception() is not None:
            raise task.exception()


def _attach_suppressed(error: BaseException, suppressed: MultipartAbortError) -> None:
    if isinstance(error, S3WireError):
        error.context.setdefault("suppressed", []).append(suppressed)
    else:
        error.add_note(str(suppressed))


__all__ = [
    "UploadState",
    "Part",
    "ObjectWriteResult",
    "MultipartUploadSession",
    "MultipartApi",
    "MultipartUploader",
]
