"""
Execution Engine

S3Client resolves the region of every request, builds and signs it, sends
it through a Transport and turns non-2xx responses into typed errors.

Region resolution, in order:

1. a region passed with the request (must match a pinned client region)
2. the region the client is pinned to
3. us-east-1 when there is no bucket or no credentials provider
4. the per-client region cache
5. GetBucketLocation, sent to us-east-1, whose answer is cached

A HEAD that fails with a redirect while its bucket region is cached
evicts the entry and is retried exactly once with a fresh lookup.
NoSuchBucket evicts the cache entry as well.

Example:
    >>> config = ClientConfig(endpoint="play.min.io", access_key="...", secret_key="...")
    >>> async with S3Client(config) as client:
    ...     await client.put_object("photos", "a.jpg", data)
    ...     stat = await client.head_object("photos", "a.jpg")
"""

from __future__ import annotations

import io
import platform
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import BinaryIO, Callable, Optional, Union

import s3wire
from s3wire.checksum import Algorithm, ChecksumType
from s3wire.client.metrics import TransferMetrics
from s3wire.client.region_cache import RegionCache
from s3wire.client.responses import (
    NO_SUCH_BUCKET,
    RETRY_HEAD,
    BucketInfo,
    ObjectStat,
    build_complete_multipart_xml,
    build_create_bucket_xml,
    classify_error,
    parse_complete_result,
    parse_initiate_upload_id,
    parse_list_buckets,
    parse_location_constraint,
)
from s3wire.core import constants as C
from s3wire.core.config import ClientConfig, Credentials, CredentialsProvider
from s3wire.core.errors import (
    ConfigurationError,
    ErrorResponseError,
    ProtocolError,
    TransportError,
)
from s3wire.core.types import ByteRange
from s3wire.http.body import Body, EMPTY_BODY
from s3wire.http.endpoint import BaseUrl, validate_bucket_name
from s3wire.http.headers import Headers, QueryParams
from s3wire.http.message import HttpRequest, HttpResponse
from s3wire.http.request import CONTENT_SHA256, Method, S3Request
from s3wire.http.transport import HttpxTransport, Transport
from s3wire.multipart import (
    MultipartUploader,
    ObjectWriteResult,
    Part,
    PartReader,
    compute_part_info,
)
from s3wire.observability.logging import StructuredLogger
from s3wire.signer.chunked import ChunkedEncoder, encoded_length
from s3wire.signer.sigv4 import request_date

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_user_agent(app_name: Optional[str] = None, app_version: Optional[str] = None) -> str:
    """s3wire/<version> (<os>; <arch>) [<app>/<version>]"""
    agent = f"s3wire/{s3wire.__version__} ({platform.system()}; {platform.machine()})"
    if app_name:
        agent += f" {app_name}/{app_version}" if app_version else f" {app_name}"
    return agent


def _strip_etag(value: Optional[str]) -> Optional[str]:
    return value.replace('"', "") if value else None


class S3Client:
    """
    Asynchronous S3 client.

    Credentials are fetched from the provider once per request and never
    stored. The region cache is private to the client unless one is passed
    in. The user agent is computed once at construction.
    """

    __slots__ = (
        "_config",
        "_base_url",
        "_provider",
        "_transport",
        "_owns_transport",
        "_region_cache",
        "_clock",
        "_user_agent",
        "_logger",
        "_tracer",
        "_trace",
        "_metrics",
    )

    def __init__(
        self,
        config: ClientConfig,
        credentials_provider: Optional[CredentialsProvider] = None,
        transport: Optional[Transport] = None,
        region_cache: Optional[RegionCache] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        """
        Raises:
            ConfigurationError: invalid configuration or endpoint.
        """
        validation = config.validate()
        if validation.is_err():
            raise ConfigurationError.invalid_argument("configuration", validation.error)

        base_url = BaseUrl(config.endpoint, config.port, config.secure, config.region)
        if config.dualstack:
            base_url.enable_dualstack_endpoint()
        if config.virtual_style is True:
            base_url.enable_virtual_style_endpoint()
        elif config.virtual_style is False:
            base_url.disable_virtual_style_endpoint()
        if config.accelerate and base_url.is_aws_host:
            base_url.set_aws_s3_prefix("s3-accelerate.")

        self._config = config
        self._base_url = base_url
        self._provider = credentials_provider or config.credentials_provider
        self._owns_transport = transport is None
        self._transport: Transport = transport or HttpxTransport(
            config.connect_timeout_s, config.write_timeout_s, config.read_timeout_s,
        )
        self._region_cache = region_cache if region_cache is not None else RegionCache()
        self._clock: Clock = clock or _utc_now
        self._user_agent = build_user_agent(config.app_name, config.app_version)
        self._logger = StructuredLogger("s3wire.client")
        self._tracer = StructuredLogger("s3wire.trace")
        self._trace = config.trace
        self._metrics = TransferMetrics()

    # -------------------------------------------------------------------------
    # CLIENT KNOBS
    # -------------------------------------------------------------------------

    @property
    def base_url(self) -> BaseUrl:
        return self._base_url

    @property
    def user_agent(self) -> str:
        return self._user_agent

    @property
    def region_cache(self) -> RegionCache:
        return self._region_cache

    @property
    def metrics(self) -> TransferMetrics:
        return self._metrics

    def enable_dualstack_endpoint(self) -> None:
        self._base_url.enable_dualstack_endpoint()

    def disable_dualstack_endpoint(self) -> None:
        self._base_url.disable_dualstack_endpoint()

    def enable_virtual_style_endpoint(self) -> None:
        self._base_url.enable_virtual_style_endpoint()

    def disable_virtual_style_endpoint(self) -> None:
        self._base_url.disable_virtual_style_endpoint()

    def set_aws_s3_prefix(self, prefix: str) -> None:
        self._base_url.set_aws_s3_prefix(prefix)

    def trace_on(self) -> None:
        """Log every request and response head at DEBUG on "s3wire.trace"."""
        self._trace = True

    def trace_off(self) -> None:
        self._trace = False

    async def close(self) -> None:
        """Release the transport if this client created it."""
        if self._owns_transport:
            await self._transport.close()

    async def __aenter__(self) -> S3Client:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # REGION RESOLUTION
    # -------------------------------------------------------------------------

    async def get_region(self, bucket: Optional[str], region: Optional[str] = None) -> str:
        """
        Raises:
            ConfigurationError: region conflicts with the pinned client region.
        """
        pinned = self._base_url.region
        if region is not None:
            if pinned is not None and pinned != region:
                raise ConfigurationError.region_conflict(region, pinned)
            return region
        if pinned:
            return pinned
        if bucket is None or self._provider is None:
            return C.US_EAST_1

        cached = self._region_cache.get(bucket)
        if cached is not None:
            return cached
        return await self.get_bucket_location(bucket)

    async def get_bucket_location(self, bucket: str) -> str:
        """GetBucketLocation, always sent to us-east-1; the answer is cached."""
        query = QueryParams()
        query.add("location", None)
        response = await self._send(
            S3Request(Method.GET, bucket, region=C.US_EAST_1, query_params=query)
        )
        location = parse_location_constraint(response.content, self._base_url.is_aws_host)
        self._region_cache.put(bucket, location)
        self._metrics.region_lookups += 1
        self._logger.debug("Resolved bucket region", bucket=bucket, region=location)
        return location

    # -------------------------------------------------------------------------
    # EXECUTION
    # -------------------------------------------------------------------------

    async def execute(self, request: S3Request) -> HttpResponse:
        """
        Resolve the region of request, then send it.

        Raises:
            ConfigurationError: invalid request or region conflict.
            TransportError: the exchange failed below HTTP.
            ProtocolError: non-2xx response; ErrorResponseError when it
                carried or implied an S3 error code.
        """
        with self._logger.context(bucket=request.bucket, object=request.object_name):
            region = await self.get_region(request.bucket, request.region)
            return await self._send(replace(request, region=region))

    async def execute_head(self, request: S3Request) -> HttpResponse:
        """execute() for HEAD, retried once after a stale cached region."""
        try:
            return await self.execute(request)
        except ErrorResponseError as e:
            if e.response.code != RETRY_HEAD:
                raise
            self._metrics.head_retries += 1
            self._logger.info("Retrying HEAD after region change", bucket=request.bucket)
        return await self.execute(request)

    def _fetch_credentials(self) -> Optional[Credentials]:
        if self._provider is None:
            return None
        return self._provider.fetch()

    def _build(self, request: S3Request, expires: Optional[int] = None) -> HttpRequest:
        return request.to_http_request(
            self._base_url,
            self._fetch_credentials(),
            self._user_agent,
            now=self._clock(),
            expires=expires,
        )

    async def _send(self, request: S3Request) -> HttpResponse:
        return await self._dispatch(request, self._build(request))

    async def _dispatch(self, request: S3Request, http_request: HttpRequest) -> HttpResponse:
        if self._trace:
            self._tracer.debug("---------START-HTTP---------\n" + http_request.trace())

        start = time.perf_counter_ns()
        try:
            response = await self._transport.send(http_request)
        except TransportError:
            self._metrics.transport_errors += 1
            raise
        self._metrics.record_exchange(
            http_request.body.length, len(response.content), time.perf_counter_ns() - start,
        )

        if self._trace:
            self._tracer.debug(response.trace() + "\n----------END-HTTP----------")

        if response.is_success:
            return response

        bucket = request.bucket
        error = classify_error(
            response,
            str(request.method),
            bucket,
            request.object_name,
            region_cached=bucket is not None and bucket in self._region_cache,
            resource=http_request.url.path,
        )
        if isinstance(error, ErrorResponseError):
            self._metrics.error_responses += 1
            if error.response.code in (NO_SUCH_BUCKET, RETRY_HEAD):
                self._region_cache.remove(bucket)
        else:
            self._metrics.protocol_errors += 1
        self._logger.debug(
            "Request failed",
            method=str(request.method),
            status=response.status,
            error=error.message,
        )
        raise error

    # -------------------------------------------------------------------------
    # BUCKET OPERATIONS
    # -------------------------------------------------------------------------

    async def list_buckets(self) -> list[BucketInfo]:
        response = await self.execute(S3Request(Method.GET))
        return parse_list_buckets(response.content)

    async def bucket_exists(self, bucket: str) -> bool:
        try:
            await self.execute_head(S3Request(Method.HEAD, bucket))
        except ErrorResponseError as e:
            if e.response.code == NO_SUCH_BUCKET:
                return False
            raise
        return True

    async def make_bucket(
        self,
        bucket: str,
        region: Optional[str] = None,
        object_lock: bool = False,
    ) -> None:
        """
        Create bucket in region (or the pinned region, or us-east-1).

        Raises:
            ConfigurationError: invalid bucket name or region conflict.
        """
        validate_bucket_name(bucket)
        self._base_url.check_bucket_name(bucket)

        pinned = self._base_url.region
        if region is not None and pinned is not None and region != pinned:
            raise ConfigurationError.region_conflict(region, pinned)
        location = region or pinned or C.US_EAST_1

        headers = Headers()
        if object_lock:
            headers.set("x-amz-bucket-object-lock-enabled", "true")
        document = build_create_bucket_xml(location)
        body = Body.of(document, C.XML_CONTENT_TYPE) if document else EMPTY_BODY

        await self._send(
            S3Request(Method.PUT, bucket, region=location, headers=headers, body=body)
        )
        self._region_cache.put(bucket, location)

    async def remove_bucket(self, bucket: str) -> None:
        await self.execute(S3Request(Method.DELETE, bucket))
        self._region_cache.remove(bucket)

    # -------------------------------------------------------------------------
    # OBJECT OPERATIONS
    # -------------------------------------------------------------------------

    async def head_object(
        self, bucket: str, object_name: str, version_id: Optional[str] = None,
    ) -> ObjectStat:
        query = QueryParams()
        if version_id:
            query.add("versionId", version_id)
        response = await self.execute_head(
            S3Request(Method.HEAD, bucket, object_name, query_params=query)
        )
        return ObjectStat.from_headers(bucket, object_name, response.headers)

    async def get_object(
        self,
        bucket: str,
        object_name: str,
        byte_range: Optional[ByteRange] = None,
        version_id: Optional[str] = None,
    ) -> bytes:
        headers = Headers()
        if byte_range is not None:
            headers.set("Range", byte_range.to_http_header())
        query = QueryParams()
        if version_id:
            query.add("versionId", version_id)
        response = await self.execute(
            S3Request(Method.GET, bucket, object_name, headers=headers, query_params=query)
        )
        return response.content

    async def put_object(
        self,
        bucket: str,
        object_name: str,
        data: Union[bytes, bytearray, memoryview, BinaryIO],
        length: int = C.UNKNOWN_SIZE,
        part_size: Optional[int] = None,
        content_type: Optional[str] = None,
        headers: Optional[Headers] = None,
        checksum: Optional[Algorithm] = None,
        checksum_type: ChecksumType = ChecksumType.COMPOSITE,
    ) -> ObjectWriteResult:
        """
        Upload data with a single PUT or as a multipart upload.

        Seekable sources of known length are read in place; anything else
        is buffered part by part. length -1 means unknown, in which case
        part_size is required.

        Raises:
            ConfigurationError: invalid sizes, bucket name or checksum.
        """
        validate_bucket_name(bucket)
        if isinstance(data, (bytes, bytearray, memoryview)):
            data = io.BytesIO(bytes(data))
            length = len(data.getbuffer())

        info = compute_part_info(length, part_size)
        seekable = length >= 0 and getattr(data, "seekable", lambda: False)()
        factory = PartReader.from_file if seekable else PartReader.from_stream
        reader = factory(data, length, info.part_size, info.part_count, (checksum,))

        put_headers = headers.copy() if headers is not None else Headers()
        if content_type:
            put_headers.set("Content-Type", content_type)

        uploader = MultipartUploader(
            self, self._config.parallel_uploads, checksum, checksum_type,
        )
        return await uploader.upload(bucket, object_name, reader, put_headers)

    async def put_object_body(
        self, bucket: str, object_name: str, body: Body, headers: Headers,
    ) -> ObjectWriteResult:
        response = await self.execute(
            S3Request(Method.PUT, bucket, object_name, headers=headers, body=body)
        )
        return self._write_result(bucket, object_name, response)

    async def put_object_streaming(
        self,
        bucket: str,
        object_name: str,
        data: bytes,
        content_type: Optional[str] = None,
        headers: Optional[Headers] = None,
    ) -> ObjectWriteResult:
        """
        Upload data with aws-chunked encoding and chained chunk signatures.

        Raises:
            ConfigurationError: the client has no credentials.
        """
        credentials = self._fetch_credentials()
        if credentials is None:
            raise ConfigurationError.invalid_argument(
                "credentials", "streaming signature requires credentials"
            )
        region = await self.get_region(bucket)

        put_headers = headers.copy() if headers is not None else Headers()
        put_headers.set("Content-Encoding", "aws-chunked")
        put_headers.set("x-amz-decoded-content-length", str(len(data)))
        put_headers.set(CONTENT_SHA256, C.STREAMING_PAYLOAD)

        request = S3Request(
            Method.PUT,
            bucket,
            object_name,
            region=region,
            headers=put_headers,
            body=Body(length=encoded_length(len(data)), content_type=content_type),
        )
        signed = request.to_http_request(
            self._base_url, credentials, self._user_agent, now=self._clock(),
        )
        encoder = ChunkedEncoder(
            data, signed.signature or "", request_date(signed), region, credentials.secret_key,
        )
        http_request = replace(
            signed, body=Body.stream(encoder.aiter_frames(), encoder.length, content_type),
        )
        response = await self._dispatch(request, http_request)
        return self._write_result(bucket, object_name, response)

    def _write_result(
        self, bucket: str, object_name: str, response: HttpResponse,
    ) -> ObjectWriteResult:
        return ObjectWriteResult(
            bucket=bucket,
            object_name=object_name,
            etag=_strip_etag(response.headers.get("ETag")),
            version_id=response.headers.get("x-amz-version-id"),
            headers=response.headers,
        )

    # -------------------------------------------------------------------------
    # MULTIPART PRIMITIVES
    # -------------------------------------------------------------------------

    async def create_multipart_upload(
        self, bucket: str, object_name: str, headers: Headers,
    ) -> str:
        query = QueryParams()
        query.add("uploads", None)
        response = await self.execute(
            S3Request(Method.POST, bucket, object_name, headers=headers, query_params=query)
        )
        return parse_initiate_upload_id(response.content)

    async def upload_part(
        self,
        bucket: str,
        object_name: str,
        upload_id: str,
        part_number: int,
        body: Body,
        headers: Headers,
    ) -> str:
        """
        Raises:
            ProtocolError: the response carried no ETag.
        """
        query = QueryParams()
        query.add("partNumber", str(part_number))
        query.add("uploadId", upload_id)
        response = await self.execute(
            S3Request(
                Method.PUT, bucket, object_name,
                headers=headers, query_params=query, body=body,
            )
        )
        etag = _strip_etag(response.headers.get("ETag"))
        if not etag:
            raise ProtocolError.invalid_response(response.status, "missing ETag in UploadPart")
        return etag

    async def complete_multipart_upload(
        self, bucket: str, object_name: str, upload_id: str, parts: list[Part],
    ) -> ObjectWriteResult:
        query = QueryParams()
        query.add("uploadId", upload_id)
        body = Body.of(build_complete_multipart_xml(parts), C.XML_CONTENT_TYPE)
        response = await self.execute(
            S3Request(Method.POST, bucket, object_name, query_params=query, body=body)
        )
        etag, _ = parse_complete_result(response.content, response.status)
        return ObjectWriteResult(
            bucket=bucket,
            object_name=object_name,
            etag=etag,
            version_id=response.headers.get("x-amz-version-id"),
            upload_id=upload_id,
            headers=response.headers,
        )

    async def abort_multipart_upload(
        self, bucket: str, object_name: str, upload_id: str,
    ) -> None:
        query = QueryParams()
        query.add("uploadId", upload_id)
        await self.execute(S3Request(Method.DELETE, bucket, object_name, query_params=query))

    # -------------------------------------------------------------------------
    # PRESIGNED URLS
    # -------------------------------------------------------------------------

    async def get_presigned_object_url(
        self,
        method: Union[Method, str],
        bucket: str,
        object_name: str,
        expires: int = C.DEFAULT_PRESIGN_EXPIRY,
        query_params: Optional[QueryParams] = None,
        region: Optional[str] = None,
    ) -> str:
        """
        URL granting method on the object for expires seconds.

        Raises:
            ConfigurationError: expires outside 1..604800 seconds, or an
                unknown method.
        """
        try:
            method = Method(method)
        except ValueError as e:
            raise ConfigurationError.invalid_argument(
                "method", f"unsupported HTTP method {method!r}"
            ) from e
        if not C.MIN_PRESIGN_EXPIRY <= expires <= C.MAX_PRESIGN_EXPIRY:
            raise ConfigurationError.invalid_argument(
                "expiry",
                f"must be {C.MIN_PRESIGN_EXPIRY} to {C.MAX_PRESIGN_EXPIRY} seconds, got {expires}",
            )
        resolved = await self.get_region(bucket, region)

        credentials = self._fetch_credentials()
        query = query_params.copy() if query_params is not None else QueryParams()
        if credentials is not None and credentials.session_token:
            query.add("X-Amz-Security-Token", credentials.session_token)

        request = S3Request(
            method, bucket, object_name, region=resolved, query_params=query,
        )
        presigned = request.to_http_request(
            self._base_url, credentials, self._user_agent, now=self._clock(), expires=expires,
        )
        return str(presigned.url)


__all__ = ["S3Client", "build_user_agent"]
