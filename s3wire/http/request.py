"""
Request Builder

Turns a high-level S3Request into an addressed, hashed and signed
HttpRequest:

    S3Request --(BaseUrl.build_url)--> RequestUrl
              --(payload hash rule)--> x-amz-content-sha256
              --(sign_v4_s3 | presign_v4)--> HttpRequest

Payload hash rule, applied in order:

1. a caller-supplied x-amz-content-sha256 header is used as is
2. over HTTPS the UNSIGNED-PAYLOAD sentinel is used
3. over plain HTTP the real SHA-256 of the body is used; a body whose hash
   cannot be computed without consuming it is rejected

Anonymous requests (no credentials) and opaque pass-through bodies carry
no payload hash and are not signed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from s3wire.core import constants as C
from s3wire.core.config import Credentials
from s3wire.core.errors import ConfigurationError
from s3wire.http.body import Body, EMPTY_BODY
from s3wire.http.endpoint import BaseUrl
from s3wire.http.headers import Headers, QueryParams
from s3wire.http.message import HttpRequest
from s3wire.signer.sigv4 import presign_v4, sign_v4_s3

CONTENT_SHA256 = "x-amz-content-sha256"


class Method(str, Enum):
    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"

    def __str__(self) -> str:
        return self.value


_BODY_METHODS = frozenset({"PUT", "POST"})


@dataclass(frozen=True)
class S3Request:
    """
    Immutable description of one S3 call.

    region is the caller's requested region on the way into the engine and
    the resolved region once the engine has looked it up. Unset at build
    time means us-east-1.
    """

    method: Method
    bucket: Optional[str] = None
    object_name: Optional[str] = None
    region: Optional[str] = None
    headers: Headers = field(default_factory=Headers)
    query_params: QueryParams = field(default_factory=QueryParams)
    body: Body = EMPTY_BODY

    def payload_hash(self, https: bool) -> str:
        """
        Raises:
            ConfigurationError: plain HTTP with a body that cannot be hashed
                up front.
        """
        supplied = self.headers.get(CONTENT_SHA256)
        if supplied:
            return supplied
        if https:
            return C.UNSIGNED_PAYLOAD
        if not self.body.passthrough:
            digest = self.body.compute_sha256()
            if digest is not None:
                return digest
        raise ConfigurationError.invalid_argument(
            "body", "streamed body requires HTTPS or a precomputed SHA-256 hash"
        )

    def to_http_request(
        self,
        base_url: BaseUrl,
        credentials: Optional[Credentials],
        user_agent: str,
        now: Optional[datetime] = None,
        expires: Optional[int] = None,
    ) -> HttpRequest:
        """
        Build, address and sign this request.

        With expires set the request is presigned: the signature goes into
        the URL and the result is meant to be rendered, not sent.
        """
        method = str(self.method)
        region = self.region or C.US_EAST_1
        url = base_url.build_url(method, self.bucket, self.object_name, region, self.query_params)

        headers = self.headers.copy()
        body = self.body
        if body.content_type and "Content-Type" not in headers:
            headers.set("Content-Type", body.content_type)
        if method in _BODY_METHODS and body.md5_hash and body.length > 0:
            headers.setdefault("Content-MD5", body.md5_hash)

        signed = credentials is not None and not body.passthrough
        content_sha256 = None
        if signed and expires is None:
            content_sha256 = self.payload_hash(url.is_https)
            headers.set(CONTENT_SHA256, content_sha256)
            if credentials.session_token:
                headers.set("X-Amz-Security-Token", credentials.session_token)

        date = (now or datetime.now(timezone.utc)).strftime(C.AMZ_DATE_FORMAT)
        headers.set("x-amz-date", date)
        headers.set("Accept-Encoding", "identity")
        headers.set("User-Agent", user_agent)
        headers.set("Host", url.host_header)

        if expires is not None:
            headers.remove("Content-Type")
        elif method in _BODY_METHODS:
            headers.set("Content-Length", str(body.length))
            if "Content-Type" not in headers:
                headers.set("Content-Type", C.DEFAULT_CONTENT_TYPE)
        else:
            headers.remove("Content-Type")

        request = HttpRequest(method=method, url=url, headers=headers, body=body)
        if not signed:
            return request

        if expires is not None:
            return presign_v4(
                request, region, credentials.access_key, credentials.secret_key, expires
            )
        return sign_v4_s3(
            request, region, credentials.access_key, credentials.secret_key, content_sha256
        )


__all__ = ["CONTENT_SHA256", "Method", "S3Request"]
