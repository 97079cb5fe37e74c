"""
HTTP layer: addressing, messages and transport.

The request builder lives in s3wire.http.request; it depends on the signer
and is not re-exported here.
"""

from s3wire.http.body import Body, ChunkList, EMPTY_BODY, FileSegment
from s3wire.http.encoding import encode, encode_path, host_header
from s3wire.http.endpoint import BaseUrl, RequestUrl, validate_bucket_name
from s3wire.http.headers import Headers, QueryParams
from s3wire.http.message import HttpRequest, HttpResponse, redact
from s3wire.http.transport import HttpxTransport, Transport

__all__ = [
    "Body",
    "ChunkList",
    "EMPTY_BODY",
    "FileSegment",
    "encode",
    "encode_path",
    "host_header",
    "BaseUrl",
    "RequestUrl",
    "validate_bucket_name",
    "Headers",
    "QueryParams",
    "HttpRequest",
    "HttpResponse",
    "redact",
    "HttpxTransport",
    "Transport",
]
