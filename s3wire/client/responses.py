"""
Response classification and the few XML documents the engine itself needs.

Non-2xx responses become exactly one typed error:

- XML error body              -> ErrorResponseError parsed from <Error>
- empty body on HEAD          -> ErrorResponseError synthesized from status
- anything else on non-HEAD   -> ProtocolError (invalid response)

Synthesized codes by status:

    301 PermanentRedirect   307 Redirect      400 BadRequest
    404 NoSuchKey | NoSuchBucket | ResourceNotFound
    405, 501 MethodNotAllowed
    409 NoSuchBucket | ResourceConflict
    403 AccessDenied        412 PreconditionFailed
    416 InvalidRange        other ServerFault

A redirect-class HEAD on a bucket whose region is cached yields the
RetryHead sentinel instead, so the engine re-resolves the region once.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Iterable, Optional

from s3wire.core import constants as C
from s3wire.core.errors import ErrorResponse, ErrorResponseError, ProtocolError
from s3wire.http.headers import Headers
from s3wire.http.message import HttpResponse
from s3wire.multipart.orchestrator import Part

S3_XML_NS = "http://s3.amazonaws.com/doc/2006-03-01/"

NO_SUCH_BUCKET = "NoSuchBucket"
NO_SUCH_BUCKET_MESSAGE = "Bucket does not exist"
RETRY_HEAD = "RetryHead"
SERVER_FAULT = "ServerFault"

_REDIRECTS = {
    301: ("PermanentRedirect", "Moved Permanently"),
    307: ("Redirect", "Temporary redirect"),
    400: ("BadRequest", "Bad request"),
}


# =============================================================================
# XML HELPERS
# =============================================================================
def parse_xml(content: bytes, status: int = 200) -> ET.Element:
    """
    Raises:
        ProtocolError: content is not well-formed XML.
    """
    try:
        return ET.fromstring(content)
    except ET.ParseError as e:
        raise ProtocolError.invalid_response(
            status, f"malformed XML: {e}", C.XML_CONTENT_TYPE,
            content.decode("utf-8", errors="replace"),
        ) from e


def _local_name(element: ET.Element) -> str:
    return element.tag.rsplit("}", 1)[-1]


def _text(root: ET.Element, tag: str) -> Optional[str]:
    element = root.find(f"{{*}}{tag}")
    if element is None or element.text is None:
        return None
    return element.text.strip()


def is_xml(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    return any(token.strip() == C.XML_CONTENT_TYPE for token in content_type.split(";"))


# =============================================================================
# ERROR RESPONSES
# =============================================================================
def parse_error_response(root: ET.Element) -> ErrorResponse:
    return ErrorResponse(
        code=_text(root, "Code") or "",
        message=_text(root, "Message") or "",
        bucket_name=_text(root, "BucketName"),
        object_name=_text(root, "Key"),
        resource=_text(root, "Resource"),
        request_id=_text(root, "RequestId"),
        host_id=_text(root, "HostId"),
    )


def synthesize_error(
    status: int,
    method: str,
    bucket: Optional[str],
    object_name: Optional[str],
    headers: Headers,
    region_cached: bool,
    resource: Optional[str] = None,
) -> ErrorResponse:
    """ErrorResponse for a response without a usable XML body."""
    if status in _REDIRECTS:
        code, message = _REDIRECTS[status]
        region = headers.get("x-amz-bucket-region")
        if region is not None:
            message += f". Use region {region}"
            if method == "HEAD" and bucket is not None and region_cached:
                code, message = RETRY_HEAD, ""
    elif status == 404:
        if object_name is not None:
            code, message = "NoSuchKey", "Object does not exist"
        elif bucket is not None:
            code, message = NO_SUCH_BUCKET, NO_SUCH_BUCKET_MESSAGE
        else:
            code, message = "ResourceNotFound", "Request resource not found"
    elif status in (405, 501):
        code, message = (
            "MethodNotAllowed", "The specified method is not allowed against this resource"
        )
    elif status == 409:
        if bucket is not None:
            code, message = NO_SUCH_BUCKET, NO_SUCH_BUCKET_MESSAGE
        else:
            code, message = "ResourceConflict", "Request resource conflicts"
    elif status == 403:
        code, message = "AccessDenied", "Access denied"
    elif status == 412:
        code, message = (
            "PreconditionFailed", "At least one of the preconditions you specified did not hold"
        )
    elif status == 416:
        code, message = "InvalidRange", "The requested range cannot be satisfied"
    else:
        code, message = SERVER_FAULT, f"server failed with HTTP status code {status}"

    return ErrorResponse(
        code=code,
        message=message,
        bucket_name=bucket,
        object_name=object_name,
        resource=resource,
        request_id=headers.get("x-amz-request-id"),
        host_id=headers.get("x-amz-id-2"),
    )


def classify_error(
    response: HttpResponse,
    method: str,
    bucket: Optional[str],
    object_name: Optional[str],
    region_cached: bool,
    resource: Optional[str] = None,
) -> ProtocolError:
    """Typed error for a non-2xx response."""
    region = response.headers.get("x-amz-bucket-region")
    content_type = response.content_type

    if method != "HEAD" and not is_xml(content_type):
        return ProtocolError.invalid_response(
            response.status, "non-XML error response", content_type, response.text,
        )

    if response.content:
        error = parse_error_response(parse_xml(response.content, response.status))
    elif method != "HEAD":
        return ProtocolError.invalid_response(
            response.status, "empty error response", content_type,
        )
    else:
        error = synthesize_error(
            response.status, method, bucket, object_name,
            response.headers, region_cached, resource,
        )
    return ErrorResponseError.from_response(error, response.status, region)


# =============================================================================
# DOCUMENTS
# =============================================================================
@dataclass(frozen=True, slots=True)
class BucketInfo:
    name: str
    creation_date: Optional[str] = None


@dataclass(frozen=True)
class ObjectStat:
    """Object metadata from a HeadObject response."""

    bucket: str
    object_name: str
    etag: Optional[str] = None
    size: int = 0
    last_modified: Optional[str] = None
    content_type: Optional[str] = None
    version_id: Optional[str] = None
    headers: Headers = field(default_factory=Headers, compare=False)

    @classmethod
    def from_headers(cls, bucket: str, object_name: str, headers: Headers) -> ObjectStat:
        etag = headers.get("ETag")
        return cls(
            bucket=bucket,
            object_name=object_name,
            etag=etag.strip('"') if etag else None,
            size=int(headers.get("Content-Length") or 0),
            last_modified=headers.get("Last-Modified"),
            content_type=headers.get("Content-Type"),
            version_id=headers.get("x-amz-version-id"),
            headers=headers,
        )


def parse_location_constraint(content: bytes, aws_host: bool) -> str:
    """Region from GetBucketLocation; empty means us-east-1, EU means eu-west-1 on AWS."""
    root = parse_xml(content)
    location = (root.text or "").strip()
    if not location:
        return C.US_EAST_1
    if location == "EU" and aws_host:
        return "eu-west-1"
    return location


def parse_list_buckets(content: bytes) -> list[BucketInfo]:
    root = parse_xml(content)
    return [
        BucketInfo(name=_text(b, "Name") or "", creation_date=_text(b, "CreationDate"))
        for b in root.iterfind(".//{*}Bucket")
    ]


def parse_initiate_upload_id(content: bytes) -> str:
    """
    Raises:
        ProtocolError: the document has no UploadId.
    """
    upload_id = _text(parse_xml(content), "UploadId")
    if not upload_id:
        raise ProtocolError.invalid_response(200, "missing UploadId", C.XML_CONTENT_TYPE)
    return upload_id


def parse_complete_result(content: bytes, status: int = 200) -> tuple[Optional[str], Optional[str]]:
    """
    (ETag, Location) of CompleteMultipartUpload.

    Raises:
        ErrorResponseError: the server answered 200 with an <Error> document.
    """
    root = parse_xml(content, status)
    if _local_name(root) == "Error":
        raise ErrorResponseError.from_response(parse_error_response(root), status)
    etag = _text(root, "ETag")
    return (etag.strip('"') if etag else None), _text(root, "Location")


def build_complete_multipart_xml(parts: Iterable[Part]) -> bytes:
    root = ET.Element("CompleteMultipartUpload", xmlns=S3_XML_NS)
    for part in parts:
        element = ET.SubElement(root, "Part")
        ET.SubElement(element, "PartNumber").text = str(part.part_number)
        ET.SubElement(element, "ETag").text = part.etag
        for algorithm, value in part.checksums:
            ET.SubElement(element, f"Checksum{algorithm.value}").text = value
    return ET.tostring(root, encoding="utf-8", xml_declaration=False)


def build_create_bucket_xml(region: str) -> bytes:
    """CreateBucketConfiguration body; empty for us-east-1."""
    if region == C.US_EAST_1:
        return b""
    root = ET.Element("CreateBucketConfiguration", xmlns=S3_XML_NS)
    ET.SubElement(root, "LocationConstraint").text = region
    return ET.tostring(root, encoding="utf-8", xml_declaration=False)


__all__ = [
    "S3_XML_NS",
    "NO_SUCH_BUCKET",
    "RETRY_HEAD",
    "SERVER_FAULT",
    "BucketInfo",
    "ObjectStat",
    "parse_xml",
    "is_xml",
    "parse_error_response",
    "synthesize_error",
    "classify_error",
    "parse_location_constraint",
    "parse_list_buckets",
    "parse_initiate_upload_id",
    "parse_complete_result",
    "build_complete_multipart_xml",
    "build_create_bucket_xml",
]
