"""
AWS Signature Version 4

Pure pipeline over an addressed HttpRequest:

    canonicalize -> hash -> string-to-sign -> derive key -> HMAC -> format

Canonical request:

    METHOD\\n
    ENCODED_PATH\\n
    CANONICAL_QUERY\\n          keys sorted, values keep their order
    name:value\\n ...           lower-cased, sorted, space runs collapsed
    \\n
    SIGNED_HEADERS\\n
    PAYLOAD_HASH

Variants:
- sign_v4_s3 / sign_v4_sts: Authorization header
- presign_v4: X-Amz-* query parameters plus X-Amz-Signature
- chunk_signature: aws-chunked payload chunks, each chained to the
  previous chunk's signature
- post_presign_v4: POST policy documents

The request date is taken from its x-amz-date header. Signing fails
before producing anything when the date or region is missing.
"""

from __future__ import annotations

import hashlib
import hmac
import re
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Iterable, Optional

from s3wire.core import constants as C
from s3wire.core.errors import SigningError
from s3wire.http.encoding import encode
from s3wire.http.message import HttpRequest

IGNORED_HEADERS = frozenset({"accept-encoding", "authorization", "user-agent"})
PRESIGN_IGNORED_HEADERS = IGNORED_HEADERS | frozenset({
    "content-md5",
    "x-amz-content-sha256",
    "x-amz-date",
    "x-amz-security-token",
})

_SPACES = re.compile(" +")


# =============================================================================
# CANONICALIZATION
# =============================================================================
def canonical_headers(
    headers: Iterable[tuple[str, str]],
    ignored: frozenset[str] = IGNORED_HEADERS,
) -> tuple[str, str]:
    """
    Return (canonical header block, signed header list).

    Values of a repeated header are comma-joined in order of appearance.
    """
    merged: dict[str, list[str]] = {}
    for name, value in headers:
        key = name.lower()
        if key in ignored:
            continue
        merged.setdefault(key, []).append(_SPACES.sub(" ", value.strip()))

    names = sorted(merged)
    block = "\n".join(f"{name}:{','.join(merged[name])}" for name in names)
    return block, ";".join(names)


def canonical_query_string(encoded_query: str) -> str:
    """Sort already-encoded query parameters by key only (stable on values)."""
    if not encoded_query:
        return ""
    pairs = []
    for param in encoded_query.split("&"):
        key, _, value = param.partition("=")
        pairs.append((key, value))
    pairs.sort(key=lambda kv: kv[0])
    return "&".join(f"{k}={v}" for k, v in pairs)


def canonical_request(
    method: str,
    encoded_path: str,
    canonical_query: str,
    header_block: str,
    signed_headers: str,
    payload_hash: str,
) -> str:
    return (
        f"{method}\n{encoded_path}\n{canonical_query}\n"
        f"{header_block}\n\n{signed_headers}\n{payload_hash}"
    )


def scope(date: datetime, region: str, service: str) -> str:
    return f"{date.strftime(C.SIGNER_DATE_FORMAT)}/{region}/{service}/aws4_request"


def string_to_sign(date: datetime, credential_scope: str, canonical_request_hash: str) -> str:
    return (
        f"{C.SIGN_ALGORITHM}\n{date.strftime(C.AMZ_DATE_FORMAT)}\n"
        f"{credential_scope}\n{canonical_request_hash}"
    )


def _hmac(key: bytes, data: str) -> bytes:
    return hmac.new(key, data.encode("utf-8"), hashlib.sha256).digest()


def signing_key(secret_key: str, date: datetime, region: str, service: str) -> bytes:
    try:
        key = ("AWS4" + secret_key).encode("utf-8")
    except (AttributeError, UnicodeEncodeError) as e:
        raise SigningError.invalid_key(e) from e
    date_key = _hmac(key, date.strftime(C.SIGNER_DATE_FORMAT))
    date_region_key = _hmac(date_key, region)
    date_region_service_key = _hmac(date_region_key, service)
    return _hmac(date_region_service_key, "aws4_request")


def signature(key: bytes, to_sign: str) -> str:
    return _hmac(key, to_sign).hex()


def credential(access_key: str, date: datetime, region: str, service: str = C.SERVICE_S3) -> str:
    return f"{access_key}/{scope(date, region, service)}"


# =============================================================================
# SIGNATURE COMPUTATION
# =============================================================================
@dataclass(frozen=True, slots=True)
class SignatureV4:
    """Every intermediate of one signature computation."""

    canonical_request: str
    canonical_request_hash: str
    string_to_sign: str
    scope: str
    signed_headers: str
    signature: str
    access_key: str

    @property
    def authorization(self) -> str:
        return (
            f"{C.SIGN_ALGORITHM} Credential={self.access_key}/{self.scope}, "
            f"SignedHeaders={self.signed_headers}, Signature={self.signature}"
        )


def request_date(request: HttpRequest) -> datetime:
    """
    Raises:
        SigningError: x-amz-date is absent or malformed.
    """
    value = request.headers.get("x-amz-date")
    if not value:
        raise SigningError.missing_date()
    try:
        return datetime.strptime(value, C.AMZ_DATE_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError as e:
        raise SigningError.missing_date() from e


def compute_signature(
    request: HttpRequest,
    region: Optional[str],
    access_key: str,
    secret_key: str,
    content_sha256: str,
    service: str = C.SERVICE_S3,
    ignored: frozenset[str] = IGNORED_HEADERS,
    encoded_query: Optional[str] = None,
) -> SignatureV4:
    """
    Run the signing pipeline without modifying the request.

    encoded_query overrides the request's own query (used by presigning).
    """
    if not region:
        raise SigningError.missing_region()
    date = request_date(request)

    credential_scope = scope(date, region, service)
    header_block, signed = canonical_headers(request.headers.multi_items(), ignored)
    query = request.url.query if encoded_query is None else encoded_query
    creq = canonical_request(
        request.method,
        request.url.path,
        canonical_query_string(query),
        header_block,
        signed,
        content_sha256,
    )
    creq_hash = hashlib.sha256(creq.encode("utf-8")).hexdigest()
    sts = string_to_sign(date, credential_scope, creq_hash)
    sig = signature(signing_key(secret_key, date, region, service), sts)
    return SignatureV4(
        canonical_request=creq,
        canonical_request_hash=creq_hash,
        string_to_sign=sts,
        scope=credential_scope,
        signed_headers=signed,
        signature=sig,
        access_key=access_key,
    )


def _sign_v4(
    service: str,
    request: HttpRequest,
    region: Optional[str],
    access_key: str,
    secret_key: str,
    content_sha256: str,
) -> HttpRequest:
    result = compute_signature(request, region, access_key, secret_key, content_sha256, service)
    signed = request.with_header("Authorization", result.authorization)
    return replace(signed, signature=result.signature)


def sign_v4_s3(
    request: HttpRequest,
    region: Optional[str],
    access_key: str,
    secret_key: str,
    content_sha256: str,
) -> HttpRequest:
    """Return request with an S3 Authorization header."""
    return _sign_v4(C.SERVICE_S3, request, region, access_key, secret_key, content_sha256)


def sign_v4_sts(
    request: HttpRequest,
    region: Optional[str],
    access_key: str,
    secret_key: str,
    content_sha256: str,
) -> HttpRequest:
    """Return request with an STS Authorization header."""
    return _sign_v4(C.SERVICE_STS, request, region, access_key, secret_key, content_sha256)


def presign_v4(
    request: HttpRequest,
    region: Optional[str],
    access_key: str,
    secret_key: str,
    expires: int,
) -> HttpRequest:
    """
    Return request whose URL carries a query-embedded signature.

    The payload is always UNSIGNED-PAYLOAD; expiry is not checked against
    the server.
    """
    if not region:
        raise SigningError.missing_region()
    date = request_date(request)

    _, signed_headers = canonical_headers(request.headers.multi_items(), PRESIGN_IGNORED_HEADERS)
    presign_params = "&".join(
        f"{encode(k)}={encode(v)}"
        for k, v in (
            ("X-Amz-Algorithm", C.SIGN_ALGORITHM),
            ("X-Amz-Credential", credential(access_key, date, region)),
            ("X-Amz-Date", date.strftime(C.AMZ_DATE_FORMAT)),
            ("X-Amz-Expires", str(expires)),
            ("X-Amz-SignedHeaders", signed_headers),
        )
    )
    query = f"{request.url.query}&{presign_params}" if request.url.query else presign_params

    result = compute_signature(
        request,
        region,
        access_key,
        secret_key,
        C.UNSIGNED_PAYLOAD,
        ignored=PRESIGN_IGNORED_HEADERS,
        encoded_query=query,
    )
    final_query = f"{query}&{encode('X-Amz-Signature')}={encode(result.signature)}"
    return replace(request, url=request.url.with_query(final_query), signature=result.signature)


def chunk_signature(
    chunk_sha256: str,
    date: datetime,
    region: str,
    secret_key: str,
    prev_signature: str,
) -> str:
    """Signature of one aws-chunked payload chunk, chained to prev_signature."""
    if not region:
        raise SigningError.missing_region()
    to_sign = (
        f"{C.CHUNK_SIGN_ALGORITHM}\n{date.strftime(C.AMZ_DATE_FORMAT)}\n"
        f"{scope(date, region, C.SERVICE_S3)}\n{prev_signature}\n"
        f"{C.ZERO_SHA256_HASH}\n{chunk_sha256}"
    )
    return signature(signing_key(secret_key, date, region, C.SERVICE_S3), to_sign)


def post_presign_v4(policy: str, secret_key: str, date: datetime, region: str) -> str:
    """Signature for a base64 POST policy document."""
    if not region:
        raise SigningError.missing_region()
    return signature(signing_key(secret_key, date, region, C.SERVICE_S3), policy)


__all__ = [
    "IGNORED_HEADERS",
    "PRESIGN_IGNORED_HEADERS",
    "canonical_headers",
    "canonical_query_string",
    "canonical_request",
    "scope",
    "string_to_sign",
    "signing_key",
    "credential",
    "SignatureV4",
    "request_date",
    "compute_signature",
    "sign_v4_s3",
    "sign_v4_sts",
    "presign_v4",
    "chunk_signature",
    "post_presign_v4",
]
