"""
SigV4 signer: header, presigned-URL, chunked-payload, STS and POST policy.
"""

from s3wire.signer.sigv4 import (
    IGNORED_HEADERS,
    PRESIGN_IGNORED_HEADERS,
    SignatureV4,
    canonical_headers,
    canonical_query_string,
    canonical_request,
    chunk_signature,
    compute_signature,
    credential,
    post_presign_v4,
    presign_v4,
    sign_v4_s3,
    sign_v4_sts,
)
from s3wire.signer.chunked import ChunkedEncoder, encoded_length

__all__ = [
    "IGNORED_HEADERS",
    "PRESIGN_IGNORED_HEADERS",
    "SignatureV4",
    "canonical_headers",
    "canonical_query_string",
    "canonical_request",
    "chunk_signature",
    "compute_signature",
    "credential",
    "post_presign_v4",
    "presign_v4",
    "sign_v4_s3",
    "sign_v4_sts",
    "ChunkedEncoder",
    "encoded_length",
]
