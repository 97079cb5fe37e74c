"""
S3 percent-encoding and Host header rendering.

S3 and SigV4 require every byte outside the unreserved set
(A-Z a-z 0-9 - _ . ~) to be percent-encoded, including
! $ & ' ( ) * + , / : ; = @ [ ]. URLs and canonical requests must use the
same encoding byte-for-byte.
"""

from __future__ import annotations

import ipaddress
from typing import Optional
from urllib.parse import quote

_UNRESERVED = "-_.~"
_DEFAULT_PORTS = {"http": 80, "https": 443}


def encode(value: Optional[str]) -> str:
    """Percent-encode a query key/value or a single path segment."""
    if value is None:
        return ""
    return quote(value, safe=_UNRESERVED)


def encode_path(path: str) -> str:
    """
    Encode an object name segment by segment.

    '/' separators are kept, including leading and trailing ones.
    """
    return "/".join(encode(segment) for segment in path.split("/"))


def is_ip_address(host: str) -> bool:
    try:
        ipaddress.ip_address(host.strip("[]"))
    except ValueError:
        return False
    return True


def host_header(scheme: str, host: str, port: Optional[int]) -> str:
    """Host header value; the port is omitted when it is the scheme default."""
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    if port is None or _DEFAULT_PORTS.get(scheme) == port:
        return host
    return f"{host}:{port}"


__all__ = ["encode", "encode_path", "is_ip_address", "host_header"]
