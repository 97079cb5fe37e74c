"""
Wire-level request and response messages exchanged with a Transport.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import Optional

from s3wire.http.body import Body, EMPTY_BODY
from s3wire.http.endpoint import RequestUrl
from s3wire.http.headers import Headers

_REDACTIONS = (
    (re.compile(r"Signature=[0-9a-fA-F]+"), "Signature=*REDACTED*"),
    (re.compile(r"Credential=[^/,&\s]+"), "Credential=*REDACTED*"),
    (re.compile(r"(X-Amz-Security-Token:\s*|X-Amz-Security-Token=)[^&\s]+", re.IGNORECASE),
     r"\1*REDACTED*"),
)


def redact(text: str) -> str:
    """Mask signatures, access keys and session tokens in trace output."""
    for pattern, replacement in _REDACTIONS:
        text = pattern.sub(replacement, text)
    return text


@dataclass(frozen=True)
class HttpRequest:
    """
    Fully addressed request, optionally signed.

    signature holds the SigV4 header signature once signed; it seeds
    chunk signatures for aws-chunked uploads.
    """

    method: str
    url: RequestUrl
    headers: Headers = field(default_factory=Headers)
    body: Body = EMPTY_BODY
    signature: Optional[str] = None

    def with_header(self, name: str, value: str) -> HttpRequest:
        headers = self.headers.copy()
        headers.set(name, value)
        return replace(self, headers=headers)

    def trace(self) -> str:
        """HTTP/1.1 style dump of the request head with secrets redacted."""
        target = self.url.path + (f"?{self.url.query}" if self.url.query else "")
        lines = [f"{self.method} {target} HTTP/1.1"]
        lines.extend(f"{name}: {value}" for name, value in self.headers.multi_items())
        return redact("\n".join(lines))


@dataclass(frozen=True)
class HttpResponse:
    """Status, headers and fully read body of one exchange."""

    status: int
    headers: Headers = field(default_factory=Headers)
    content: bytes = b""

    @property
    def is_success(self) -> bool:
        return 200 <= self.status < 300

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get("Content-Type")

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def trace(self) -> str:
        lines = [f"HTTP/1.1 {self.status}"]
        lines.extend(f"{name}: {value}" for name, value in self.headers.multi_items())
        return redact("\n".join(lines))


__all__ = ["HttpRequest", "HttpResponse", "redact"]
