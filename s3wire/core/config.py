"""
Client Configuration and Credentials

Provides validated configuration with sensible defaults and
environment variable overrides.

Design:
- Immutable after construction
- Fail-fast on invalid configuration (validate() / from_env())
- Credentials are fetched per request from a provider and never cached
  on the client
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

from s3wire.core.types import Result, Ok, Err
from s3wire.core.errors import ConfigurationError
from s3wire.core import constants as C


# =============================================================================
# CREDENTIALS
# =============================================================================
@dataclass(frozen=True, slots=True)
class Credentials:
    """Access key pair with optional session token."""

    access_key: str
    secret_key: str
    session_token: Optional[str] = None
    expiration: Optional[datetime] = None

    def __repr__(self) -> str:
        # Secrets stay out of logs and tracebacks
        return f"Credentials(access_key={self.access_key!r})"

    def is_expired(self, now: datetime) -> bool:
        return self.expiration is not None and now >= self.expiration


@runtime_checkable
class CredentialsProvider(Protocol):
    """Source of credentials, consulted once per request."""

    def fetch(self) -> Credentials:
        ...


class StaticProvider:
    """Provider returning a fixed key pair."""

    __slots__ = ("_credentials",)

    def __init__(
        self,
        access_key: str,
        secret_key: str,
        session_token: Optional[str] = None,
    ) -> None:
        self._credentials = Credentials(access_key, secret_key, session_token)

    def fetch(self) -> Credentials:
        return self._credentials


class EnvironmentProvider:
    """
    Provider reading AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY /
    AWS_SESSION_TOKEN, falling back to MINIO_ACCESS_KEY / MINIO_SECRET_KEY.
    """

    __slots__ = ()

    def fetch(self) -> Credentials:
        access_key = os.getenv("AWS_ACCESS_KEY_ID") or os.getenv("MINIO_ACCESS_KEY")
        secret_key = os.getenv("AWS_SECRET_ACCESS_KEY") or os.getenv("MINIO_SECRET_KEY")
        if not access_key or not secret_key:
            raise ConfigurationError.invalid_argument(
                "credentials", "access key or secret key not set in environment"
            )
        return Credentials(access_key, secret_key, os.getenv("AWS_SESSION_TOKEN"))


# =============================================================================
# CLIENT CONFIGURATION
# =============================================================================
@dataclass(frozen=True)
class ClientConfig:
    """
    Root configuration for an S3 client.

    endpoint may be a bare host ("play.min.io"), an IP address or a URL
    with an empty path ("http://localhost:9000"). port and secure override
    what the endpoint implies.
    """

    endpoint: str
    port: Optional[int] = None
    secure: Optional[bool] = None
    region: Optional[str] = None

    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    session_token: Optional[str] = None

    connect_timeout_s: float = C.DEFAULT_CONNECT_TIMEOUT_S
    write_timeout_s: float = C.DEFAULT_WRITE_TIMEOUT_S
    read_timeout_s: float = C.DEFAULT_READ_TIMEOUT_S

    dualstack: bool = False
    virtual_style: Optional[bool] = None
    accelerate: bool = False

    parallel_uploads: int = 1
    app_name: Optional[str] = None
    app_version: Optional[str] = None
    trace: bool = False

    @property
    def credentials_provider(self) -> Optional[CredentialsProvider]:
        """Static provider built from the configured key pair, if any."""
        if self.access_key is None or self.secret_key is None:
            return None
        return StaticProvider(self.access_key, self.secret_key, self.session_token)

    @classmethod
    def from_env(cls) -> Result[ClientConfig, str]:
        """
        Load configuration from environment variables.

        Environment variables are prefixed with S3WIRE_.
        Example: S3WIRE_ENDPOINT, S3WIRE_REGION, S3WIRE_PARALLEL_UPLOADS
        """
        endpoint = os.getenv("S3WIRE_ENDPOINT")
        if not endpoint:
            return Err("Configuration error: S3WIRE_ENDPOINT is not set")

        try:
            port = os.getenv("S3WIRE_PORT")
            secure = os.getenv("S3WIRE_SECURE")
            virtual = os.getenv("S3WIRE_VIRTUAL_STYLE")
            config = cls(
                endpoint=endpoint,
                port=int(port) if port else None,
                secure=_parse_bool(secure) if secure else None,
                region=os.getenv("S3WIRE_REGION") or None,
                access_key=os.getenv("S3WIRE_ACCESS_KEY") or None,
                secret_key=os.getenv("S3WIRE_SECRET_KEY") or None,
                session_token=os.getenv("S3WIRE_SESSION_TOKEN") or None,
                connect_timeout_s=float(
                    os.getenv("S3WIRE_CONNECT_TIMEOUT", C.DEFAULT_CONNECT_TIMEOUT_S)
                ),
                write_timeout_s=float(
                    os.getenv("S3WIRE_WRITE_TIMEOUT", C.DEFAULT_WRITE_TIMEOUT_S)
                ),
                read_timeout_s=float(
                    os.getenv("S3WIRE_READ_TIMEOUT", C.DEFAULT_READ_TIMEOUT_S)
                ),
                dualstack=_parse_bool(os.getenv("S3WIRE_DUALSTACK", "false")),
                virtual_style=_parse_bool(virtual) if virtual else None,
                parallel_uploads=int(os.getenv("S3WIRE_PARALLEL_UPLOADS", "1")),
                trace=_parse_bool(os.getenv("S3WIRE_TRACE", "false")),
            )
        except (ValueError, TypeError) as e:
            return Err(f"Configuration error: {e}")

        return config.validate().map(lambda _: config)

    def validate(self) -> Result[None, str]:
        """Validate configuration invariants."""
        if self.port is not None and not 1 <= self.port <= 65535:
            return Err("port must be in range of 1 to 65535")
        for name in ("connect_timeout_s", "write_timeout_s", "read_timeout_s"):
            if getattr(self, name) <= 0:
                return Err(f"{name} must be positive")
        if self.parallel_uploads < 1:
            return Err("parallel_uploads must be >= 1")
        if self.app_version and not self.app_name:
            return Err("app_version requires app_name")
        if (self.access_key is None) != (self.secret_key is None):
            return Err("access_key and secret_key must be given together")
        return Ok(None)


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"invalid boolean value: {value!r}")


__all__ = [
    "Credentials",
    "CredentialsProvider",
    "StaticProvider",
    "EnvironmentProvider",
    "ClientConfig",
]
