"""
Endpoint Resolver: canonical base URL and per-request addressing.

A textual endpoint (bare host, IP address, or http(s) URL with an empty
path) is parsed once into a BaseUrl. For Amazon S3 hosts the host is split
into a prefix ("s3.", "s3-accelerate.", "bucket.vpce-....s3.", ...), an
optional region and a domain suffix ("amazonaws.com", "amazonaws.com.cn"),
so each request can be re-addressed to the bucket's region.

Addressing rules per request:
- no bucket: list-buckets; AWS hosts rewritten to s3.<region>.amazonaws.com
- path-style forced for bucket creation (PUT, no object, no query), for
  ?location queries and for dotted bucket names over HTTPS
- otherwise virtual-style (bucket.host) when enabled

The flags on BaseUrl are mutated only through the enable/disable methods.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

from s3wire.core.errors import ConfigurationError
from s3wire.http.encoding import encode, encode_path, host_header, is_ip_address
from s3wire.http.headers import QueryParams

# =============================================================================
# HOST PATTERNS
# =============================================================================
_LABEL = r"(?!-)(?!_)[a-z_\d-]{1,63}(?<!-)(?<!_)"

AWS_S3_PREFIX = (
    r"^(((bucket\.|accesspoint\.)"
    r"vpce(-(?!_)[a-z_\d]+(?<!-)(?<!_))+\.s3\.)|"
    r"((?!s3)(?!-)(?!_)[a-z_\d-]{1,63}(?<!-)(?<!_)\.)"
    r"s3-control(-(?!_)[a-z_\d]+(?<!-)(?<!_))*\.|"
    r"(s3(-(?!_)[a-z_\d]+(?<!-)(?<!_))*\.))"
)

HOSTNAME_REGEX = re.compile(
    rf"^({_LABEL}\.)*((?!_)(?!-)[a-z_\d-]{{1,63}}(?<!-)(?<!_))$", re.IGNORECASE
)
AWS_ENDPOINT_REGEX = re.compile(r".*\.amazonaws\.com(|\.cn)$", re.IGNORECASE)
AWS_S3_ENDPOINT_REGEX = re.compile(
    AWS_S3_PREFIX
    + r"((?!s3)(?!-)(?!_)[a-z_\d-]{1,63}(?<!-)(?<!_)\.)*amazonaws\.com(|\.cn)$",
    re.IGNORECASE,
)
AWS_ELB_ENDPOINT_REGEX = re.compile(
    rf"^{_LABEL}\.{_LABEL}\.elb\.amazonaws\.com$", re.IGNORECASE
)
AWS_S3_PREFIX_REGEX = re.compile(AWS_S3_PREFIX, re.IGNORECASE)
REGION_REGEX = re.compile(r"^((?!_)(?!-)[a-z_\d-]{1,63}(?<!-)(?<!_))$", re.IGNORECASE)

BUCKET_NAME_REGEX = re.compile(r"^[a-z0-9][a-z0-9.\-]{1,61}[a-z0-9]$")
_IPV4_REGEX = re.compile(r"^(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})$")

# Legacy hosts used verbatim, without region substitution
_LEGACY_HOSTS = frozenset({
    "s3-external-1.amazonaws.com",
    "s3-us-gov-west-1.amazonaws.com",
    "s3-fips-us-gov-west-1.amazonaws.com",
})


def validate_hostname_or_ip(endpoint: str) -> None:
    if is_ip_address(endpoint):
        return
    if not HOSTNAME_REGEX.search(endpoint):
        raise ConfigurationError.invalid_endpoint(endpoint, "invalid hostname")


def validate_bucket_name(bucket: str) -> None:
    """Amazon S3 bucket naming rules."""
    if not BUCKET_NAME_REGEX.search(bucket):
        raise ConfigurationError.invalid_bucket_name(
            bucket, "does not follow Amazon S3 standards"
        )
    if _IPV4_REGEX.match(bucket):
        raise ConfigurationError.invalid_bucket_name(
            bucket, "must not be formatted as an IP address"
        )
    if ".." in bucket or ".-" in bucket or "-." in bucket:
        raise ConfigurationError.invalid_bucket_name(
            bucket, "cannot contain successive characters '..', '.-' and '-.'"
        )


def validate_region(region: str) -> None:
    if not REGION_REGEX.search(region):
        raise ConfigurationError.invalid_argument("region", region)


# =============================================================================
# RESOLVED REQUEST URL
# =============================================================================
@dataclass(frozen=True, slots=True)
class RequestUrl:
    """
    Fully addressed request URL.

    path and query are already percent-encoded and are used unchanged both
    on the wire and in the canonical request.
    """

    scheme: str
    host: str
    port: int
    path: str = "/"
    query: str = ""

    @property
    def is_https(self) -> bool:
        return self.scheme == "https"

    @property
    def host_header(self) -> str:
        return host_header(self.scheme, self.host, self.port)

    def with_query(self, query: str) -> RequestUrl:
        return RequestUrl(self.scheme, self.host, self.port, self.path, query)

    def __str__(self) -> str:
        url = f"{self.scheme}://{self.host_header}{self.path}"
        return f"{url}?{self.query}" if self.query else url


# =============================================================================
# BASE URL
# =============================================================================
class BaseUrl:
    """Parsed client endpoint plus AWS addressing state."""

    __slots__ = (
        "scheme",
        "host",
        "port",
        "region",
        "aws_s3_prefix",
        "aws_domain_suffix",
        "aws_dualstack",
        "use_virtual_style",
    )

    def __init__(
        self,
        endpoint: str,
        port: Optional[int] = None,
        secure: Optional[bool] = None,
        region: Optional[str] = None,
    ) -> None:
        scheme, host, parsed_port = self.parse(endpoint)
        if secure is not None:
            scheme = "https" if secure else "http"
        if port is not None:
            if not 1 <= port <= 65535:
                raise ConfigurationError.invalid_port(port)
            parsed_port = port
        elif secure is not None and parsed_port in (80, 443):
            parsed_port = 443 if secure else 80

        self.scheme = scheme
        self.host = host
        self.port = parsed_port
        self.region: Optional[str] = None
        self.aws_s3_prefix: Optional[str] = None
        self.aws_domain_suffix: Optional[str] = None
        self.aws_dualstack = False
        self._set_aws_info(host, self.is_https)
        self.use_virtual_style = (
            self.aws_domain_suffix is not None or host.endswith("aliyuncs.com")
        )
        if region is not None:
            validate_region(region)
            self.region = region

    @staticmethod
    def parse(endpoint: str) -> tuple[str, str, int]:
        """
        Validate an endpoint and return (scheme, host, port).

        Raises:
            ConfigurationError: empty endpoint, unsupported scheme, a path
                other than "/", an invalid port or an invalid hostname.
        """
        if not endpoint or not endpoint.strip():
            raise ConfigurationError.invalid_endpoint(endpoint, "endpoint cannot be empty")

        if "://" not in endpoint:
            validate_hostname_or_ip(endpoint)
            return "https", endpoint.lower().strip("[]"), 443

        parts = urlsplit(endpoint)
        scheme = parts.scheme.lower()
        if scheme not in ("http", "https"):
            raise ConfigurationError.invalid_endpoint(endpoint, f"unsupported scheme '{scheme}'")
        if parts.path not in ("", "/"):
            raise ConfigurationError.invalid_endpoint(endpoint, "no path allowed in endpoint")
        host = parts.hostname
        if not host:
            raise ConfigurationError.invalid_endpoint(endpoint, "missing host")
        try:
            port = parts.port
        except ValueError:
            raise ConfigurationError.invalid_endpoint(endpoint, "invalid port") from None
        if port == 0:
            raise ConfigurationError.invalid_port(port)
        validate_hostname_or_ip(host)
        return scheme, host, port or (443 if scheme == "https" else 80)

    def _set_aws_info(self, host: str, https: bool) -> None:
        self.aws_s3_prefix = None
        self.aws_domain_suffix = None
        self.aws_dualstack = False

        if not HOSTNAME_REGEX.search(host):
            return

        if AWS_ELB_ENDPOINT_REGEX.search(host):
            # <name>.<region>.elb.amazonaws.com
            self.region = host[: -len(".elb.amazonaws.com")].split(".")[-1]
            return

        if not AWS_ENDPOINT_REGEX.search(host):
            return

        if not AWS_S3_ENDPOINT_REGEX.search(host):
            raise ConfigurationError.invalid_endpoint(host, "invalid Amazon AWS host")

        match = AWS_S3_PREFIX_REGEX.match(host)
        end = match.end() if match else 0
        self.aws_s3_prefix = host[:end]
        if "s3-accesspoint" in self.aws_s3_prefix and not https:
            raise ConfigurationError.invalid_endpoint(host, "use HTTPS scheme for host")

        tokens = host[end:].split(".")
        self.aws_dualstack = tokens[0] == "dualstack"
        if self.aws_dualstack:
            tokens = tokens[1:]
        region_in_host: Optional[str] = None
        if tokens[0] not in ("vpce", "amazonaws"):
            region_in_host = tokens[0]
            tokens = tokens[1:]
        self.aws_domain_suffix = ".".join(tokens)

        if host == "s3-external-1.amazonaws.com":
            region_in_host = "us-east-1"
        if host in ("s3-us-gov-west-1.amazonaws.com", "s3-fips-us-gov-west-1.amazonaws.com"):
            region_in_host = "us-gov-west-1"

        if region_in_host is not None:
            self.region = region_in_host

    # =========================================================================
    # Properties and toggles
    # =========================================================================
    @property
    def is_https(self) -> bool:
        return self.scheme == "https"

    @property
    def is_aws_host(self) -> bool:
        return self.aws_domain_suffix is not None

    def enable_dualstack_endpoint(self) -> None:
        self.aws_dualstack = True

    def disable_dualstack_endpoint(self) -> None:
        self.aws_dualstack = False

    def enable_virtual_style_endpoint(self) -> None:
        self.use_virtual_style = True

    def disable_virtual_style_endpoint(self) -> None:
        self.use_virtual_style = False

    def set_aws_s3_prefix(self, prefix: str) -> None:
        """Override the AWS S3 host prefix, e.g. "s3-accelerate."."""
        if not prefix or not AWS_S3_PREFIX_REGEX.search(prefix):
            raise ConfigurationError.invalid_argument("Amazon AWS S3 domain prefix", prefix)
        self.aws_s3_prefix = prefix

    def check_bucket_name(self, bucket: str) -> None:
        """Reject names AWS reserves for aliases, on AWS hosts only."""
        if not self.is_aws_host:
            return
        if bucket.startswith("xn--") or bucket.endswith("--s3alias") or bucket.endswith("--ol-s3"):
            raise ConfigurationError.invalid_bucket_name(
                bucket,
                "must not start with 'xn--' and must not end with '--s3alias' or '--ol-s3'",
            )

    # =========================================================================
    # URL building
    # =========================================================================
    def _aws_host(self, bucket: str, enforce_path_style: bool, region: str) -> str:
        prefix = self.aws_s3_prefix or ""
        suffix = self.aws_domain_suffix or ""
        if prefix + suffix in _LEGACY_HOSTS:
            return prefix + suffix

        host = prefix
        accelerate = "s3-accelerate" in prefix
        if accelerate:
            if "." in bucket:
                raise ConfigurationError.invalid_bucket_name(
                    bucket, "with '.' is not allowed for accelerate endpoint"
                )
            if enforce_path_style:
                host = host.replace("-accelerate", "", 1)

        if self.aws_dualstack:
            host += "dualstack."
        if not accelerate:
            host += region + "."
        return host + suffix

    def _list_buckets_host(self, region: str) -> str:
        if self.aws_domain_suffix is None:
            return self.host

        prefix = self.aws_s3_prefix or ""
        suffix = self.aws_domain_suffix
        if prefix + suffix in _LEGACY_HOSTS:
            return prefix + suffix

        if prefix.startswith("s3.") or prefix.startswith("s3-"):
            prefix = "s3."
            suffix = "amazonaws.com" + (".cn" if suffix.endswith(".cn") else "")
        return f"{prefix}{region}.{suffix}"

    def build_url(
        self,
        method: str,
        bucket: Optional[str],
        object_name: Optional[str],
        region: str,
        query_params: Optional[QueryParams] = None,
    ) -> RequestUrl:
        """
        Address one request.

        Raises:
            ConfigurationError: object without bucket, or a dotted bucket on
                an accelerate endpoint.
        """
        if bucket is None and object_name is not None:
            raise ConfigurationError.invalid_argument(
                "bucket name", f"null bucket name for object '{object_name}'"
            )

        query = query_params.encoded() if query_params else ""

        if bucket is None:
            host = self._list_buckets_host(region)
            return RequestUrl(self.scheme, host, self.port, "/", query)

        enforce_path_style = (
            # bucket creation; s3.amazonaws.com rejects it virtual-style
            (method == "PUT" and object_name is None and not query_params)
            or (query_params is not None and "location" in query_params)
            # dotted names break wildcard TLS certificates
            or ("." in bucket and self.is_https)
        )

        host = self.host
        if self.aws_domain_suffix is not None:
            host = self._aws_host(bucket, enforce_path_style, region)

        path = ""
        if enforce_path_style or not self.use_virtual_style:
            path = "/" + encode(bucket)
        else:
            host = f"{bucket}.{host}"

        if object_name is not None:
            path += "/" + encode_path(object_name)

        return RequestUrl(self.scheme, host, self.port, path or "/", query)

    def __repr__(self) -> str:
        return f"BaseUrl({self.scheme}://{host_header(self.scheme, self.host, self.port)}/)"


__all__ = [
    "AWS_S3_PREFIX_REGEX",
    "HOSTNAME_REGEX",
    "REGION_REGEX",
    "RequestUrl",
    "BaseUrl",
    "validate_bucket_name",
    "validate_hostname_or_ip",
    "validate_region",
]
