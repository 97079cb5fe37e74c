"""
Ambient Stack Test Suite

Tests for:
- retry_with_backoff and backoff calculation
- ClientConfig validation and environment loading
- credentials and providers
- Result containers and error serialization
- structured JSON logging with request context and redaction

Run: python -m pytest s3wire/tests/test_reliability.py -v
"""

from __future__ import annotations

import asyncio
import dataclasses
import io
import json
import logging
from datetime import datetime, timedelta, timezone

import pytest

from s3wire.core.config import ClientConfig, Credentials, EnvironmentProvider, StaticProvider
from s3wire.core.errors import (
    ConfigurationError,
    ErrorCode,
    ErrorResponse,
    ErrorResponseError,
    MultipartAbortError,
    ReliabilityError,
    TransportError,
)
from s3wire.core.types import ByteRange, Err, Ok
from s3wire.http.message import redact
from s3wire.observability import JsonFormatter, LogLevel, StructuredLogger, setup_logging
from s3wire.observability.logging import current_context
from s3wire.reliability import RetryPolicy, RetryStats, calculate_backoff, retry_with_backoff

FAST = RetryPolicy(max_retries=3, base_delay_ms=1, max_delay_ms=4, jitter=False)


class Flaky:
    """Fails the first `failures` calls with the given error."""

    def __init__(self, failures: int, error_factory=None, value: str = "done") -> None:
        self.failures = failures
        self.calls = 0
        self.value = value
        self.error_factory = error_factory or (
            lambda: TransportError.connection_failed("http://localhost:9000")
        )

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error_factory()
        return self.value


# =============================================================================
# RETRY
# =============================================================================
class TestRetryWithBackoff:
    """Caller-side retry helper."""

    def test_success_first_attempt(self):
        stats = RetryStats()
        result = asyncio.run(retry_with_backoff(Flaky(0), FAST, stats))
        assert result == Ok("done")
        assert stats.total_attempts == 1

    def test_transient_failures_recovered(self):
        stats = RetryStats()
        flaky = Flaky(2)
        result = asyncio.run(retry_with_backoff(flaky, FAST, stats))

        assert result.unwrap() == "done"
        assert flaky.calls == 3
        assert stats.failed_attempts == 2
        assert stats.total_delay_ms == pytest.approx(1 + 2)

    @pytest.mark.parametrize(
        "factory",
        [
            lambda: ConfigurationError.invalid_argument("bucket", "empty"),
            lambda: ErrorResponseError.from_response(ErrorResponse("InternalError", "x"), 500),
            lambda: TransportError.insufficient_data(10, 4),
            lambda: ValueError("not an s3 error"),
        ],
    )
    def test_not_retried(self, factory):
        flaky = Flaky(5, factory)
        result = asyncio.run(retry_with_backoff(flaky, FAST))

        assert result.is_err()
        assert flaky.calls == 1
        with pytest.raises(type(result.error)):
            result.unwrap()

    def test_exhausted(self):
        stats = RetryStats()
        result = asyncio.run(retry_with_backoff(Flaky(10), FAST, stats))

        error = result.error
        assert isinstance(error, ReliabilityError)
        assert error.code is ErrorCode.RELIABILITY_RETRY_EXHAUSTED
        assert error.context["attempts"] == 4
        assert isinstance(error.cause, TransportError)
        assert stats.total_delay_ms == pytest.approx(1 + 2 + 4)

    def test_no_retry_policy(self):
        flaky = Flaky(1)
        result = asyncio.run(retry_with_backoff(flaky, RetryPolicy.no_retry()))
        assert isinstance(result.error, ReliabilityError)
        assert flaky.calls == 1

    def test_global_timeout(self):
        policy = RetryPolicy(max_retries=5, base_delay_ms=1, jitter=False, global_timeout_s=0.0)
        result = asyncio.run(retry_with_backoff(Flaky(0), policy))
        assert isinstance(result.error, ReliabilityError)

    def test_backoff_without_jitter(self):
        assert calculate_backoff(0, 100, 10_000, jitter=False) == 100
        assert calculate_backoff(3, 100, 10_000, jitter=False) == 800
        assert calculate_backoff(10, 100, 10_000, jitter=False) == 10_000

    def test_backoff_full_jitter(self):
        for attempt in range(8):
            delay = calculate_backoff(attempt, 100, 10_000)
            assert 0 <= delay <= min(10_000, 100 * 2 ** attempt)


# =============================================================================
# CONFIGURATION
# =============================================================================
class TestClientConfig:
    """ClientConfig.validate and from_env."""

    def test_defaults_valid(self):
        config = ClientConfig(endpoint="play.min.io")
        assert config.validate().is_ok()
        assert config.credentials_provider is None
        assert config.parallel_uploads == 1

    def test_frozen(self):
        config = ClientConfig(endpoint="play.min.io")
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.region = "us-east-1"

    @pytest.mark.parametrize(
        "overrides,message",
        [
            ({"port": 70000}, "port"),
            ({"connect_timeout_s": 0}, "connect_timeout_s"),
            ({"parallel_uploads": 0}, "parallel_uploads"),
            ({"app_version": "1.0"}, "app_name"),
            ({"access_key": "only-access"}, "together"),
        ],
    )
    def test_invalid(self, overrides, message):
        result = ClientConfig(endpoint="play.min.io", **overrides).validate()
        assert result.is_err()
        assert message in result.error

    def test_static_provider_from_keys(self):
        config = ClientConfig(endpoint="play.min.io", access_key="ak", secret_key="sk")
        credentials = config.credentials_provider.fetch()
        assert (credentials.access_key, credentials.secret_key) == ("ak", "sk")

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("S3WIRE_ENDPOINT", "http://localhost:9000")
        monkeypatch.setenv("S3WIRE_REGION", "eu-west-1")
        monkeypatch.setenv("S3WIRE_ACCESS_KEY", "ak")
        monkeypatch.setenv("S3WIRE_SECRET_KEY", "sk")
        monkeypatch.setenv("S3WIRE_SECURE", "false")
        monkeypatch.setenv("S3WIRE_VIRTUAL_STYLE", "yes")
        monkeypatch.setenv("S3WIRE_PARALLEL_UPLOADS", "4")
        monkeypatch.setenv("S3WIRE_READ_TIMEOUT", "12.5")

        config = ClientConfig.from_env().unwrap()

        assert config.endpoint == "http://localhost:9000"
        assert config.region == "eu-west-1"
        assert config.secure is False
        assert config.virtual_style is True
        assert config.parallel_uploads == 4
        assert config.read_timeout_s == 12.5
        assert config.port is None

    def test_from_env_missing_endpoint(self, monkeypatch):
        monkeypatch.delenv("S3WIRE_ENDPOINT", raising=False)
        assert ClientConfig.from_env().is_err()

    @pytest.mark.parametrize(
        "name,value",
        [
            ("S3WIRE_PORT", "not-a-port"),
            ("S3WIRE_PORT", "0"),
            ("S3WIRE_DUALSTACK", "maybe"),
            ("S3WIRE_PARALLEL_UPLOADS", "0"),
        ],
    )
    def test_from_env_invalid(self, monkeypatch, name, value):
        monkeypatch.setenv("S3WIRE_ENDPOINT", "play.min.io")
        monkeypatch.setenv(name, value)
        result = ClientConfig.from_env()
        assert result.is_err()
        assert result.error


class TestCredentials:
    """Credentials and providers."""

    def test_repr_hides_secret(self):
        credentials = Credentials("AKIDEXAMPLE", "super-secret", "token")
        assert "super-secret" not in repr(credentials)
        assert "token" not in repr(credentials)
        assert "AKIDEXAMPLE" in repr(credentials)

    def test_expiry(self):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert not Credentials("a", "s").is_expired(now)
        assert Credentials("a", "s", expiration=now).is_expired(now)
        assert not Credentials("a", "s", expiration=now + timedelta(minutes=5)).is_expired(now)

    def test_static_provider_session_token(self):
        assert StaticProvider("a", "s", "t").fetch().session_token == "t"

    def test_environment_provider_aws(self, monkeypatch):
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "aws-ak")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "aws-sk")
        monkeypatch.setenv("AWS_SESSION_TOKEN", "aws-token")
        credentials = EnvironmentProvider().fetch()
        assert (credentials.access_key, credentials.session_token) == ("aws-ak", "aws-token")

    def test_environment_provider_minio_fallback(self, monkeypatch):
        for name in ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_SESSION_TOKEN"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("MINIO_ACCESS_KEY", "minio-ak")
        monkeypatch.setenv("MINIO_SECRET_KEY", "minio-sk")
        credentials = EnvironmentProvider().fetch()
        assert (credentials.access_key, credentials.secret_key) == ("minio-ak", "minio-sk")
        assert credentials.session_token is None

    def test_environment_provider_missing(self, monkeypatch):
        for name in ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "MINIO_ACCESS_KEY", "MINIO_SECRET_KEY"):
            monkeypatch.delenv(name, raising=False)
        with pytest.raises(ConfigurationError):
            EnvironmentProvider().fetch()


# =============================================================================
# RESULT AND ERRORS
# =============================================================================
class TestResultAndErrors:
    """Result containers and error serialization."""

    def test_result_map(self):
        assert Ok(2).map(lambda v: v * 3) == Ok(6)
        assert Err("bad").map(lambda v: v * 3) == Err("bad")
        assert Err("bad").unwrap_or(7) == 7
        assert Ok(1).flat_map(lambda v: Err(f"no {v}")) == Err("no 1")

    def test_unwrap_err_message(self):
        with pytest.raises(RuntimeError):
            Err("bad").unwrap()

    def test_byte_range(self):
        assert ByteRange(5).to_http_header() == "bytes=5-"
        assert ByteRange(5).length is None
        assert ByteRange(0, 9).to_http_header() == "bytes=0-9"
        assert ByteRange(0, 9).length == 10
        with pytest.raises(ValueError):
            ByteRange(5, 4)

    def test_error_str_and_dict(self):
        error = ConfigurationError.region_conflict("eu-west-1", "us-east-1")
        assert str(error).startswith("[CONFIG_REGION_CONFLICT] region must be us-east-1")
        data = error.to_dict()
        assert data["code"] == "CONFIG_REGION_CONFLICT"
        assert data["code_value"] == 1003
        assert data["context"]["client_region"] == "us-east-1"

    def test_suppressed_not_serialized(self):
        error = TransportError.connection_failed("http://h")
        error.context.setdefault("suppressed", []).append(MultipartAbortError.abort_failed("u1"))
        assert "suppressed" not in error.to_dict()["context"]
        assert error.context["suppressed"][0].code is ErrorCode.MULTIPART_ABORT_FAILED

    def test_with_context_copies(self):
        error = ConfigurationError.invalid_argument("bucket", "empty")
        enriched = error.with_context(bucket="b")
        assert enriched.context["bucket"] == "b"
        assert "bucket" not in error.context
        assert enriched.error_id == error.error_id

    def test_error_response_codes(self):
        fault = ErrorResponseError.from_response(ErrorResponse("ServerFault", "x"), 500)
        denied = ErrorResponseError.from_response(ErrorResponse("AccessDenied", "x"), 403)
        assert fault.code is ErrorCode.PROTOCOL_SERVER_FAULT
        assert denied.code is ErrorCode.PROTOCOL_ERROR_RESPONSE
        assert fault.retryable and not denied.retryable
        assert str(denied).startswith("[PROTOCOL_ERROR_RESPONSE] AccessDenied: x")


# =============================================================================
# LOGGING
# =============================================================================
@pytest.fixture
def json_logger():
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JsonFormatter())
    target = logging.getLogger("s3wire.test.json")
    target.addHandler(handler)
    target.setLevel(logging.DEBUG)
    target.propagate = False
    try:
        yield StructuredLogger("s3wire.test.json"), stream
    finally:
        target.removeHandler(handler)
        target.propagate = True


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    try:
        yield
    finally:
        root.handlers[:] = handlers
        root.setLevel(level)


class TestLogging:
    """JSON formatting, request context and redaction."""

    def test_json_record(self, json_logger):
        logger, stream = json_logger
        logger.info("Resolved bucket region", bucket="photos", region="eu-west-1")

        record = json.loads(stream.getvalue())
        assert record["message"] == "Resolved bucket region"
        assert record["level"] == "INFO"
        assert record["logger"] == "s3wire.test.json"
        assert (record["bucket"], record["region"]) == ("photos", "eu-west-1")
        assert "@timestamp" in record

    def test_context_fields(self, json_logger):
        logger, stream = json_logger
        with logger.context(bucket="photos", request_id="r1"):
            with logger.context(object="a.jpg"):
                assert current_context() == {"bucket": "photos", "request_id": "r1", "object": "a.jpg"}
                logger.debug("sending")
            assert "object" not in current_context()
        assert current_context() == {}

        record = json.loads(stream.getvalue())
        assert record["request_id"] == "r1"
        assert (record["bucket"], record["object"]) == ("photos", "a.jpg")

    def test_with_extra(self, json_logger):
        logger, stream = json_logger
        logger.with_extra(component="uploader").warning("slow part", part=3)
        record = json.loads(stream.getvalue())
        assert (record["component"], record["part"], record["level"]) == ("uploader", 3, "WARNING")

    def test_message_redacted(self, json_logger):
        logger, stream = json_logger
        logger.error("Authorization: AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/20240102, Signature=abc123")
        message = json.loads(stream.getvalue())["message"]
        assert "AKIDEXAMPLE" not in message
        assert "abc123" not in message

    def test_redact(self):
        text = "GET /b/o?X-Amz-Security-Token=tok123&X-Amz-Signature=beef HTTP/1.1"
        redacted = redact(text)
        assert "tok123" not in redacted
        assert "Signature=*REDACTED*" in redacted
        assert redact("X-Amz-Security-Token: tok456") == "X-Amz-Security-Token: *REDACTED*"

    def test_setup_logging(self, restore_root_logger):
        stream = io.StringIO()
        setup_logging(LogLevel.DEBUG, json_output=True, stream=stream)

        StructuredLogger("s3wire.client").debug("hello", bucket="b")

        record = json.loads(stream.getvalue().splitlines()[-1])
        assert (record["message"], record["bucket"]) == ("hello", "b")
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_plain_text_output(self, restore_root_logger):
        stream = io.StringIO()
        setup_logging(LogLevel.INFO, json_output=False, stream=stream)
        StructuredLogger("s3wire.client").debug("hidden")
        StructuredLogger("s3wire.client").info("shown")
        output = stream.getvalue()
        assert "hidden" not in output
        assert "| INFO     | s3wire.client | shown" in output
