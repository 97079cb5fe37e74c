"""
Observability: structured logging and HTTP tracing.
"""

from s3wire.observability.logging import (
    JsonFormatter,
    LogLevel,
    StructuredLogger,
    current_context,
    setup_logging,
)

__all__ = [
    "JsonFormatter",
    "LogLevel",
    "StructuredLogger",
    "current_context",
    "setup_logging",
]
