"""
Reliability helpers for callers of the client.
"""

from s3wire.reliability.retry import (
    RetryPolicy,
    RetryStats,
    calculate_backoff,
    retry_with_backoff,
)

__all__ = ["RetryPolicy", "RetryStats", "calculate_backoff", "retry_with_backoff"]
