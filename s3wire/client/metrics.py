"""
Transfer metrics kept by each client.

Counters only; nothing here is exported or sampled. Callers read them
through S3Client.metrics.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class TransferMetrics:
    """
    Nanosecond-precision request counters.

    Tracks request volume, error classes and payload throughput.
    """
    # Request counters
    request_count: int = 0
    head_retries: int = 0
    region_lookups: int = 0

    # Byte counters
    bytes_sent: int = 0
    bytes_received: int = 0

    # Latency accumulator (nanoseconds)
    latency_sum_ns: int = 0

    # Error counters
    error_responses: int = 0
    protocol_errors: int = 0
    transport_errors: int = 0

    def record_exchange(self, sent: int, received: int, latency_ns: int) -> None:
        self.request_count += 1
        self.bytes_sent += max(sent, 0)
        self.bytes_received += received
        self.latency_sum_ns += latency_ns

    @property
    def error_count(self) -> int:
        return self.error_responses + self.protocol_errors + self.transport_errors

    def average_latency_ms(self) -> float:
        if self.request_count == 0:
            return 0.0
        return self.latency_sum_ns / self.request_count / 1_000_000

    def get_throughput_mbps(self) -> float:
        """Average MB/s over all exchanges, both directions."""
        if self.latency_sum_ns == 0:
            return 0.0
        seconds = self.latency_sum_ns / 1_000_000_000
        return ((self.bytes_sent + self.bytes_received) / 1_000_000) / seconds


__all__ = ["TransferMetrics"]
