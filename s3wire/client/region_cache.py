"""
Bucket -> region cache.

Safe for concurrent get/put/remove from the event loop and worker threads.
Entries are written after GetBucketLocation and removed when a request
reports NoSuchBucket or triggers the HEAD retry.
"""

from __future__ import annotations

import threading
from typing import Optional


class RegionCache:
    __slots__ = ("_regions", "_lock")

    def __init__(self) -> None:
        self._regions: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, bucket: str) -> Optional[str]:
        with self._lock:
            return self._regions.get(bucket)

    def put(self, bucket: str, region: str) -> None:
        with self._lock:
            self._regions[bucket] = region

    def remove(self, bucket: Optional[str]) -> None:
        if bucket is None:
            return
        with self._lock:
            self._regions.pop(bucket, None)

    def clear(self) -> None:
        with self._lock:
            self._regions.clear()

    def __contains__(self, bucket: object) -> bool:
        with self._lock:
            return bucket in self._regions

    def __len__(self) -> int:
        with self._lock:
            return len(self._regions)


__all__ = ["RegionCache"]
