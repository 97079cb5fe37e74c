"""
Part-size negotiation.

Known object size, no part size: the smallest multiple of 5 MiB that keeps
the part count within 10,000.

Known object size and part size: the part size is clamped to the object
size.

Unknown object size (-1): the part size is mandatory and the part count
stays -1 until the source is exhausted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from s3wire.core import constants as C
from s3wire.core.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class PartInfo:
    part_size: int
    part_count: int

    @property
    def size_known(self) -> bool:
        return self.part_count >= 0

    def last_part_size(self, object_size: int) -> int:
        """Bytes in the final part; only defined when object_size is known."""
        if self.part_count <= 1:
            return object_size
        return object_size - (self.part_count - 1) * self.part_size


def _ceil_div(a: int, b: int) -> int:
    return -(-a // b)


def _validate_sizes(object_size: int, part_size: Optional[int]) -> None:
    if part_size is not None:
        if part_size < C.MIN_MULTIPART_SIZE:
            raise ConfigurationError.invalid_part_size(
                f"part size {part_size} is not supported; minimum allowed 5MiB",
                part_size=part_size,
            )
        if part_size > C.MAX_PART_SIZE:
            raise ConfigurationError.invalid_part_size(
                f"part size {part_size} is not supported; maximum allowed 5GiB",
                part_size=part_size,
            )

    if object_size >= 0:
        if object_size > C.MAX_OBJECT_SIZE:
            raise ConfigurationError.invalid_part_size(
                f"object size {object_size} is not supported; maximum allowed 5TiB",
                object_size=object_size,
            )
    elif part_size is None:
        raise ConfigurationError.invalid_part_size(
            "valid part size must be provided when object size is unknown",
            object_size=object_size,
        )


def compute_part_info(object_size: int, part_size: Optional[int] = None) -> PartInfo:
    """
    Resolve (part size, part count) for an upload.

    Raises:
        ConfigurationError: part size outside 5 MiB..5 GiB, object larger
            than 5 TiB, unknown size without a part size, or more than
            10,000 parts.
    """
    _validate_sizes(object_size, part_size)

    if object_size < 0:
        return PartInfo(part_size, C.UNKNOWN_SIZE)

    if part_size is not None:
        part_size = min(part_size, object_size)
        count = _ceil_div(object_size, part_size) if part_size > 0 else 1
    else:
        per_part = _ceil_div(object_size, C.MAX_MULTIPART_COUNT)
        part_size = _ceil_div(per_part, C.MIN_MULTIPART_SIZE) * C.MIN_MULTIPART_SIZE
        part_size = min(part_size, C.MAX_PART_SIZE)
        count = _ceil_div(object_size, part_size) if part_size > 0 else 1

    if count > C.MAX_MULTIPART_COUNT:
        raise ConfigurationError.invalid_part_size(
            f"object size {object_size} and part size {part_size} make more than "
            f"{C.MAX_MULTIPART_COUNT} parts for upload",
            object_size=object_size,
            part_size=part_size,
        )
    return PartInfo(part_size, max(count, 1))


__all__ = ["PartInfo", "compute_part_info"]
