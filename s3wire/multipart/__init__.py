"""
Multipart uploads: part sizing, part reading and orchestration.
"""

from s3wire.multipart.part_info import PartInfo, compute_part_info
from s3wire.multipart.part_reader import ChunkChain, PartReader, PartSource
from s3wire.multipart.orchestrator import (
    MultipartApi,
    MultipartUploadSession,
    MultipartUploader,
    ObjectWriteResult,
    Part,
    UploadState,
)

__all__ = [
    "PartInfo",
    "compute_part_info",
    "ChunkChain",
    "PartReader",
    "PartSource",
    "MultipartApi",
    "MultipartUploadSession",
    "MultipartUploader",
    "ObjectWriteResult",
    "Part",
    "UploadState",
]
