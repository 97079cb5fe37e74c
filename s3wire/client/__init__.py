"""
S3 client: execution engine, region cache and response classification.
"""

from s3wire.client.engine import S3Client, build_user_agent
from s3wire.client.metrics import TransferMetrics
from s3wire.client.region_cache import RegionCache
from s3wire.client.responses import BucketInfo, ObjectStat, classify_error

__all__ = [
    "S3Client",
    "build_user_agent",
    "TransferMetrics",
    "RegionCache",
    "BucketInfo",
    "ObjectStat",
    "classify_error",
]
