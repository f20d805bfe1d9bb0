"""Discovers new ELB and CloudFront access-log objects in S3 and downloads them."""

from .entities import CdnEntity, Entity, LoadBalancerEntity
from .pipeline import LogBucketPipeline
from .schemas import DownloadedObject, ObjectReference

__all__ = [
    "CdnEntity",
    "DownloadedObject",
    "Entity",
    "LoadBalancerEntity",
    "LogBucketPipeline",
    "ObjectReference",
]
