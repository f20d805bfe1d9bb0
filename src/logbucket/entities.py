# src/logbucket/entities.py

"""
Entity descriptors: which bucket to list and which key prefix scopes one
calendar day of access logs for one monitored load balancer or CloudFront
distribution.

The prefix formats must match AWS's own log delivery naming, otherwise the
listing prefix filter finds nothing:

- ELB:        {root}/AWSLogs/{account}/elasticloadbalancing/{region}/{YYYY}/{MM}/{DD}/{account}_elasticloadbalancing_{region}_{lb}
- CloudFront: {root}/{distribution}.{YYYY-MM-DD}
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Protocol, TypeAlias

from .config import ENTITY_TYPE_CLOUDFRONT, ENTITY_TYPE_ELB
from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from .config import AppConfig
    from .metadata import MetadataResolver

AWS_ELASTIC_LOAD_BALANCING = "elasticloadbalancing"


@dataclass(frozen=True, slots=True)
class LoadBalancerEntity:
    bucket_name: str
    prefix: str
    account_id: str
    region: str
    lb_name: str

    def bucket(self) -> str:
        return bucket(self)

    def object_prefix(self, day: datetime) -> str:
        return object_prefix(self, day)

    def identifier(self) -> str:
        return identifier(self)


@dataclass(frozen=True, slots=True)
class CdnEntity:
    bucket_name: str
    prefix: str
    distribution_id: str

    def bucket(self) -> str:
        return bucket(self)

    def object_prefix(self, day: datetime) -> str:
        return object_prefix(self, day)

    def identifier(self) -> str:
        return identifier(self)


Entity: TypeAlias = LoadBalancerEntity | CdnEntity


class EntityDescriptor(Protocol):
    """Structural view of an entity, for collaborators that only need the operations."""

    def bucket(self) -> str: ...

    def object_prefix(self, day: datetime) -> str: ...

    def identifier(self) -> str: ...


def _join_root(root: str, rest: str) -> str:
    root = root.rstrip("/")
    return f"{root}/{rest}" if root else rest


def _as_utc(day: datetime) -> datetime:
    if day.tzinfo is None:
        return day
    return day.astimezone(timezone.utc)


def bucket(entity: Entity) -> str:
    match entity:
        case LoadBalancerEntity(bucket_name=name) | CdnEntity(bucket_name=name):
            return name
    raise TypeError(f"Unsupported entity: {entity!r}")


def object_prefix(entity: Entity, day: datetime) -> str:
    """Key prefix scoping a listing to one UTC calendar day of ``entity``'s logs."""
    day = _as_utc(day)
    match entity:
        case LoadBalancerEntity(
            prefix=root, account_id=account, region=region, lb_name=lb_name
        ):
            service = AWS_ELASTIC_LOAD_BALANCING
            return _join_root(
                root,
                f"AWSLogs/{account}/{service}/{region}/{day:%Y/%m/%d}/"
                f"{account}_{service}_{region}_{lb_name}",
            )
        case CdnEntity(prefix=root, distribution_id=distribution_id):
            return _join_root(root, f"{distribution_id}.{day:%Y-%m-%d}")
    raise TypeError(f"Unsupported entity: {entity!r}")


def identifier(entity: Entity) -> str:
    match entity:
        case LoadBalancerEntity(lb_name=name):
            return name
        case CdnEntity(distribution_id=distribution_id):
            return distribution_id
    raise TypeError(f"Unsupported entity: {entity!r}")


def build_entity(config: "AppConfig", resolver: "MetadataResolver | None" = None) -> Entity:
    """
    Builds the configured entity. Load balancers need an account id and region;
    the resolver is consulted once, and a failure there propagates.
    """
    if config.entity_type == ENTITY_TYPE_CLOUDFRONT:
        if not config.distribution_id:
            raise ConfigurationError("DISTRIBUTION_ID is required for CloudFront entities.")
        return CdnEntity(
            bucket_name=config.bucket_name,
            prefix=config.bucket_prefix,
            distribution_id=config.distribution_id,
        )

    if config.entity_type == ENTITY_TYPE_ELB:
        if not config.lb_name:
            raise ConfigurationError("LB_NAME is required for ELB entities.")
        if resolver is None:
            raise ConfigurationError("A metadata resolver is required for ELB entities.")
        metadata = resolver.resolve()
        return LoadBalancerEntity(
            bucket_name=config.bucket_name,
            prefix=config.bucket_prefix,
            account_id=metadata.account_id,
            region=metadata.region,
            lb_name=config.lb_name,
        )

    raise ConfigurationError(f"Unsupported entity type: {config.entity_type}")
