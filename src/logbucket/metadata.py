# src/logbucket/metadata.py

"""
Resolves the AWS account id and region an ELB entity lives in.

Both values are part of the ELB log key layout, so an ELB entity cannot be
built without them.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import MetadataResolutionError

if TYPE_CHECKING:
    import boto3

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EntityMetadata:
    account_id: str
    region: str


class MetadataResolver(Protocol):
    def resolve(self) -> EntityMetadata: ...


class SessionMetadataResolver:
    """
    Reads the region from the boto3 session and the account id from
    STS ``GetCallerIdentity``. Explicit values skip the lookup.
    """

    def __init__(
        self,
        session: "boto3.session.Session",
        account_id: str | None = None,
        region: str | None = None,
    ):
        self._session = session
        self._account_id = account_id
        self._region = region

    def resolve(self) -> EntityMetadata:
        region = self._region or self._session.region_name
        if not region:
            raise MetadataResolutionError(
                "no AWS region configured (set AWS_REGION or a profile region)"
            )

        account_id = self._account_id
        if not account_id:
            try:
                identity = self._session.client("sts", region_name=region).get_caller_identity()
                account_id = identity["Account"]
            except ClientError as e:
                raise MetadataResolutionError(
                    f"STS GetCallerIdentity failed: {e.response['Error']['Message']}",
                    context={"aws_error_code": e.response["Error"]["Code"]},
                ) from e
            except BotoCoreError as e:
                raise MetadataResolutionError(f"STS GetCallerIdentity failed: {e}") from e

        logger.info(
            "Resolved entity metadata",
            extra={"account_id": account_id, "region": region},
        )
        return EntityMetadata(account_id=account_id, region=region)
