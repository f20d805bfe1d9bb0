# In src/logbucket/schemas.py

from datetime import datetime, timedelta, timezone
from typing import TypedDict

from pydantic import BaseModel, ConfigDict, Field, field_validator

# --- Static Type Hinting (for mypy and IDEs) ---


class ListedObjectDict(TypedDict):
    """
    The subset of an S3 ``ListObjectsV2`` ``Contents`` entry the pipeline reads.
    """

    Key: str
    Size: int
    LastModified: datetime


# --- Runtime Validation (using Pydantic) ---


class ObjectReference(BaseModel):
    """
    A listed-but-not-yet-fetched object, built from one listing entry.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    key: str = Field(..., min_length=1, alias="Key")
    size: int = Field(..., ge=0, alias="Size")
    last_modified: datetime = Field(..., alias="LastModified")

    @field_validator("last_modified")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        # botocore returns tz-aware datetimes; naive values are taken as UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def age(self, now: datetime) -> timedelta:
        return now - self.last_modified


class DownloadedObject(BaseModel):
    """
    A fetched object materialized in a local temporary file.

    The file belongs to whoever reads this record from the pipeline.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., min_length=1)
    key: str = Field(..., min_length=1)
    bytes_downloaded: int = Field(0, ge=0)
