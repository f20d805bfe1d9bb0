# src/logbucket/clients.py

"""
Client wrapper for interacting with S3.

This class provides a small, typed interface over a raw boto3 client: paged
listing driven by a page callback, and object retrieval into a local file.
botocore errors are translated into the service's own exception hierarchy so
the pipeline stages can decide what is fatal and what is not.
"""

import logging
from contextlib import closing
from typing import BinaryIO, Callable, TYPE_CHECKING, NoReturn, cast

from botocore.exceptions import ClientError, EndpointConnectionError, ReadTimeoutError

from .exceptions import (
    S3AccessDeniedError,
    S3ClientError,
    S3ObjectNotFoundError,
    S3ThrottlingError,
    S3TimeoutError,
)
from .schemas import ListedObjectDict

if TYPE_CHECKING:
    from mypy_boto3_s3.client import S3Client as S3ClientType

logger = logging.getLogger(__name__)

# (entries, last_page) -> keep paging?
PageCallback = Callable[[list[ListedObjectDict], bool], bool]

_THROTTLING_CODES = ("Throttling", "ThrottlingException", "RequestLimitExceeded", "SlowDown")
_TIMEOUT_CODES = ("RequestTimeout", "RequestTimeoutException")
_CHUNK_SIZE = 64 * 1024


class S3Client:
    """
    A wrapper for S3 client operations, focused on listing and streaming downloads.
    """

    def __init__(self, s3_client: "S3ClientType", operation_timeout_seconds: float = 30.0):
        """
        Initializes the S3Client.

        Args:
            s3_client: A typed boto3 S3 client.
            operation_timeout_seconds: Read timeout the client was configured with,
                reported on timeout errors.
        """
        self._client = s3_client
        self._timeout = operation_timeout_seconds

    def list_objects_pages(self, bucket: str, prefix: str, page_callback: PageCallback) -> None:
        """
        Pages through ``ListObjectsV2`` under *prefix*, handing each page's
        entries to *page_callback*. Paging stops early when the callback
        returns False.
        """
        paginator = self._client.get_paginator("list_objects_v2")
        pages = paginator.paginate(Bucket=bucket, Prefix=prefix)
        try:
            for page in pages:
                entries = cast(list[ListedObjectDict], page.get("Contents", []))
                last_page = not page.get("IsTruncated", False)
                if not page_callback(entries, last_page) or last_page:
                    break
        except ClientError as e:
            self._raise_for_client_error(e, "ListObjectsV2", bucket, prefix)
        except ReadTimeoutError as e:
            raise S3TimeoutError(
                "ListObjectsV2",
                self._timeout,
                context={"bucket": bucket, "prefix": prefix, "timeout_error": str(e)},
            ) from e
        except EndpointConnectionError as e:
            raise S3TimeoutError(
                "ListObjectsV2",
                self._timeout,
                error_code="S3_CONNECTION_ERROR",
                context={"bucket": bucket, "prefix": prefix, "connection_error": str(e)},
            ) from e

    def get_file_content_stream(self, bucket: str, key: str) -> BinaryIO:
        """
        Retrieves an S3 object's body as a file-like streaming object.
        Raises specific S3 exceptions based on the error type.
        """
        try:
            response = self._client.get_object(Bucket=bucket, Key=key)
            return cast(BinaryIO, response["Body"])
        except ClientError as e:
            self._raise_for_client_error(e, "GetObject", bucket, key)
        except ReadTimeoutError as e:
            raise S3TimeoutError(
                "GetObject",
                self._timeout,
                error_code="S3_READ_TIMEOUT",
                context={"bucket": bucket, "key": key, "timeout_error": str(e)},
            ) from e
        except EndpointConnectionError as e:
            raise S3TimeoutError(
                "GetObject",
                self._timeout,
                error_code="S3_CONNECTION_ERROR",
                context={"bucket": bucket, "key": key, "connection_error": str(e)},
            ) from e

    def download_object(self, bucket: str, key: str, fileobj: BinaryIO) -> int:
        """Streams the object at *key* into *fileobj* and returns the bytes written."""
        stream = self.get_file_content_stream(bucket, key)
        copied = 0
        try:
            with closing(stream):
                for chunk in iter(lambda: stream.read(_CHUNK_SIZE), b""):
                    fileobj.write(chunk)
                    copied += len(chunk)
        except ReadTimeoutError as e:
            raise S3TimeoutError(
                "GetObject",
                self._timeout,
                error_code="S3_READ_TIMEOUT",
                context={"bucket": bucket, "key": key, "bytes_copied": copied},
            ) from e
        fileobj.flush()
        logger.debug(
            "Object body copied",
            extra={"bucket": bucket, "key": key, "bytes": copied},
        )
        return copied

    def _raise_for_client_error(
        self, e: ClientError, operation: str, bucket: str, key: str
    ) -> NoReturn:
        """Map boto3 error codes to our specific exception types."""
        error_code = e.response["Error"]["Code"]
        error_message = e.response["Error"]["Message"]
        aws_context = {
            "aws_error_code": error_code,
            "aws_error_message": error_message,
        }

        if error_code in ("NoSuchKey", "NoSuchBucket"):
            raise S3ObjectNotFoundError(bucket=bucket, key=key, context=aws_context) from e
        elif error_code == "AccessDenied":
            raise S3AccessDeniedError(bucket=bucket, key=key, context=aws_context) from e
        elif error_code in _THROTTLING_CODES:
            raise S3ThrottlingError(
                operation,
                context={"bucket": bucket, "key": key, **aws_context},
            ) from e
        elif error_code in _TIMEOUT_CODES:
            raise S3TimeoutError(
                operation,
                self._timeout,
                context={"bucket": bucket, "key": key, **aws_context},
            ) from e
        else:
            # For other client errors, wrap in a generic S3 error
            raise S3ClientError(
                operation,
                error_message,
                context={"bucket": bucket, "key": key, **aws_context},
            ) from e
