# src/logbucket/downloader.py

"""
Download stage of the pipeline.

References are taken off the handoff queue one at a time, in arrival order,
and each object is streamed into its own temporary file. A failed download is
logged and dropped; the stage moves straight on to the next reference.
Successfully downloaded files are never removed here: whoever reads the
DownloadedObject owns the file.
"""

import logging
import os
import queue
import threading
import time
from datetime import datetime, timezone
from tempfile import NamedTemporaryFile

from .channels import DEFAULT_POLL_SECONDS, get_until_stopped, put_until_stopped
from .clients import S3Client
from .entities import EntityDescriptor
from .exceptions import DownloadError, LogBucketError, get_error_context, is_retryable_error
from .schemas import DownloadedObject, ObjectReference

logger = logging.getLogger(__name__)

TEMP_FILE_PREFIX = "logbucket-"


class ObjectDownloader:
    def __init__(
        self,
        s3_client: S3Client,
        entity: EntityDescriptor,
        handoff: "queue.Queue[ObjectReference]",
        downloaded: "queue.Queue[DownloadedObject]",
        stop_event: threading.Event,
        download_dir: str | None = None,
        queue_poll_seconds: float = DEFAULT_POLL_SECONDS,
    ):
        self._s3_client = s3_client
        self._entity = entity
        self._handoff = handoff
        self._downloaded = downloaded
        self._stop_event = stop_event
        self._download_dir = download_dir
        self._queue_poll_seconds = queue_poll_seconds

    def run(self) -> None:
        """Consumes references until the stop event is set."""
        while True:
            ref = get_until_stopped(self._handoff, self._stop_event, self._queue_poll_seconds)
            if ref is None:
                return

            try:
                record = self.download_object(ref)
            except DownloadError as e:
                logger.error(
                    f"Dropping object after failed download: {e}",
                    extra={
                        "entity": self._entity.identifier(),
                        "bucket": self._entity.bucket(),
                        "key": ref.key,
                        "retryable": is_retryable_error(e),
                        "error": get_error_context(e),
                    },
                )
                continue

            if not put_until_stopped(
                self._downloaded, record, self._stop_event, self._queue_poll_seconds
            ):
                # Stopped with nobody left to hand the file to.
                remove_file_quietly(record.path)
                return

    def download_object(self, ref: ObjectReference) -> DownloadedObject:
        """
        Materializes *ref* in a new temporary file.

        Raises DownloadError if the file cannot be created or the transfer
        fails; the partial file is removed in that case.
        """
        bucket = self._entity.bucket()
        entity_id = self._entity.identifier()
        logger.info(
            "Downloading access logs from object",
            extra={
                "key": ref.key,
                "size": ref.size,
                "from_time_ago": str(datetime.now(timezone.utc) - ref.last_modified),
                "entity": entity_id,
            },
        )

        try:
            tmp = NamedTemporaryFile(
                mode="w+b", prefix=TEMP_FILE_PREFIX, dir=self._download_dir, delete=False
            )
        except OSError as e:
            raise DownloadError(
                ref.key,
                f"Error creating tmp file: {e}",
                context={"bucket": bucket, "entity": entity_id, "errno": e.errno},
            ) from e

        started = time.monotonic()
        try:
            with tmp:
                n_bytes = self._s3_client.download_object(bucket, ref.key, tmp)
        except LogBucketError as e:
            remove_file_quietly(tmp.name)
            raise DownloadError(
                ref.key,
                f"Error downloading object file: {e.message}",
                context={"bucket": bucket, "entity": entity_id, "cause": e.error_code},
            ) from e
        except OSError as e:
            remove_file_quietly(tmp.name)
            raise DownloadError(
                ref.key,
                f"Error writing object file: {e}",
                context={"bucket": bucket, "entity": entity_id, "errno": e.errno},
            ) from e
        except Exception as e:
            remove_file_quietly(tmp.name)
            raise DownloadError(
                ref.key,
                f"Unexpected error downloading object file: {e}",
                context={"bucket": bucket, "entity": entity_id, "cause": type(e).__name__},
            ) from e

        logger.info(
            "Successfully downloaded object",
            extra={
                "bytes": n_bytes,
                "file": tmp.name,
                "entity": entity_id,
                "duration_ms": round((time.monotonic() - started) * 1000),
            },
        )
        return DownloadedObject(path=tmp.name, key=ref.key, bytes_downloaded=n_bytes)


def remove_file_quietly(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(
            f"Could not remove temporary file: {e}",
            extra={"file": path, "errno": e.errno},
        )
