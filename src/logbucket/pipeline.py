# src/logbucket/pipeline.py

"""
Pipeline coordinator: wires the lister and downloader stages together.

    lister --(handoff, 1 slot)--> downloader --(downloaded, 1 slot)--> consumer

Both stages run as daemon threads. The one-slot handoff queue is the only
backpressure: a slow download blocks the lister's next put. A listing failure
stops the whole pipeline and is published on ``errors``; whether that ends
the process is up to the caller.
"""

import logging
import queue
import threading
from datetime import datetime, timedelta
from typing import Callable

from .channels import DEFAULT_POLL_SECONDS
from .clients import S3Client
from .downloader import ObjectDownloader, remove_file_quietly
from .entities import EntityDescriptor
from .exceptions import ListingError, LogBucketError, get_error_context
from .lister import DEFAULT_BACKFILL_WINDOW, DEFAULT_POLL_INTERVAL, ObjectLister, utcnow
from .schemas import DownloadedObject, ObjectReference
from .state import ProcessedObjectsOracle

logger = logging.getLogger(__name__)


class LogBucketPipeline:
    """
    Single-use coordinator for one entity. Call ``start()`` once, read
    DownloadedObjects from the returned queue, and ``stop()`` to shut down.
    """

    def __init__(
        self,
        s3_client: S3Client,
        oracle: ProcessedObjectsOracle,
        entity: EntityDescriptor,
        poll_interval: timedelta = DEFAULT_POLL_INTERVAL,
        backfill_window: timedelta = DEFAULT_BACKFILL_WINDOW,
        download_dir: str | None = None,
        clock: Callable[[], datetime] = utcnow,
        queue_poll_seconds: float = DEFAULT_POLL_SECONDS,
    ):
        self.s3_client = s3_client
        self.oracle = oracle
        self.entity = entity

        self._stop_event = threading.Event()
        self._handoff: "queue.Queue[ObjectReference]" = queue.Queue(maxsize=1)
        self.downloaded: "queue.Queue[DownloadedObject]" = queue.Queue(maxsize=1)
        self.errors: "queue.Queue[LogBucketError]" = queue.Queue()

        self._lister = ObjectLister(
            s3_client=s3_client,
            oracle=oracle,
            entity=entity,
            handoff=self._handoff,
            stop_event=self._stop_event,
            poll_interval=poll_interval,
            backfill_window=backfill_window,
            clock=clock,
            queue_poll_seconds=queue_poll_seconds,
        )
        self._downloader = ObjectDownloader(
            s3_client=s3_client,
            entity=entity,
            handoff=self._handoff,
            downloaded=self.downloaded,
            stop_event=self._stop_event,
            download_dir=download_dir,
            queue_poll_seconds=queue_poll_seconds,
        )
        self._threads: list[threading.Thread] = []
        self._started = False

    def start(self) -> "queue.Queue[DownloadedObject]":
        if self._started:
            raise RuntimeError("LogBucketPipeline can only be started once.")
        self._started = True

        entity_id = self.entity.identifier()
        self._threads = [
            threading.Thread(
                target=self._run_stage,
                args=("lister", self._lister.run),
                name=f"logbucket-lister-{entity_id}",
                daemon=True,
            ),
            threading.Thread(
                target=self._run_stage,
                args=("downloader", self._downloader.run),
                name=f"logbucket-downloader-{entity_id}",
                daemon=True,
            ),
        ]
        for thread in self._threads:
            thread.start()

        logger.info(
            "Pipeline started",
            extra={"entity": entity_id, "bucket": self.entity.bucket()},
        )
        return self.downloaded

    def stop(self) -> None:
        self._stop_event.set()

    def join(self, timeout: float | None = None) -> bool:
        """Waits for both stages to exit. Returns False if either is still alive."""
        for thread in self._threads:
            thread.join(timeout)
        return not self.is_running

    def discard_undelivered(self) -> list[DownloadedObject]:
        """
        Removes the local files of records still waiting in ``downloaded``.

        Call after ``stop()`` and ``join()``: nothing will consume those
        records, and the objects stay unprocessed so a later pipeline lists
        them again.
        """
        discarded = []
        while True:
            try:
                record = self.downloaded.get_nowait()
            except queue.Empty:
                break
            remove_file_quietly(record.path)
            discarded.append(record)

        if discarded:
            logger.info(
                "Discarded undelivered downloads",
                extra={
                    "entity": self.entity.identifier(),
                    "keys": [record.key for record in discarded],
                },
            )
        return discarded

    @property
    def is_running(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def _run_stage(self, stage: str, target: Callable[[], None]) -> None:
        entity_id = self.entity.identifier()
        try:
            target()
        except ListingError as e:
            logger.error(
                f"Listing failed, stopping pipeline: {e}",
                extra={"entity": entity_id, "stage": stage, "error": get_error_context(e)},
            )
            self.errors.put(e)
            self.stop()
        except Exception as e:
            logger.exception(
                "Unexpected error in pipeline stage, stopping pipeline.",
                extra={"entity": entity_id, "stage": stage},
            )
            self.errors.put(
                LogBucketError(
                    f"Unexpected error in {stage} stage: {e}",
                    error_code="PIPELINE_STAGE_FAILED",
                    context={"entity": entity_id, "stage": stage},
                )
            )
            self.stop()
        else:
            logger.debug("Pipeline stage exited", extra={"entity": entity_id, "stage": stage})
