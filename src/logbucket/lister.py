# src/logbucket/lister.py

"""
Lister/filter stage of the download pipeline.

Once per polling interval this stage lists the entity's bucket under the
prefix for the current UTC day and forwards every object that is recent
enough and not yet processed to the download stage.

Pages are sorted newest-first one at a time. Hitting an already-processed key
ends the whole listing, on the assumption that everything after it was seen in
an earlier cycle. That only holds within a page: ListObjectsV2 returns keys in
lexical order, so a later page may still carry newer objects than the one that
stopped the listing.
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable

import pydantic

from .channels import DEFAULT_POLL_SECONDS, put_until_stopped
from .clients import S3Client
from .entities import EntityDescriptor
from .exceptions import (
    ListingError,
    LogBucketError,
    ProcessedObjectsError,
    get_error_context,
)
from .schemas import ListedObjectDict, ObjectReference
from .state import ProcessedObjectsOracle

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = timedelta(minutes=5)
DEFAULT_BACKFILL_WINDOW = timedelta(hours=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class CycleStats:
    """Counters for one polling cycle, used for the end-of-cycle log line."""

    pages: int = 0
    forwarded: int = 0
    too_old: int = 0
    invalid: int = 0
    stopped_on_processed: str | None = None


class ObjectLister:
    def __init__(
        self,
        s3_client: S3Client,
        oracle: ProcessedObjectsOracle,
        entity: EntityDescriptor,
        handoff: "queue.Queue[ObjectReference]",
        stop_event: threading.Event,
        poll_interval: timedelta = DEFAULT_POLL_INTERVAL,
        backfill_window: timedelta = DEFAULT_BACKFILL_WINDOW,
        clock: Callable[[], datetime] = utcnow,
        queue_poll_seconds: float = DEFAULT_POLL_SECONDS,
    ):
        self._s3_client = s3_client
        self._oracle = oracle
        self._entity = entity
        self._handoff = handoff
        self._stop_event = stop_event
        self._poll_interval = poll_interval
        self._backfill_window = backfill_window
        self._clock = clock
        self._queue_poll_seconds = queue_poll_seconds

    def run(self) -> None:
        """
        Polls until the stop event is set. A ListingError propagates to the
        caller and ends the loop.
        """
        interval = self._poll_interval.total_seconds()
        while not self._stop_event.is_set():
            started = time.monotonic()
            self.poll_once()
            if self._stop_event.is_set():
                break
            logger.info(
                "Pausing until the next set of logs are available",
                extra={"entity": self._entity.identifier()},
            )
            remaining = interval - (time.monotonic() - started)
            if self._stop_event.wait(max(0.0, remaining)):
                break

    def poll_once(self) -> CycleStats:
        """Runs one full list/filter/forward pass for today's prefix."""
        bucket = self._entity.bucket()
        prefix = self._entity.object_prefix(self._clock())
        entity_id = self._entity.identifier()

        logger.info(
            "Getting recent objects",
            extra={"prefix": prefix, "bucket": bucket, "entity": entity_id},
        )

        processed = self._fetch_processed_objects()
        stats = CycleStats()

        def page_callback(entries: list[ListedObjectDict], last_page: bool) -> bool:
            return self.handle_page(processed, entries, last_page, stats)

        try:
            self._s3_client.list_objects_pages(bucket, prefix, page_callback)
        except LogBucketError as e:
            raise ListingError(
                bucket, prefix, e.message, context={"entity": entity_id, "cause": e.error_code}
            ) from e
        except Exception as e:
            raise ListingError(
                bucket, prefix, str(e), context={"entity": entity_id, "cause": type(e).__name__}
            ) from e

        logger.info(
            "Finished listing objects",
            extra={
                "entity": entity_id,
                "prefix": prefix,
                "pages": stats.pages,
                "forwarded": stats.forwarded,
                "too_old": stats.too_old,
                "invalid": stats.invalid,
                "stopped_on_processed": stats.stopped_on_processed,
            },
        )
        return stats

    def handle_page(
        self,
        processed: set[str],
        entries: Iterable[ListedObjectDict],
        last_page: bool,
        stats: CycleStats | None = None,
    ) -> bool:
        """
        Filters one listing page and forwards eligible references.

        Returns whether paging should continue.
        """
        stats = stats if stats is not None else CycleStats()
        stats.pages += 1
        now = self._clock()

        references: list[ObjectReference] = []
        for entry in entries:
            try:
                references.append(ObjectReference.model_validate(entry))
            except pydantic.ValidationError as e:
                stats.invalid += 1
                logger.warning(
                    "Skipping malformed listing entry.",
                    extra={"entity": self._entity.identifier(), "validation_errors": e.errors()},
                )

        # Newest first, within this page only.
        references.sort(key=lambda ref: ref.last_modified, reverse=True)

        for ref in references:
            if ref.key in processed:
                logger.info(
                    "Already processed, skipping",
                    extra={"object": ref.key, "entity": self._entity.identifier()},
                )
                stats.stopped_on_processed = ref.key
                return False

            # Backfill window: older objects are dropped without ending the page
            if ref.age(now) >= self._backfill_window:
                stats.too_old += 1
                continue

            if not put_until_stopped(
                self._handoff, ref, self._stop_event, self._queue_poll_seconds
            ):
                return False
            stats.forwarded += 1

        return not last_page

    def _fetch_processed_objects(self) -> set[str]:
        entity_id = self._entity.identifier()
        try:
            return set(self._oracle.processed_objects())
        except Exception as e:
            error = (
                e
                if isinstance(e, LogBucketError)
                else ProcessedObjectsError(entity_id, str(e))
            )
            # Best effort: list without dedup for this cycle.
            logger.error(
                "Could not fetch processed objects, continuing without dedup.",
                extra={"entity": entity_id, "error": get_error_context(error)},
            )
            return set()
