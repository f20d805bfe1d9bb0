# src/logbucket/state.py

"""
Processed-object bookkeeping.

The pipeline only ever reads the processed-object set; marking an object as
processed is the consumer's job once it is done with a downloaded file.
Durable storage of that set lives outside this package.
"""

import threading
from collections import OrderedDict
from typing import Iterable, Protocol


class ProcessedObjectsOracle(Protocol):
    """Source of truth for which object keys were already retrieved for one entity."""

    def processed_objects(self) -> Iterable[str]: ...


class InMemoryProcessedObjects:
    """
    Process-local processed-object set, safe to share between the lister
    thread and the consuming thread.

    Only the most recent *max_entries* keys are kept; older keys fall out of
    any realistic backfill window long before they are evicted.
    """

    def __init__(self, initial: Iterable[str] = (), max_entries: int = 10_000):
        if max_entries <= 0:
            raise ValueError("max_entries must be a positive integer.")
        self._lock = threading.Lock()
        self._max_entries = max_entries
        self._keys: OrderedDict[str, None] = OrderedDict()
        for key in initial:
            self.set_processed(key)

    def processed_objects(self) -> list[str]:
        with self._lock:
            return list(self._keys)

    def set_processed(self, key: str) -> None:
        with self._lock:
            self._keys[key] = None
            self._keys.move_to_end(key)
            while len(self._keys) > self._max_entries:
                self._keys.popitem(last=False)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._keys

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)
