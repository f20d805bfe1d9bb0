# src/logbucket/channels.py

"""
Blocking queue handoff that still honours a stop event.

``queue.Queue.put``/``get`` block forever on a full/empty queue, so both are
retried with a short timeout until they succeed or the stop event is set.
"""

import queue
import threading
from typing import TypeVar

T = TypeVar("T")

DEFAULT_POLL_SECONDS = 0.5


def put_until_stopped(
    channel: "queue.Queue[T]",
    item: T,
    stop_event: threading.Event,
    poll_seconds: float = DEFAULT_POLL_SECONDS,
) -> bool:
    """Returns False if the stop event fired before *item* was accepted."""
    while not stop_event.is_set():
        try:
            channel.put(item, timeout=poll_seconds)
            return True
        except queue.Full:
            continue
    return False


def get_until_stopped(
    channel: "queue.Queue[T]",
    stop_event: threading.Event,
    poll_seconds: float = DEFAULT_POLL_SECONDS,
) -> T | None:
    """Returns None if the stop event fired before an item arrived."""
    while not stop_event.is_set():
        try:
            return channel.get(timeout=poll_seconds)
        except queue.Empty:
            continue
    return None
