"""Watch event stream consumed by the condition awaiter.

Events are pushed into a blocking queue by whoever produces them (a watch
pump thread for the real store, the fake store in tests) and read with a
poll timeout, which is how a reader races the stream against a deadline.
"""

import logging
import queue
import threading
from typing import Any, NamedTuple

from paasplane.errors import StoreError

logger = logging.getLogger(__name__)

ADDED = "ADDED"
MODIFIED = "MODIFIED"
DELETED = "DELETED"


class WatchEvent(NamedTuple):
    type: str
    object: Any


class _Failure(NamedTuple):
    error: Exception


_STOPPED = object()


class EventStream:
    def __init__(self, description=""):
        self.description = description
        self._queue = queue.Queue()
        self._stopped = threading.Event()
        self._stop_callbacks = []

    @property
    def stopped(self):
        return self._stopped.is_set()

    def on_stop(self, callback):
        self._stop_callbacks.append(callback)

    def put(self, event_type, obj):
        if not self.stopped:
            self._queue.put(WatchEvent(event_type, obj))

    def fail(self, error):
        if not self.stopped:
            self._queue.put(_Failure(error))

    def next(self, timeout):
        """Wait up to ``timeout`` seconds for the next event.

        Returns None when nothing arrived in time. Raises StoreError when the
        underlying watch failed or the stream was stopped.
        """
        try:
            item = self._queue.get(timeout=max(timeout, 0))
        except queue.Empty:
            return None

        if item is _STOPPED:
            raise StoreError(f"watch {self.description} was stopped")
        if isinstance(item, _Failure):
            raise StoreError(
                f"watch {self.description} failed: {item.error}"
            ) from item.error
        return item

    def stop(self):
        """Release the watch. Safe to call more than once and from any thread."""
        if self._stopped.is_set():
            return
        self._stopped.set()
        for callback in self._stop_callbacks:
            try:
                callback()
            except Exception as e:
                logger.warning(f"Error stopping watch {self.description}: {e}")
        self._queue.put(_STOPPED)
