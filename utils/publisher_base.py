"""
Base class for background publishers using a bounded snapshot queue.
Readers (UI, pollers) get the latest snapshot without taking any lock.
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from config import TRIP_HANDLER_JOIN_TIMEOUT_S

logger = logging.getLogger('tripTelemetry.publisher')


@dataclass(frozen=True)
class PublishedSnapshot:
    """
    Immutable published state, safe to hand to any thread.

    Attributes:
        timestamp: When the snapshot was published (time.time()).
        data: Payload dictionary.
        metadata: Status information (state, errors, counters).
    """
    timestamp: float
    data: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)


Observer = Callable[[PublishedSnapshot], None]


class BoundedQueuePublisher:
    """
    Worker thread + bounded queue + lock-free latest snapshot.

    - Worker thread does all processing (override _worker_loop)
    - _publish_snapshot never blocks: when the queue is full the oldest
      snapshot is dropped
    - get_snapshot drains the queue and keeps only the newest entry
    - Observers are called synchronously on the worker thread
    """

    def __init__(self, queue_depth: int = 2):
        """
        Args:
            queue_depth: Maximum queue depth (2 = double-buffering)
        """
        self.queue_depth = queue_depth
        self.data_queue = queue.Queue(maxsize=queue_depth)
        self.current_snapshot: Optional[PublishedSnapshot] = None
        self.running = False
        self.thread: Optional[threading.Thread] = None

        self._observers: List[Observer] = []
        self._observers_lock = threading.Lock()

        self._snapshots_dropped = 0
        self._snapshots_published = 0

    def start(self):
        """Start the worker thread."""
        if self.running:
            return

        self.running = True
        self.thread = threading.Thread(target=self._worker_loop, daemon=True,
                                       name=self.__class__.__name__)
        self.thread.start()
        logger.info("%s worker thread started", self.__class__.__name__)

    def stop(self):
        """Stop the worker thread and wait for the current iteration to finish."""
        self.running = False
        if self.thread and self.thread is not threading.current_thread():
            self.thread.join(timeout=TRIP_HANDLER_JOIN_TIMEOUT_S)
            if self.thread.is_alive():
                logger.warning("%s worker thread did not stop within %.1fs",
                               self.__class__.__name__, TRIP_HANDLER_JOIN_TIMEOUT_S)
        self.thread = None
        logger.info("%s worker thread stopped", self.__class__.__name__)

    def _worker_loop(self):
        """Override in subclasses."""
        raise NotImplementedError("Subclasses must implement _worker_loop")

    def add_observer(self, observer: Observer):
        with self._observers_lock:
            self._observers.append(observer)

    def remove_observer(self, observer: Observer):
        with self._observers_lock:
            if observer in self._observers:
                self._observers.remove(observer)

    def _publish_snapshot(self, data: Dict[str, Any], metadata: Dict[str, Any] = None,
                          notify: bool = True) -> PublishedSnapshot:
        """
        Publish a new snapshot to the queue and, optionally, to observers.

        Args:
            data: Payload dictionary (copied)
            metadata: Optional status dictionary (copied)
            notify: Whether observers are called for this snapshot
        """
        snapshot = PublishedSnapshot(
            timestamp=time.time(),
            data=dict(data) if data else {},
            metadata=dict(metadata) if metadata else {},
        )

        try:
            self.data_queue.put_nowait(snapshot)
        except queue.Full:
            try:
                self.data_queue.get_nowait()
                self.data_queue.put_nowait(snapshot)
            except (queue.Empty, queue.Full):
                pass
            self._snapshots_dropped += 1

        self._snapshots_published += 1

        if notify:
            self._notify_observers(snapshot)
        return snapshot

    def _notify_observers(self, snapshot: PublishedSnapshot):
        with self._observers_lock:
            observers = list(self._observers)
        for observer in observers:
            try:
                observer(snapshot)
            except Exception as e:
                # A broken observer must not stop the trip
                logger.warning("%s: observer %r failed: %s",
                               self.__class__.__name__, observer, e)

    def get_snapshot(self) -> Optional[PublishedSnapshot]:
        """
        Get the latest snapshot (lock-free).

        Returns:
            PublishedSnapshot or None if nothing has been published
        """
        try:
            while True:
                self.current_snapshot = self.data_queue.get_nowait()
        except queue.Empty:
            pass

        return self.current_snapshot

    def get_data(self) -> Dict[str, Any]:
        """Latest payload, or an empty dict."""
        snapshot = self.get_snapshot()
        return snapshot.data if snapshot else {}

    def get_publish_stats(self) -> Dict[str, int]:
        return {
            "published": self._snapshots_published,
            "dropped": self._snapshots_dropped,
        }
