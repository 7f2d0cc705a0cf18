"""Batching of watched file changes per subscriber."""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .models import DID_CHANGE_WATCHED_FILES, FileChangeType, FileEvent, WatchClient, WatchedFilesParams

logger = logging.getLogger(__name__)

TimerFactory = Callable[[float, Callable[[], None]], Any]


@dataclass
class _ClientQueue:
    """Changes waiting to be sent to one subscriber."""
    client: WatchClient
    changes: List[FileEvent] = field(default_factory=list)
    last_types: Dict[str, FileChangeType] = field(default_factory=dict)
    timer: Optional[Any] = None


class EventCoalescer:
    """
    Collects matched changes and sends them in batches.

    The first change queued for a subscriber arms a timer; when it fires,
    everything queued in the meantime is sent as one notification.
    Consecutive changes of the same type to the same file are only queued
    once per window. Batches for one subscriber are sent one at a time, in
    the order their windows opened.
    """

    def __init__(
        self,
        delay_ms: int = 100,
        timer_factory: Optional[TimerFactory] = None,
    ):
        """
        Initialize the coalescer.

        Args:
            delay_ms: Time between the first queued change and the batch being sent
            timer_factory: Creates a startable, cancellable timer from
                (seconds, function); defaults to threading.Timer
        """
        self.delay_ms = delay_ms
        self._timer_factory = timer_factory or threading.Timer
        self._queues: Dict[int, _ClientQueue] = {}
        self._send_locks: Dict[int, threading.Lock] = {}
        self._lock = threading.Lock()

    def submit(self, client: WatchClient, event: FileEvent) -> bool:
        """
        Queue a change for a subscriber.

        Args:
            client: The subscriber
            event: The matched change

        Returns:
            True if the change was queued, False if it repeated the last
            queued change type for the same file
        """
        with self._lock:
            queue = self._queues.get(client.client_id)
            if queue is None:
                queue = _ClientQueue(client)
                self._queues[client.client_id] = queue

            if queue.last_types.get(event.uri) == event.type:
                return False

            queue.changes.append(event)
            queue.last_types[event.uri] = event.type

            if queue.timer is None:
                queue.timer = self._timer_factory(
                    self.delay_ms / 1000.0,
                    lambda: self._flush(queue),
                )
                queue.timer.daemon = True
                queue.timer.start()
            return True

    def _send_lock(self, client_id: int) -> threading.Lock:
        with self._lock:
            return self._send_locks.setdefault(client_id, threading.Lock())

    def _flush(self, queue: _ClientQueue) -> None:
        """Send a window's changes. Runs when the subscriber's timer fires."""
        client_id = queue.client.client_id
        # Held across the send so a window never overtakes the one before it.
        with self._send_lock(client_id):
            with self._lock:
                if self._queues.get(client_id) is not queue:
                    return
                del self._queues[client_id]
                queue.timer = None
            self._send(queue)

    def _send(self, queue: _ClientQueue) -> None:
        if not queue.changes:
            return
        params = WatchedFilesParams(queue.changes)
        client_id = queue.client.client_id
        logger.debug(f"Sending {len(params)} change(s) to client {client_id}")
        try:
            queue.client.notify(DID_CHANGE_WATCHED_FILES, params.to_dict())
        except Exception as e:
            logger.error(f"Failed to notify client {client_id}: {e}")

    def pending(self, client_id: int) -> List[FileEvent]:
        """Get the changes queued for a subscriber."""
        with self._lock:
            queue = self._queues.get(client_id)
            return list(queue.changes) if queue else []

    def is_armed(self, client_id: int) -> bool:
        """Check whether a flush timer is running for a subscriber."""
        with self._lock:
            queue = self._queues.get(client_id)
            return queue is not None and queue.timer is not None

    def flush_all(self) -> int:
        """
        Send every pending window now instead of waiting for its timer.

        Returns:
            Number of notifications sent
        """
        with self._lock:
            client_ids = list(self._queues)

        sent = 0
        for client_id in client_ids:
            with self._send_lock(client_id):
                with self._lock:
                    queue = self._queues.pop(client_id, None)
                    if queue is None:
                        continue
                    if queue.timer is not None:
                        queue.timer.cancel()
                        queue.timer = None
                self._send(queue)
                sent += 1
        return sent

    def cancel_all(self) -> None:
        """Drop all pending changes without sending them."""
        with self._lock:
            for queue in self._queues.values():
                if queue.timer is not None:
                    queue.timer.cancel()
            self._queues.clear()

    def __len__(self) -> int:
        """Return the number of subscribers with pending changes."""
        with self._lock:
            return len(self._queues)
