"""Deduplicating breadth-first work queue shared by pipeline workers.

The queue owns the visited set and the frontier. Completion is a
quiescence condition: `dequeue` only reports exhaustion once the frontier is
empty AND no item is still in flight, because an in-flight item may yet
enqueue children.
"""

import logging
import threading
from collections import deque
from typing import Deque, Optional, Set

from .models import DiscoveryItem, Identity, QueueStats

logger = logging.getLogger(__name__)


class DiscoveryQueue:
    """Thread-safe FIFO frontier with a visited set.

    Example:
        >>> queue = DiscoveryQueue()
        >>> queue.enqueue(DiscoveryItem(ItemKind.PAGE, "123"))
        True
        >>> item = queue.dequeue()
        >>> queue.task_done(item)
        >>> queue.dequeue() is None
        True
    """

    def __init__(self):
        self._condition = threading.Condition()
        self._frontier: Deque[DiscoveryItem] = deque()
        self._visited: Set[Identity] = set()
        self._in_flight: Set[Identity] = set()
        self._enqueued = 0
        self._completed = 0
        self._closed = False

    def enqueue(self, item: DiscoveryItem) -> bool:
        """Add an item unless its identity was already seen.

        Args:
            item: Item to schedule

        Returns:
            True if the item was added, False if it was a duplicate or the
            queue is closed
        """
        with self._condition:
            if self._closed or item.identity in self._visited:
                return False
            self._visited.add(item.identity)
            self._frontier.append(item)
            self._enqueued += 1
            self._condition.notify()
            return True

    def restore_completed(self, item: DiscoveryItem) -> bool:
        """Mark an identity as visited and completed without processing it.

        Used when resuming: items finished by the interrupted run are not
        fetched again.

        Returns:
            True if the identity was newly recorded
        """
        with self._condition:
            if item.identity in self._visited:
                return False
            self._visited.add(item.identity)
            self._enqueued += 1
            self._completed += 1
            return True

    def dequeue(self) -> Optional[DiscoveryItem]:
        """Take the next item, blocking while other items are in flight.

        Returns:
            The next item, or None at quiescence or after close()
        """
        with self._condition:
            while True:
                if self._closed:
                    return None
                if self._frontier:
                    item = self._frontier.popleft()
                    self._in_flight.add(item.identity)
                    return item
                if not self._in_flight:
                    # Quiescent: wake every other waiting worker too
                    self._condition.notify_all()
                    return None
                self._condition.wait()

    def task_done(self, item: DiscoveryItem) -> None:
        """Report that processing of a dequeued item terminated.

        Must be called after the item's discoveries were enqueued.

        Raises:
            ValueError: If the item is not in flight
        """
        with self._condition:
            if item.identity not in self._in_flight:
                raise ValueError(f"Item {item.kind.value}:{item.remote_id} is not in flight")
            self._in_flight.discard(item.identity)
            self._completed += 1
            if not self._in_flight and not self._frontier:
                self._condition.notify_all()

    def close(self) -> None:
        """Stop handing out work and release every blocked dequeue."""
        with self._condition:
            if not self._closed:
                logger.debug(
                    f"Discovery queue closed with {len(self._frontier)} pending item(s)"
                )
            self._closed = True
            self._condition.notify_all()

    def stats(self) -> QueueStats:
        """Return a consistent snapshot of the queue counters."""
        with self._condition:
            return QueueStats(
                enqueued=self._enqueued,
                completed=self._completed,
                in_flight=len(self._in_flight),
                pending=len(self._frontier),
            )
