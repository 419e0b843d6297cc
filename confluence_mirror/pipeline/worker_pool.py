"""Fixed-size pool of worker threads draining the discovery queue."""

import logging
import threading
from typing import Callable, List

logger = logging.getLogger(__name__)

# Join poll interval; keeps the main thread responsive to signals
JOIN_POLL_SECONDS = 0.2


class WorkerPool:
    """Runs the same worker loop on a fixed number of threads.

    Each worker loop returns when the queue reports quiescence or is closed.
    The pool size bounds concurrency regardless of how many items the
    traversal discovers.

    Example:
        >>> pool = WorkerPool(4, worker_loop)
        >>> pool.run()
    """

    def __init__(self, size: int, target: Callable[[int], None], name: str = "mirror-worker"):
        """Initialize the pool.

        Args:
            size: Number of worker threads
            target: Worker loop, called with the worker index
            name: Thread name prefix
        """
        if size < 1:
            raise ValueError("Worker pool size must be at least 1")
        self.size = size
        self._target = target
        self._name = name
        self._threads: List[threading.Thread] = []

    def run(self) -> None:
        """Start every worker and block until all of them have returned."""
        self._threads = [
            threading.Thread(
                target=self._target,
                args=(index,),
                name=f"{self._name}-{index}",
                daemon=True,
            )
            for index in range(self.size)
        ]
        logger.debug(f"Starting {self.size} worker thread(s)")
        for thread in self._threads:
            thread.start()
        for thread in self._threads:
            while thread.is_alive():
                thread.join(JOIN_POLL_SECONDS)
        logger.debug("All worker threads finished")
