"""
=============================================================================
WORKER POOL
=============================================================================

A fixed set of threads that all run the same reactor:

    ┌──────────────────────────────────────────────────────────────┐
    │  WorkerPool(reactor, workers=4)                              │
    │                                                              │
    │   locserver-worker-0 ──► reactor.run()   (polling)           │
    │   locserver-worker-1 ──► reactor.run()   (running callback)  │
    │   locserver-worker-2 ──► reactor.run()   (running callback)  │
    │   locserver-worker-3 ──► reactor.run()   (waiting)           │
    └──────────────────────────────────────────────────────────────┘

The default size is max(2, os.cpu_count()). There is no task queue here;
the reactor's ready queue is the only one.

=============================================================================
"""

import logging
import os
import threading
from typing import List, Optional

from .reactor import Reactor


logger = logging.getLogger(__name__)

# One blocking handler must never stall every other connection
MIN_WORKERS = 2


def default_worker_count() -> int:
    return max(MIN_WORKERS, os.cpu_count() or 1)


class WorkerPool:
    """
    Threads that drive a Reactor.

    Args:
        reactor: The shared reactor.
        workers: Thread count; default_worker_count() if None.
        name: Thread name prefix.
    """

    def __init__(self, reactor: Reactor, workers: Optional[int] = None, name: str = "locserver-worker"):
        if workers is not None and workers < MIN_WORKERS:
            raise ValueError(f"workers must be at least {MIN_WORKERS}, got {workers}")
        self.reactor = reactor
        self.size = workers if workers is not None else default_worker_count()
        self.name = name
        self._threads: List[threading.Thread] = []

    def start(self) -> None:
        if self._threads:
            raise RuntimeError("WorkerPool already started")

        logger.info(f"Starting {self.size} worker thread(s)")
        for i in range(self.size):
            thread = threading.Thread(target=self._work, name=f"{self.name}-{i}", daemon=True)
            self._threads.append(thread)
            thread.start()

    def _work(self) -> None:
        logger.debug(f"{threading.current_thread().name} started")
        try:
            self.reactor.run()
        except Exception as e:
            logger.exception(f"{threading.current_thread().name} crashed: {e}")
        logger.debug(f"{threading.current_thread().name} stopped")

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for every worker to exit.

        Returns:
            True if all workers exited within timeout.
        """
        for thread in self._threads:
            thread.join(timeout)
        alive = [t.name for t in self._threads if t.is_alive()]
        if alive:
            logger.warning(f"Workers still running after join: {', '.join(alive)}")
        return not alive

    @property
    def alive(self) -> int:
        return sum(1 for t in self._threads if t.is_alive())
