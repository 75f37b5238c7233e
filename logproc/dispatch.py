"""Bounded, non-blocking dispatcher for background scoring tasks."""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_for_futures
from typing import Any, Callable, Optional, Set

logger = logging.getLogger(__name__)


class ScoringDispatcher:
    """Runs tasks on a worker pool with a hard cap on in-flight tasks.

    ``submit`` never blocks: when ``max_pending`` tasks are already queued or
    running the new task is dropped and ``submit`` returns False. Task
    exceptions are logged and never re-raised.
    """

    def __init__(self, workers: int = 4, max_pending: int = 100):
        if workers < 1:
            raise ValueError("workers must be >= 1")
        if max_pending < workers:
            raise ValueError("max_pending must be >= workers")
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="scoring")
        self._slots = threading.BoundedSemaphore(max_pending)
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()
        self._dropped = 0
        self._closed = False

    @property
    def dropped(self) -> int:
        """Number of tasks dropped because the pool was saturated."""
        with self._lock:
            return self._dropped

    @property
    def pending(self) -> int:
        with self._lock:
            return sum(1 for f in self._pending if not f.done())

    def submit(self, fn: Callable[..., Any], *args: Any) -> bool:
        """Schedule ``fn(*args)``.

        Returns:
            True if the task was scheduled, False if it was dropped.
        """
        if self._closed or not self._slots.acquire(blocking=False):
            with self._lock:
                self._dropped += 1
            logger.warning("Scoring pool saturated or closed, dropping task")
            return False

        try:
            future = self._executor.submit(self._run, fn, *args)
        except RuntimeError:
            # Executor shut down between the check and the submit
            self._slots.release()
            with self._lock:
                self._dropped += 1
            logger.warning("Scoring pool closed, dropping task")
            return False

        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._on_done)
        return True

    def _run(self, fn: Callable[..., Any], *args: Any) -> None:
        try:
            fn(*args)
        except Exception:
            logger.exception("Background scoring task failed")
        finally:
            # Free the slot before the future resolves so drain() callers see it
            self._slots.release()

    def _on_done(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for currently scheduled tasks.

        Returns:
            True if every task finished within the timeout.
        """
        with self._lock:
            snapshot = list(self._pending)
        _, not_done = wait_for_futures(snapshot, timeout=timeout)
        return not not_done

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting tasks and release the worker threads."""
        self._closed = True
        self._executor.shutdown(wait=wait)
