"""Bounded execution pool.

Requests are run end to end by a fixed number of worker threads.  A
bounded admission window absorbs bursts: at most ``max_workers +
max_queue_depth`` executions are admitted at once, and anything beyond
that is rejected immediately with an overload result instead of queueing
without limit.

Every submission returns an :class:`ExecutionHandle`.  Cancelling a handle
kills the in‑flight process group (or drops the request if it has not
started yet); the runner still releases its workspace.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from typing import Optional

from .config import Config
from .dispatcher import ExecutionDispatcher
from .executor import ErrorKind, ExecutionRequest, ExecutionResult
from .executor.base import CANCELLED_MESSAGE

logger = logging.getLogger(__name__)

OVERLOAD_MESSAGE = "Execution queue is full; try again later."
SHUTDOWN_MESSAGE = "Execution service is shutting down."


class ExecutionHandle:
    """A submitted execution that can be waited on or cancelled."""

    def __init__(
        self,
        request: ExecutionRequest,
        future: Future,
        cancel_event: threading.Event,
        rejected: bool = False,
    ) -> None:
        self.request = request
        self.future = future
        self.rejected = rejected
        self._cancel_event = cancel_event

    def done(self) -> bool:
        return self.future.done()

    def cancel(self) -> None:
        """Stop the execution: drop it if queued, kill it if running."""
        self._cancel_event.set()
        self.future.cancel()

    def result(self, timeout: Optional[float] = None) -> ExecutionResult:
        """Wait for the result.

        Raises ``concurrent.futures.TimeoutError`` if ``timeout`` elapses
        first; the execution itself keeps running.
        """
        try:
            return self.future.result(timeout=timeout)
        except CancelledError:
            return ExecutionResult.failure(ErrorKind.INTERNAL_ERROR, CANCELLED_MESSAGE, self.request.language)


class ExecutionPool:
    """Run requests through a dispatcher on a bounded set of workers."""

    def __init__(
        self,
        dispatcher: ExecutionDispatcher,
        max_workers: int = 4,
        max_queue_depth: int = 32,
    ) -> None:
        self.dispatcher = dispatcher
        self.max_workers = max_workers
        self.max_queue_depth = max_queue_depth
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="coderun-worker")
        self._slots = threading.BoundedSemaphore(max_workers + max_queue_depth)

    @classmethod
    def from_config(cls, config: Config, dispatcher: Optional[ExecutionDispatcher] = None) -> "ExecutionPool":
        return cls(
            dispatcher if dispatcher is not None else ExecutionDispatcher.from_config(config),
            max_workers=config.max_workers,
            max_queue_depth=config.max_queue_depth,
        )

    def _release_slot(self, _future: Future) -> None:
        self._slots.release()

    def _resolved(self, request: ExecutionRequest, message: str) -> ExecutionHandle:
        future: Future = Future()
        future.set_result(ExecutionResult.failure(ErrorKind.INTERNAL_ERROR, message, request.language))
        return ExecutionHandle(request, future, threading.Event(), rejected=True)

    def submit(self, request: ExecutionRequest) -> ExecutionHandle:
        if not self._slots.acquire(blocking=False):
            logger.warning("Execution queue full; rejecting %s request", request.language)
            return self._resolved(request, OVERLOAD_MESSAGE)
        cancel_event = threading.Event()
        try:
            future = self._executor.submit(self.dispatcher.execute, request, cancel_event)
        except RuntimeError:
            self._slots.release()
            logger.warning("Execution pool shut down; rejecting %s request", request.language)
            return self._resolved(request, SHUTDOWN_MESSAGE)
        # Runs on completion and on cancellation before start alike
        future.add_done_callback(self._release_slot)
        return ExecutionHandle(request, future, cancel_event)

    def run(self, request: ExecutionRequest) -> ExecutionResult:
        """Submit ``request`` and block until it finishes."""
        return self.submit(request).result()

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "ExecutionPool":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
