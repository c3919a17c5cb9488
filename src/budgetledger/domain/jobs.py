"""Background execution for long-running ledger work.

Import, export and activation run on a small ``ThreadPoolExecutor`` so the
caller's thread stays free. Each job receives a :class:`CancellationToken`
that it checks between rows, and may report progress through a callback.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional, TypeVar

from budgetledger.domain.errors import OperationCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[int, int], None]


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and a job."""

    __slots__ = ("_event",)

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, committed: int = 0) -> None:
        if self._event.is_set():
            raise OperationCancelledError(committed=committed)


def check_cancelled(token: Optional[CancellationToken], committed: int = 0) -> None:
    """Raise if an optional token has been cancelled."""
    if token is not None:
        token.raise_if_cancelled(committed)


def report_progress(progress: Optional[ProgressCallback], done: int, total: int) -> None:
    if progress is not None:
        progress(done, total)


class JobRunner:
    """Run ledger jobs off the caller's thread.

    ``submit`` returns a :class:`concurrent.futures.Future`; callers either
    block on ``result()`` or attach a done callback.
    """

    def __init__(self, max_workers: int = 2):
        if not isinstance(max_workers, int) or max_workers < 1:
            raise ValueError("max_workers must be a positive integer")
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="budgetledger-job"
        )

    def submit(self, fn: Callable[..., T], /, *args, **kwargs) -> Future[T]:
        future = self._pool.submit(fn, *args, **kwargs)
        future.add_done_callback(self._log_failure)
        return future

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait, cancel_futures=not wait)

    def __enter__(self) -> "JobRunner":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    @staticmethod
    def _log_failure(future: Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if isinstance(error, OperationCancelledError):
            logger.info("Job cancelled after %d committed rows", error.committed)
        elif error is not None:
            logger.error("Job failed: %s", error)
