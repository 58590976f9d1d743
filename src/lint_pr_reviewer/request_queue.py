# src/lint_pr_reviewer/request_queue.py
import logging
import queue
import threading
from typing import Callable, Generic, Optional, TypeVar

from .errors import QueueClosedError, QueueFullError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_STOP = object()


class RequestQueue(Generic[T]):
    """
    Bounded queue with a single consumer thread.

    submit() never blocks: when `maxsize` items are waiting it raises
    QueueFullError so the caller can answer right away. The consumer runs one
    item at a time; a failing item is logged and the consumer moves on.
    """

    def __init__(self, handler: Callable[[T], object], maxsize: int, name: str = "review-queue"):
        if maxsize <= 0:
            raise ValueError("maxsize must be positive")
        self._handler = handler
        self._queue: "queue.Queue" = queue.Queue(maxsize=maxsize)
        self._name = name
        self._lock = threading.Lock()
        self._closed = False
        self._worker: Optional[threading.Thread] = None

    @property
    def maxsize(self) -> int:
        return self._queue.maxsize

    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        with self._lock:
            if self._worker is not None:
                return
            self._worker = threading.Thread(target=self._consume, name=self._name, daemon=True)
            self._worker.start()

    def submit(self, item: T) -> None:
        """
        Raises:
            QueueFullError: the queue is at capacity, nothing was enqueued
            QueueClosedError: shutdown() has been called
        """
        with self._lock:
            if self._closed:
                raise QueueClosedError("queue is shut down")
            try:
                self._queue.put_nowait(item)
            except queue.Full:
                raise QueueFullError(f"queue is at capacity ({self.maxsize})") from None
        logger.debug(f"Queued {item!r}, {self.pending()} pending")

    def _consume(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._handler(item)
            except Exception:
                logger.exception(f"Queued run {item!r} failed")
            finally:
                self._queue.task_done()

    def shutdown(self, discard_pending: bool = False, timeout: Optional[float] = None) -> int:
        """
        Stops accepting work and waits for the consumer to finish.

        With discard_pending the items still waiting are dropped, otherwise they
        are run first. The item in progress always runs to completion.

        Returns:
            The number of discarded items.
        """
        with self._lock:
            self._closed = True
            discarded = 0
            if discard_pending:
                while True:
                    try:
                        self._queue.get_nowait()
                    except queue.Empty:
                        break
                    self._queue.task_done()
                    discarded += 1
            worker = self._worker

        if discarded:
            logger.warning(f"Discarded {discarded} pending runs on shutdown")
        if worker is not None:
            # blocks only while the consumer is still draining
            self._queue.put(_STOP)
            worker.join(timeout)
        return discarded

    def join(self) -> None:
        """Blocks until every submitted item has been processed."""
        self._queue.join()
