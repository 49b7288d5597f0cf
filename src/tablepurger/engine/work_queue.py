# src/tablepurger/engine/work_queue.py
"""Bounded hand-off of closed partitions from the stager to deleters.

push() blocks while the queue is full, which bounds memory when deletion
lags behind production. close() tells consumers no further items will
arrive; pop() returns None once the queue is both closed and drained.

Blocked callers wake up periodically to re-check the cancellation token, so
a producer stuck on a full queue unwinds when every worker has stopped.
"""

from __future__ import annotations

from collections import deque
from threading import Condition
from typing import Generic, TypeVar

from tablepurger.contracts.errors import QueueClosedError
from tablepurger.core.cancellation import CancellationToken

T = TypeVar("T")

DEFAULT_POLL_INTERVAL_SECONDS = 0.1


class WorkQueue(Generic[T]):
    """Thread-safe bounded queue with completion signalling.

    Usage:
        queue: WorkQueue[str] = WorkQueue(maxsize=64, cancellation=token)

        # Producer
        queue.push("0638396640000000000")
        queue.close()

        # Consumer
        while (item := queue.pop()) is not None:
            handle(item)
    """

    def __init__(
        self,
        maxsize: int,
        cancellation: CancellationToken | None = None,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> None:
        """Initialize queue.

        Args:
            maxsize: Maximum buffered items (must be positive)
            cancellation: Token re-checked while blocked
            poll_interval: Seconds between cancellation checks while blocked
        """
        if maxsize <= 0:
            raise ValueError(f"maxsize must be positive, got {maxsize}")
        self._maxsize = maxsize
        self._items: deque[T] = deque()
        self._closed = False
        self._cancellation = cancellation or CancellationToken()
        self._poll_interval = poll_interval
        self._condition = Condition()

    @property
    def closed(self) -> bool:
        """Whether close() has been called."""
        with self._condition:
            return self._closed

    def __len__(self) -> int:
        with self._condition:
            return len(self._items)

    def push(self, item: T) -> None:
        """Add an item, blocking while the queue is full.

        Raises:
            QueueClosedError: If the queue is (or becomes) closed
            PurgeCancelledError: If cancellation is requested while blocked
        """
        with self._condition:
            while True:
                if self._closed:
                    raise QueueClosedError("Cannot push to a closed WorkQueue")
                self._cancellation.raise_if_cancelled()
                if len(self._items) < self._maxsize:
                    break
                self._condition.wait(self._poll_interval)
            self._items.append(item)
            self._condition.notify_all()

    def pop(self) -> T | None:
        """Remove the oldest item, blocking while empty and open.

        Returns:
            The next item, or None when closed and drained

        Raises:
            PurgeCancelledError: If cancellation is requested while waiting
        """
        with self._condition:
            while True:
                self._cancellation.raise_if_cancelled()
                if self._items:
                    item = self._items.popleft()
                    self._condition.notify_all()
                    return item
                if self._closed:
                    return None
                self._condition.wait(self._poll_interval)

    def close(self) -> None:
        """Mark that no further items will arrive. Idempotent."""
        with self._condition:
            self._closed = True
            self._condition.notify_all()
