# src/tablepurger/core/cancellation.py
"""Cooperative cancellation shared by the producer and all deletion workers.

Cancellation is checked at page boundaries, before each dequeue and before
each batched delete. Store calls already in flight are allowed to finish.
"""

from __future__ import annotations

from threading import Event, Lock

from tablepurger.contracts.errors import PurgeCancelledError


class CancellationToken:
    """Thread-safe, one-way cancellation flag.

    Usage:
        token = CancellationToken()

        # In a stage loop
        token.raise_if_cancelled()

        # From anywhere (signal handler, failing worker, caller)
        token.cancel("disk full")
    """

    def __init__(self) -> None:
        self._event = Event()
        self._lock = Lock()
        self._reason: str | None = None

    @property
    def is_cancelled(self) -> bool:
        """Whether cancellation has been requested."""
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        """Reason given by the first cancel() call."""
        with self._lock:
            return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        """Request cancellation. Later calls keep the first reason."""
        with self._lock:
            if self._reason is None:
                self._reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        """Raise PurgeCancelledError if cancellation was requested."""
        if self._event.is_set():
            raise PurgeCancelledError(f"Purge cancelled: {self.reason}")
