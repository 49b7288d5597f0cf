# src/tablepurger/engine/counters.py
"""Run counters shared by the producer and the deletion workers."""

from __future__ import annotations

from threading import Lock

from tablepurger.contracts.results import PurgeResult


class PurgeCounters:
    """Thread-safe monotonically increasing purge totals.

    Mutated only through the increment methods from any stage; read via
    snapshot() once every stage has terminated.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._pages_read = 0
        self._partitions_queued = 0
        self._partitions_completed = 0
        self._rows_deleted = 0
        self._recovered_partitions = 0

    def page_read(self) -> int:
        """Count one page and return the new page number."""
        with self._lock:
            self._pages_read += 1
            return self._pages_read

    def partition_queued(self) -> None:
        with self._lock:
            self._partitions_queued += 1

    def partition_recovered(self) -> None:
        """Count a ledger left by a previous run that was queued for retry."""
        with self._lock:
            self._recovered_partitions += 1
            self._partitions_queued += 1

    def partition_completed(self) -> None:
        with self._lock:
            self._partitions_completed += 1

    def rows_deleted(self, count: int) -> None:
        if count < 0:
            raise ValueError(f"rows deleted must be non-negative, got {count}")
        with self._lock:
            self._rows_deleted += count

    def snapshot(self, duration_seconds: float = 0.0) -> PurgeResult:
        """Current totals as a PurgeResult."""
        with self._lock:
            return PurgeResult(
                pages_processed=self._pages_read,
                partitions_queued=self._partitions_queued,
                partitions_processed=self._partitions_completed,
                rows_deleted=self._rows_deleted,
                recovered_partitions=self._recovered_partitions,
                duration_seconds=duration_seconds,
            )
