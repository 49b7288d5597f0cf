# src/tablepurger/engine/deleter.py
"""Batched deletion of staged partitions.

A worker owns a partition from dequeue to ledger removal, so chunks of one
partition are deleted sequentially and never by two workers at once.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence

from tablepurger.contracts.data import Row
from tablepurger.contracts.enums import DeleteStatus
from tablepurger.contracts.errors import DeleteFailedError, PurgeError, StagingIOError
from tablepurger.core.cancellation import CancellationToken
from tablepurger.core.logging import get_logger
from tablepurger.core.staging import LedgerStore
from tablepurger.core.storage.table_store import MAX_BATCH_SIZE, TableStore
from tablepurger.engine.counters import PurgeCounters
from tablepurger.engine.work_queue import WorkQueue

logger = get_logger(__name__)


def chunk_rows(rows: Sequence[Row], size: int = MAX_BATCH_SIZE) -> Iterator[Sequence[Row]]:
    """Split rows into consecutive chunks of at most size rows.

    Yields ceil(len(rows) / size) chunks in input order.
    """
    if size <= 0:
        raise ValueError(f"chunk size must be positive, got {size}")
    for start in range(0, len(rows), size):
        yield rows[start : start + size]


class BatchDeleter:
    """Deletes staged partitions from the table store.

    Outcome handling per batch:
    - DELETED: rows counted
    - NOT_FOUND: a previous run already deleted the data; logged, counted as 0
    - FATAL: DeleteFailedError raised, ledger kept for the next run
    """

    def __init__(
        self,
        store: TableStore,
        ledgers: LedgerStore,
        counters: PurgeCounters,
        cancellation: CancellationToken,
        *,
        batch_size: int = MAX_BATCH_SIZE,
    ) -> None:
        if not 0 < batch_size <= MAX_BATCH_SIZE:
            raise ValueError(f"batch_size must be between 1 and {MAX_BATCH_SIZE}, got {batch_size}")
        self._store = store
        self._ledgers = ledgers
        self._counters = counters
        self._cancellation = cancellation
        self._batch_size = batch_size

    def drain(self, queue: WorkQueue[str]) -> int:
        """Process partitions from queue until it is closed and empty.

        Returns:
            Number of partitions this worker completed
        """
        completed = 0
        while True:
            partition_key = queue.pop()
            if partition_key is None:
                return completed
            self.delete_partition(partition_key)
            completed += 1

    def delete_partition(self, partition_key: str) -> int:
        """Delete every staged row of one partition, then retire its ledger.

        Returns:
            Rows actually deleted (not-found batches contribute 0)

        Raises:
            DeleteFailedError: On any store failure other than not-found
            StagingIOError: If the ledger cannot be read or removed
            PurgeCancelledError: If cancellation is requested between batches
        """
        rows = self._ledgers.read(partition_key)
        foreign = next((row for row in rows if row.partition_key != partition_key), None)
        if foreign is not None:
            raise StagingIOError(
                f"Ledger for partitionKey={partition_key} contains a row for "
                f"partitionKey={foreign.partition_key}"
            )

        deleted = 0
        for batch in chunk_rows(rows, self._batch_size):
            self._cancellation.raise_if_cancelled()
            deleted += self._delete_batch(partition_key, batch)

        self._ledgers.delete(partition_key)
        self._counters.partition_completed()
        logger.debug(
            "Partition processed",
            partition_key=partition_key,
            staged=len(rows),
            deleted=deleted,
        )
        return deleted

    def _delete_batch(self, partition_key: str, batch: Sequence[Row]) -> int:
        try:
            outcome = self._store.execute_batch(batch)
        except PurgeError:
            raise
        except Exception as e:
            # Adapters report store failures as outcomes; anything raised
            # here is still a failed delete for this partition.
            raise DeleteFailedError(partition_key, len(batch), e) from e

        if outcome.status is DeleteStatus.DELETED:
            self._counters.rows_deleted(outcome.count)
            return outcome.count

        if outcome.status is DeleteStatus.NOT_FOUND:
            logger.warning(
                "Failed to delete rows, data has already been deleted",
                partition_key=partition_key,
                batch_size=len(batch),
                error=str(outcome.error) if outcome.error else None,
            )
            return 0

        logger.error(
            "Failed to delete rows, unknown error",
            partition_key=partition_key,
            batch_size=len(batch),
            error=str(outcome.error),
        )
        raise DeleteFailedError(partition_key, len(batch), outcome.error) from outcome.error
