# src/tablepurger/engine/stager.py
"""Partition staging and boundary detection.

The store returns rows ordered by partition key, so a partition's rows
arrive as one contiguous run that may span several pages. The stager keeps
only the most recently seen ("open") partition key:

    page 1: A A A B B        -> stage A, stage B; A closed when B seen
    page 2: B B C            -> stage B (still open), C seen: B closed
    end of stream            -> C closed

A partition is pushed to the work queue exactly once, at the moment it
closes, i.e. when no later page can contribute rows to it. Until then its
rows are appended to an on-disk ledger, so partitions of any size never sit
in memory.
"""

from __future__ import annotations

from collections.abc import Iterable

from tablepurger.contracts.data import Page, Row
from tablepurger.contracts.errors import QueryFailedError
from tablepurger.core.cancellation import CancellationToken
from tablepurger.core.keys import TickKeyCodec
from tablepurger.core.logging import get_logger
from tablepurger.core.staging import LedgerStore
from tablepurger.engine.counters import PurgeCounters
from tablepurger.engine.work_queue import WorkQueue

logger = get_logger(__name__)


def group_rows(rows: Iterable[Row]) -> dict[str, list[Row]]:
    """Group rows by partition key, keeping first-arrival key order.

    Row order within each group mirrors arrival order.
    """
    groups: dict[str, list[Row]] = {}
    for row in rows:
        groups.setdefault(row.partition_key, []).append(row)
    return groups


class PartitionStager:
    """Stages pages into ledgers and releases closed partitions.

    Example:
        stager = PartitionStager(ledgers, queue, codec, counters, token)
        stager.stage(reader.pages())  # closes queue when done
    """

    def __init__(
        self,
        ledgers: LedgerStore,
        queue: WorkQueue[str],
        codec: TickKeyCodec,
        counters: PurgeCounters,
        cancellation: CancellationToken,
    ) -> None:
        self._ledgers = ledgers
        self._queue = queue
        self._codec = codec
        self._counters = counters
        self._cancellation = cancellation
        self._open_partition_key: str | None = None

    @property
    def open_partition_key(self) -> str | None:
        """Partition that may still receive rows from a later page."""
        return self._open_partition_key

    def stage(self, pages: Iterable[Page]) -> None:
        """Consume every page, then release the last open partition.

        The work queue is closed on exit whether staging finished,
        failed or was cancelled, so waiting workers can terminate.

        Raises:
            MalformedKeyError: If any partition key fails to decode
            QueryFailedError: If the store breaks partition ordering
            StagingIOError: If a ledger cannot be written
            PurgeCancelledError: If cancellation is requested
        """
        try:
            for page in pages:
                self.stage_page(page)
            self._cancellation.raise_if_cancelled()
            self._release_open_partition()
        finally:
            self._queue.close()

    def stage_page(self, page: Page) -> None:
        """Append one page's rows to ledgers, releasing closed partitions."""
        if not page.rows:
            return

        self._cancellation.raise_if_cancelled()
        groups = group_rows(page.rows)

        # Decode every key before touching disk or the queue: a key in the
        # wrong format means the table does not use this key scheme at all.
        timestamps = [self._codec.decode(key) for key in groups]

        page_number = self._counters.page_read()
        logger.info(
            "Processing page",
            page=page_number,
            results=len(page.rows),
            partitions=len(groups),
            first_timestamp=timestamps[0].isoformat(),
        )

        for partition_key, rows in groups.items():
            open_key = self._open_partition_key
            if open_key is not None and partition_key != open_key:
                if partition_key < open_key:
                    raise QueryFailedError(
                        f"Store returned partitionKey={partition_key} after "
                        f"partitionKey={open_key}; rows are not in partition order"
                    )
                self._release_open_partition()

            self._ledgers.append(partition_key, rows)
            self._open_partition_key = partition_key

    def _release_open_partition(self) -> None:
        partition_key = self._open_partition_key
        if partition_key is None:
            return
        self._queue.push(partition_key)
        self._open_partition_key = None
        self._counters.partition_queued()
        logger.debug("Partition queued", partition_key=partition_key)
