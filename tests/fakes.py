# tests/fakes.py
"""In-memory table store and key helpers shared by the pipeline tests.

FakeTableStore behaves like Azure Table Storage for the purposes of the
purge pipeline:
- rows ordered by PartitionKey then RowKey
- key-based continuation cursors (concurrent deletes never shift pages)
- atomic batches: one missing row fails the whole batch as not-found
"""

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, timedelta
from threading import Lock
from typing import Any

from tablepurger.contracts import DeleteOutcome, Page, Row
from tablepurger.core.keys import ticks_key
from tablepurger.core.query import TableQuery
from tablepurger.core.storage import ClientPool
from tablepurger.core.storage.table_store import validate_batch

# =============================================================================
# Keys and rows
# =============================================================================

AS_OF = datetime(2026, 1, 1, tzinfo=UTC)
RETENTION_DAYS = 30


def key_days_ago(days: float, prefix: str = "") -> str:
    """Partition key for an instant `days` before AS_OF."""
    return f"{prefix}{ticks_key(AS_OF - timedelta(days=days))}"


def make_rows(partition_key: str, count: int, *, start: int = 0) -> list[Row]:
    """Rows with zero-padded, sortable row keys."""
    return [Row(partition_key, f"row{i:06d}") for i in range(start, start + count)]


# =============================================================================
# Fake store
# =============================================================================


class FakeTableStore:
    """In-memory stand-in for AzureTableStore.

    Attributes:
        batches: Every batch submitted, in submission order
        query_cursors: Cursor passed to each query_segment call
    """

    def __init__(
        self,
        rows: Iterable[Row] = (),
        *,
        page_size: int = 1000,
        table_name: str = "PurgeTest",
        exists: bool = True,
    ) -> None:
        self._lock = Lock()
        self._rows: set[tuple[str, str]] = {(r.partition_key, r.row_key) for r in rows}
        self._phantoms: set[tuple[str, str]] = set()
        self._page_size = page_size
        self._table_name = table_name
        self._exists = exists
        self._fail_partitions: dict[str, int] = {}
        self._query_error: Exception | None = None
        self.batches: list[list[Row]] = []
        self.query_cursors: list[Any] = []

    # --- test controls -------------------------------------------------------

    def add_rows(self, rows: Iterable[Row]) -> None:
        with self._lock:
            self._rows.update((r.partition_key, r.row_key) for r in rows)

    def add_phantoms(self, rows: Iterable[Row]) -> None:
        """Rows returned by queries that no longer exist when deleted."""
        with self._lock:
            self._phantoms.update((r.partition_key, r.row_key) for r in rows)

    def fail_partition(self, partition_key: str, after_batches: int = 0) -> None:
        """Make deletes of a partition fail after N successful batches."""
        self._fail_partitions[partition_key] = after_batches

    def heal(self) -> None:
        """Stop injecting delete failures."""
        self._fail_partitions.clear()

    def fail_queries(self, error: Exception) -> None:
        self._query_error = error

    @property
    def remaining(self) -> set[tuple[str, str]]:
        with self._lock:
            return set(self._rows)

    @property
    def batch_sizes(self) -> list[int]:
        return [len(batch) for batch in self.batches]

    # --- TableStore protocol ------------------------------------------------

    @property
    def table_name(self) -> str:
        return self._table_name

    def exists(self) -> bool:
        return self._exists

    def query_segment(self, query: TableQuery, cursor: Any | None) -> Page:
        self.query_cursors.append(cursor)
        if self._query_error is not None:
            raise self._query_error
        with self._lock:
            matching = sorted(
                key
                for key in self._rows | self._phantoms
                if query.lower_bound <= key[0] < query.upper_bound
                and (cursor is None or key >= cursor)
            )
        page = matching[: self._page_size]
        continuation = matching[self._page_size] if len(matching) > self._page_size else None
        return Page(rows=tuple(Row(pk, rk) for pk, rk in page), continuation=continuation)

    def execute_batch(self, rows: Sequence[Row]) -> DeleteOutcome:
        partition_key = validate_batch(rows)
        with self._lock:
            self.batches.append(list(rows))
            if partition_key in self._fail_partitions:
                done = sum(1 for b in self.batches if b[0].partition_key == partition_key) - 1
                if done >= self._fail_partitions[partition_key]:
                    return DeleteOutcome.fatal(RuntimeError("InternalError: server busy"))
            keys = [(r.partition_key, r.row_key) for r in rows]
            if any(key not in self._rows for key in keys):
                self._phantoms.difference_update(keys)
                return DeleteOutcome.not_found(LookupError("ResourceNotFound"))
            self._rows.difference_update(keys)
        return DeleteOutcome.deleted(len(rows))


class ScriptedTableStore(FakeTableStore):
    """Store that returns a fixed sequence of pages, ignoring the filter."""

    def __init__(self, pages: Sequence[Sequence[Row]], **kwargs: Any) -> None:
        super().__init__([row for page in pages for row in page], **kwargs)
        self._pages = [tuple(page) for page in pages]

    def query_segment(self, query: TableQuery, cursor: Any | None) -> Page:
        self.query_cursors.append(cursor)
        index = cursor or 0
        continuation = index + 1 if index + 1 < len(self._pages) else None
        return Page(rows=self._pages[index], continuation=continuation)


def pool_for(store: FakeTableStore) -> ClientPool:
    """ClientPool whose every table resolves to store."""
    return ClientPool(
        client_factory=lambda connection: store,
        store_factory=lambda client, table_name, page_size: client,
    )


