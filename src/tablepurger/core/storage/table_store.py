# src/tablepurger/core/storage/table_store.py
"""Table store protocol and its Azure Table Storage implementation.

The pipeline only needs three things from the store:
- a range-filtered, column-projected, paginated read
- an atomic multi-row delete within one partition
- a check that the table exists

Authentication, transport and retry policy belong to the Azure SDK.
"""

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from azure.core.exceptions import HttpResponseError, ResourceNotFoundError
from azure.data.tables import TableClient, TableErrorCode, TableServiceClient, TableTransactionError

from tablepurger.contracts.data import PARTITION_KEY, ROW_KEY, Page, Row
from tablepurger.contracts.results import DeleteOutcome
from tablepurger.core.logging import get_logger
from tablepurger.core.query import TableQuery

logger = get_logger(__name__)

# Azure entity group transactions: at most 100 operations, one partition.
MAX_BATCH_SIZE = 100
DEFAULT_PAGE_SIZE = 1000


@runtime_checkable
class TableStore(Protocol):
    """Protocol for table store backends used by the purge pipeline."""

    @property
    def table_name(self) -> str:
        """Name of the target table."""
        ...

    def exists(self) -> bool:
        """Check if the target table exists."""
        ...

    def query_segment(self, query: TableQuery, cursor: Any | None) -> Page:
        """Fetch one page of rows matching query.

        Rows are ordered by partition key then row key ascending. Callers
        must not assume a fixed page size.

        Args:
            query: Range predicate and projection
            cursor: Continuation from the previous page, None for the first

        Returns:
            Page whose continuation is None on the last page
        """
        ...

    def execute_batch(self, rows: Sequence[Row]) -> DeleteOutcome:
        """Atomically delete rows sharing one partition key.

        Returns:
            DeleteOutcome.deleted / not_found / fatal - never raises for
            store-reported failures
        """
        ...


def validate_batch(rows: Sequence[Row]) -> str:
    """Check the store-imposed batch invariants.

    Returns:
        The single partition key every row shares

    Raises:
        ValueError: If the batch is empty, too large, or spans partitions
    """
    if not rows:
        raise ValueError("Batch must contain at least one row")
    if len(rows) > MAX_BATCH_SIZE:
        raise ValueError(
            f"Batch size of {len(rows)} is larger than the maximum allowed size of {MAX_BATCH_SIZE}"
        )
    partition_key = rows[0].partition_key
    if any(row.partition_key != partition_key for row in rows):
        raise ValueError("Not all rows in the batch contain the same partitionKey")
    return partition_key


def _is_not_found(error: HttpResponseError) -> bool:
    return getattr(error, "error_code", None) == TableErrorCode.RESOURCE_NOT_FOUND


class AzureTableStore:
    """TableStore over an azure-data-tables TableClient.

    The TableClient is borrowed from a cached TableServiceClient (see
    ClientPool) and shares its connection pool.
    """

    def __init__(self, table_client: TableClient, *, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        """Initialize store.

        Args:
            table_client: Client bound to the target table
            page_size: Rows requested per page (Azure caps this at 1000)
        """
        self._table = table_client
        self._page_size = page_size

    @classmethod
    def from_service_client(
        cls,
        service_client: TableServiceClient,
        table_name: str,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> "AzureTableStore":
        """Bind a store to one table of a (cached) service client."""
        return cls(service_client.get_table_client(table_name), page_size=page_size)

    @property
    def table_name(self) -> str:
        """Name of the target table."""
        return self._table.table_name

    def exists(self) -> bool:
        """Check the table exists by fetching at most one entity."""
        try:
            next(iter(self._table.list_entities(results_per_page=1, select=[PARTITION_KEY])), None)
        except ResourceNotFoundError:
            return False
        return True

    def query_segment(self, query: TableQuery, cursor: Any | None) -> Page:
        """Fetch one page via query_entities().by_page()."""
        pager = self._table.query_entities(
            query.filter,
            select=list(query.select),
            results_per_page=self._page_size,
        ).by_page(continuation_token=cursor)

        entities = next(pager, None)
        if entities is None:
            return Page(rows=(), continuation=None)

        rows = tuple(Row(partition_key=e[PARTITION_KEY], row_key=e[ROW_KEY]) for e in entities)
        return Page(rows=rows, continuation=pager.continuation_token)

    def execute_batch(self, rows: Sequence[Row]) -> DeleteOutcome:
        """Submit one entity group transaction of deletes."""
        partition_key = validate_batch(rows)
        operations = [("delete", row.to_entity()) for row in rows]

        logger.debug("Deleting rows", partition_key=partition_key, count=len(rows))

        try:
            self._table.submit_transaction(operations)
        except (TableTransactionError, ResourceNotFoundError) as e:
            if _is_not_found(e):
                return DeleteOutcome.not_found(e)
            return DeleteOutcome.fatal(e)
        except HttpResponseError as e:
            return DeleteOutcome.fatal(e)

        return DeleteOutcome.deleted(len(rows))
