# src/tablepurger/core/query.py
"""Range query construction over the partition key.

The purge query is a half-open range [lower, upper) on PartitionKey, with
the projection restricted to the two key columns: the deletion stage needs
nothing else, and this keeps page payloads small.
"""

from dataclasses import dataclass
from datetime import datetime

from tablepurger.contracts.data import PARTITION_KEY, ROW_KEY
from tablepurger.core.keys import cutoff_key
from tablepurger.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_LOWER_BOUND = "0"
KEY_COLUMNS: tuple[str, ...] = (PARTITION_KEY, ROW_KEY)


def _odata_literal(value: str) -> str:
    """Quote a string for an OData filter expression."""
    escaped = value.replace("'", "''")
    return f"'{escaped}'"


@dataclass(frozen=True)
class TableQuery:
    """Partition key range predicate plus column projection.

    Attributes:
        lower_bound: Inclusive lower bound, prefix already applied
        upper_bound: Exclusive upper bound, prefix already applied
        select: Columns to return
    """

    lower_bound: str
    upper_bound: str
    select: tuple[str, ...] = KEY_COLUMNS

    @property
    def filter(self) -> str:
        """OData filter string accepted by Azure Table Storage."""
        return (
            f"{PARTITION_KEY} ge {_odata_literal(self.lower_bound)} and "
            f"{PARTITION_KEY} lt {_odata_literal(self.upper_bound)}"
        )

    def __str__(self) -> str:
        return f"{self.filter} select {','.join(self.select)}"


class RangeQueryBuilder:
    """Builds purge range queries."""

    def build(
        self,
        lower_bound: str | None,
        upper_bound: str,
        prefix: str | None = None,
    ) -> TableQuery:
        """Build a [prefix+lower, prefix+upper) query over PartitionKey.

        Args:
            lower_bound: Unprefixed inclusive lower bound, defaults to "0"
            upper_bound: Unprefixed exclusive upper bound
            prefix: Constant partition key prefix

        Returns:
            TableQuery selecting only PartitionKey and RowKey
        """
        prefix = prefix or ""
        if not lower_bound:
            lower_bound = DEFAULT_LOWER_BOUND

        query = TableQuery(
            lower_bound=f"{prefix}{lower_bound}",
            upper_bound=f"{prefix}{upper_bound}",
        )
        logger.debug(
            "Generated table query",
            lower_bound=query.lower_bound,
            upper_bound=query.upper_bound,
        )
        return query

    def for_retention(
        self,
        purge_older_than_days: int,
        prefix: str | None = None,
        as_of: datetime | None = None,
    ) -> TableQuery:
        """Query for every row older than the retention period."""
        query = self.build(None, cutoff_key(purge_older_than_days, as_of), prefix)
        logger.info("Query", filter=query.filter, select=list(query.select))
        return query
