"""Row and page shapes exchanged between the reader, stager and deleter."""

from dataclasses import dataclass, field
from typing import Any

PARTITION_KEY = "PartitionKey"
ROW_KEY = "RowKey"


@dataclass(frozen=True)
class Row:
    """Identity of a single table row.

    Rows are identified for deletion solely by this pair.
    """

    partition_key: str
    row_key: str

    def to_line(self) -> str:
        """Render as a staging ledger line (no trailing newline)."""
        return f"{self.partition_key},{self.row_key}"

    @classmethod
    def from_line(cls, line: str) -> "Row":
        """Parse a staging ledger line.

        Splits on the first comma only: partition keys never contain one,
        row keys may.

        Raises:
            ValueError: If the line has no comma separator
        """
        partition_key, sep, row_key = line.partition(",")
        if not sep:
            raise ValueError(f"Ledger line has no separator: {line!r}")
        return cls(partition_key=partition_key, row_key=row_key)

    def to_entity(self) -> dict[str, str]:
        """Minimal entity dict accepted by the Azure Tables SDK."""
        return {PARTITION_KEY: self.partition_key, ROW_KEY: self.row_key}


@dataclass(frozen=True)
class Page:
    """One segment of a paginated range query.

    Attributes:
        rows: Rows in store-issued order
        continuation: Opaque cursor for the next request, None on the last page
    """

    rows: tuple[Row, ...] = field(default_factory=tuple)
    continuation: Any = None

    @property
    def is_last(self) -> bool:
        """Whether the store signalled end of stream."""
        return self.continuation is None

    def __len__(self) -> int:
        return len(self.rows)
