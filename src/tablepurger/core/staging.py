# src/tablepurger/core/staging.py
"""Disk-backed staging ledgers for partitions awaiting deletion.

One append-only UTF-8 text file per partition key, one row per line:

    <partitionKey>,<rowKey>

A ledger is created on the first row of a partition, appended to by every
page that contributes rows while the partition is open, and removed only
once every row has been deleted (or confirmed already gone). A ledger that
exists at startup was left by an interrupted run and is retried as a unit.

Structure: staging_dir/<tableName>/<partitionKey>.txt
"""

from collections.abc import Iterable
from pathlib import Path

from tablepurger.contracts.data import Row
from tablepurger.contracts.errors import StagingIOError
from tablepurger.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_STAGING_DIR = Path("AzureTablePurgerTempData")
LEDGER_SUFFIX = ".txt"

# Azure forbids these in PartitionKey; they would also escape the directory.
_FORBIDDEN_KEY_CHARS = frozenset("/\\#?\x00")


class LedgerStore:
    """Filesystem store of per-partition staging ledgers.

    Each partition key maps to its own file, so concurrent workers never
    touch the same file as long as a partition is owned by one worker.
    """

    def __init__(self, base_path: Path = DEFAULT_STAGING_DIR) -> None:
        """Initialize ledger store.

        Args:
            base_path: Directory holding ledger files (created on first write)
        """
        self.base_path = base_path

    @classmethod
    def for_table(cls, staging_dir: Path, table_name: str) -> "LedgerStore":
        """Ledger store scoped to one table: staging_dir/<table_name>/.

        Ledgers name partitions only, so a ledger left for one table must
        never be replayed against another.
        """
        if not (table_name.isascii() and table_name.isalnum()):
            raise StagingIOError(f"Table name cannot be used as a ledger directory: {table_name!r}")
        return cls(staging_dir / table_name)

    def path_for(self, partition_key: str) -> Path:
        """Get ledger path for a partition key."""
        if (
            not partition_key
            or partition_key in (".", "..")
            or any(ch in _FORBIDDEN_KEY_CHARS for ch in partition_key)
        ):
            raise StagingIOError(f"Partition key cannot be used as a ledger name: {partition_key!r}")
        return self.base_path / f"{partition_key}{LEDGER_SUFFIX}"

    def append(self, partition_key: str, rows: Iterable[Row]) -> int:
        """Append rows to a partition's ledger, creating it if absent.

        The file handle is flushed and closed before returning, including
        when an error is raised mid-write.

        Returns:
            Number of lines written
        """
        path = self.path_for(partition_key)
        written = 0
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8", newline="\n") as ledger:
                for row in rows:
                    ledger.write(row.to_line())
                    ledger.write("\n")
                    written += 1
        except OSError as e:
            raise StagingIOError(f"Failed to append to ledger {path}: {e}") from e
        return written

    def read(self, partition_key: str) -> list[Row]:
        """Read every row of a partition's ledger in append order."""
        path = self.path_for(partition_key)
        try:
            with path.open("r", encoding="utf-8", newline="\n") as ledger:
                lines = ledger.read().split("\n")
        except OSError as e:
            raise StagingIOError(f"Failed to read ledger {path}: {e}") from e

        rows: list[Row] = []
        for line_number, line in enumerate(lines, start=1):
            if not line:
                continue
            try:
                rows.append(Row.from_line(line))
            except ValueError as e:
                raise StagingIOError(f"Corrupt ledger {path} at line {line_number}: {e}") from e
        return rows

    def exists(self, partition_key: str) -> bool:
        """Check if a ledger exists for the partition."""
        return self.path_for(partition_key).exists()

    def delete(self, partition_key: str) -> bool:
        """Retire a partition's ledger.

        Returns:
            True if the ledger was deleted, False if it did not exist
        """
        path = self.path_for(partition_key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StagingIOError(f"Failed to delete ledger {path}: {e}") from e
        return True

    def pending(self) -> list[str]:
        """Partition keys with a ledger on disk, in key order."""
        if not self.base_path.is_dir():
            return []
        try:
            return sorted(
                path.name[: -len(LEDGER_SUFFIX)]
                for path in self.base_path.iterdir()
                if path.is_file() and path.name.endswith(LEDGER_SUFFIX)
            )
        except OSError as e:
            raise StagingIOError(f"Failed to list ledgers in {self.base_path}: {e}") from e

    def count_rows(self, partition_key: str) -> int:
        """Number of rows staged for a partition."""
        return len(self.read(partition_key))
