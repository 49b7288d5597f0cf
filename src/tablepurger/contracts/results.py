"""Operation outcomes and results.

These types answer: "What did an operation produce?"

IMPORTANT:
- DeleteOutcome distinguishes expected not-found from fatal failures
  explicitly; only FATAL trips pipeline-wide cancellation.
- PurgeResult is read only after every stage has terminated.
"""

from dataclasses import dataclass, field

from tablepurger.contracts.enums import DeleteStatus


@dataclass(frozen=True)
class DeleteOutcome:
    """Result of one batched delete.

    Use the factory methods to create instances.
    """

    status: DeleteStatus
    count: int = 0
    error: BaseException | None = field(default=None, compare=False)

    @classmethod
    def deleted(cls, count: int) -> "DeleteOutcome":
        """All rows in the batch were removed."""
        return cls(status=DeleteStatus.DELETED, count=count)

    @classmethod
    def not_found(cls, error: BaseException | None = None) -> "DeleteOutcome":
        """The batch addressed a row that no longer exists."""
        return cls(status=DeleteStatus.NOT_FOUND, error=error)

    @classmethod
    def fatal(cls, error: BaseException) -> "DeleteOutcome":
        """Any other store failure."""
        return cls(status=DeleteStatus.FATAL, error=error)

    @property
    def is_fatal(self) -> bool:
        """Whether this outcome must stop the run."""
        return self.status is DeleteStatus.FATAL


@dataclass(frozen=True)
class PurgeResult:
    """Totals of a purge run (complete or partial)."""

    pages_processed: int
    partitions_queued: int
    partitions_processed: int
    rows_deleted: int
    recovered_partitions: int = 0
    duration_seconds: float = 0.0

    @property
    def rows_per_second(self) -> int:
        """Throughput, 0 when nothing was deleted."""
        if self.rows_deleted == 0 or self.duration_seconds <= 0:
            return 0
        return int(self.rows_deleted / self.duration_seconds)

    @property
    def ms_per_row(self) -> int:
        """Average wall time per deleted row, 0 when nothing was deleted."""
        if self.rows_deleted == 0:
            return 0
        return int(self.duration_seconds * 1000 / self.rows_deleted)
