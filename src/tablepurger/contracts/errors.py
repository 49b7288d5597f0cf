"""Purge error taxonomy.

Every fatal condition raised inside the pipeline derives from PurgeError.
The orchestrator attaches the counters accumulated so far to the error it
re-raises, so callers can report partial progress alongside the root cause.

Recoverable "row not found" delete outcomes are NOT exceptions - see
DeleteOutcome in contracts.results.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tablepurger.contracts.results import PurgeResult


class PurgeError(Exception):
    """Base class for all purge failures.

    Attributes:
        result: Partial counters at the time the run stopped, set by the
            orchestrator before re-raising. None until then.
    """

    result: PurgeResult | None = None


class ConfigurationError(PurgeError):
    """Raised for invalid inputs before the pipeline starts."""


class MalformedKeyError(PurgeError):
    """Raised when a partition key does not follow the tick key format.

    Fatal: the target table does not use the expected key scheme, so the run
    aborts rather than deleting or skipping the wrong data.
    """

    def __init__(self, key: str, reason: str) -> None:
        """Initialize with the offending key.

        Args:
            key: Key exactly as read from the store
            reason: Why it failed to parse
        """
        self.key = key
        self.reason = reason
        super().__init__(f"PartitionKey is not in the expected format: {key!r} ({reason})")


class QueryFailedError(PurgeError):
    """Raised when a paginated range query against the store fails."""


class DeleteFailedError(PurgeError):
    """Raised when a batched delete fails for any reason other than not-found.

    The partition's staging ledger is left on disk for the next run.
    """

    def __init__(self, partition_key: str, batch_size: int, cause: BaseException | None) -> None:
        """Initialize with the failing batch details.

        Args:
            partition_key: Partition the batch addressed
            batch_size: Number of rows in the failed batch
            cause: Underlying store error, if any
        """
        self.partition_key = partition_key
        self.batch_size = batch_size
        self.cause = cause
        super().__init__(
            f"Failed to delete {batch_size} rows from partitionKey={partition_key}: {cause}"
        )


class StagingIOError(PurgeError):
    """Raised when a staging ledger cannot be written, read or removed."""


class PurgeCancelledError(PurgeError):
    """Raised when a stage observes the shared cancellation signal.

    Inside the pipeline this is an unwinding signal, not a root cause; the
    orchestrator surfaces it only when cancellation was requested externally.
    """


class QueueClosedError(PurgeError):
    """Raised when pushing to a WorkQueue that has already been closed."""
