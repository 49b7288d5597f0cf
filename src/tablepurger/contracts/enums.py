"""Status codes and modes used across subsystem boundaries."""

from enum import Enum


class ExecutionStrategy(str, Enum):
    """How the deletion stage is scheduled.

    Uses (str, Enum) because it is read from settings files and CLI flags.
    Both strategies run the same pipeline and differ only in worker-pool width.

    Values:
        SEQUENTIAL: One deletion worker
        POOLED: Fixed pool of max_workers deletion workers
    """

    SEQUENTIAL = "sequential"
    POOLED = "pooled"


class DeleteStatus(str, Enum):
    """Outcome of a single batched delete against the table store.

    Values:
        DELETED: Every row in the batch was removed
        NOT_FOUND: The store reported a row already missing (prior run got it)
        FATAL: Any other store failure; the run must stop
    """

    DELETED = "deleted"
    NOT_FOUND = "not_found"
    FATAL = "fatal"
