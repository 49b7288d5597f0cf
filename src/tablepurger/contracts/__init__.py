"""Shared contracts for cross-boundary data types.

Import pattern:
    from tablepurger.contracts import Row, Page, DeleteOutcome, PurgeResult
"""

from tablepurger.contracts.data import PARTITION_KEY, ROW_KEY, Page, Row
from tablepurger.contracts.enums import DeleteStatus, ExecutionStrategy
from tablepurger.contracts.errors import (
    ConfigurationError,
    DeleteFailedError,
    MalformedKeyError,
    PurgeCancelledError,
    PurgeError,
    QueryFailedError,
    QueueClosedError,
    StagingIOError,
)
from tablepurger.contracts.results import DeleteOutcome, PurgeResult

__all__ = [
    "PARTITION_KEY",
    "ROW_KEY",
    "ConfigurationError",
    "DeleteFailedError",
    "DeleteOutcome",
    "DeleteStatus",
    "ExecutionStrategy",
    "MalformedKeyError",
    "Page",
    "PurgeCancelledError",
    "PurgeError",
    "PurgeResult",
    "QueryFailedError",
    "QueueClosedError",
    "Row",
    "StagingIOError",
]
