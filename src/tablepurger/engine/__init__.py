"""Purge engine: reader, stager, work queue, deleters and orchestrator."""

from tablepurger.engine.counters import PurgeCounters
from tablepurger.engine.deleter import BatchDeleter, chunk_rows
from tablepurger.engine.orchestrator import (
    DEFAULT_MAX_WORKERS,
    DEFAULT_PURGE_OLDER_THAN_DAYS,
    PurgeOrchestrator,
)
from tablepurger.engine.reader import PageReader
from tablepurger.engine.stager import PartitionStager, group_rows
from tablepurger.engine.work_queue import WorkQueue

__all__ = [
    "DEFAULT_MAX_WORKERS",
    "DEFAULT_PURGE_OLDER_THAN_DAYS",
    "BatchDeleter",
    "PageReader",
    "PartitionStager",
    "PurgeCounters",
    "PurgeOrchestrator",
    "WorkQueue",
    "chunk_rows",
    "group_rows",
]
