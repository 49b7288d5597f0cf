# src/tablepurger/engine/orchestrator.py
"""Orchestrator: full purge run lifecycle management.

Coordinates:
- Input validation
- Recovery of ledgers left by an interrupted run
- The producer stage (PageReader -> PartitionStager)
- The deletion stage (fixed pool of BatchDeleter workers)
- Cancellation and first-error-wins failure reporting
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from threading import Lock
from time import perf_counter
from typing import TYPE_CHECKING

from tablepurger.contracts.enums import ExecutionStrategy
from tablepurger.contracts.errors import (
    ConfigurationError,
    PurgeCancelledError,
    PurgeError,
    QueryFailedError,
)
from tablepurger.contracts.results import PurgeResult
from tablepurger.core.cancellation import CancellationToken
from tablepurger.core.keys import TickKeyCodec
from tablepurger.core.logging import get_logger
from tablepurger.core.query import RangeQueryBuilder
from tablepurger.core.staging import DEFAULT_STAGING_DIR, LedgerStore
from tablepurger.core.storage.table_store import MAX_BATCH_SIZE, TableStore
from tablepurger.engine.counters import PurgeCounters
from tablepurger.engine.deleter import BatchDeleter
from tablepurger.engine.reader import PageReader
from tablepurger.engine.stager import PartitionStager
from tablepurger.engine.work_queue import WorkQueue

if TYPE_CHECKING:
    from tablepurger.core.config import PurgeSettings
    from tablepurger.core.storage.auth import AzureAuthConfig
    from tablepurger.core.storage.client_pool import ClientPool

logger = get_logger(__name__)

DEFAULT_PURGE_OLDER_THAN_DAYS = 365
DEFAULT_MAX_WORKERS = 32
DEFAULT_QUEUE_SIZE = 256


@dataclass
class _StageFailure:
    stage: str
    error: BaseException


class _FirstFailure:
    """Keeps the first fatal error; later ones are shutdown noise."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._failure: _StageFailure | None = None

    @property
    def failure(self) -> _StageFailure | None:
        with self._lock:
            return self._failure

    def record(self, stage: str, error: BaseException) -> bool:
        """Record error if it is the first. Returns True if it was."""
        with self._lock:
            if self._failure is not None:
                return False
            self._failure = _StageFailure(stage=stage, error=error)
            return True


class PurgeOrchestrator:
    """Orchestrates full purge runs.

    One producer thread pages through the range query and stages
    partitions to disk; a fixed pool of worker threads deletes each
    partition once it is closed. Both strategies run this same pipeline;
    SEQUENTIAL simply uses a single worker.

    Ledgers of partitions that did not complete are left on disk on
    failure. The next run deletes them first, before querying again, so a
    rerun after a crash makes forward progress without double counting.

    Usage:
        pool = ClientPool()
        orchestrator = PurgeOrchestrator(pool, max_workers=32)
        result = orchestrator.purge(auth, "WADLogsTable", purge_older_than_days=90)
    """

    def __init__(
        self,
        client_pool: ClientPool,
        *,
        strategy: ExecutionStrategy = ExecutionStrategy.POOLED,
        max_workers: int = DEFAULT_MAX_WORKERS,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        staging_dir: Path = DEFAULT_STAGING_DIR,
        batch_size: int = MAX_BATCH_SIZE,
    ) -> None:
        """Initialize orchestrator.

        Args:
            client_pool: Shared cache of store clients, owned by the caller
            strategy: SEQUENTIAL (one worker) or POOLED (max_workers workers)
            max_workers: Deletion pool width for POOLED
            queue_size: Bound on closed partitions waiting for a worker
            staging_dir: Root of the per-table ledger directories
            batch_size: Rows per batched delete (at most 100)

        Raises:
            ConfigurationError: If any size is out of range
        """
        if max_workers <= 0:
            raise ConfigurationError(f"max_workers must be positive, got {max_workers}")
        if queue_size <= 0:
            raise ConfigurationError(f"queue_size must be positive, got {queue_size}")
        if not 0 < batch_size <= MAX_BATCH_SIZE:
            raise ConfigurationError(
                f"batch_size must be between 1 and {MAX_BATCH_SIZE}, got {batch_size}"
            )
        self._client_pool = client_pool
        self._strategy = ExecutionStrategy(strategy)
        self._max_workers = max_workers
        self._queue_size = queue_size
        self._staging_dir = staging_dir
        self._batch_size = batch_size
        self._query_builder = RangeQueryBuilder()

    @classmethod
    def from_settings(cls, settings: PurgeSettings, client_pool: ClientPool) -> PurgeOrchestrator:
        """Build an orchestrator from validated settings."""
        return cls(
            client_pool,
            strategy=settings.concurrency.strategy,
            max_workers=settings.concurrency.max_workers,
            queue_size=settings.concurrency.queue_size,
            staging_dir=settings.staging.directory,
        )

    @property
    def worker_count(self) -> int:
        """Number of concurrent deletion workers."""
        if self._strategy is ExecutionStrategy.SEQUENTIAL:
            return 1
        return self._max_workers

    def ledgers_for(self, table_name: str) -> LedgerStore:
        """Ledgers staged for table_name (staging_dir/<table_name>)."""
        return LedgerStore.for_table(self._staging_dir, table_name)

    def purge(
        self,
        connection: AzureAuthConfig,
        table_name: str,
        purge_older_than_days: int = DEFAULT_PURGE_OLDER_THAN_DAYS,
        partition_key_prefix: str | None = None,
        cancellation: CancellationToken | None = None,
        *,
        as_of: datetime | None = None,
    ) -> PurgeResult:
        """Delete every row whose partition key is older than the cutoff.

        Args:
            connection: Storage account credentials (client cache identity)
            table_name: Target table
            purge_older_than_days: Retention period; older rows are deleted
            partition_key_prefix: Constant prefix in front of the tick count
            cancellation: External cancellation signal (optional)
            as_of: Reference time for the cutoff (defaults to now, UTC)

        Returns:
            PurgeResult with pages, partitions and rows processed

        Raises:
            ConfigurationError: Invalid inputs or missing table (nothing ran)
            PurgeError: First fatal error of the run, with .result holding
                the partial counters
        """
        self._validate(table_name, purge_older_than_days)

        start_time = perf_counter()
        cancellation = cancellation or CancellationToken()
        counters = PurgeCounters()
        failures = _FirstFailure()

        ledgers = self.ledgers_for(table_name)
        store = self._get_store(connection, table_name)
        self._ensure_table_exists(store, connection)

        logger.info(
            "Starting purge",
            account=connection.display_name,
            table=table_name,
            purge_older_than_days=purge_older_than_days,
            partition_key_prefix=partition_key_prefix,
            strategy=self._strategy.value,
            workers=self.worker_count,
        )

        deleter = BatchDeleter(
            store, ledgers, counters, cancellation, batch_size=self._batch_size
        )

        pending = ledgers.pending()
        if pending:
            logger.info(
                "Resuming partitions left by a previous run",
                partitions=len(pending),
                staging_dir=str(ledgers.base_path),
            )

            def enqueue_pending(queue: WorkQueue[str]) -> None:
                try:
                    for partition_key in pending:
                        queue.push(partition_key)
                        counters.partition_recovered()
                finally:
                    queue.close()

            self._run_stage("recovery", enqueue_pending, deleter, cancellation, failures)
            self._raise_if_stopped(failures, cancellation, counters, start_time)

        query = self._query_builder.for_retention(
            purge_older_than_days, partition_key_prefix, as_of
        )
        codec = TickKeyCodec(partition_key_prefix)

        def stage_pages(queue: WorkQueue[str]) -> None:
            reader = PageReader(store, query, cancellation)
            stager = PartitionStager(ledgers, queue, codec, counters, cancellation)
            stager.stage(reader.pages())

        self._run_stage("purge", stage_pages, deleter, cancellation, failures)
        self._raise_if_stopped(failures, cancellation, counters, start_time)

        result = counters.snapshot(perf_counter() - start_time)
        logger.info(
            "Finished purge",
            pages=result.pages_processed,
            partitions=result.partitions_processed,
            rows_deleted=result.rows_deleted,
            duration_seconds=round(result.duration_seconds, 3),
            rows_per_second=result.rows_per_second,
            ms_per_row=result.ms_per_row,
        )
        return result

    def _validate(self, table_name: str, purge_older_than_days: int) -> None:
        if not table_name or not table_name.strip():
            raise ConfigurationError("table_name is required")
        if not (table_name.isascii() and table_name.isalnum()):
            raise ConfigurationError(
                f"table_name must be alphanumeric, got {table_name!r}"
            )
        if isinstance(purge_older_than_days, bool) or not isinstance(purge_older_than_days, int):
            raise ConfigurationError(
                f"purge_older_than_days must be an integer, got {purge_older_than_days!r}"
            )
        if purge_older_than_days <= 0:
            raise ConfigurationError(
                f"purge_older_than_days must be positive, got {purge_older_than_days}"
            )

    def _get_store(self, connection: AzureAuthConfig, table_name: str) -> TableStore:
        try:
            return self._client_pool.get_table_store(connection, table_name)
        except PurgeError:
            raise
        except Exception as e:
            raise ConfigurationError(
                f"Could not create a client for {connection.display_name}: {e}"
            ) from e

    def _ensure_table_exists(self, store: TableStore, connection: AzureAuthConfig) -> None:
        try:
            exists = store.exists()
        except Exception as e:
            raise QueryFailedError(
                f"Could not check table {store.table_name!r} on {connection.display_name}: {e}"
            ) from e
        if not exists:
            raise ConfigurationError(
                f"The table '{store.table_name}' does not exist on the provided storage account"
            )

    def _run_stage(
        self,
        name: str,
        produce: Callable[[WorkQueue[str]], None],
        deleter: BatchDeleter,
        cancellation: CancellationToken,
        failures: _FirstFailure,
    ) -> None:
        """Run one producer and the worker pool until both finish."""
        queue: WorkQueue[str] = WorkQueue(self._queue_size, cancellation)
        workers = self.worker_count

        with ThreadPoolExecutor(
            max_workers=workers + 1, thread_name_prefix=f"tablepurger-{name}"
        ) as executor:
            futures = [
                executor.submit(
                    self._guard, f"{name}-producer", produce, queue, cancellation, failures
                )
            ]
            futures.extend(
                executor.submit(
                    self._guard, f"{name}-worker-{i}", deleter.drain, queue, cancellation, failures
                )
                for i in range(workers)
            )
            wait(futures)

    @staticmethod
    def _guard(
        stage: str,
        target: Callable[[WorkQueue[str]], object],
        queue: WorkQueue[str],
        cancellation: CancellationToken,
        failures: _FirstFailure,
    ) -> None:
        """Run a stage; the first fatal error cancels every other stage."""
        try:
            target(queue)
        except PurgeCancelledError:
            logger.debug("Stage stopped on cancellation", stage=stage)
        except Exception as e:
            if failures.record(stage, e):
                logger.error("Stage failed, cancelling purge", stage=stage, error=str(e))
                cancellation.cancel(f"{stage} failed: {e}")
                queue.close()
            else:
                logger.debug("Suppressed error during shutdown", stage=stage, error=str(e))

    @staticmethod
    def _raise_if_stopped(
        failures: _FirstFailure,
        cancellation: CancellationToken,
        counters: PurgeCounters,
        start_time: float,
    ) -> None:
        failure = failures.failure
        if failure is None and not cancellation.is_cancelled:
            return

        partial = counters.snapshot(perf_counter() - start_time)
        error: BaseException
        if failure is not None:
            error = failure.error
        else:
            error = PurgeCancelledError(f"Purge cancelled: {cancellation.reason}")

        if isinstance(error, PurgeError):
            error.result = partial
        logger.warning(
            "Purge stopped",
            error=str(error),
            pages=partial.pages_processed,
            partitions=partial.partitions_processed,
            rows_deleted=partial.rows_deleted,
        )
        raise error
