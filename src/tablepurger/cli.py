# src/tablepurger/cli.py
"""tablepurger Command Line Interface.

Entry point for the tablepurger CLI tool.
"""

import signal
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError

from tablepurger import __version__
from tablepurger.contracts.enums import ExecutionStrategy
from tablepurger.contracts.errors import MalformedKeyError, PurgeError
from tablepurger.contracts.results import PurgeResult
from tablepurger.core.cancellation import CancellationToken
from tablepurger.core.config import PurgeSettings, load_raw_settings, resolve_config
from tablepurger.core.keys import decode_key
from tablepurger.core.logging import configure_logging, get_logger
from tablepurger.core.query import RangeQueryBuilder
from tablepurger.core.staging import DEFAULT_STAGING_DIR, LedgerStore
from tablepurger.core.storage.client_pool import ClientPool
from tablepurger.engine.orchestrator import PurgeOrchestrator

app = typer.Typer(
    name="tablepurger",
    help="Purge old rows from time-keyed Azure Table Storage tables.",
    no_args_is_help=True,
)

logger = get_logger(__name__)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"tablepurger version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Purge old rows from time-keyed Azure Table Storage tables."""
    pass


def _build_settings(
    settings_path: str | None,
    overrides: dict[str, dict[str, Any]],
) -> PurgeSettings:
    """Merge settings file (if any) with CLI overrides and validate."""
    raw: dict[str, Any] = load_raw_settings(Path(settings_path)) if settings_path else {}
    for section, values in overrides.items():
        merged = dict(raw.get(section) or {})
        merged.update({k: v for k, v in values.items() if v is not None})
        if merged:
            raw[section] = merged
    return PurgeSettings(**raw)


def _echo_result(result: PurgeResult, *, err: bool = False) -> None:
    typer.echo(f"  Pages processed: {result.pages_processed}", err=err)
    typer.echo(f"  Partitions processed: {result.partitions_processed}", err=err)
    if result.recovered_partitions:
        typer.echo(f"  Partitions resumed from previous run: {result.recovered_partitions}", err=err)
    typer.echo(f"  Rows deleted: {result.rows_deleted}", err=err)
    typer.echo(f"  Elapsed: {result.duration_seconds:.1f}s", err=err)
    typer.echo(
        f"  Throughput: {result.rows_per_second} rows per second, "
        f"{result.ms_per_row} ms per row",
        err=err,
    )


@app.command()
def purge(
    settings: str | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    account: str | None = typer.Option(
        None,
        "--account",
        "-a",
        help="Storage account connection string (overrides settings).",
    ),
    table: str | None = typer.Option(
        None,
        "--table",
        "-t",
        help="Table to purge (overrides settings).",
    ),
    days: int | None = typer.Option(
        None,
        "--days",
        "-d",
        help="Delete rows older than this many days [default: 365].",
    ),
    prefix: str | None = typer.Option(
        None,
        "--prefix",
        help="Constant partition key prefix before the tick count.",
    ),
    workers: int | None = typer.Option(
        None,
        "--workers",
        "-w",
        help="Concurrent deletion workers [default: 32].",
    ),
    sequential: bool = typer.Option(
        False,
        "--sequential",
        help="Delete with a single worker.",
    ),
    staging_dir: Path | None = typer.Option(
        None,
        "--staging-dir",
        help=f"Ledger directory [default: {DEFAULT_STAGING_DIR}].",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "-n",
        help="Validate and show what would run without deleting.",
    ),
    execute: bool = typer.Option(
        False,
        "--execute",
        "-x",
        help="Actually delete rows (required for safety).",
    ),
    json_logs: bool | None = typer.Option(
        None,
        "--json-logs/--console-logs",
        help="Log format (overrides settings).",
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="DEBUG, INFO, WARNING or ERROR (overrides settings).",
    ),
) -> None:
    """Delete every row whose partition key is older than the cutoff.

    Requires --execute flag to actually delete (safety feature).
    Use --dry-run to validate configuration and show the query.
    """
    overrides: dict[str, dict[str, Any]] = {
        "storage": {
            "table_name": table,
            "auth": {"connection_string": account} if account else None,
        },
        "retention": {"older_than_days": days, "partition_key_prefix": prefix},
        "concurrency": {
            "max_workers": workers,
            "strategy": ExecutionStrategy.SEQUENTIAL.value if sequential else None,
        },
        "staging": {"directory": staging_dir},
        "logging": {"json_output": json_logs, "level": log_level},
    }

    try:
        config = _build_settings(settings, overrides)
    except FileNotFoundError:
        typer.echo(f"Error: Settings file not found: {settings}", err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        typer.echo("Configuration errors:", err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(1) from None

    configure_logging(json_output=config.logging.json_output, level=config.logging.level)
    logger.debug("Resolved configuration", settings=resolve_config(config))

    retention = config.retention
    query = RangeQueryBuilder().for_retention(
        retention.older_than_days, retention.partition_key_prefix
    )
    try:
        ledgers = LedgerStore.for_table(config.staging.directory, config.storage.table_name)
        pending = ledgers.pending()
    except PurgeError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    if dry_run:
        typer.echo("Dry run mode - would execute:")
        typer.echo(f"  Account: {config.storage.auth.display_name}")
        typer.echo(f"  Table: {config.storage.table_name}")
        typer.echo(f"  Purge older than: {retention.older_than_days} days")
        typer.echo(f"  Query: {query.filter}")
        concurrency = config.concurrency
        worker_count = (
            1 if concurrency.strategy is ExecutionStrategy.SEQUENTIAL else concurrency.max_workers
        )
        typer.echo(f"  Workers: {worker_count} ({concurrency.strategy.value})")
        typer.echo(f"  Staging directory: {ledgers.base_path}")
        typer.echo(f"  Partitions to resume: {len(pending)}")
        return

    if not execute:
        typer.echo("Purge configuration valid.")
        typer.echo(f"  Table: {config.storage.table_name}")
        typer.echo(f"  Query: {query.filter}")
        typer.echo("")
        typer.echo("To delete, add --execute (or -x) flag:", err=True)
        typer.echo("  tablepurger purge ... --execute", err=True)
        raise typer.Exit(1)

    cancellation = CancellationToken()
    previous_handler = signal.signal(
        signal.SIGINT, lambda signum, frame: cancellation.cancel("interrupted")
    )
    client_pool = ClientPool(page_size=config.concurrency.page_size)
    try:
        orchestrator = PurgeOrchestrator.from_settings(config, client_pool)
        result = orchestrator.purge(
            config.storage.auth,
            config.storage.table_name,
            retention.older_than_days,
            retention.partition_key_prefix,
            cancellation,
        )
    except PurgeError as e:
        typer.echo(f"Error during purge: {e}", err=True)
        if e.result is not None:
            typer.echo("Progress before stopping:", err=True)
            _echo_result(e.result, err=True)
            typer.echo(
                "Unfinished partitions were kept in the staging directory "
                "and will be resumed on the next run.",
                err=True,
            )
        raise typer.Exit(1) from None
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        client_pool.close()

    typer.echo("\nPurge completed")
    _echo_result(result)


@app.command()
def pending(
    table: str = typer.Option(
        ...,
        "--table",
        "-t",
        help="Table whose unfinished partitions to list.",
    ),
    staging_dir: Path = typer.Option(
        DEFAULT_STAGING_DIR,
        "--staging-dir",
        help="Root ledger directory.",
    ),
    prefix: str | None = typer.Option(
        None,
        "--prefix",
        help="Partition key prefix, used to show partition timestamps.",
    ),
) -> None:
    """List partitions staged by a run that did not finish."""
    try:
        ledgers = LedgerStore.for_table(staging_dir, table)
        partition_keys = ledgers.pending()
    except PurgeError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    if not partition_keys:
        typer.echo("No unfinished partitions.")
        return

    typer.echo(f"{len(partition_keys)} unfinished partition(s) in {ledgers.base_path}:")
    total_rows = 0
    for partition_key in partition_keys:
        try:
            rows = ledgers.count_rows(partition_key)
        except PurgeError as e:
            typer.echo(f"  {partition_key}: unreadable ({e})", err=True)
            continue
        try:
            timestamp = decode_key(partition_key, prefix or "").isoformat()
        except MalformedKeyError:
            timestamp = "?"
        total_rows += rows
        typer.echo(f"  {partition_key}  {timestamp}  {rows} rows")
    typer.echo(f"Total staged rows: {total_rows}")


if __name__ == "__main__":
    app()
