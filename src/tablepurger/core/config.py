# src/tablepurger/core/config.py
"""
Configuration schema and loading for tablepurger.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from tablepurger.contracts.enums import ExecutionStrategy
from tablepurger.core.staging import DEFAULT_STAGING_DIR
from tablepurger.core.storage.auth import AzureAuthConfig


class StorageSettings(BaseModel):
    """Target account and table.

    Example YAML:
        storage:
          table_name: WADLogsTable
          auth:
            connection_string: "DefaultEndpointsProtocol=https;AccountName=..."
    """

    model_config = {"frozen": True}

    auth: AzureAuthConfig = Field(description="Storage account credentials")
    table_name: str = Field(min_length=1, description="Table to purge")

    @field_validator("table_name")
    @classmethod
    def validate_table_name(cls, v: str) -> str:
        """Azure table names are alphanumeric and 3-63 characters long."""
        if not (v.isascii() and v.isalnum() and 3 <= len(v) <= 63) or v[0].isdigit():
            raise ValueError(
                f"table_name '{v}' must be 3-63 alphanumeric characters, not starting with a digit"
            )
        return v


class RetentionSettings(BaseModel):
    """What counts as old enough to delete."""

    model_config = {"frozen": True}

    older_than_days: int = Field(
        default=365, gt=0, description="Delete rows older than this many days"
    )
    partition_key_prefix: str | None = Field(
        default=None, description="Constant prefix in front of the tick count"
    )


class ConcurrencySettings(BaseModel):
    """Deletion stage scheduling."""

    model_config = {"frozen": True}

    strategy: ExecutionStrategy = Field(
        default=ExecutionStrategy.POOLED,
        description="sequential (one worker) or pooled (max_workers workers)",
    )
    max_workers: int = Field(default=32, gt=0, description="Concurrent deletion workers")
    queue_size: int = Field(
        default=256, gt=0, description="Closed partitions buffered ahead of the workers"
    )
    page_size: int = Field(
        default=1000, gt=0, le=1000, description="Rows requested per query page"
    )


class StagingSettings(BaseModel):
    """Where partition ledgers are kept between query and delete."""

    model_config = {"frozen": True}

    directory: Path = Field(
        default=DEFAULT_STAGING_DIR,
        description="Ledger directory (relative to the working directory)",
    )


class LoggingSettings(BaseModel):
    """Log output configuration."""

    model_config = {"frozen": True}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    json_output: bool = Field(default=False, description="Emit JSON lines instead of console")

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


class PurgeSettings(BaseModel):
    """Top-level tablepurger configuration.

    All settings are validated and frozen after construction.
    """

    model_config = {"frozen": True}

    storage: StorageSettings = Field(description="Target account and table")
    retention: RetentionSettings = Field(
        default_factory=RetentionSettings,
        description="Purge cutoff configuration",
    )
    concurrency: ConcurrencySettings = Field(
        default_factory=ConcurrencySettings,
        description="Worker pool configuration",
    )
    staging: StagingSettings = Field(
        default_factory=StagingSettings,
        description="Ledger storage configuration",
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Log output configuration",
    )


def load_settings(config_path: Path) -> PurgeSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (TABLEPURGER_*) - highest priority
    2. Config file (settings.yaml)
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: TABLEPURGER_STORAGE__TABLE_NAME for nested keys.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated PurgeSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    return PurgeSettings(**load_raw_settings(config_path))


def load_raw_settings(config_path: Path) -> dict[str, Any]:
    """Load the merged (file + environment) settings dict without validating.

    Lets callers overlay CLI options before validation.
    """
    from dynaconf import Dynaconf

    # Explicit check for file existence (Dynaconf silently accepts missing files)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="TABLEPURGER",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase top-level keys, and nested keys set through
    # environment variables keep their case; Pydantic fields are lowercase
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    return {
        k.lower(): _lower_keys(v)
        for k, v in dynaconf_settings.as_dict().items()
        if k not in internal_keys
    }


def _lower_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    return value


def resolve_config(settings: PurgeSettings) -> dict[str, Any]:
    """Settings as a JSON-safe dict with secrets masked, for logging."""
    resolved = settings.model_dump(mode="json")
    auth = resolved["storage"]["auth"]
    for secret in ("connection_string", "client_secret"):
        if auth.get(secret):
            auth[secret] = "***"
    return resolved
