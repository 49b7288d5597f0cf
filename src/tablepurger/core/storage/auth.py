# src/tablepurger/core/storage/auth.py
"""Credentials for the storage account that holds the table to purge.

Three mutually exclusive methods:
- connection string (account key or SAS, also the storage emulator)
- managed identity, for purges scheduled inside Azure
- service principal, for CI and cross-tenant jobs

Secrets belong in environment variables
(TABLEPURGER_STORAGE__AUTH__CONNECTION_STRING and friends), not in the
settings file.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal, Self

from pydantic import BaseModel, model_validator

if TYPE_CHECKING:
    from azure.data.tables import TableServiceClient

AuthMethod = Literal["connection_string", "managed_identity", "service_principal"]

_METHODS_HINT = (
    "connection_string, "
    "managed identity (use_managed_identity + account_url), or "
    "service principal (tenant_id + client_id + client_secret + account_url)"
)


class AzureAuthConfig(BaseModel):
    """Storage account authentication.

    Example settings:

        storage:
          auth:
            connection_string: "DefaultEndpointsProtocol=https;AccountName=..."

        storage:
          auth:
            use_managed_identity: true
            account_url: "https://myaccount.table.core.windows.net"

    Also used as the ClientPool cache key, via identity.
    """

    model_config = {"extra": "forbid", "frozen": True}

    connection_string: str | None = None

    use_managed_identity: bool = False
    account_url: str | None = None

    tenant_id: str | None = None
    client_id: str | None = None
    client_secret: str | None = None

    @model_validator(mode="after")
    def validate_auth_method(self) -> Self:
        """Exactly one complete method must be configured."""
        principal = {
            "tenant_id": self.tenant_id,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "account_url": self.account_url,
        }
        configured = [
            bool(self.connection_string and self.connection_string.strip()),
            self.use_managed_identity and self.account_url is not None,
            all(value is not None for value in principal.values()),
        ]

        if sum(configured) > 1:
            raise ValueError(
                f"Multiple authentication methods configured. Use exactly one of: {_METHODS_HINT}"
            )
        if sum(configured) == 1:
            return self

        if self.use_managed_identity:
            raise ValueError(
                "Managed Identity auth requires account_url, "
                "e.g. https://myaccount.table.core.windows.net"
            )
        if any(principal[name] is not None for name in ("tenant_id", "client_id", "client_secret")):
            missing = ", ".join(name for name, value in principal.items() if value is None)
            raise ValueError(f"Service Principal auth requires all fields. Missing: {missing}")
        raise ValueError(f"No authentication method configured. Provide one of: {_METHODS_HINT}")

    @property
    def auth_method(self) -> AuthMethod:
        if self.connection_string:
            return "connection_string"
        if self.use_managed_identity:
            return "managed_identity"
        return "service_principal"

    @property
    def identity(self) -> str:
        """Cache key: configs with the same identity share one service client."""
        method = self.auth_method
        if method == "connection_string":
            return f"{method}:{self.connection_string}"
        if method == "managed_identity":
            return f"{method}:{self.account_url}"
        return f"{method}:{self.tenant_id}:{self.client_id}:{self.account_url}"

    @property
    def display_name(self) -> str:
        """Account description safe to print and log."""
        if self.account_url:
            return self.account_url
        settings = dict(
            part.split("=", 1) for part in (self.connection_string or "").split(";") if "=" in part
        )
        return settings.get("TableEndpoint") or settings.get("AccountName") or "<connection string>"

    @classmethod
    def from_connection_string(cls, connection_string: str) -> AzureAuthConfig:
        return cls(connection_string=connection_string)

    def create_table_service_client(self) -> TableServiceClient:
        """Build a TableServiceClient for the configured method."""
        from azure.data.tables import TableServiceClient
        from azure.identity import ClientSecretCredential, DefaultAzureCredential

        if self.auth_method == "connection_string":
            assert self.connection_string is not None  # Validated by model_validator
            return TableServiceClient.from_connection_string(self.connection_string)

        assert self.account_url is not None  # Validated by model_validator
        if self.auth_method == "managed_identity":
            return TableServiceClient(endpoint=self.account_url, credential=DefaultAzureCredential())

        assert self.tenant_id and self.client_id and self.client_secret  # Validated by model_validator
        credential = ClientSecretCredential(
            tenant_id=self.tenant_id,
            client_id=self.client_id,
            client_secret=self.client_secret,
        )
        return TableServiceClient(endpoint=self.account_url, credential=credential)
