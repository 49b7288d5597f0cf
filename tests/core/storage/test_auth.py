"""Tests for Azure authentication configuration."""

from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError

from tablepurger.core.storage.auth import AzureAuthConfig

TEST_CONNECTION_STRING = (
    "DefaultEndpointsProtocol=https;AccountName=test;AccountKey=key;"
    "TableEndpoint=https://test.table.core.windows.net/"
)
TEST_ACCOUNT_URL = "https://test.table.core.windows.net"


class TestAuthValidation:
    """Exactly one auth method must be configured."""

    def test_connection_string(self) -> None:
        config = AzureAuthConfig(connection_string=TEST_CONNECTION_STRING)
        assert config.auth_method == "connection_string"

    def test_managed_identity(self) -> None:
        config = AzureAuthConfig(use_managed_identity=True, account_url=TEST_ACCOUNT_URL)
        assert config.auth_method == "managed_identity"

    def test_service_principal(self) -> None:
        config = AzureAuthConfig(
            tenant_id="t", client_id="c", client_secret="s", account_url=TEST_ACCOUNT_URL
        )
        assert config.auth_method == "service_principal"

    def test_nothing_configured(self) -> None:
        with pytest.raises(ValidationError, match="No authentication method"):
            AzureAuthConfig()

    def test_blank_connection_string(self) -> None:
        with pytest.raises(ValidationError):
            AzureAuthConfig(connection_string="   ")

    def test_multiple_methods(self) -> None:
        with pytest.raises(ValidationError, match="Multiple authentication methods"):
            AzureAuthConfig(
                connection_string=TEST_CONNECTION_STRING,
                use_managed_identity=True,
                account_url=TEST_ACCOUNT_URL,
            )

    def test_managed_identity_requires_account_url(self) -> None:
        with pytest.raises(ValidationError, match="requires account_url"):
            AzureAuthConfig(use_managed_identity=True)

    def test_partial_service_principal_lists_missing(self) -> None:
        with pytest.raises(ValidationError, match="Missing: client_secret, account_url"):
            AzureAuthConfig(tenant_id="t", client_id="c")

    def test_extra_fields_forbidden(self) -> None:
        with pytest.raises(ValidationError):
            AzureAuthConfig(connection_string=TEST_CONNECTION_STRING, container="x")


class TestIdentity:
    """Cache identity and safe display names."""

    def test_same_connection_same_identity(self) -> None:
        a = AzureAuthConfig(connection_string=TEST_CONNECTION_STRING)
        b = AzureAuthConfig.from_connection_string(TEST_CONNECTION_STRING)
        assert a.identity == b.identity

    def test_different_methods_different_identity(self) -> None:
        mi = AzureAuthConfig(use_managed_identity=True, account_url=TEST_ACCOUNT_URL)
        sp = AzureAuthConfig(
            tenant_id="t", client_id="c", client_secret="s", account_url=TEST_ACCOUNT_URL
        )
        assert mi.identity != sp.identity

    def test_display_name_hides_key(self) -> None:
        config = AzureAuthConfig(connection_string=TEST_CONNECTION_STRING)
        assert config.display_name == "https://test.table.core.windows.net/"
        assert "AccountKey" not in config.display_name

    def test_display_name_falls_back_to_account_name(self) -> None:
        config = AzureAuthConfig(connection_string="AccountName=acct;AccountKey=secret")
        assert config.display_name == "acct"

    def test_display_name_for_account_url(self) -> None:
        config = AzureAuthConfig(use_managed_identity=True, account_url=TEST_ACCOUNT_URL)
        assert config.display_name == TEST_ACCOUNT_URL


class TestCreateClient:
    """Service client construction per auth method."""

    def test_connection_string_client(self) -> None:
        with patch("azure.data.tables.TableServiceClient") as service_cls:
            AzureAuthConfig(connection_string=TEST_CONNECTION_STRING).create_table_service_client()

        service_cls.from_connection_string.assert_called_once_with(TEST_CONNECTION_STRING)

    def test_connection_string_builds_no_credential(self) -> None:
        with (
            patch("azure.data.tables.TableServiceClient"),
            patch("azure.identity.DefaultAzureCredential") as managed,
            patch("azure.identity.ClientSecretCredential") as principal,
        ):
            AzureAuthConfig(connection_string=TEST_CONNECTION_STRING).create_table_service_client()

        managed.assert_not_called()
        principal.assert_not_called()

    def test_managed_identity_client(self) -> None:
        credential = MagicMock()
        with (
            patch("azure.data.tables.TableServiceClient") as service_cls,
            patch("azure.identity.DefaultAzureCredential", return_value=credential),
        ):
            AzureAuthConfig(
                use_managed_identity=True, account_url=TEST_ACCOUNT_URL
            ).create_table_service_client()

        service_cls.assert_called_once_with(endpoint=TEST_ACCOUNT_URL, credential=credential)

    def test_service_principal_client(self) -> None:
        with (
            patch("azure.data.tables.TableServiceClient") as service_cls,
            patch("azure.identity.ClientSecretCredential") as credential_cls,
        ):
            AzureAuthConfig(
                tenant_id="t", client_id="c", client_secret="s", account_url=TEST_ACCOUNT_URL
            ).create_table_service_client()

        credential_cls.assert_called_once_with(tenant_id="t", client_id="c", client_secret="s")
        service_cls.assert_called_once_with(
            endpoint=TEST_ACCOUNT_URL, credential=credential_cls.return_value
        )
