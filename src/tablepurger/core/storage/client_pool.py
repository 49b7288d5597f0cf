# src/tablepurger/core/storage/client_pool.py
"""Owned cache of table service clients.

Service clients are expensive to construct (credential acquisition,
connection pool setup) and are reused for the whole run: one instance per
distinct connection identity.
"""

from __future__ import annotations

from collections.abc import Callable
from threading import Lock
from typing import Any

from tablepurger.core.logging import get_logger
from tablepurger.core.storage.auth import AzureAuthConfig
from tablepurger.core.storage.table_store import DEFAULT_PAGE_SIZE, AzureTableStore, TableStore

logger = get_logger(__name__)

ClientFactory = Callable[[AzureAuthConfig], Any]
StoreFactory = Callable[..., TableStore]


def _default_client_factory(connection: AzureAuthConfig) -> Any:
    return connection.create_table_service_client()


class ClientPool:
    """Pool that caches one service client per connection identity.

    The pool is an explicit object owned by whoever runs the purge; its
    lifetime is the run (or the host process), never module state.

    Example:
        pool = ClientPool()
        store = pool.get_table_store(auth, "WADLogsTable")
        page = store.query_segment(query, None)
    """

    def __init__(
        self,
        client_factory: ClientFactory | None = None,
        store_factory: StoreFactory | None = None,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        """Initialize pool.

        Args:
            client_factory: Builds a service client for a connection
                (default: AzureAuthConfig.create_table_service_client)
            store_factory: Binds a service client to a table
                (default: AzureTableStore.from_service_client)
            page_size: Rows per query page passed to the store factory
        """
        self._client_factory = client_factory or _default_client_factory
        self._store_factory = store_factory or AzureTableStore.from_service_client
        self._page_size = page_size
        self._clients: dict[str, Any] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)

    def get_client(self, connection: AzureAuthConfig) -> Any:
        """Get or create the service client for a connection (thread-safe)."""
        identity = connection.identity
        with self._lock:
            client = self._clients.get(identity)
            if client is None:
                logger.debug(
                    "Service client not found in cache, creating",
                    account=connection.display_name,
                    auth_method=connection.auth_method,
                )
                client = self._client_factory(connection)
                self._clients[identity] = client
            return client

    def get_table_store(self, connection: AzureAuthConfig, table_name: str) -> TableStore:
        """Get a TableStore bound to table_name on the cached client."""
        client = self.get_client(connection)
        return self._store_factory(client, table_name, page_size=self._page_size)

    def close(self) -> None:
        """Close and forget every cached client."""
        with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for client in clients:
            close = getattr(client, "close", None)
            if close is not None:
                close()
