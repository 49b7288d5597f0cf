"""Table store collaborator: auth, client caching, Azure adapter."""

from tablepurger.core.storage.auth import AzureAuthConfig
from tablepurger.core.storage.client_pool import ClientPool
from tablepurger.core.storage.table_store import MAX_BATCH_SIZE, AzureTableStore, TableStore

__all__ = [
    "MAX_BATCH_SIZE",
    "AzureAuthConfig",
    "AzureTableStore",
    "ClientPool",
    "TableStore",
]
