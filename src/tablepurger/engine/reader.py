# src/tablepurger/engine/reader.py
"""Sequential pagination over the store's range query."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from tablepurger.contracts.data import Page
from tablepurger.contracts.errors import PurgeError, QueryFailedError
from tablepurger.core.cancellation import CancellationToken
from tablepurger.core.logging import get_logger
from tablepurger.core.query import TableQuery
from tablepurger.core.storage.table_store import TableStore

logger = get_logger(__name__)


class PageReader:
    """Walks a paginated query using the store's continuation cursor.

    pages() is a generator: page N+1 is requested only when the consumer
    asks for it, i.e. after page N has been fully handed over. No page is
    ever re-fetched.
    """

    def __init__(
        self,
        store: TableStore,
        query: TableQuery,
        cancellation: CancellationToken,
    ) -> None:
        self._store = store
        self._query = query
        self._cancellation = cancellation
        self._requests = 0

    @property
    def requests_made(self) -> int:
        """Number of query requests issued so far."""
        return self._requests

    def next(self, cursor: Any | None = None) -> Page:
        """Issue one bounded query request.

        Raises:
            QueryFailedError: If the store call fails
        """
        self._requests += 1
        try:
            return self._store.query_segment(self._query, cursor)
        except PurgeError:
            raise
        except Exception as e:
            raise QueryFailedError(
                f"Query request {self._requests} against table "
                f"{self._store.table_name!r} failed: {e}"
            ) from e

    def pages(self) -> Iterator[Page]:
        """Yield pages in store order until the cursor is exhausted.

        Pages without rows but with a continuation are followed; the store
        may return them when a request runs out of time.

        Raises:
            PurgeCancelledError: If cancellation is requested between pages
            QueryFailedError: If a store call fails
        """
        cursor: Any | None = None
        while True:
            self._cancellation.raise_if_cancelled()
            page = self.next(cursor)

            if not page.rows and page.is_last and self._requests == 1:
                logger.debug("No entities were available for purging")

            yield page

            if page.is_last:
                return
            cursor = page.continuation
