import time
from typing import Callable, Optional, Tuple
from uuid import uuid4

from backoffice.core.exceptions.exceptions import SessionNotFoundError
from backoffice.services.cache_store import CacheStore
from backoffice.services.document_store import DocumentStore
from backoffice.services.pagination_cache import PaginationCache
from backoffice.services.paginator import CollectionPaginator
from backoffice.utils.log import app_logger


class PaginatorRegistry:
    """Keeps one paginator per consumer session.

    Sessions expire after `ttl_seconds` without use; every lookup pushes the
    expiry back. All sessions share the same pagination cache.
    """

    def __init__(
        self,
        store: DocumentStore,
        cache: PaginationCache,
        ttl_seconds: float = 1800,
        page_cache_ttl: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.cache = cache
        self.page_cache_ttl = page_cache_ttl
        self._sessions = CacheStore(default_ttl=ttl_seconds, clock=clock)

    def open(self, collection: str, sort_field: str, page_size: int) -> Tuple[str, CollectionPaginator]:
        # fail fast on unknown collections or fields before a session exists
        self.store.sort_column(collection, sort_field)
        paginator = CollectionPaginator(
            self.store, self.cache, collection, sort_field, page_size=page_size, cache_ttl=self.page_cache_ttl
        )
        session_id = uuid4().hex
        self._sessions.set(session_id, paginator)
        app_logger.info("paginator_registry.open", session_id=session_id, collection=collection)
        return session_id, paginator

    def get(self, session_id: str) -> CollectionPaginator:
        entry = self._sessions.get(session_id)
        if entry is None:
            raise SessionNotFoundError(session_id)
        # sliding expiry
        self._sessions.set(session_id, entry.payload)
        return entry.payload

    def close(self, session_id: str) -> bool:
        closed = self._sessions.delete(session_id)
        if closed:
            app_logger.info("paginator_registry.close", session_id=session_id)
        return closed

    def sweep(self) -> int:
        removed = self._sessions.sweep()
        if removed:
            app_logger.info("paginator_registry.sweep", removed=removed)
        return removed

    def __len__(self) -> int:
        return len(self._sessions)
