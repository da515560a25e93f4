import math
from dataclasses import dataclass, field, replace
from threading import RLock
from typing import Any, Callable, Dict, List, Optional

from backoffice.services.cursor import Cursor, SortDirection
from backoffice.services.document_store import Document, DocumentStore
from backoffice.services.pagination_cache import PaginationCache
from backoffice.utils.log import app_logger


@dataclass
class PaginationState:
    current_page: int = 0
    page_size: int = 10
    total_items: int = 0
    sort_field: str = "id"
    sort_direction: SortDirection = SortDirection.ASC

    @property
    def page_count(self) -> int:
        return math.ceil(self.total_items / self.page_size) if self.page_size else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_page": self.current_page,
            "page_size": self.page_size,
            "total_items": self.total_items,
            "page_count": self.page_count,
            "sort_field": self.sort_field,
            "sort_direction": self.sort_direction.value,
        }


@dataclass(frozen=True)
class PaginatorSnapshot:
    """Immutable view of a paginator handed to listeners and API responses."""

    collection: str
    state: PaginationState
    items: List[Document] = field(default_factory=list)
    first_cursor: Optional[Cursor] = None
    last_cursor: Optional[Cursor] = None
    loading: bool = False
    error: Optional[str] = None
    from_cache: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "collection": self.collection,
            "pagination": self.state.to_dict(),
            "items": self.items,
            "first_cursor": self.first_cursor.encode() if self.first_cursor else None,
            "last_cursor": self.last_cursor.encode() if self.last_cursor else None,
            "loading": self.loading,
            "error": self.error,
            "from_cache": self.from_cache,
        }


Listener = Callable[[PaginatorSnapshot], None]


class CollectionPaginator:
    """Cursor-based pager over one collection, backed by the pagination cache.

    The paginator remembers the first and last document of the page it is
    showing and asks the document store for the page right after (or right
    before) them. Pages are looked up in the `PaginationCache` first unless
    the caller forces a refresh, and every page fetched from the store is
    written back.

    State only changes after a successful fetch: when the store raises, the
    current page, cursors and counters are left as they were, the error is
    recorded on ``self.error`` and re-raised to the caller.

    Navigation that cannot happen (next on the last page, previous on the
    first one, no cursor yet) is logged and ignored.
    """

    def __init__(
        self,
        store: DocumentStore,
        cache: PaginationCache,
        collection: str,
        sort_field: str,
        page_size: int = 10,
        cache_ttl: Optional[float] = None,
    ):
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.store = store
        self.cache = cache
        self.collection = collection
        self.cache_ttl = cache_ttl
        self.state = PaginationState(page_size=page_size, sort_field=sort_field)
        self.items: List[Document] = []
        self.first_cursor: Optional[Cursor] = None
        self.last_cursor: Optional[Cursor] = None
        self.loading = False
        self.error: Optional[Exception] = None
        self.from_cache = False
        self._listeners: List[Listener] = []
        self._lock = RLock()

    # -- observation -------------------------------------------------------

    @property
    def page_count(self) -> int:
        return self.state.page_count

    def snapshot(self) -> PaginatorSnapshot:
        return PaginatorSnapshot(
            collection=self.collection,
            state=replace(self.state),
            items=list(self.items),
            first_cursor=self.first_cursor,
            last_cursor=self.last_cursor,
            loading=self.loading,
            error=str(self.error) if self.error else None,
            from_cache=self.from_cache,
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register `listener` for state changes; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception as e:
                app_logger.error("paginator.listener_error", collection=self.collection, error=str(e))

    # -- internals ---------------------------------------------------------

    def _cursors_for(self, docs: List[Document], sort_field: str, direction: SortDirection):
        if not docs:
            return None, None
        return (
            Cursor.from_document(docs[0], sort_field, direction),
            Cursor.from_document(docs[-1], sort_field, direction),
        )

    def _apply(self, page: int, docs: List[Document], first: Optional[Cursor], last: Optional[Cursor],
               from_cache: bool) -> None:
        self.items = docs
        self.first_cursor = first
        self.last_cursor = last
        self.state.current_page = page
        self.from_cache = from_cache
        self.error = None

    def _from_cache(self, page: int) -> bool:
        cached = self.cache.get_page(
            self.collection, page, self.state.sort_field, self.state.sort_direction, self.state.page_size
        )
        if cached is None:
            return False
        self._apply(page, cached.data, cached.first_cursor, cached.last_cursor, from_cache=True)
        self.state.total_items = cached.total_items
        return True

    def _save(self, page: int) -> None:
        self.cache.set_page(
            self.collection,
            page,
            self.items,
            self.first_cursor,
            self.last_cursor,
            self.state.sort_field,
            self.state.sort_direction,
            self.state.page_size,
            self.state.total_items,
            self.cache_ttl,
        )

    def _fetch(self, **kwargs) -> List[Document]:
        self.loading = True
        try:
            return self.store.fetch_page(self.collection, **kwargs)
        except Exception as e:
            self.error = e
            app_logger.error("paginator.fetch_failed", collection=self.collection, error=str(e))
            raise
        finally:
            self.loading = False

    def _load_first_page(self, sort_field: str, direction: SortDirection, page_size: int,
                         force_refresh: bool) -> PaginatorSnapshot:
        """Load page 0 for the given ordering and commit it, together with that ordering, on success."""
        if not force_refresh:
            cached = self.cache.get_page(self.collection, 0, sort_field, direction, page_size)
            if cached is not None:
                self.state.sort_field, self.state.sort_direction, self.state.page_size = sort_field, direction, page_size
                self._apply(0, cached.data, cached.first_cursor, cached.last_cursor, from_cache=True)
                self.state.total_items = cached.total_items
                app_logger.info("paginator.load_initial", collection=self.collection, source="cache")
                self._notify()
                return self.snapshot()

        try:
            docs = self._fetch(sort_field=sort_field, direction=direction, limit=page_size)
            total = self.store.count(self.collection) if docs else 0
        except Exception as e:
            self.error = e
            self._notify()
            raise

        self.state.sort_field, self.state.sort_direction, self.state.page_size = sort_field, direction, page_size
        self.state.total_items = total
        first, last = self._cursors_for(docs, sort_field, direction)
        self._apply(0, docs, first, last, from_cache=False)

        if docs:
            self._save(0)
        else:
            app_logger.warning("paginator.empty", collection=self.collection)
        app_logger.info("paginator.load_initial", collection=self.collection, source="store",
                        items=len(docs), total=total)
        self._notify()
        return self.snapshot()

    # -- operations --------------------------------------------------------

    def load_initial(self, force_refresh: bool = False) -> PaginatorSnapshot:
        """Show page 0 of the current ordering, from cache unless `force_refresh`."""
        with self._lock:
            return self._load_first_page(
                self.state.sort_field, self.state.sort_direction, self.state.page_size, force_refresh
            )

    def load_next(self, force_refresh: bool = False) -> PaginatorSnapshot:
        with self._lock:
            if self.last_cursor is None:
                app_logger.warning("paginator.load_next.no_cursor", collection=self.collection)
                return self.snapshot()
            if self.state.current_page >= self.page_count - 1:
                app_logger.warning("paginator.load_next.last_page", collection=self.collection,
                                   page=self.state.current_page)
                return self.snapshot()

            next_page = self.state.current_page + 1
            if not force_refresh and self._from_cache(next_page):
                app_logger.info("paginator.load_next", collection=self.collection, page=next_page, source="cache")
                self._notify()
                return self.snapshot()

            try:
                docs = self._fetch(
                    sort_field=self.state.sort_field,
                    direction=self.state.sort_direction,
                    limit=self.state.page_size,
                    start_after=self.last_cursor,
                )
            except Exception:
                self._notify()
                raise

            if not docs:
                app_logger.warning("paginator.load_next.empty", collection=self.collection, page=next_page)
                return self.snapshot()

            first, last = self._cursors_for(docs, self.state.sort_field, self.state.sort_direction)
            self._apply(next_page, docs, first, last, from_cache=False)
            self._save(next_page)
            app_logger.info("paginator.load_next", collection=self.collection, page=next_page, source="store")
            self._notify()
            return self.snapshot()

    def load_prev(self, force_refresh: bool = False) -> PaginatorSnapshot:
        with self._lock:
            if self.state.current_page <= 0:
                app_logger.warning("paginator.load_prev.first_page", collection=self.collection)
                return self.snapshot()
            if self.first_cursor is None:
                app_logger.warning("paginator.load_prev.no_cursor", collection=self.collection)
                return self.snapshot()

            prev_page = self.state.current_page - 1
            if not force_refresh and self._from_cache(prev_page):
                app_logger.info("paginator.load_prev", collection=self.collection, page=prev_page, source="cache")
                self._notify()
                return self.snapshot()

            try:
                docs = self._fetch(
                    sort_field=self.state.sort_field,
                    direction=self.state.sort_direction,
                    limit=self.state.page_size,
                    end_before=self.first_cursor,
                )
            except Exception:
                self._notify()
                raise

            if not docs:
                app_logger.warning("paginator.load_prev.empty", collection=self.collection, page=prev_page)
                return self.snapshot()

            first, last = self._cursors_for(docs, self.state.sort_field, self.state.sort_direction)
            self._apply(prev_page, docs, first, last, from_cache=False)
            self._save(prev_page)
            app_logger.info("paginator.load_prev", collection=self.collection, page=prev_page, source="store")
            self._notify()
            return self.snapshot()

    def go_to_page(self, page: int) -> PaginatorSnapshot:
        """Move one step toward `page`; cursors only allow adjacent moves."""
        with self._lock:
            current = self.state.current_page
            if page == current:
                app_logger.debug("paginator.same_page", collection=self.collection, page=page)
                return self.snapshot()
            if page > current:
                return self.load_next()
            return self.load_prev()

    def page_event(self, page: int, rows: int) -> PaginatorSnapshot:
        """Handle a table pagination event: a new row count wins over a page move."""
        with self._lock:
            if rows != self.state.page_size:
                return self.page_size_changed(rows)
            return self.go_to_page(page)

    def sort_changed(self, sort_field: str) -> PaginatorSnapshot:
        """Toggle direction when re-sorting by the same field, else sort ascending by the new one."""
        with self._lock:
            old = self.state
            self.cache.invalidate_cache(self.collection, old.sort_field, old.sort_direction, old.page_size)
            if sort_field == old.sort_field:
                field_name, direction = old.sort_field, old.sort_direction.toggled()
            else:
                field_name, direction = sort_field, SortDirection.ASC
            app_logger.info("paginator.sort_changed", collection=self.collection,
                            sort_field=field_name, sort_direction=direction.value)
            return self._load_first_page(field_name, direction, old.page_size, force_refresh=True)

    def page_size_changed(self, page_size: int) -> PaginatorSnapshot:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        with self._lock:
            old = self.state
            self.cache.invalidate_cache(self.collection, old.sort_field, old.sort_direction, old.page_size)
            app_logger.info("paginator.page_size_changed", collection=self.collection,
                            old=old.page_size, new=page_size)
            return self._load_first_page(old.sort_field, old.sort_direction, page_size, force_refresh=True)

    def force_refresh(self) -> PaginatorSnapshot:
        """Drop every cached page of the collection and reload page 0 from the store."""
        with self._lock:
            self.cache.invalidate_collection(self.collection)
            app_logger.info("paginator.force_refresh", collection=self.collection)
            return self._load_first_page(
                self.state.sort_field, self.state.sort_direction, self.state.page_size, force_refresh=True
            )

    def invalidate_cache(self) -> int:
        return self.cache.invalidate_collection(self.collection)

    def get_cache_stats(self) -> Dict[str, Any]:
        return self.cache.get_cache_stats()
