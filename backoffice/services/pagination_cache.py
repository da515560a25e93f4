import time
from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from backoffice.services.cache_store import CacheStore
from backoffice.services.cursor import Cursor, SortDirection
from backoffice.utils.log import app_logger


class PartitionKey(NamedTuple):
    """One cache partition: a collection read with one ordering and one page size."""

    collection: str
    sort_field: str
    sort_direction: SortDirection
    page_size: int

    @classmethod
    def of(cls, collection: str, sort_field: str, sort_direction, page_size: int) -> "PartitionKey":
        return cls(collection, sort_field, SortDirection(sort_direction), int(page_size))

    def label(self) -> str:
        return f"{self.collection}:{self.sort_field}:{self.sort_direction.value}:{self.page_size}"


@dataclass
class CachedPage:
    data: List[Dict[str, Any]]
    first_cursor: Optional[Cursor]
    last_cursor: Optional[Cursor]
    total_items: int


class PaginationCache:
    """Memoizes pages of cursor-paginated collection reads.

    Pages are stored per partition (collection, sort field, sort direction,
    page size) and page number. Each page carries its own timestamp and TTL,
    so two pages of the same partition written at different times expire at
    different times. Partition-level metadata (last write, item total) is
    kept only for statistics.

    Partitions are matched structurally: invalidating ``song`` never touches
    ``songs``.
    """

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.time):
        self.ttl = ttl_seconds
        self._pages = CacheStore(default_ttl=ttl_seconds, clock=clock)
        self._partitions: Dict[PartitionKey, Dict[str, Any]] = {}
        self._lock = RLock()

    def get_page(
        self,
        collection: str,
        page_number: int,
        sort_field: str,
        sort_direction: SortDirection,
        page_size: int,
    ) -> Optional[CachedPage]:
        """Return the cached page, or None on a miss (expired pages are dropped)."""
        partition = PartitionKey.of(collection, sort_field, sort_direction, page_size)
        entry = self._pages.get((partition, page_number))
        if entry is None:
            app_logger.debug("pagination_cache.miss", partition=partition.label(), page=page_number)
            return None

        app_logger.debug("pagination_cache.hit", partition=partition.label(), page=page_number)
        return CachedPage(
            data=entry.payload,
            first_cursor=entry.meta.get("first_cursor"),
            last_cursor=entry.meta.get("last_cursor"),
            total_items=entry.meta.get("total_items", 0),
        )

    def set_page(
        self,
        collection: str,
        page_number: int,
        data: List[Dict[str, Any]],
        first_cursor: Optional[Cursor],
        last_cursor: Optional[Cursor],
        sort_field: str,
        sort_direction: SortDirection,
        page_size: int,
        total_items: int,
        ttl_seconds: Optional[float] = None,
    ) -> None:
        """Store or overwrite one page of one partition."""
        partition = PartitionKey.of(collection, sort_field, sort_direction, page_size)
        with self._lock:
            entry = self._pages.set(
                (partition, page_number),
                data,
                ttl=ttl_seconds,
                first_cursor=first_cursor,
                last_cursor=last_cursor,
                total_items=total_items,
            )
            self._partitions[partition] = {"updated_at": entry.stored_at, "total_items": total_items}
        app_logger.debug("pagination_cache.set", partition=partition.label(), page=page_number, items=len(data))

    def get_cache_metadata(
        self, collection: str, sort_field: str, sort_direction: SortDirection, page_size: int
    ) -> Optional[Dict[str, Any]]:
        """Partition metadata without page data, or None when nothing live is cached."""
        partition = PartitionKey.of(collection, sort_field, sort_direction, page_size)
        pages = self._live_pages(partition)
        with self._lock:
            info = self._partitions.get(partition)
        if info is None or not pages:
            return None
        return {
            "collection": partition.collection,
            "sort_field": partition.sort_field,
            "sort_direction": partition.sort_direction.value,
            "page_size": partition.page_size,
            "total_items": info["total_items"],
            "updated_at": info["updated_at"],
            "pages": sorted(pages),
        }

    def _live_pages(self, partition: PartitionKey) -> List[int]:
        now = self._pages.now()
        return [
            key[1] for key, entry in self._pages.items()
            if key[0] == partition and entry.is_valid(now)
        ]

    def invalidate_cache(
        self, collection: str, sort_field: str, sort_direction: SortDirection, page_size: int
    ) -> int:
        """Drop every page of exactly one partition."""
        partition = PartitionKey.of(collection, sort_field, sort_direction, page_size)
        with self._lock:
            removed = self._pages.delete_where(lambda key: key[0] == partition)
            self._partitions.pop(partition, None)
        app_logger.info("pagination_cache.invalidate", partition=partition.label(), pages=removed)
        return removed

    def invalidate_collection(self, collection: str) -> int:
        """Drop every partition of `collection`, whatever its ordering or page size."""
        with self._lock:
            removed = self._pages.delete_where(lambda key: key[0].collection == collection)
            for partition in [p for p in self._partitions if p.collection == collection]:
                del self._partitions[partition]
        app_logger.info("pagination_cache.invalidate_collection", collection=collection, pages=removed)
        return removed

    def has_collection(self, collection: str) -> bool:
        return collection in self.get_cache_stats()["collections"]

    def clear_all(self) -> None:
        with self._lock:
            self._pages.clear()
            self._partitions.clear()
        app_logger.info("pagination_cache.clear_all")

    def cleanup(self) -> int:
        """Remove expired pages and forget partitions left without pages."""
        with self._lock:
            removed = self._pages.sweep()
            alive = {key[0] for key, _ in self._pages.items()}
            for partition in [p for p in self._partitions if p not in alive]:
                del self._partitions[partition]
        if removed:
            app_logger.info("pagination_cache.cleanup", removed=removed)
        return removed

    def get_cache_stats(self) -> Dict[str, Any]:
        now = self._pages.now()
        pages_by_partition: Dict[PartitionKey, int] = {}
        for key, entry in self._pages.items():
            if entry.is_valid(now):
                pages_by_partition[key[0]] = pages_by_partition.get(key[0], 0) + 1

        with self._lock:
            totals = {p: info["total_items"] for p, info in self._partitions.items()}

        stats: Dict[str, Any] = {
            "total_partitions": len(pages_by_partition),
            "total_pages": sum(pages_by_partition.values()),
            "collections": {},
        }
        for partition, pages in pages_by_partition.items():
            col = stats["collections"].setdefault(partition.collection, {"pages": 0, "total_items": 0})
            col["pages"] += pages
            col["total_items"] = max(col["total_items"], totals.get(partition, 0))
        return stats
