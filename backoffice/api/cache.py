from typing import Any, Dict

from fastapi import APIRouter, Depends, status

from backoffice.api.dependencies import get_events_aggregator, get_pagination_cache
from backoffice.middleware.security import Principal, admin_only, cache_writers
from backoffice.schemas.pagination import InvalidateRequest
from backoffice.services.events_aggregator import EventsAggregator
from backoffice.services.pagination_cache import PaginationCache
from backoffice.utils.log import app_logger

router = APIRouter(prefix="/cache", tags=["Cache"])


@router.get("/stats")
def cache_stats(
    cache: PaginationCache = Depends(get_pagination_cache),
    events: EventsAggregator = Depends(get_events_aggregator),
    _: Principal = Depends(cache_writers),
) -> Dict[str, Any]:
    """Pagination cache statistics and the state of the events caches."""
    return {"pagination": cache.get_cache_stats(), "events": events.cache_status()}


@router.get("/collections/{collection}")
def collection_cached(
    collection: str,
    cache: PaginationCache = Depends(get_pagination_cache),
    _: Principal = Depends(cache_writers),
) -> Dict[str, Any]:
    return {"collection": collection, "cached": cache.has_collection(collection)}


@router.post("/invalidate")
def invalidate(
    payload: InvalidateRequest,
    cache: PaginationCache = Depends(get_pagination_cache),
    events: EventsAggregator = Depends(get_events_aggregator),
    principal: Principal = Depends(cache_writers),
) -> Dict[str, Any]:
    """Signal that records of `collections` were created, updated or deleted."""
    removed = {name: cache.invalidate_collection(name) for name in payload.collections}
    if "events" in payload.collections:
        events.invalidate_internal()
    app_logger.info("api.cache.invalidate", collections=payload.collections, by=principal.uid)
    return {"invalidated": removed}


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def clear_all(
    cache: PaginationCache = Depends(get_pagination_cache),
    events: EventsAggregator = Depends(get_events_aggregator),
    principal: Principal = Depends(admin_only),
) -> None:
    cache.clear_all()
    events.invalidate()
    app_logger.info("api.cache.clear_all", by=principal.uid)
