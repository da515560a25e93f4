from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from backoffice.api.dependencies import get_document_store, get_events_aggregator, get_pagination_cache
from backoffice.core.exceptions.exceptions import FetchError
from backoffice.jobs.clean_events import clean_old_events
from backoffice.middleware.security import Principal, admin_only, any_role
from backoffice.schemas.events import CleanEventsResponse, EventsQuery, EventsResponse
from backoffice.services.document_store import DocumentStore
from backoffice.services.events_aggregator import EventsAggregator
from backoffice.services.pagination_cache import PaginationCache
from backoffice.utils.log import app_logger

router = APIRouter(prefix="/events", tags=["Events"])


@router.get("", response_model=EventsResponse)
def list_events(
    query: Annotated[EventsQuery, Query()],
    aggregator: EventsAggregator = Depends(get_events_aggregator),
    _: Principal = Depends(any_role),
) -> EventsResponse:
    """Stored and OpenAgenda events merged into one list, sorted by start date.

    `cached` tells whether the list came from the cache; `status` is set when
    OpenAgenda could not be reached and the data may be outdated.
    """
    try:
        return aggregator.get_events(query)
    except FetchError as e:
        app_logger.error("api.events.error", error=e.message)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Could not load stored events")


@router.post("/clean", response_model=CleanEventsResponse)
def clean_events(
    store: DocumentStore = Depends(get_document_store),
    aggregator: EventsAggregator = Depends(get_events_aggregator),
    cache: PaginationCache = Depends(get_pagination_cache),
    principal: Principal = Depends(admin_only),
) -> CleanEventsResponse:
    """Delete events past the retention window (admin only)."""
    try:
        deleted = clean_old_events(store=store, pagination_cache=cache)
    except FetchError as e:
        app_logger.error("api.events.clean_error", error=e.message)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to clean events")
    if deleted:
        aggregator.invalidate_internal()
    app_logger.info("api.events.clean", deleted=deleted, by=principal.uid)
    return CleanEventsResponse(status="success", deleted=deleted)
