from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, status

from backoffice.api.dependencies import get_paginators
from backoffice.core.exceptions.exceptions import (
    FetchError,
    InvalidCursorError,
    InvalidSortFieldError,
    SessionNotFoundError,
    UnknownCollectionError,
)
from backoffice.middleware.security import any_role
from backoffice.schemas.pagination import OpenSessionRequest, PageEventRequest, PageOut, SortRequest
from backoffice.services.paginator import CollectionPaginator, PaginatorSnapshot
from backoffice.services.paginator_registry import PaginatorRegistry
from backoffice.utils.log import app_logger

router = APIRouter(tags=["Pagination"], dependencies=[Depends(any_role)])


def _page_out(session_id: str, snap: PaginatorSnapshot) -> PageOut:
    return PageOut(session_id=session_id, **{k: v for k, v in snap.to_dict().items()
                                              if k in PageOut.model_fields})


def _run(session_id: str, action: Callable[[], PaginatorSnapshot]) -> PageOut:
    """Run a paginator action and map its failures to HTTP errors."""
    try:
        return _page_out(session_id, action())
    except (UnknownCollectionError, SessionNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except (InvalidSortFieldError, InvalidCursorError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except FetchError as e:
        # the previous page stays in place; the caller may retry
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)


def _session(registry: PaginatorRegistry, session_id: str) -> CollectionPaginator:
    try:
        return registry.get(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)


@router.post("/collections/{collection}/sessions", response_model=PageOut, status_code=status.HTTP_201_CREATED)
def open_session(
    collection: str,
    payload: OpenSessionRequest,
    registry: PaginatorRegistry = Depends(get_paginators),
) -> PageOut:
    """Open a pagination session on `collection` and load its first page."""
    try:
        session_id, paginator = registry.open(collection, payload.sort_field, payload.page_size)
    except UnknownCollectionError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except InvalidSortFieldError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    app_logger.info("api.sessions.open", collection=collection, session_id=session_id)
    try:
        return _run(session_id, paginator.load_initial)
    except HTTPException:
        registry.close(session_id)
        raise


@router.get("/sessions/{session_id}", response_model=PageOut)
def get_session(session_id: str, registry: PaginatorRegistry = Depends(get_paginators)) -> PageOut:
    return _page_out(session_id, _session(registry, session_id).snapshot())


@router.post("/sessions/{session_id}/next", response_model=PageOut)
def next_page(session_id: str, force_refresh: bool = False,
              registry: PaginatorRegistry = Depends(get_paginators)) -> PageOut:
    paginator = _session(registry, session_id)
    return _run(session_id, lambda: paginator.load_next(force_refresh))


@router.post("/sessions/{session_id}/prev", response_model=PageOut)
def prev_page(session_id: str, force_refresh: bool = False,
              registry: PaginatorRegistry = Depends(get_paginators)) -> PageOut:
    paginator = _session(registry, session_id)
    return _run(session_id, lambda: paginator.load_prev(force_refresh))


@router.post("/sessions/{session_id}/page", response_model=PageOut)
def page_event(session_id: str, payload: PageEventRequest,
               registry: PaginatorRegistry = Depends(get_paginators)) -> PageOut:
    """Data table page event: a changed `rows` resizes pages, otherwise move toward `page`."""
    paginator = _session(registry, session_id)
    return _run(session_id, lambda: paginator.page_event(payload.page, payload.rows))


@router.post("/sessions/{session_id}/sort", response_model=PageOut)
def sort(session_id: str, payload: SortRequest,
         registry: PaginatorRegistry = Depends(get_paginators)) -> PageOut:
    paginator = _session(registry, session_id)
    # validate before the old partition is dropped
    try:
        paginator.store.sort_column(paginator.collection, payload.sort_field)
    except InvalidSortFieldError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    return _run(session_id, lambda: paginator.sort_changed(payload.sort_field))


@router.post("/sessions/{session_id}/refresh", response_model=PageOut)
def refresh(session_id: str, registry: PaginatorRegistry = Depends(get_paginators)) -> PageOut:
    paginator = _session(registry, session_id)
    return _run(session_id, paginator.force_refresh)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def close_session(session_id: str, registry: PaginatorRegistry = Depends(get_paginators)) -> None:
    if not registry.close(session_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="session not found")
