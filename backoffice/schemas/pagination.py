from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class OpenSessionRequest(BaseModel):
    sort_field: str = Field(..., description="Field the collection is ordered by")
    page_size: int = Field(default=10, ge=1, le=100)


class SortRequest(BaseModel):
    sort_field: str


class PageEventRequest(BaseModel):
    """Mirror of a data table pagination event."""
    page: int = Field(..., ge=0)
    rows: int = Field(..., ge=1, le=100)


class PaginationOut(BaseModel):
    current_page: int
    page_size: int
    total_items: int
    page_count: int
    sort_field: str
    sort_direction: str


class PageOut(BaseModel):
    session_id: str
    collection: str
    pagination: PaginationOut
    items: List[Dict[str, Any]]
    first_cursor: Optional[str] = None
    last_cursor: Optional[str] = None
    from_cache: bool = False


class InvalidateRequest(BaseModel):
    collections: List[str] = Field(..., min_length=1)
