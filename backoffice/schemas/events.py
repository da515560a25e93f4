from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class SearchValueType(str, Enum):
    NAME = "name"
    CITY = "city"
    COUNTRY = "country"
    KEYWORDS = "keywords"


class EventLink(BaseModel):
    url: str
    type: str = "other"


class FormattedEvent(BaseModel):
    """Common shape of an event, whichever source it came from."""
    id: str
    title: str
    description: Optional[str] = None
    date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    image: Optional[str] = None
    location_name: Optional[str] = None
    city: str = ""
    country: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    organizer: Optional[str] = None
    links: List[EventLink] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)


class EventsQuery(BaseModel):
    lat: Optional[float] = Field(default=None, ge=-90, le=90, description="Latitude of the search center")
    long: Optional[float] = Field(default=None, ge=-180, le=180, description="Longitude of the search center")
    search_value: Optional[str] = Field(default=None, description="Free text; comma separated for keywords search")
    # left unset unless the caller sends it; filtering treats unset as name search
    search_value_type: Optional[SearchValueType] = None
    max_open_agenda_items: int = Field(default=20, ge=1, le=100)
    max_firestore_items: int = Field(default=20, ge=1, le=100)
    is_calendar: bool = False

    @field_validator("search_value")
    @classmethod
    def _non_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("search value cannot be empty or contain only whitespace")
        return v

    @property
    def has_filters(self) -> bool:
        return bool(
            self.lat is not None
            or self.long is not None
            or self.search_value
            or self.search_value_type is not None
            or self.is_calendar
        )


CacheStatus = Literal["stale", "stale-fallback"]


class EventsResponse(BaseModel):
    events: List[FormattedEvent]
    cached: bool
    status: Optional[CacheStatus] = None


class CleanEventsResponse(BaseModel):
    status: str
    deleted: int
