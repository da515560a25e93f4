import time
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

from backoffice.clients.openagenda_client import GEO_BOX_DEGREES, OpenAgendaClient, build_event_params
from backoffice.core.exceptions.exceptions import ExternalAPIError
from backoffice.schemas.events import EventsQuery, EventsResponse, FormattedEvent, SearchValueType
from backoffice.services.cache_store import CacheStore
from backoffice.services.document_store import DocumentStore
from backoffice.services.event_formatter import (
    format_internal_event,
    format_openagenda_event,
    is_displayable,
    sort_by_date,
)
from backoffice.utils.log import app_logger
from backoffice.utils.normalize import normalize_string


class AgendaSource(NamedTuple):
    uid: str
    prefix: str
    keep_organizer: bool = True


@dataclass(frozen=True)
class EventFilters:
    """Search and geographic filters of an events query."""

    search: Optional[str] = None
    search_type: SearchValueType = SearchValueType.NAME
    lat: Optional[float] = None
    lng: Optional[float] = None

    @classmethod
    def from_query(cls, query: EventsQuery) -> "EventFilters":
        return cls(
            search=query.search_value,
            search_type=query.search_value_type or SearchValueType.NAME,
            lat=query.lat,
            lng=query.long,
        )

    def _matches_search(self, event: FormattedEvent) -> bool:
        term = normalize_string(self.search)
        if self.search_type == SearchValueType.CITY:
            return term in normalize_string(event.city)
        if self.search_type == SearchValueType.COUNTRY:
            return term in normalize_string(event.country)
        if self.search_type == SearchValueType.KEYWORDS:
            wanted = [k.strip() for k in term.split(",") if k.strip()]
            have = [normalize_string(k) for k in event.keywords]
            return any(w in k for w in wanted for k in have)
        return any(
            term in normalize_string(v)
            for v in (event.title, event.description, event.location_name)
        )

    def _matches_geo(self, event: FormattedEvent) -> bool:
        if event.latitude is None or event.longitude is None:
            return False
        return (
            self.lat - GEO_BOX_DEGREES <= event.latitude <= self.lat + GEO_BOX_DEGREES
            and self.lng - GEO_BOX_DEGREES <= event.longitude <= self.lng + GEO_BOX_DEGREES
        )

    def matches(self, event: FormattedEvent) -> bool:
        if self.search and not self._matches_search(event):
            return False
        if self.lat is not None and self.lng is not None and not self._matches_geo(event):
            return False
        return True

    def apply(self, events: List[FormattedEvent], limit: Optional[int] = None) -> List[FormattedEvent]:
        selected = [e for e in events if self.matches(e)]
        return selected[:limit] if limit is not None else selected


class EventsAggregator:
    """Merges stored events with OpenAgenda events behind two TTL caches.

    - the merged cache holds the final list served to unfiltered requests
      (short TTL). It is only written by unfiltered requests where every
      agenda answered, and its last value is kept past expiry as the fallback
      when OpenAgenda is down.
    - the internal cache holds every upcoming stored event, before any
      filtering (long TTL), so the database is queried far less often than
      the external API.

    Concurrent misses may fetch twice; the last writer wins.
    """

    MERGED_KEY = ("events", "merged")
    INTERNAL_KEY = ("events", "internal")

    def __init__(
        self,
        store: DocumentStore,
        client: OpenAgendaClient,
        agendas: List[AgendaSource],
        merged_ttl: float = 600,
        internal_ttl: float = 2700,
        clock: Callable[[], float] = time.time,
        today: Optional[Callable[[], date]] = None,
    ):
        self.store = store
        self.client = client
        self.agendas = agendas
        self.merged_ttl = merged_ttl
        self.internal_ttl = internal_ttl
        self._cache = CacheStore(default_ttl=merged_ttl, clock=clock)
        self._today = today or (lambda: datetime.now(timezone.utc).date())

    def internal_events(self) -> List[FormattedEvent]:
        """All upcoming stored events, from cache when fresh."""
        entry = self._cache.get(self.INTERNAL_KEY)
        if entry is not None:
            app_logger.debug("events.internal_cache.hit", count=len(entry.payload))
            return entry.payload

        app_logger.info("events.internal_cache.miss")
        rows = self.store.list_upcoming_events(datetime.now(timezone.utc))
        events = [format_internal_event(r) for r in rows]
        self._cache.set(self.INTERNAL_KEY, events, ttl=self.internal_ttl)
        app_logger.info("events.internal_cache.updated", count=len(events))
        return events

    def external_events(self, query: EventsQuery) -> Tuple[List[FormattedEvent], bool]:
        """Events of every configured agenda, and whether any agenda failed after its retry.

        Events of the agendas that did answer are returned either way.
        """
        params = build_event_params(query, self.client.api_key, self._today())
        collected: List[FormattedEvent] = []
        failure: Optional[ExternalAPIError] = None

        for agenda in self.agendas:
            try:
                raw_events = self.client.list_events(agenda.uid, params)
            except ExternalAPIError as e:
                app_logger.error("events.agenda_failed", agenda=agenda.prefix.rstrip("_"), error=e.message)
                failure = failure or e
                continue
            collected.extend(format_openagenda_event(r, agenda.prefix, agenda.keep_organizer) for r in raw_events)
            app_logger.info("events.agenda_ok", agenda=agenda.prefix.rstrip("_"), count=len(raw_events))

        return collected, failure is not None

    def get_events(self, query: EventsQuery) -> EventsResponse:
        """Serve the combined events list for `query`.

        Unfiltered requests are answered from the merged cache while it is
        fresh. Otherwise both sources are read, filtered, merged and sorted
        by start date. When OpenAgenda fails after its retry the merged cache
        is not touched and the last merged list (filtered like the request)
        is served with ``status="stale-fallback"``; with no such list the
        internal-only result is served with ``status="stale"``.
        """
        filtered = query.has_filters
        merged = self._cache.peek(self.MERGED_KEY)

        if not filtered and merged is not None and merged.is_valid(self._cache.now()):
            app_logger.info("events.cache.hit")
            return EventsResponse(events=merged.payload, cached=True)

        filters = EventFilters.from_query(query)
        internal = filters.apply(self.internal_events(), limit=query.max_firestore_items)

        external, failed = self.external_events(query)

        combined = sort_by_date(
            [e for e in internal if is_displayable(e)] + [e for e in external if is_displayable(e)]
        )

        if failed:
            app_logger.warning("events.cache.update_skipped", filtered=filtered)
            if merged is not None:
                app_logger.warning("events.cache.fallback", age=round(merged.age(self._cache.now()), 1))
                return EventsResponse(events=filters.apply(merged.payload), cached=True, status="stale-fallback")
            return EventsResponse(events=combined, cached=False, status="stale")

        if not filtered:
            self._cache.set(self.MERGED_KEY, combined, ttl=self.merged_ttl)
            app_logger.info("events.cache.updated", count=len(combined))

        return EventsResponse(events=combined, cached=False)

    def invalidate_internal(self) -> bool:
        dropped = self._cache.delete(self.INTERNAL_KEY)
        app_logger.info("events.internal_cache.invalidated", dropped=dropped)
        return dropped

    def invalidate(self) -> None:
        """Forget both caches, including the fallback list."""
        self._cache.clear()
        app_logger.info("events.cache.cleared")

    def cache_status(self) -> Dict[str, Any]:
        now = self._cache.now()
        status = {}
        for name, key in (("merged", self.MERGED_KEY), ("internal", self.INTERNAL_KEY)):
            entry = self._cache.peek(key)
            status[name] = None if entry is None else {
                "count": len(entry.payload),
                "age_seconds": round(entry.age(now), 1),
                "ttl_seconds": entry.ttl,
                "fresh": entry.is_valid(now),
            }
        return status
