from dataclasses import dataclass

from backoffice.clients.openagenda_client import OpenAgendaClient
from backoffice.config.settings import Settings, settings as default_settings
from backoffice.services.document_store import DocumentStore
from backoffice.services.events_aggregator import AgendaSource, EventsAggregator
from backoffice.services.pagination_cache import PaginationCache
from backoffice.services.paginator_registry import PaginatorRegistry
from backoffice.services.taxonomy import TaxonomyStore


@dataclass
class Services:
    """Process-wide services, built once at startup and shared by all requests."""

    store: DocumentStore
    pagination_cache: PaginationCache
    paginators: PaginatorRegistry
    events: EventsAggregator
    taxonomy: TaxonomyStore


def build_services(settings: Settings = default_settings) -> Services:
    store = DocumentStore()
    pagination_cache = PaginationCache(ttl_seconds=settings.PAGINATION_CACHE_TTL)
    paginators = PaginatorRegistry(store, pagination_cache, ttl_seconds=settings.PAGINATOR_SESSION_TTL)

    client = OpenAgendaClient(
        api_key=settings.OPENAGENDA_API_KEY,
        base_url=settings.OPENAGENDA_BASE_URL,
        timeout=settings.OPENAGENDA_TIMEOUT,
    )
    agendas = [
        AgendaSource(uid=settings.AGENDATRAD_UID, prefix="agendatrad_"),
        # LoCalenDiari puts venue notes in the short description, not the organizer
        AgendaSource(uid=settings.LOCALENDIARI_UID, prefix="localendiari_", keep_organizer=False),
    ]
    events = EventsAggregator(
        store,
        client,
        agendas,
        merged_ttl=settings.EVENTS_CACHE_TTL,
        internal_ttl=settings.INTERNAL_EVENTS_CACHE_TTL,
    )
    return Services(
        store=store,
        pagination_cache=pagination_cache,
        paginators=paginators,
        events=events,
        taxonomy=TaxonomyStore(),
    )
