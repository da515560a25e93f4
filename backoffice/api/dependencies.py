from fastapi import Request

from backoffice.services.container import Services
from backoffice.services.document_store import DocumentStore
from backoffice.services.events_aggregator import EventsAggregator
from backoffice.services.pagination_cache import PaginationCache
from backoffice.services.paginator_registry import PaginatorRegistry
from backoffice.services.taxonomy import TaxonomyStore


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_document_store(request: Request) -> DocumentStore:
    return get_services(request).store


def get_pagination_cache(request: Request) -> PaginationCache:
    return get_services(request).pagination_cache


def get_paginators(request: Request) -> PaginatorRegistry:
    return get_services(request).paginators


def get_events_aggregator(request: Request) -> EventsAggregator:
    return get_services(request).events


def get_taxonomy(request: Request) -> TaxonomyStore:
    return get_services(request).taxonomy
