from datetime import datetime, timedelta, timezone
from typing import Optional

from backoffice.config.settings import settings
from backoffice.services.document_store import DocumentStore
from backoffice.services.pagination_cache import PaginationCache
from backoffice.utils.log import app_logger


def clean_old_events(retention_days: Optional[int] = None, store: Optional[DocumentStore] = None,
                     pagination_cache: Optional[PaginationCache] = None) -> int:
    """
    delete events that ended more than `retention_days` days ago.
    intended to be called by the scheduler once a day, and by the admin endpoint.
    cached pages of the events collection are dropped when anything was deleted.
    returns the number of deleted events.
    """
    days = settings.EVENTS_RETENTION_DAYS if retention_days is None else retention_days
    store = store or DocumentStore()
    cutoff = datetime.now(timezone.utc) - timedelta(days=days)

    app_logger.info("job.clean_events.start", cutoff=cutoff.isoformat(), retention_days=days)
    deleted = store.delete_events_ended_before(cutoff)
    if deleted and pagination_cache is not None:
        pagination_cache.invalidate_collection("events")
    app_logger.info("job.clean_events.done", deleted=deleted)
    return deleted
