from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from backoffice.config.settings import settings
from backoffice.utils.log import app_logger
from backoffice.jobs.clean_events import clean_old_events
from backoffice.services.database import engine

# Use the application's SQLAlchemy engine so APScheduler persists jobs.
# Jobs bound to live in-process objects (cache sweeps) cannot be pickled and
# go to the memory store instead.
_scheduler = BackgroundScheduler(jobstores={
    'default': SQLAlchemyJobStore(engine=engine),
    'memory': MemoryJobStore(),
})

CACHE_SWEEP_JOB_ID = "cache_sweep"
CLEAN_EVENTS_JOB_ID = "clean_events_daily"


def start_scheduler():
    if not _scheduler.running:
        _scheduler.start()
        app_logger.info("scheduler: started")


def shutdown_scheduler():
    if _scheduler.running:
        _scheduler.shutdown(wait=True)
        app_logger.info("scheduler: shutdown")


def sweep_caches(services):
    """drop expired pagination pages and abandoned paginator sessions."""
    pages = services.pagination_cache.cleanup()
    sessions = services.paginators.sweep()
    app_logger.debug("scheduler: cache sweep", pages=pages, sessions=sessions)


def add_cache_sweep_job(services, interval_seconds: int = None):
    """
    sweep the in-memory caches every `interval_seconds`.
    the job is replaced on every startup since it holds references to live services.
    """
    interval = interval_seconds or settings.CACHE_SWEEP_INTERVAL
    _scheduler.add_job(sweep_caches, 'interval', seconds=interval, args=[services],
                       id=CACHE_SWEEP_JOB_ID, jobstore='memory', replace_existing=True)
    app_logger.info(f"scheduler: added cache sweep job every {interval}s")


# live services for jobs kept in the persistent store, which only hold a function reference
_services = None


def clean_events_job():
    """daily cleanup; also drops the caches that may still show the deleted events."""
    if _services is None:
        return clean_old_events()
    deleted = clean_old_events(store=_services.store, pagination_cache=_services.pagination_cache)
    if deleted:
        _services.events.invalidate_internal()
    return deleted


def add_daily_clean_events_job(services=None):
    """Schedule `clean_events_job` once per day (persistent jobstore).

    If the job already exists, this is a no-op.
    """
    global _services
    _services = services
    if _scheduler.get_job(CLEAN_EVENTS_JOB_ID):
        app_logger.info(f"scheduler: clean events job already exists {CLEAN_EVENTS_JOB_ID}")
        return

    _scheduler.add_job(clean_events_job, 'interval', days=1, id=CLEAN_EVENTS_JOB_ID, replace_existing=False)
    app_logger.info(f"scheduler: added daily clean events job {CLEAN_EVENTS_JOB_ID}")
