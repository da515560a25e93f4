from fastapi import FastAPI
from contextlib import asynccontextmanager
from backoffice.api.cache import router as cache_router
from backoffice.api.collections import router as collections_router
from backoffice.api.data import router as data_router
from backoffice.api.events import router as events_router
from backoffice.config.settings import settings
from backoffice.services.container import build_services
from backoffice.jobs.scheduler import start_scheduler, shutdown_scheduler, add_cache_sweep_job, add_daily_clean_events_job

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup logic
    services = build_services()
    app.state.services = services
    if settings.SCHEDULER_ENABLED:
        start_scheduler()
        add_cache_sweep_job(services)
        # register daily cleanup job (idempotent if already present)
        add_daily_clean_events_job(services)
    yield
    # Shutdown logic
    if settings.SCHEDULER_ENABLED:
        shutdown_scheduler()
    services.events.client.close()

app = FastAPI(title="Trad backoffice", lifespan=lifespan)

# include routes
app.include_router(collections_router)
app.include_router(events_router)
app.include_router(cache_router)
app.include_router(data_router)
