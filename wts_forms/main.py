import logging
from contextlib import asynccontextmanager
from typing import Any, cast

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from wts_forms.core import logging_config  # noqa: F401  configures structlog on import
from wts_forms.core.config import settings
from wts_forms.core.errors import init_sentry
from wts_forms.core.scheduler import create_scheduler, start_scheduler, stop_scheduler
from wts_forms.api import admin, forms, health
from wts_forms.db import create_db_and_tables, engine
from wts_forms.middleware.context import RequestContextMiddleware
from wts_forms.services.document_store import DocumentStoreClient
from wts_forms.services.monitoring import ResilienceMonitor
from wts_forms.services.pipelines import build_pipelines, build_storage

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("=" * 50)
    logger.info(f"{settings.PROJECT_NAME} API Starting ({settings.ENVIRONMENT})")
    logger.info(f"Queue storage: {settings.QUEUE_STORAGE_BACKEND}")
    logger.info("=" * 50)

    init_sentry(settings.SENTRY_DSN, environment=settings.ENVIRONMENT)

    if settings.QUEUE_STORAGE_BACKEND == "database":
        create_db_and_tables()

    http_client = httpx.AsyncClient(timeout=settings.DOCUMENT_STORE_TIMEOUT)
    store_client = DocumentStoreClient(
        settings.DOCUMENT_STORE_URL,
        api_key=settings.DOCUMENT_STORE_API_KEY,
        client=http_client,
    )
    scheduler = create_scheduler()
    pipelines = build_pipelines(settings, build_storage(settings, engine), store_client, scheduler=scheduler)
    monitor = ResilienceMonitor(pipelines, interval=settings.MONITOR_INTERVAL_SECONDS, scheduler=scheduler)

    app.state.pipelines = pipelines
    app.state.monitor = monitor

    if settings.RUN_SYNC:
        start_scheduler(scheduler, pipelines, monitor)
    else:
        logger.info("RUN_SYNC is false - skipping queue sync and monitoring in this process.")

    try:
        yield
    finally:
        # Shutdown
        stop_scheduler(scheduler, pipelines, monitor)
        await http_client.aclose()


app = FastAPI(title=settings.PROJECT_NAME, openapi_url=f"{settings.API_V1_STR}/openapi.json", lifespan=lifespan)

# Set all CORS enabled origins
origins = [
    "http://localhost:5173",  # Vite default
    "http://localhost:3000",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:3000",
    settings.FRONTEND_URL,  # Dynamic from env
]

# Clean up duplicates and empty strings
origins = list(set([o for o in origins if o]))

app.add_middleware(cast(Any, RequestContextMiddleware))

# GZip compression for responses > 1KB
app.add_middleware(cast(Any, GZipMiddleware), minimum_size=1000)

app.add_middleware(
    cast(Any, CORSMiddleware),
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

app.include_router(forms.router, prefix=f"{settings.API_V1_STR}/forms", tags=["forms"])
app.include_router(health.router, prefix=f"{settings.API_V1_STR}/health", tags=["health"])
app.include_router(admin.router, prefix=f"{settings.API_V1_STR}/admin", tags=["admin"])


@app.get("/health")
def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy"}
