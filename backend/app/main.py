# backend/app/main.py
"""
FastAPI application for the scheduling platform.

Mounts the versioned schedule API and the metrics endpoint. Slot
expansion itself runs in Celery workers; the API only enqueues it or,
for explicit expand requests, runs it inline.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator, Dict

from fastapi import APIRouter, FastAPI

from .core.config import settings
from .core.logging_config import configure_logging
from .routes.v1 import prometheus as prometheus_v1, schedule as schedule_v1

API_TITLE = "Doctor Schedule API"
API_DESCRIPTION = "Recurring schedule rules, exceptions and slot expansion"
API_VERSION = "1.0.0"

# Configure logging
configure_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Log startup context; there is no background work owned by the API process."""
    logger.info(
        "Starting %s in %s (timezone=%s, horizon=%d weeks)",
        API_TITLE,
        settings.environment,
        settings.schedule_timezone,
        settings.schedule_expansion_weeks,
    )
    yield
    logger.info("Shutting down %s", API_TITLE)


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)

# Create API v1 router
api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(schedule_v1.router, prefix="/schedule")

app.include_router(api_v1)
app.include_router(prometheus_v1.router, prefix="/metrics")


@app.get("/health")
def health_check() -> Dict[str, str]:
    """Liveness probe."""
    return {"status": "healthy", "environment": settings.environment}
