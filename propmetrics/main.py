"""
Main FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from propmetrics.api import router as api_router
from propmetrics.calculations.cache import MetricsCache
from propmetrics.config import get_settings
from propmetrics.db.database import init_db

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info(f"{settings.app_name} started ({settings.app_env})")
    yield


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Real estate portfolio financial metrics",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)

# One cache per process, handed to services explicitly; entries are keyed by
# snapshot version and dropped on every write.
app.state.metrics_cache = MetricsCache(max_entries=settings.metrics_cache_size)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy", "version": "0.1.0"}


def run():
    """Serve the API with uvicorn using the configured host and port."""
    import uvicorn

    uvicorn.run("propmetrics.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
