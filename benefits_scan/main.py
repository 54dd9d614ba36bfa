"""
FastAPI application with database pool lifecycle management.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from benefits_scan.config import settings
from benefits_scan.db.pool import db_pool
from benefits_scan.features.eligibility import build_default_registry, eligibility_router
from benefits_scan.features.eligibility.repository import build_postgres_storage
from benefits_scan.infrastructure.observability.logging import get_logger, setup_logging
from benefits_scan.routes import health

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    await db_pool.initialize()
    app.state.storage = build_postgres_storage()
    app.state.rule_registry = build_default_registry()

    logger.info("All services initialized successfully", services=["database_pool"])

    yield

    logger.info("Application shutting down")
    try:
        await db_pool.close()
    except Exception as e:
        logger.error("Error closing database pool", error=str(e))


app = FastAPI(
    title="Benefits Scan",
    description="Monthly benefit eligibility reconciliation service",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(eligibility_router, prefix="/api")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    logger.info(
        "HTTP request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
