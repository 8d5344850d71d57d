"""
Tender Tracker API - Main Application
"""
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

# Import logging
from utils.logging_config import get_logger

# Setup logger
logger = get_logger(__name__, "app")

# Import configuration
from config.settings import (
    DISABLE_BACKGROUND_LOOPS,
    ENABLE_RETENTION_SWEEP,
    ENABLE_TENDER_SEARCH,
    GOSPLAN_REQUEST_DELAY_MS,
    PORT,
)
from config.db import DatabasePool

# Import API routers
from api import health, tenders, queries

from services.gosplan_client import GosPlanClient
from services.query_catalog import PostgresQueryCatalog
from services.retention_sweeper import RetentionSweeper
from services.search_scheduler import SearchScheduler
from services.tender_store import PostgresTenderStore
from utils.clock import SystemClock
from utils.exceptions import StoreError, ValidationError
from utils.rate_limiter import RateLimiter

# Create FastAPI app
app = FastAPI(
    title="Tender Tracker API",
    version="1.0.0",
    description="Collects GosPlan tenders for saved keyword queries",
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
)


def build_components(target: FastAPI) -> None:
    """Wire the pipeline once per process and hang it off app.state."""
    clock = SystemClock()
    db_pool = DatabasePool()
    rate_limiter = RateLimiter(GOSPLAN_REQUEST_DELAY_MS / 1000.0, clock=clock)
    client = GosPlanClient(rate_limiter)
    store = PostgresTenderStore(db_pool, clock=clock)
    catalog = PostgresQueryCatalog(db_pool, clock=clock)

    target.state.db_pool = db_pool
    target.state.tender_store = store
    target.state.query_catalog = catalog
    target.state.background_loops = {
        "search": SearchScheduler(client, store, catalog, clock=clock),
        "cleanup": RetentionSweeper(store, clock=clock),
    }


build_components(app)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error(f"Store error on {request.method} {request.url.path}: {exc} ({exc.original_error})")
    return JSONResponse(
        status_code=500,
        content={"detail": "Database error. Please try again in a moment."},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    if isinstance(exc, HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# Register API routers
app.include_router(health.router, tags=["Health"])
app.include_router(tenders.router, tags=["Tenders"])
app.include_router(queries.router, tags=["Queries"])


# ============================================================================
# BACKGROUND TASKS - Tender Search & Retention Sweep
# ============================================================================

@app.on_event("startup")
def start_background_tasks():
    """
    Start the search and cleanup loops unless disabled.
    Set DISABLE_BACKGROUND_LOOPS=1 to disable both.
    """
    logger.info("=" * 80)
    logger.info("Tender Tracker API Starting")
    logger.info("Version: 1.0.0")
    logger.info("=" * 80)

    if DISABLE_BACKGROUND_LOOPS:
        logger.info("Background loops DISABLED by environment variable")
        return

    loops = app.state.background_loops
    if ENABLE_TENDER_SEARCH:
        logger.info("Starting tender search loop...")
        loops["search"].start()
    else:
        logger.info("ENABLE_TENDER_SEARCH=0; tender search loop not started")

    if ENABLE_RETENTION_SWEEP:
        logger.info("Starting tender cleanup loop...")
        loops["cleanup"].start()
    else:
        logger.info("ENABLE_RETENTION_SWEEP=0; tender cleanup loop not started")


@app.on_event("shutdown")
def stop_background_tasks():
    for name, loop in app.state.background_loops.items():
        logger.info(f"Stopping {name} loop...")
        loop.stop(timeout=10)
    app.state.db_pool.close_all()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
