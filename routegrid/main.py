"""RouteGrid — interactive delivery route data grid.

FastAPI entry point with lifespan management, seeding, and CORS.
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api.router import api_router
from .config import get_config
from .database import close_engine, create_tables, get_session_factory
from .dependencies import get_row_store
from .middleware.error_handler import register_error_handlers
from .middleware.request_id import RequestIDMiddleware
from .utils.cache import TTLCache
from .utils.logging import get_logger, setup_logging

config = get_config()
_log_path = setup_logging(
    debug=config.debug,
    log_dir=config.log_dir,
    log_max_bytes=config.log_max_bytes,
    log_backup_count=config.log_backup_count,
    log_file=config.log_file,
)
logger = get_logger("routegrid.main")

# Health endpoint cache (15s TTL)
_health_cache = TTLCache(default_ttl=15.0, max_entries=5)


async def _seed_default_columns(store):
    """Seed the default column set (idempotent)."""
    try:
        await store.seed_default_columns()
    except Exception as e:
        logger.error("seed_columns_failed", error=str(e))


async def _seed_sample_rows(store):
    """Seed sample delivery stops (idempotent, only into an empty table)."""
    try:
        await store.seed_sample_rows()
    except Exception as e:
        logger.error("seed_rows_failed", error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    # --- Startup ---
    logger.info("routegrid_starting", host=config.host, port=config.port, log_file=_log_path)

    if config.edit_secret == "CHANGE_ME_IN_PRODUCTION":
        logger.warning(
            "insecure_edit_secret",
            hint="Set EDIT_SECRET in .env; the edit gate is a convenience lock, not access control",
        )

    await create_tables(config)

    store = get_row_store()
    store.set_db_session_factory(get_session_factory(config))
    await _seed_default_columns(store)
    if config.seed_sample_data:
        await _seed_sample_rows(store)

    logger.info("routegrid_started")
    yield

    # --- Shutdown ---
    await close_engine()
    logger.info("routegrid_stopped")


app = FastAPI(
    title="ROUTEGRID",
    description="Interactive delivery route data grid",
    version=__version__,
    lifespan=lifespan,
)

# Register standard error handlers
register_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in config.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Added last so it wraps every other middleware
app.add_middleware(RequestIDMiddleware)

# Mount API routes
app.include_router(api_router)


@app.get("/")
async def root():
    """Root endpoint — service identity."""
    return {
        "name": config.app_name,
        "version": __version__,
        "status": "operational",
    }


@app.get("/health")
async def health():
    """Health check with row and column counts."""

    async def _compute():
        store = get_row_store()
        try:
            rows = await store.list_rows()
            columns = await store.list_columns()
        except Exception as e:
            logger.error("health_check_failed", error=str(e))
            return {"status": "degraded", "database": "unavailable"}
        return {
            "status": "healthy",
            "database": "ok",
            "rows": len(rows),
            "columns": len(columns),
        }

    return await _health_cache.get_or_compute("health", _compute)


def main():
    """Run the RouteGrid server."""
    uvicorn.run(
        "routegrid.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )


if __name__ == "__main__":
    main()
