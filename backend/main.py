"""
Studio FastAPI application.

Entry point for the page composition service.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend import db
from backend.config import settings
from backend.routes import pages as pages_routes
from studio.kernel.assembly import MemoryStorage, PageAssembly, PageStorage
from studio.kernel.blocks import load_block_library
from studio.kernel.errors import SaveFailed
from studio.kernel.postgres_storage import PostgresStorage

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def _report_save_failure(error: SaveFailed) -> None:
    logger.error("Save failed (retryable=%s): %s", error.retryable, error)


def build_assembly(storage: PageStorage) -> PageAssembly:
    """Assembly with the block library loaded and frozen."""
    registry = load_block_library()
    registry.freeze()
    return PageAssembly(
        storage,
        registry,
        history_limit=settings.HISTORY_LIMIT,
        debounce_s=settings.SAVE_DEBOUNCE_MS / 1000,
        max_retries=settings.SAVE_MAX_RETRIES,
        backoff_s=settings.SAVE_BACKOFF_MS / 1000,
        public_url=settings.PUBLIC_URL,
        on_save_error=_report_save_failure,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Handles startup and shutdown logic:
    - Initialize database pool (if DATABASE_URL is set)
    - Build the page assembly over Postgres or in-memory storage
    - Close database pool on shutdown
    """
    if settings.DATABASE_URL:
        storage: PageStorage = PostgresStorage(await db.init_pool())
        logger.info("Database pool initialized")
    else:
        storage = MemoryStorage()
        logger.warning("DATABASE_URL not set; pages are kept in memory")

    app.state.assembly = build_assembly(storage)

    yield

    await db.close_pool()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Studio",
    docs_url=None,
    redoc_url=None,
    lifespan=lifespan,
)

# Register routes
app.include_router(pages_routes.router)


@app.get("/health")
async def health():
    """Health check endpoint for uptime monitoring."""
    return {"status": "ok"}
