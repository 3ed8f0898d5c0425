"""FastAPI application entry point for the Thu Mua Do Cu marketplace.

Lifecycle:
    1. Startup: Initialize logging, database, Redis, create tables (dev mode).
    2. Running: Serve the REST API under /api on a single Uvicorn process.
    3. Shutdown: Close database and Redis connections gracefully.

Run with:
    uvicorn thumua_marketplace.main:app --reload --host 0.0.0.0 --port 5000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from thumua_marketplace import __version__
from thumua_marketplace.config import get_settings
from thumua_marketplace.logging_config import get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    settings = get_settings()

    setup_logging(
        log_level=settings.app_log_level,
        json_logs=not settings.is_development,
    )
    logger = get_logger(__name__)
    logger.info("app.starting", env=settings.app_env, debug=settings.app_debug)

    from thumua_marketplace.infrastructure.database.engine import close_db, init_db

    await init_db()

    from thumua_marketplace.infrastructure.redis_client import close_redis, init_redis

    # Chat history degrades to stateless without Redis
    try:
        await init_redis()
    except Exception as exc:
        logger.warning("app.redis_unavailable", error=str(exc))

    logger.info("app.started", host=settings.app_host, port=settings.app_port)

    yield

    logger.info("app.shutting_down")
    await close_db()
    await close_redis()
    logger.info("app.stopped")


def create_app() -> FastAPI:
    """Application factory: creates and configures the FastAPI app."""
    settings = get_settings()

    app = FastAPI(
        title="Thu Mua Do Cu",
        description="Second-hand marketplace API: product exchanges, VNPay payments, AI consultant.",
        version=__version__,
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    from thumua_marketplace.api.middleware import setup_middleware

    setup_middleware(app)

    from thumua_marketplace.api.routes.chat import router as chat_router
    from thumua_marketplace.api.routes.exchanges import router as exchanges_router
    from thumua_marketplace.api.routes.health import router as health_router
    from thumua_marketplace.api.routes.notifications import router as notifications_router
    from thumua_marketplace.api.routes.payments import router as payments_router

    app.include_router(health_router)
    app.include_router(exchanges_router)
    app.include_router(payments_router)
    app.include_router(notifications_router)
    app.include_router(chat_router)

    return app


# The app instance used by Uvicorn
app = create_app()
