"""
FastAPI application factory.

Assembles the app, registers all routers under ``/api``, installs the
error handlers and wires up lifecycle events.  Database schema is
managed by Alembic — NOT create_all.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marketplace.controllers.auth_controller import router as auth_router
from marketplace.controllers.user_controller import router as user_router
from marketplace.core.config import settings
from marketplace.core.database import engine
from marketplace.core.errors import register_exception_handlers
from marketplace.models import Base  # noqa: F401 — ensures all models are registered
from marketplace.services import scheduler

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

API_PREFIX = "/api"


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Payload-Encrypted"],
    )
    register_exception_handlers(app)

    # ── Register routers ─────────────────────────────────────────────
    app.include_router(user_router, prefix=API_PREFIX)
    app.include_router(auth_router, prefix=API_PREFIX)
    if settings.DEBUG:
        from marketplace.controllers.crypto_controller import router as crypto_router

        app.include_router(crypto_router, prefix=API_PREFIX)
        logger.warning("DEBUG is on: crypto helper routes are mounted.")

    # ── Startup / Shutdown ───────────────────────────────────────────
    @app.on_event("startup")
    async def on_startup() -> None:
        """Start the session cleanup job.

        NOTE: Database schema is managed by Alembic migrations.
        Run `alembic upgrade head` before starting the app.
        """
        if settings.SESSION_CLEANUP_ENABLED:
            scheduler.start_scheduler()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        scheduler.shutdown_scheduler()
        await engine.dispose()
        logger.info("Database engine disposed.")

    # ── Health check ─────────────────────────────────────────────────
    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
