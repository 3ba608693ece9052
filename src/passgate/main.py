"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (Redis, identity providers,
database engine). Middleware, CORS, exception handlers and routers all
registered here.

Startup is strict: settings are validated on import (missing secrets
abort), Redis must answer a PING, and identity providers are built once
and stored on app.state for the request dependencies to pick up.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from passgate import __version__
from passgate.api import api_router
from passgate.api.errors import register_exception_handlers
from passgate.config import settings

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    logger.info(
        "passgate.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
        providers=settings.enabled_providers,
    )

    from passgate.cache import close_redis, init_redis
    await init_redis()
    logger.info("passgate.redis_connected")

    from passgate.providers import build_providers
    app.state.providers = build_providers(settings)

    yield

    # Shutdown
    logger.info("passgate.shutdown")

    await close_redis()

    from passgate.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="passgate",
        description="Authentication and session management — credentials, "
        "rotating refresh tokens, federated identity linking",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → CORS → handler

    from passgate.middleware.request_id import RequestIdMiddleware
    from passgate.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    register_exception_handlers(app)

    # Mount API routes
    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: passgate.main:app)
app = create_app()
