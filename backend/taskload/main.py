"""FastAPI application entry point."""

import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from taskload.api import router as api_router
from taskload.config import get_settings
from taskload.db.session import close_db, create_all, init_db
from taskload.exception_handlers import setup_exception_handlers
from taskload.middleware.logging import LoggingMiddleware
from taskload.middleware.request_id import RequestIDMiddleware
from taskload.rate_limit import limiter, rate_limit_exceeded_handler
from taskload.realtime.deadlines import deadline_warning_loop
from taskload.services.cache import cache

logger = structlog.get_logger()
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    logger.info("Starting TaskLoad API", version=settings.app_version)
    await init_db()
    if settings.environment in ("development", "test") or settings.is_sqlite:
        await create_all()
    logger.info("Database connection initialized")

    deadline_task = None
    if settings.deadline_warnings_enabled:
        deadline_task = asyncio.create_task(deadline_warning_loop())

    yield

    # Shutdown
    logger.info("Shutting down TaskLoad API")
    if deadline_task is not None:
        deadline_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await deadline_task
    await cache.close()
    await close_db()
    logger.info("Database connection closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Task and project management with realtime chat and time tracking",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    setup_exception_handlers(app)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # Add middleware (order matters - last added is first executed)
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    # Trust proxy headers (X-Forwarded-Proto, X-Forwarded-For) from nginx
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

    # Include API router
    app.include_router(api_router, prefix=settings.api_prefix)

    return app


app = create_app()


@app.get("/health")
@limiter.exempt
async def health_check() -> dict[str, str]:
    """Health check endpoint for load balancers."""
    return {"status": "healthy", "version": settings.app_version}
