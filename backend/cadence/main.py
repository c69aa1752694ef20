"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from cadence.api import router as api_router
from cadence.config import get_settings
from cadence.db.session import close_db, init_db
from cadence.logging_config import configure_logging
from cadence.middleware.logging import LoggingMiddleware
from cadence.middleware.request_id import RequestIDMiddleware

logger = structlog.get_logger()
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown events."""
    configure_logging(settings)
    logger.info(
        "app_starting",
        version=settings.app_version,
        environment=settings.environment,
        civil_timezone=settings.civil_timezone,
    )
    await init_db()
    logger.info("database_initialized")

    yield

    logger.info("app_stopping")
    await close_db()
    logger.info("database_closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Personal todos with recurrence, reminders, subtasks and tags",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    # Last added runs first
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

    app.include_router(api_router, prefix=settings.api_prefix)

    return app


app = create_app()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint for load balancers."""
    return {"status": "healthy", "version": settings.app_version}
