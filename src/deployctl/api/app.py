"""FastAPI application factory."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from deployctl.api.dependencies.services import ServiceContainer
from deployctl.api.middleware.correlation import CorrelationIdMiddleware
from deployctl.api.routes import health_routes, service_routes
from deployctl.config import APP_VERSION, get_settings, Settings
from deployctl.infrastructure.observability.tracing import setup_tracing


logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings: Settings = app.state.settings
    container: ServiceContainer = app.state.container
    logger.info(
        "application_starting",
        environment=settings.environment.value,
        debug=settings.debug,
        database=settings.database.async_url.split("://", 1)[0],
    )
    setup_tracing(settings.observability)
    await container.initialize()

    yield

    logger.info("application_shutting_down")
    await container.close()
    logger.info("application_shutdown_complete")


def create_app(
    settings: Settings | None = None,
    container: ServiceContainer | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = container.settings if container is not None else get_settings()

    app = FastAPI(
        title="deployctl",
        description="Deployment controller for containerized services",
        version=APP_VERSION,
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.container = container or ServiceContainer(settings)

    # Middleware (order matters - first added = outermost)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    # Routes
    app.include_router(health_routes.router)
    app.include_router(service_routes.router, prefix=settings.api_prefix)

    return app
