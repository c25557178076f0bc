"""FastAPI application entry-point.

Assembles routers, middleware, exception handlers, and lifecycle hooks.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from fieldsales_ai.adapters.inbound.rest.routers import (
    ai_router,
    costs_router,
    health_router,
    providers_router,
    reports_router,
)
from fieldsales_ai.config import Settings, get_settings
from fieldsales_ai.dependencies import ServiceContainer, build_services
from fieldsales_ai.shared.errors import register_exception_handlers
from fieldsales_ai.shared.middleware import (
    LoggingMiddleware,
    MetricsMiddleware,
    RequestIdMiddleware,
)
from fieldsales_ai.shared.observability import configure_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifecycle — startup & shutdown hooks."""
    settings: Settings = app.state.settings
    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.json_logs,
    )
    logger.info(
        "application_starting",
        env=settings.app_env.value,
        storage=settings.storage_backend.value,
    )

    services: ServiceContainer = app.state.services
    await services.startup()
    try:
        yield
    finally:
        await services.shutdown()
        logger.info("application_shutdown")


def create_app(
    settings: Settings | None = None,
    services: ServiceContainer | None = None,
) -> FastAPI:
    """Application factory — creates a fully configured FastAPI instance."""
    if services is not None:
        settings = services.settings
    settings = settings or get_settings()

    app = FastAPI(
        title="Field-Sales AI Orchestrator",
        description=(
            "Routes field-sales assistant prompts to the best upstream LLM vendor, "
            "monitors vendor health, meters token spend and exposes budget alerts."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    # Store settings and services in app state for lifecycle and Depends access
    app.state.settings = settings
    app.state.services = services or build_services(settings)

    # ── Middleware (order matters: last added = outermost) ───
    cors_origins = settings.cors_origins
    allow_all_origins = "*" in cors_origins

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[] if allow_all_origins else cors_origins,
        allow_origin_regex=".*" if allow_all_origins else None,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if settings.prometheus_enabled:
        app.add_middleware(MetricsMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # ── Exception handlers ───────────────────────────────────
    register_exception_handlers(app)

    # ── REST routers (versioned) ─────────────────────────────
    api_v1 = "/api/v1"
    app.include_router(health_router, prefix=api_v1)
    app.include_router(ai_router, prefix=api_v1)
    app.include_router(providers_router, prefix=api_v1)
    app.include_router(costs_router, prefix=api_v1)
    app.include_router(reports_router, prefix=api_v1)

    @app.get("/")
    async def root() -> dict[str, str]:
        return {
            "message": "Field-Sales AI Orchestrator is running",
            "docs": "/docs",
            "health": "/api/v1/health",
        }

    return app


def run() -> None:
    """Console-script entry-point."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "fieldsales_ai.main:create_app",
        factory=True,
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_debug,
    )
