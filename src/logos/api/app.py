"""Logos API: FastAPI application factory.

The app factory creates a FastAPI instance with:
- CORS middleware (configurable origins)
- Lifespan handler that loads config, configures logging/tracing and builds
  the service singletons (database pool, HTTP client)
- Health endpoint at GET /api/health
- Timeline, integration sync, geocoding and search routers
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from logos import __version__
from logos.api.deps import (
    get_config,
    init_config,
    init_services,
    shutdown_services,
    wire_dependencies,
)
from logos.api.middleware import register_error_handlers
from logos.api.routers.geocode import router as geocode_router
from logos.api.routers.integrations import router as integrations_router
from logos.api.routers.search import router as search_router
from logos.api.routers.timeline import router as timeline_router
from logos.config import LogosConfig
from logos.core.logging import configure_logging
from logos.core.telemetry import init_telemetry

logger = logging.getLogger(__name__)


def create_app(
    cors_origins: list[str] | None = None,
    config: LogosConfig | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    cors_origins:
        Allowed CORS origins. Defaults to ["http://localhost:5173"] for
        local Vite dev server.
    config:
        Parsed configuration. When omitted, ``logos.toml`` (or
        ``$LOGOS_CONFIG``) is loaded at startup.
    """
    if cors_origins is None:
        cors_origins = ["http://localhost:5173"]

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Build service singletons on startup; close pools on shutdown."""
        cfg = init_config(config)
        configure_logging(
            level=cfg.logging.level,
            fmt=cfg.logging.format,
            log_root=cfg.logging.log_root,
            process_name=cfg.name,
        )
        init_telemetry(service_name=f"{cfg.name}-api")
        await init_services(cfg)
        wire_dependencies(app)

        yield

        await shutdown_services()

    app = FastAPI(
        title="Logos CRM API",
        version=__version__,
        lifespan=lifespan,
    )
    app.router.redirect_slashes = False

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    app.include_router(timeline_router)
    app.include_router(integrations_router)
    app.include_router(geocode_router)
    app.include_router(search_router)

    @app.get("/api/health")
    async def health():
        try:
            name = get_config().name
        except RuntimeError:
            name = "logos"
        return {"status": "ok", "service": name, "version": __version__}

    return app
