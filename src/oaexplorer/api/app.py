"""FastAPI application factory and lifecycle management."""

from __future__ import annotations

import logging
import os
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from oaexplorer import __version__
from oaexplorer.api.deps import set_engine
from oaexplorer.api.router import router as api_router
from oaexplorer.config.settings import Settings
from oaexplorer.core.engine import ExplorerEngine
from oaexplorer.observability.logging import setup_logging

REQUEST_ID_HEADER = "X-Request-ID"
CONFIG_FILE_ENV = "OAX_CONFIG_FILE"
LOG_LEVEL_ENV = "OAX_LOG_LEVEL"

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings. If None, loads the YAML file named by
            ``OAX_CONFIG_FILE`` (or ./oaexplorer-config.yaml when present),
            else the environment.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = _default_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Manage application lifecycle (startup/shutdown)."""
        setup_logging(settings.observability)
        logger.info("Starting Open Access Explorer v%s", __version__)

        engine = ExplorerEngine(settings)
        await engine.initialize()
        set_engine(engine)

        app.state.engine = engine

        logger.info("Open Access Explorer is ready to serve requests on port %d", settings.server.port)
        yield

        logger.info("Shutting down Open Access Explorer...")
        await engine.shutdown()
        set_engine(None)
        logger.info("Open Access Explorer shutdown complete")

    app = FastAPI(
        title="Open Access Explorer",
        description=(
            "Metasearch over open-access scholarly sources: federated ingest "
            "from arXiv, Europe PMC, PubMed, CORE, DOAJ and more into one "
            "pluggable full-text index."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )

    @app.middleware("http")
    async def bind_request_id(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Bind the caller's request id (or a fresh one) for the request's logs."""
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        with structlog.contextvars.bound_contextvars(request_id=request_id):
            response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    app.include_router(api_router, prefix="/api")

    return app


def _default_settings() -> Settings:
    """Settings for an app built by the server process itself (reload or worker mode)."""
    config_file = os.environ.get(CONFIG_FILE_ENV)
    yaml_path = Path(config_file) if config_file else Path("oaexplorer-config.yaml")
    if config_file or yaml_path.exists():
        settings = Settings.from_yaml(yaml_path)
    else:
        settings = Settings()
    if log_level := os.environ.get(LOG_LEVEL_ENV):
        settings.observability.log_level = log_level
    return settings
