"""Health check endpoints: system, backend and source status."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from oaexplorer import __version__
from oaexplorer.api.deps import get_engine
from oaexplorer.backends.base.adapter import BackendHealth
from oaexplorer.core.engine import ExplorerEngine
from oaexplorer.models.response import HealthResponse, SourceInfo

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/health",
    response_model=HealthResponse,
    response_model_by_alias=True,
    summary="System Health Check",
    description="Server version, the configured search backend and the active sources.",
)
async def health_check(
    engine: ExplorerEngine = Depends(get_engine),
) -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=__version__,
        service="oaexplorer",
        backend=engine.adapter.name,
        sources=engine.connector_registry.active_connectors,
    )


@router.get(
    "/health/backend",
    response_model=BackendHealth,
    summary="Backend Health Check",
    description="Probe the search backend and report its status and latency.",
)
async def backend_health(
    engine: ExplorerEngine = Depends(get_engine),
) -> BackendHealth:
    """Check health of the search backend."""
    return await engine.adapter.health_check()


@router.get(
    "/sources",
    response_model=list[SourceInfo],
    response_model_by_alias=True,
    summary="List Sources",
    description="Every built-in source connector, whether it is enabled, and what it can query by.",
)
async def list_sources(
    engine: ExplorerEngine = Depends(get_engine),
) -> list[SourceInfo]:
    return engine.sources()
