"""API Router: search, paper, ingest, export, health and source endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from oaexplorer.api.endpoints.export import router as export_router
from oaexplorer.api.endpoints.health import router as health_router
from oaexplorer.api.endpoints.ingest import router as ingest_router
from oaexplorer.api.endpoints.paper import router as paper_router
from oaexplorer.api.endpoints.search import router as search_router

router = APIRouter(tags=["api"])
router.include_router(search_router)
router.include_router(paper_router)
router.include_router(ingest_router)
router.include_router(export_router)
router.include_router(health_router)
