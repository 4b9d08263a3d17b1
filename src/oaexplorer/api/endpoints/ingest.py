"""Ingest endpoint: federated fetch from the sources, then indexing."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from oaexplorer.api.deps import get_engine
from oaexplorer.backends.base.exceptions import BackendError
from oaexplorer.core.engine import ExplorerEngine
from oaexplorer.models.response import IngestRequest, IngestResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/ingest",
    response_model=IngestResponse,
    response_model_by_alias=True,
    summary="Ingest from Sources",
    description=(
        "Query the enabled sources concurrently for a DOI or keywords, merge "
        "the results by DOI and upsert them into the index. Sources that fail "
        "or time out are reported in `sources` and contribute nothing."
    ),
    responses={
        422: {"description": "Validation error: neither `q` nor `doi` given"},
        502: {"description": "The search backend rejected the records"},
    },
)
async def ingest(
    request: IngestRequest,
    engine: ExplorerEngine = Depends(get_engine),
) -> IngestResponse:
    try:
        return await engine.ingest(request)
    except BackendError as e:
        logger.error("Ingest failed: %s", e, exc_info=True)
        raise HTTPException(status_code=502, detail=f"Indexing failed: {e!s}") from e
