"""Search endpoint: one page of index hits with facet counts."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from oaexplorer.api.deps import get_engine
from oaexplorer.backends.base.exceptions import BackendError
from oaexplorer.core.engine import ExplorerEngine
from oaexplorer.models.query import SearchParams
from oaexplorer.models.response import SearchResponse

logger = logging.getLogger(__name__)

router = APIRouter()

SEARCH_ERROR_DETAIL = "Search error, try again"


@router.post(
    "/search",
    response_model=SearchResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    summary="Search the Index",
    description=(
        "Full-text search over indexed records with equality filters, a year "
        "range, sorting and facet counts.\n\n"
        "A `q` that looks like a DOI (`10.x/...`, `doi:...` or a doi.org URL) "
        "is treated as an exact DOI lookup."
    ),
    responses={
        422: {"description": "Validation error: bad page, page size, sort or year range"},
        502: {"description": "The search backend failed"},
    },
)
async def search(
    params: SearchParams,
    engine: ExplorerEngine = Depends(get_engine),
) -> SearchResponse:
    """Run one index query."""
    try:
        return await engine.search(params)
    except BackendError as e:
        logger.error("Search failed: %s", e, exc_info=True)
        raise HTTPException(status_code=502, detail=SEARCH_ERROR_DETAIL) from e
    except Exception as e:
        logger.error("Search failed unexpectedly: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=f"Search processing failed: {e!s}") from e
