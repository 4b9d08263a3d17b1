"""Paper endpoint: one record by id, resolved from the index or its source."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from oaexplorer.api.deps import get_engine
from oaexplorer.api.endpoints.search import SEARCH_ERROR_DETAIL
from oaexplorer.backends.base.exceptions import BackendError
from oaexplorer.core.engine import ExplorerEngine
from oaexplorer.models.response import PaperResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/paper/{record_id:path}",
    response_model=PaperResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    summary="Get Paper",
    description=(
        "Look up a record by its `source:sourceId` id. The index is tried "
        "first, then the source itself. Ids may contain `/` (DOIs do)."
    ),
    responses={
        404: {"description": "No record with this id"},
        502: {"description": "The search backend failed"},
    },
)
async def get_paper(
    record_id: str,
    engine: ExplorerEngine = Depends(get_engine),
) -> PaperResponse:
    try:
        paper = await engine.get_paper(record_id)
    except BackendError as e:
        logger.error("Paper lookup failed for %s: %s", record_id, e, exc_info=True)
        raise HTTPException(status_code=502, detail=SEARCH_ERROR_DETAIL) from e
    if paper is None:
        raise HTTPException(status_code=404, detail="Paper not found")
    return paper
