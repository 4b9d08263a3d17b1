"""Export endpoint: search results as BibTeX, RIS, CSV or JSON."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from oaexplorer.api.deps import get_engine
from oaexplorer.api.endpoints.search import SEARCH_ERROR_DETAIL
from oaexplorer.backends.base.exceptions import BackendError
from oaexplorer.core.engine import ExplorerEngine
from oaexplorer.core.export import FILE_EXTENSIONS
from oaexplorer.models.response import ExportRequest

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/export",
    summary="Export Search Results",
    description="Run a search and return the page of hits in a citation format.",
    responses={
        200: {
            "description": "Rendered records",
            "content": {
                "application/x-bibtex": {},
                "application/x-research-info-systems": {},
                "text/csv": {},
                "application/json": {},
            },
        },
        502: {"description": "The search backend failed"},
    },
)
async def export(
    request: ExportRequest,
    engine: ExplorerEngine = Depends(get_engine),
) -> Response:
    try:
        body, media_type = await engine.export(request)
    except BackendError as e:
        logger.error("Export failed: %s", e, exc_info=True)
        raise HTTPException(status_code=502, detail=SEARCH_ERROR_DETAIL) from e
    filename = f"oaexplorer-export.{FILE_EXTENSIONS[request.format]}"
    return Response(
        content=body,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
