"""Full-text link resolution for the paper detail view.

Candidate URLs are tried in order; with verification on, the first one
answering a ``HEAD`` request with a ``application/pdf`` content type wins.
"""

from __future__ import annotations

import httpx
import structlog

from oaexplorer.models.record import OARecord, Source
from oaexplorer.models.response import PdfInfo, PdfStatus

logger = structlog.stdlib.get_logger(__name__)


def pdf_candidates(record: OARecord, oa_pdf_url: str | None = None) -> list[str]:
    """Candidate full-text URLs, best first, without duplicates.

    ``oa_pdf_url`` is an open-access PDF found outside the record (Unpaywall);
    it ranks right after the record's own ``best_pdf_url``.
    """
    candidates = [record.best_pdf_url, oa_pdf_url]
    if record.source == Source.ARXIV:
        candidates.append(f"https://arxiv.org/pdf/{record.source_id}")
    elif record.source == Source.EUROPEPMC and record.source_id.upper().startswith("PMC"):
        candidates.append(f"https://europepmc.org/articles/{record.source_id}/pdf")
    elif record.source == Source.CORE:
        candidates.append(f"https://core.ac.uk/download/pdf/{record.source_id}.pdf")
    candidates.append(record.landing_page)
    return list(dict.fromkeys(url for url in candidates if url))


class PdfResolver:
    """Pick the best PDF link for a record.

    Args:
        verify_links: Probe candidates; when off the first candidate is used.
        timeout: Per-probe timeout in seconds.
        user_agent: User-Agent sent with probes.
        client: Pre-built HTTP client (tests). Owned by the caller.
    """

    def __init__(
        self,
        verify_links: bool = True,
        timeout: float = 5.0,
        user_agent: str = "oaexplorer",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._verify = verify_links
        self._timeout = timeout
        self._user_agent = user_agent
        self._client = client
        self._owns_client = False

    async def initialize(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            headers={"User-Agent": self._user_agent},
            follow_redirects=True,
            transport=transport,
        )
        self._owns_client = True

    async def shutdown(self) -> None:
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None
            self._owns_client = False

    async def resolve(self, record: OARecord, oa_pdf_url: str | None = None) -> PdfInfo:
        candidates = pdf_candidates(record, oa_pdf_url)
        if not candidates:
            return PdfInfo(status=PdfStatus.NOT_FOUND)
        if not self._verify:
            return PdfInfo(url=candidates[0], status=PdfStatus.OK)

        failures = 0
        for url in candidates:
            try:
                if await self._looks_like_pdf(url):
                    return PdfInfo(url=url, status=PdfStatus.OK)
            except httpx.HTTPError as e:
                failures += 1
                logger.debug("pdf_probe_failed", record_id=record.id, url=url, error=str(e))

        if failures == len(candidates):
            return PdfInfo(status=PdfStatus.ERROR)
        return PdfInfo(status=PdfStatus.NOT_FOUND)

    async def _looks_like_pdf(self, url: str) -> bool:
        if self._client is None:
            raise RuntimeError("PDF resolver not initialized.")
        resp = await self._client.head(url, follow_redirects=True)
        content_type = resp.headers.get("content-type", "")
        return resp.status_code == 200 and content_type.lower().startswith("application/pdf")
