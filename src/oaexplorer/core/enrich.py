"""Record enrichment from Crossref and Unpaywall.

After federation merges the source records, every record carrying a DOI
is looked up in Crossref (publisher, venue and other bibliographic gaps)
and Unpaywall (best open-access PDF and the version it holds). Enrichment
only fills what a record leaves empty; a lookup that fails, times out or
finds nothing leaves the record as it was.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, ClassVar
from urllib.parse import quote

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from oaexplorer.connectors.base.connector import clean_text
from oaexplorer.models.record import OARecord, OAStatus, normalize_doi

if TYPE_CHECKING:
    from oaexplorer.config.settings import Settings

logger = structlog.stdlib.get_logger(__name__)

_LOOKUP_ERRORS = (httpx.HTTPError, ValidationError, ValueError, KeyError, TypeError)

# Unpaywall location versions, by the OA status they imply.
_VERSION_STATUS = {
    "publishedVersion": OAStatus.PUBLISHED,
    "acceptedVersion": OAStatus.ACCEPTED,
    "submittedVersion": OAStatus.PREPRINT,
}

# Titles that mark a placeholder record rather than a real title.
_PLACEHOLDER_TITLES = {"untitled"}


# ── Vendor payloads ──────────────────────────────────────────────────────


class _Vendor(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class _CrossrefAuthor(_Vendor):
    given: str | None = None
    family: str | None = None
    name: str | None = None

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name.strip()
        return f"{self.given or ''} {self.family or ''}".strip()


class _DateParts(_Vendor):
    date_parts: list[list[int | None]] = Field(default_factory=list, alias="date-parts")

    @property
    def year(self) -> int | None:
        if self.date_parts and self.date_parts[0]:
            return self.date_parts[0][0]
        return None


class CrossrefWork(_Vendor):
    """The parts of a Crossref ``/works/{doi}`` message used for enrichment."""

    doi: str = Field(alias="DOI")
    title: list[str] = Field(default_factory=list)
    author: list[_CrossrefAuthor] = Field(default_factory=list)
    container_title: list[str] = Field(default_factory=list, alias="container-title")
    publisher: str | None = None
    abstract: str | None = None
    published_print: _DateParts | None = Field(default=None, alias="published-print")
    published_online: _DateParts | None = Field(default=None, alias="published-online")

    @property
    def authors(self) -> list[str]:
        return [name for name in (a.display_name for a in self.author) if name]

    @property
    def year(self) -> int | None:
        for published in (self.published_print, self.published_online):
            if published is not None and published.year:
                return published.year
        return None

    @property
    def venue(self) -> str | None:
        return clean_text(self.container_title[0]) if self.container_title else None


class _OaLocation(_Vendor):
    url_for_pdf: str | None = None
    url_for_landing_page: str | None = None
    host_type: str | None = None
    version: str | None = None


class UnpaywallRecord(_Vendor):
    """The parts of an Unpaywall ``/v2/{doi}`` response used for enrichment."""

    doi: str
    is_oa: bool = False
    best_oa_location: _OaLocation | None = None
    oa_locations: list[_OaLocation] = Field(default_factory=list)

    @property
    def pdf_url(self) -> str | None:
        """Best location's PDF, else the first location that has one."""
        if self.best_oa_location and self.best_oa_location.url_for_pdf:
            return self.best_oa_location.url_for_pdf
        return next((loc.url_for_pdf for loc in self.oa_locations if loc.url_for_pdf), None)

    @property
    def landing_page(self) -> str | None:
        return self.best_oa_location.url_for_landing_page if self.best_oa_location else None

    @property
    def oa_status(self) -> OAStatus | None:
        if not self.is_oa:
            return None
        version = self.best_oa_location.version if self.best_oa_location else None
        return _VERSION_STATUS.get(version or "", OAStatus.PUBLISHED)


# ── Clients ──────────────────────────────────────────────────────────────


class _LookupClient:
    """Owns one pooled HTTP client against a DOI lookup API.

    Args:
        base_url: API base URL. Defaults to ``default_base_url``.
        timeout: HTTP timeout in seconds.
        user_agent: ``User-Agent`` header sent with every request.
        contact_email: Contact address for the vendor's polite pool.
    """

    name: ClassVar[str]
    default_base_url: ClassVar[str]

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float = 10.0,
        user_agent: str = "oaexplorer/0.1",
        contact_email: str | None = None,
    ) -> None:
        self._base_url = (base_url or self.default_base_url).rstrip("/")
        self._timeout = timeout
        self._user_agent = user_agent
        self._contact_email = contact_email
        self._client: httpx.AsyncClient | None = None

    async def initialize(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout),
            headers={"User-Agent": self._user_agent, "Accept": "application/json"},
            follow_redirects=True,
            transport=transport,
        )

    async def shutdown(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get_json(self, path: str, params: dict[str, str] | None = None) -> Any | None:
        """GET ``path``; ``None`` when the DOI is unknown to the vendor."""
        if self._client is None:
            raise RuntimeError(f"{self.name} client not initialized.")
        resp = await self._client.get(path, params=params)
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()


class CrossrefClient(_LookupClient):
    """Client for the `Crossref REST API`_ works endpoint.

    .. _Crossref REST API: https://api.crossref.org/swagger-ui/index.html
    """

    name = "crossref"
    default_base_url = "https://api.crossref.org"

    async def work(self, doi: str) -> CrossrefWork | None:
        params = {"mailto": self._contact_email} if self._contact_email else None
        data = await self._get_json(f"/works/{quote(doi, safe='/')}", params=params)
        if data is None:
            return None
        return CrossrefWork.model_validate(data["message"])


class UnpaywallClient(_LookupClient):
    """Client for the `Unpaywall API`_. Every request must carry an email.

    .. _Unpaywall API: https://unpaywall.org/products/api
    """

    name = "unpaywall"
    default_base_url = "https://api.unpaywall.org/v2"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        if not self._contact_email:
            raise ValueError("Unpaywall requires a contact email.")

    async def lookup(self, doi: str) -> UnpaywallRecord | None:
        data = await self._get_json(f"/{quote(doi, safe='/')}", params={"email": self._contact_email or ""})
        if data is None:
            return None
        return UnpaywallRecord.model_validate(data)


# ── Enrichment ───────────────────────────────────────────────────────────


class RecordEnricher:
    """Fill record gaps from Crossref and Unpaywall.

    Args:
        crossref: Crossref client, or ``None`` to skip Crossref.
        unpaywall: Unpaywall client, or ``None`` to skip Unpaywall.
        max_lookups: Distinct DOIs looked up per ``enrich`` call, in record order.
        concurrency: DOIs looked up at once.
    """

    def __init__(
        self,
        crossref: CrossrefClient | None = None,
        unpaywall: UnpaywallClient | None = None,
        max_lookups: int = 20,
        concurrency: int = 10,
    ) -> None:
        self._crossref = crossref
        self._unpaywall = unpaywall
        self._max_lookups = max_lookups
        self._concurrency = concurrency

    @property
    def clients(self) -> list[_LookupClient]:
        return [c for c in (self._crossref, self._unpaywall) if c is not None]

    async def initialize(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        for client in self.clients:
            await client.initialize(transport=transport)

    async def shutdown(self) -> None:
        for client in self.clients:
            await client.shutdown()

    async def enrich(self, records: list[OARecord]) -> list[OARecord]:
        """Records in the same order, with gaps filled where a lookup found data."""
        if not self.clients:
            return records
        dois = list(dict.fromkeys(r.doi for r in records if r.doi))[: self._max_lookups]
        if not dois:
            return records

        semaphore = asyncio.Semaphore(self._concurrency)
        found = dict(zip(dois, await asyncio.gather(*(self._lookup(doi, semaphore) for doi in dois)), strict=True))

        enriched = []
        for record in records:
            work, oa = found.get(record.doi or "", (None, None))
            enriched.append(merge_enrichment(record, work, oa))
        logger.info(
            "enrichment_complete",
            lookups=len(dois),
            enriched=sum(1 for before, after in zip(records, enriched, strict=True) if before is not after),
        )
        return enriched

    async def pdf_url(self, doi: str) -> str | None:
        """Unpaywall's open-access PDF for ``doi``, if any."""
        if self._unpaywall is None:
            return None
        oa = await self._safely(self._unpaywall.name, self._unpaywall.lookup, doi)
        return oa.pdf_url if oa is not None else None

    async def _lookup(
        self, doi: str, semaphore: asyncio.Semaphore
    ) -> tuple[CrossrefWork | None, UnpaywallRecord | None]:
        async with semaphore:
            work, oa = await asyncio.gather(
                self._safely(self._crossref.name, self._crossref.work, doi) if self._crossref else _nothing(),
                self._safely(self._unpaywall.name, self._unpaywall.lookup, doi) if self._unpaywall else _nothing(),
            )
        return work, oa

    async def _safely(self, client: str, lookup: Any, doi: str) -> Any | None:
        try:
            return await lookup(doi)
        except _LOOKUP_ERRORS as e:
            logger.warning(
                "enrichment_lookup_failed",
                client=client,
                doi=doi,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None


async def _nothing() -> None:
    return None


def merge_enrichment(
    record: OARecord,
    work: CrossrefWork | None = None,
    oa: UnpaywallRecord | None = None,
) -> OARecord:
    """``record`` with empty fields filled from the lookups; unchanged when nothing applies."""
    update: dict[str, Any] = {}
    if work is not None and normalize_doi(work.doi) == record.doi:
        title = clean_text(work.title[0]) if work.title else None
        if title and (record.title == record.doi or record.title.lower() in _PLACEHOLDER_TITLES):
            update["title"] = title
        if not record.authors and work.authors:
            update["authors"] = work.authors
        if record.year is None and work.year:
            update["year"] = work.year
        if not record.venue and work.venue:
            update["venue"] = work.venue
        if not record.abstract and (abstract := clean_text(work.abstract)):
            update["abstract"] = abstract
        if not record.publisher and work.publisher:
            update["publisher"] = work.publisher
    if oa is not None and normalize_doi(oa.doi) == record.doi:
        if not record.best_pdf_url and oa.pdf_url:
            update["best_pdf_url"] = oa.pdf_url
        if record.oa_status is None and oa.oa_status is not None:
            update["oa_status"] = oa.oa_status
        if not record.landing_page and oa.landing_page:
            update["landing_page"] = oa.landing_page
    return record.model_copy(update=update) if update else record


def build_enricher(settings: Settings) -> RecordEnricher:
    """Enricher with the lookups ``settings.enrichment`` turns on."""
    enrichment = settings.enrichment
    federation = settings.federation
    options: dict[str, Any] = {
        "timeout": enrichment.timeout,
        "user_agent": federation.user_agent,
        "contact_email": federation.contact_email,
    }
    crossref = CrossrefClient(base_url=enrichment.crossref_url, **options) if enrichment.crossref else None
    unpaywall = None
    if enrichment.unpaywall:
        if federation.contact_email:
            unpaywall = UnpaywallClient(base_url=enrichment.unpaywall_url, **options)
        else:
            logger.info("unpaywall_disabled", reason="federation.contact_email is not set")
    return RecordEnricher(
        crossref,
        unpaywall,
        max_lookups=enrichment.max_lookups,
        concurrency=enrichment.concurrency,
    )
