"""Base source connector: abstract interface for open-access repositories.

Every connector turns a generic ``ConnectorQuery`` into the vendor's own
query dialect, calls the vendor API, and maps the payload to ``OARecord``.
Failures never escape: a source that errors, times out, or returns a
malformed payload contributes no records and a log line.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from html import unescape
from typing import Any, ClassVar

import httpx
import structlog
from pydantic import ValidationError

from oaexplorer.models.query import ConnectorQuery
from oaexplorer.models.record import OARecord, Source, normalize_doi

logger = structlog.stdlib.get_logger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")
_YEAR_RE = re.compile(r"(1[89]\d\d|2\d\d\d)")

# Open-ended year ranges are closed with these sentinels.
YEAR_FLOOR = 1800
YEAR_CEILING = 3000


class ConnectorError(Exception):
    """Raised inside a connector when a vendor payload cannot be used."""


_PAYLOAD_ERRORS = (httpx.HTTPError, ConnectorError, ValidationError, ValueError, KeyError, TypeError, AttributeError)


class SourceConnector(ABC):
    """Abstract base class for source connectors.

    Subclasses set ``source`` and ``default_base_url`` and implement
    ``_search``. Those that can look up a single record by its native id
    also implement ``_fetch``. ``supports_doi`` and ``supports_keywords``
    declare which query kinds the vendor answers; ``exact_doi_results`` is
    false for sources whose DOI query returns related works rather than the
    DOI itself.

    Args:
        base_url: Vendor API base URL. Defaults to ``default_base_url``.
        api_key: Vendor API key, for vendors that use one.
        timeout: HTTP timeout in seconds.
        user_agent: ``User-Agent`` header sent with every request.
        contact_email: Contact address some vendors ask for.
        **kwargs: Connector-specific options.
    """

    source: ClassVar[Source]
    default_base_url: ClassVar[str]
    supports_doi: ClassVar[bool] = True
    supports_keywords: ClassVar[bool] = True
    exact_doi_results: ClassVar[bool] = True

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float = 15.0,
        user_agent: str = "oaexplorer/0.1",
        contact_email: str | None = None,
        **kwargs: Any,
    ) -> None:
        self._base_url = (base_url or self.default_base_url).rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._user_agent = user_agent
        self._contact_email = contact_email
        self._options = kwargs
        self._client: httpx.AsyncClient | None = None

    @property
    def name(self) -> str:
        return self.source.value

    @property
    def base_url(self) -> str:
        return self._base_url

    async def initialize(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Create the pooled HTTP client."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout),
            headers=self._headers(),
            follow_redirects=True,
            transport=transport,
        )

    def _headers(self) -> dict[str, str]:
        return {"User-Agent": self._user_agent, "Accept": "*/*"}

    async def shutdown(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise ConnectorError(f"{self.name} connector not initialized.")
        return self._client

    # ── Search ───────────────────────────────────────────────────────────

    async def search(self, query: ConnectorQuery) -> list[OARecord]:
        """Query the source and return normalized records.

        Returns an empty list when the query has neither DOI nor keywords,
        when the source cannot answer this kind of query, or on any failure.
        """
        if query.is_empty:
            return []
        if query.doi and not self.supports_doi and not query.keywords:
            return []
        if not query.doi and not self.supports_keywords:
            return []

        log = logger.bind(connector=self.name)
        try:
            records = await self._search(query)
        except _PAYLOAD_ERRORS as e:
            log.warning("connector_search_failed", error=str(e), error_type=type(e).__name__)
            return []

        if query.doi and self.supports_doi and self.exact_doi_results:
            wanted = query.normalized_doi
            records = [r for r in records if r.doi is not None and r.doi == wanted]

        log.debug("connector_search_complete", count=len(records))
        return records[: query.max_results]

    async def fetch(self, source_id: str) -> OARecord | None:
        """Look up one record by its source-native id, or ``None``."""
        try:
            return await self._fetch(source_id)
        except _PAYLOAD_ERRORS as e:
            logger.warning(
                "connector_fetch_failed",
                connector=self.name,
                source_id=source_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    @abstractmethod
    async def _search(self, query: ConnectorQuery) -> list[OARecord]:
        """Vendor-specific search. May raise; ``search`` contains failures."""

    async def _fetch(self, source_id: str) -> OARecord | None:
        return None

    # ── Normalization helpers ────────────────────────────────────────────

    def _record(self, source_id: str, **fields: Any) -> OARecord | None:
        """Build a record, dropping entries that fail validation."""
        try:
            return OARecord(source=self.source, source_id=source_id, **fields)
        except ValidationError as e:
            logger.debug(
                "connector_entry_skipped",
                connector=self.name,
                source_id=source_id,
                error=str(e),
            )
            return None

    @staticmethod
    def _year_bounds(query: ConnectorQuery) -> tuple[int, int] | None:
        """Closed year range with sentinels, or ``None`` when unfiltered."""
        if query.year_from is None and query.year_to is None:
            return None
        return (
            query.year_from if query.year_from is not None else YEAR_FLOOR,
            query.year_to if query.year_to is not None else YEAR_CEILING,
        )


def clean_text(value: str | None) -> str | None:
    """Strip markup and collapse whitespace."""
    if not value:
        return None
    text = _SPACE_RE.sub(" ", unescape(_TAG_RE.sub(" ", value))).strip()
    return text or None


def parse_year(value: Any) -> int | None:
    """First plausible four-digit year in ``value``."""
    if value is None:
        return None
    if isinstance(value, int):
        return value
    match = _YEAR_RE.search(str(value))
    return int(match.group(1)) if match else None


def is_pdf_url(url: str | None) -> bool:
    return bool(url) and url.lower().split("?", 1)[0].endswith(".pdf")


def doi_url(doi: str | None) -> str | None:
    doi = normalize_doi(doi)
    return f"https://doi.org/{doi}" if doi else None


# ISO 639-2 codes reported by PubMed and Europe PMC.
_ISO_639_2 = {
    "eng": "en",
    "fre": "fr",
    "fra": "fr",
    "ger": "de",
    "deu": "de",
    "spa": "es",
    "ita": "it",
    "por": "pt",
    "rus": "ru",
    "chi": "zh",
    "zho": "zh",
    "jpn": "ja",
    "dut": "nl",
    "nld": "nl",
    "pol": "pl",
    "kor": "ko",
}


def language_code(value: str | None) -> str:
    """Two-letter language code, ``en`` when the source gives no signal."""
    if not value:
        return "en"
    value = value.strip().lower()
    return _ISO_639_2.get(value, value) or "en"
