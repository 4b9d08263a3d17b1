"""bioRxiv and medRxiv connectors: the shared ``api.biorxiv.org`` details API.

The details API has no keyword search. Keyword queries scan a date
interval (the last ``lookback_days`` days, or the requested year range)
page by page and keep preprints whose title or abstract contains every
query term. ``max_pages`` bounds the scan.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field

from oaexplorer.connectors.base.connector import SourceConnector, clean_text, parse_year
from oaexplorer.models.query import ConnectorQuery
from oaexplorer.models.record import OARecord, OAStatus, Source, utc_now_iso

_PAGE_SIZE = 100


class _Vendor(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)


class _Preprint(_Vendor):
    doi: str
    title: str | None = None
    authors: str | None = None
    date: str | None = None
    version: str = "1"
    category: str | None = None
    abstract: str | None = None
    published: str | None = None
    server: str | None = None


class _Message(_Vendor):
    status: str | None = None
    total: int | str | None = None


class _DetailsResponse(_Vendor):
    messages: list[_Message] = Field(default_factory=list)
    collection: list[_Preprint] = Field(default_factory=list)


class BiorxivConnector(SourceConnector):
    """Connector for the `bioRxiv API`_ (``server=biorxiv``).

    Options (``extra``): ``lookback_days`` (default 30), ``max_pages``
    (default 3).

    .. _bioRxiv API: https://api.biorxiv.org/
    """

    source = Source.BIORXIV
    default_base_url = "https://api.biorxiv.org"
    server = "biorxiv"
    display_name = "bioRxiv"

    async def _search(self, query: ConnectorQuery) -> list[OARecord]:
        if query.doi:
            return await self._by_doi(query.normalized_doi or query.doi)

        start, end = self._interval(query)
        terms = [t.lower() for t in query.keywords.split() if t]
        matches: list[_Preprint] = []
        cursor = 0
        for _ in range(int(self._options.get("max_pages", 3))):
            resp = await self.client.get(f"/details/{self.server}/{start}/{end}/{cursor}/json")
            resp.raise_for_status()
            payload = _DetailsResponse.model_validate(resp.json())
            for item in payload.collection:
                haystack = f"{item.title or ''} {item.abstract or ''}".lower()
                if all(term in haystack for term in terms):
                    matches.append(item)
            if len(payload.collection) < _PAGE_SIZE or len(matches) >= query.max_results:
                break
            cursor += len(payload.collection)

        return self._normalize_all(matches)

    async def _fetch(self, source_id: str) -> OARecord | None:
        records = await self._by_doi(source_id)
        return records[0] if records else None

    async def _by_doi(self, doi: str) -> list[OARecord]:
        resp = await self.client.get(f"/details/{self.server}/{doi}/na/json")
        if resp.status_code == 404:
            return []
        resp.raise_for_status()
        return self._normalize_all(_DetailsResponse.model_validate(resp.json()).collection)

    def _interval(self, query: ConnectorQuery) -> tuple[str, str]:
        today = datetime.now(UTC).date()
        if query.year_from is None and query.year_to is None:
            start = today - timedelta(days=int(self._options.get("lookback_days", 30)))
            return start.isoformat(), today.isoformat()
        start = date(query.year_from, 1, 1) if query.year_from is not None else date(2013, 1, 1)
        end = date(query.year_to, 12, 31) if query.year_to is not None else today
        return start.isoformat(), min(end, today).isoformat()

    # ── Normalization ────────────────────────────────────────────────────

    def _normalize_all(self, items: list[_Preprint]) -> list[OARecord]:
        """One record per DOI, keeping the latest version; input order kept."""
        latest: dict[str, _Preprint] = {}
        for item in items:
            current = latest.get(item.doi)
            if current is None or _version(item) > _version(current):
                latest[item.doi] = item
        return [r for item in latest.values() if (r := self._normalize(item))]

    def _normalize(self, item: _Preprint) -> OARecord | None:
        base = f"https://www.{self.server}.org/content/{item.doi}v{item.version}"
        return self._record(
            item.doi,
            doi=item.doi,
            title=clean_text(item.title),
            authors=[a.strip() for a in (item.authors or "").split(";") if a.strip()],
            year=parse_year(item.date),
            venue=self.display_name,
            abstract=clean_text(item.abstract),
            oa_status=OAStatus.PREPRINT,
            best_pdf_url=f"{base}.full.pdf",
            landing_page=base,
            topics=[item.category] if item.category else [],
            created_at=f"{item.date}T00:00:00Z" if item.date else utc_now_iso(),
        )


class MedrxivConnector(BiorxivConnector):
    """Connector for medRxiv, served by the same API as bioRxiv."""

    source = Source.MEDRXIV
    server = "medrxiv"
    display_name = "medRxiv"


def _version(item: _Preprint) -> int:
    return int(item.version) if item.version.isdigit() else 0
