"""CORE connector: v3 works search (aggregated repository full texts).

CORE requires an API key; without one the connector answers nothing.
"""

from __future__ import annotations

from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field

from oaexplorer.connectors.base.connector import (
    SourceConnector,
    clean_text,
    doi_url,
    is_pdf_url,
    language_code,
    parse_year,
)
from oaexplorer.models.query import ConnectorQuery
from oaexplorer.models.record import OARecord, OAStatus, Source, utc_now_iso


class _Vendor(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class _Author(_Vendor):
    name: str | None = None


class _Journal(_Vendor):
    title: str | None = None


class _Language(_Vendor):
    code: str | None = None
    name: str | None = None


class _Link(_Vendor):
    type: str | None = None
    url: str | None = None


class _Work(_Vendor):
    id: int | str
    doi: str | None = None
    title: str | None = None
    authors: list[_Author] = Field(default_factory=list)
    abstract: str | None = None
    year_published: int | str | None = Field(default=None, alias="yearPublished")
    journals: list[_Journal] = Field(default_factory=list)
    publisher: str | None = None
    download_url: str | None = Field(default=None, alias="downloadUrl")
    links: list[_Link] = Field(default_factory=list)
    language: _Language | None = None
    field_of_study: str | None = Field(default=None, alias="fieldOfStudy")
    document_type: list[str] | str | None = Field(default=None, alias="documentType")
    created_date: str | None = Field(default=None, alias="createdDate")
    deposited_date: str | None = Field(default=None, alias="depositedDate")
    updated_date: str | None = Field(default=None, alias="updatedDate")


class _SearchResponse(_Vendor):
    total_hits: int = Field(default=0, alias="totalHits")
    results: list[_Work] = Field(default_factory=list)


class CoreConnector(SourceConnector):
    """Connector for the `CORE API v3`_.

    .. _CORE API v3: https://api.core.ac.uk/docs/v3
    """

    source = Source.CORE
    default_base_url = "https://api.core.ac.uk/v3"

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def _search(self, query: ConnectorQuery) -> list[OARecord]:
        if not self._api_key:
            return []
        text = f'doi:"{query.normalized_doi}"' if query.doi else f"({query.keywords})"
        if query.year_from is not None:
            text = f"{text} AND yearPublished>={query.year_from}"
        if query.year_to is not None:
            text = f"{text} AND yearPublished<={query.year_to}"

        resp = await self.client.get("/search/works", params={"q": text, "limit": query.max_results})
        resp.raise_for_status()
        payload = _SearchResponse.model_validate(resp.json())
        return [r for work in payload.results if (r := self._normalize(work))]

    async def _fetch(self, source_id: str) -> OARecord | None:
        if not self._api_key:
            return None
        resp = await self.client.get(f"/works/{quote(source_id, safe='')}")
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return self._normalize(_Work.model_validate(resp.json()))

    def _normalize(self, work: _Work) -> OARecord | None:
        core_id = str(work.id)
        pdf_url = work.download_url if is_pdf_url(work.download_url) else None
        if pdf_url is None:
            pdf_url = next(
                (link.url for link in work.links if link.type == "download" and link.url),
                work.download_url,
            )
        landing_page = next(
            (link.url for link in work.links if link.type == "display" and link.url),
            None,
        )

        topics = [work.field_of_study] if work.field_of_study else []
        return self._record(
            core_id,
            doi=work.doi,
            title=clean_text(work.title),
            authors=[a.name.strip() for a in work.authors if a.name and a.name.strip()],
            year=parse_year(work.year_published),
            venue=next((j.title for j in work.journals if j.title), None),
            abstract=clean_text(work.abstract),
            oa_status=OAStatus.PUBLISHED if pdf_url else OAStatus.OTHER,
            best_pdf_url=pdf_url,
            landing_page=landing_page or doi_url(work.doi) or f"https://core.ac.uk/works/{core_id}",
            topics=topics,
            language=language_code(work.language.code if work.language else None),
            publisher=work.publisher,
            created_at=work.deposited_date or work.created_date or utc_now_iso(),
            updated_at=work.updated_date,
        )
