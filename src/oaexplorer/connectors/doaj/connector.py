"""DOAJ connector: article search over the Directory of Open Access Journals.

Everything DOAJ indexes is published open access.
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
    model_config = ConfigDict(extra="ignore")


class _Identifier(_Vendor):
    type: str | None = None
    id: str | None = None


class _Author(_Vendor):
    name: str | None = None


class _Link(_Vendor):
    url: str | None = None
    type: str | None = None
    content_type: str | None = None


class _Journal(_Vendor):
    title: str | None = None
    publisher: str | None = None
    language: list[str] = Field(default_factory=list)


class _Subject(_Vendor):
    term: str | None = None


class _Bibjson(_Vendor):
    title: str | None = None
    abstract: str | None = None
    year: str | int | None = None
    identifier: list[_Identifier] = Field(default_factory=list)
    author: list[_Author] = Field(default_factory=list)
    link: list[_Link] = Field(default_factory=list)
    journal: _Journal | None = None
    keywords: list[str] = Field(default_factory=list)
    subject: list[_Subject] = Field(default_factory=list)


class _Article(_Vendor):
    id: str
    bibjson: _Bibjson
    created_date: str | None = None
    last_updated: str | None = None


class _SearchResponse(_Vendor):
    total: int = 0
    results: list[_Article] = Field(default_factory=list)


class DoajConnector(SourceConnector):
    """Connector for the `DOAJ API`_.

    .. _DOAJ API: https://doaj.org/api/docs
    """

    source = Source.DOAJ
    default_base_url = "https://doaj.org/api"

    async def _search(self, query: ConnectorQuery) -> list[OARecord]:
        if query.doi:
            text = f'doi:"{query.normalized_doi}"'
        else:
            kw = query.keywords
            text = f"(bibjson.title:({kw}) OR bibjson.abstract:({kw}) OR bibjson.keywords:({kw}))"
        if query.year_from is not None or query.year_to is not None:
            low = query.year_from if query.year_from is not None else "*"
            high = query.year_to if query.year_to is not None else "*"
            text = f"{text} AND bibjson.year:[{low} TO {high}]"

        resp = await self.client.get(
            f"/search/articles/{quote(text, safe='')}",
            params={"page": 1, "pageSize": min(query.max_results, 100)},
        )
        resp.raise_for_status()
        payload = _SearchResponse.model_validate(resp.json())
        return [r for article in payload.results if (r := self._normalize(article))]

    async def _fetch(self, source_id: str) -> OARecord | None:
        resp = await self.client.get(f"/articles/{quote(source_id, safe='')}")
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return self._normalize(_Article.model_validate(resp.json()))

    def _normalize(self, article: _Article) -> OARecord | None:
        bib = article.bibjson
        doi = next((i.id for i in bib.identifier if (i.type or "").lower() == "doi"), None)

        fulltext = [link for link in bib.link if (link.type or "").lower() == "fulltext" and link.url]
        pdf_url = next(
            (
                link.url
                for link in fulltext
                if (link.content_type or "").lower() == "pdf" or is_pdf_url(link.url)
            ),
            None,
        )
        journal = bib.journal
        return self._record(
            article.id,
            doi=doi,
            title=clean_text(bib.title),
            authors=[a.name.strip() for a in bib.author if a.name and a.name.strip()],
            year=parse_year(bib.year),
            venue=journal.title if journal else None,
            abstract=clean_text(bib.abstract),
            oa_status=OAStatus.PUBLISHED,
            best_pdf_url=pdf_url,
            landing_page=doi_url(doi) or (fulltext[0].url if fulltext else f"https://doaj.org/article/{article.id}"),
            topics=bib.keywords + [s.term for s in bib.subject if s.term],
            language=language_code(journal.language[0]) if journal and journal.language else "en",
            publisher=journal.publisher if journal else None,
            created_at=article.created_date or utc_now_iso(),
            updated_at=article.last_updated,
        )
