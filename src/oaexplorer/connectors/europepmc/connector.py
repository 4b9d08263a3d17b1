"""Europe PMC connector: REST search with ``resultType=core``."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from oaexplorer.connectors.base.connector import (
    SourceConnector,
    clean_text,
    is_pdf_url,
    language_code,
    parse_year,
)
from oaexplorer.models.query import ConnectorQuery
from oaexplorer.models.record import OARecord, OAStatus, Source, utc_now_iso


class _Vendor(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class _Author(_Vendor):
    full_name: str | None = Field(default=None, alias="fullName")
    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")

    @property
    def display_name(self) -> str | None:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.full_name or self.last_name


class _AuthorList(_Vendor):
    author: list[_Author] = Field(default_factory=list)


class _FullTextUrl(_Vendor):
    url: str
    document_style: str | None = Field(default=None, alias="documentStyle")
    availability_code: str | None = Field(default=None, alias="availabilityCode")


class _FullTextUrlList(_Vendor):
    full_text_url: list[_FullTextUrl] = Field(default_factory=list, alias="fullTextUrl")


class _Journal(_Vendor):
    title: str | None = None


class _JournalInfo(_Vendor):
    journal: _Journal | None = None


class _KeywordList(_Vendor):
    keyword: list[str] = Field(default_factory=list)


class _Result(_Vendor):
    id: str
    source: str | None = None
    doi: str | None = None
    title: str | None = None
    author_string: str | None = Field(default=None, alias="authorString")
    author_list: _AuthorList | None = Field(default=None, alias="authorList")
    pub_year: str | None = Field(default=None, alias="pubYear")
    journal_title: str | None = Field(default=None, alias="journalTitle")
    journal_info: _JournalInfo | None = Field(default=None, alias="journalInfo")
    abstract_text: str | None = Field(default=None, alias="abstractText")
    is_open_access: str | None = Field(default=None, alias="isOpenAccess")
    pmcid: str | None = None
    full_text_url_list: _FullTextUrlList | None = Field(default=None, alias="fullTextUrlList")
    keyword_list: _KeywordList | None = Field(default=None, alias="keywordList")
    language: str | None = None
    first_publication_date: str | None = Field(default=None, alias="firstPublicationDate")
    first_index_date: str | None = Field(default=None, alias="firstIndexDate")


class _ResultList(_Vendor):
    result: list[_Result] = Field(default_factory=list)


class _SearchResponse(_Vendor):
    hit_count: int = Field(default=0, alias="hitCount")
    result_list: _ResultList = Field(default_factory=_ResultList, alias="resultList")


class EuropePmcConnector(SourceConnector):
    """Connector for the `Europe PMC REST API`_.

    .. _Europe PMC REST API: https://europepmc.org/RestfulWebService
    """

    source = Source.EUROPEPMC
    default_base_url = "https://www.ebi.ac.uk/europepmc/webservices/rest"

    async def _search(self, query: ConnectorQuery) -> list[OARecord]:
        text = f'DOI:"{query.normalized_doi}"' if query.doi else f"({query.keywords})"
        bounds = self._year_bounds(query)
        if bounds:
            text = f"{text} AND PUB_YEAR:[{bounds[0]} TO {bounds[1]}]"
        return await self._query(text, query.max_results)

    async def _fetch(self, source_id: str) -> OARecord | None:
        records = await self._query(f"EXT_ID:{source_id}", 1)
        return records[0] if records else None

    async def _query(self, text: str, page_size: int) -> list[OARecord]:
        resp = await self.client.get(
            "/search",
            params={"query": text, "format": "json", "pageSize": page_size, "resultType": "core"},
        )
        resp.raise_for_status()
        payload = _SearchResponse.model_validate(resp.json())
        return [r for item in payload.result_list.result if (r := self._normalize(item))]

    def _normalize(self, item: _Result) -> OARecord | None:
        authors = [
            name
            for author in (item.author_list.author if item.author_list else [])
            if (name := author.display_name)
        ]
        if not authors and item.author_string:
            authors = [a.strip().rstrip(".") for a in item.author_string.split(",") if a.strip()]

        links = item.full_text_url_list.full_text_url if item.full_text_url_list else []
        pdf_url = next(
            (
                link.url
                for link in links
                if (link.document_style or "").lower() == "pdf" or is_pdf_url(link.url)
            ),
            None,
        )
        if pdf_url is None and item.pmcid:
            pdf_url = f"https://europepmc.org/articles/{item.pmcid}?pdf=render"
        html_url = next((link.url for link in links if (link.document_style or "").lower() == "html"), None)

        if item.source == "PPR":
            oa_status = OAStatus.PREPRINT
        elif item.is_open_access == "Y":
            oa_status = OAStatus.PUBLISHED
        else:
            oa_status = OAStatus.OTHER

        venue = item.journal_info.journal.title if item.journal_info and item.journal_info.journal else None
        return self._record(
            item.id,
            doi=item.doi,
            title=clean_text(item.title),
            authors=authors,
            year=parse_year(item.pub_year),
            venue=venue or item.journal_title,
            abstract=clean_text(item.abstract_text),
            oa_status=oa_status,
            best_pdf_url=pdf_url,
            landing_page=html_url or f"https://europepmc.org/article/{item.source or 'MED'}/{item.id}",
            topics=item.keyword_list.keyword if item.keyword_list else [],
            language=language_code(item.language),
            created_at=item.first_publication_date or item.first_index_date or utc_now_iso(),
        )
