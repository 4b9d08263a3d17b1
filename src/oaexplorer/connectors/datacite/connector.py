"""DataCite connector: DOI metadata from the DataCite REST API."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field, field_validator

from oaexplorer.connectors.base.connector import (
    SourceConnector,
    clean_text,
    doi_url,
    language_code,
    parse_year,
)
from oaexplorer.models.query import ConnectorQuery
from oaexplorer.models.record import OARecord, OAStatus, Source, utc_now_iso

_OPEN_RIGHTS_MARKERS = ("openaccess", "creativecommons.org")


class _Vendor(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class _Title(_Vendor):
    title: str | None = None


class _Creator(_Vendor):
    name: str | None = None
    given_name: str | None = Field(default=None, alias="givenName")
    family_name: str | None = Field(default=None, alias="familyName")

    @property
    def display_name(self) -> str | None:
        if self.given_name and self.family_name:
            return f"{self.given_name} {self.family_name}"
        return self.name


class _Description(_Vendor):
    description: str | None = None
    description_type: str | None = Field(default=None, alias="descriptionType")


class _Subject(_Vendor):
    subject: str | None = None


class _Rights(_Vendor):
    rights: str | None = None
    rights_uri: str | None = Field(default=None, alias="rightsUri")


class _RelatedIdentifier(_Vendor):
    relation_type: str | None = Field(default=None, alias="relationType")
    related_identifier: str | None = Field(default=None, alias="relatedIdentifier")


class _Container(_Vendor):
    title: str | None = None


class _Attributes(_Vendor):
    doi: str
    titles: list[_Title] = Field(default_factory=list)
    creators: list[_Creator] = Field(default_factory=list)
    publisher: str | None = None
    publication_year: int | str | None = Field(default=None, alias="publicationYear")
    descriptions: list[_Description] = Field(default_factory=list)
    subjects: list[_Subject] = Field(default_factory=list)
    url: str | None = None
    language: str | None = None
    rights_list: list[_Rights] = Field(default_factory=list, alias="rightsList")
    related_identifiers: list[_RelatedIdentifier] = Field(default_factory=list, alias="relatedIdentifiers")
    content_url: list[str] | None = Field(default=None, alias="contentUrl")
    container: _Container | None = None
    created: str | None = None
    updated: str | None = None

    @field_validator("publisher", mode="before")
    @classmethod
    def _publisher_name(cls, v: Any) -> Any:
        # Newer API versions return {"name": ...} instead of a string.
        if isinstance(v, dict):
            return v.get("name")
        return v


class _Item(_Vendor):
    id: str
    attributes: _Attributes


class _ListResponse(_Vendor):
    data: list[_Item] = Field(default_factory=list)


class _SingleResponse(_Vendor):
    data: _Item


class DataCiteConnector(SourceConnector):
    """Connector for the `DataCite REST API`_.

    .. _DataCite REST API: https://support.datacite.org/docs/api
    """

    source = Source.DATACITE
    default_base_url = "https://api.datacite.org"

    async def _search(self, query: ConnectorQuery) -> list[OARecord]:
        if query.doi:
            text = f'doi:"{query.normalized_doi}"'
        else:
            text = f"titles.title:({query.keywords})"
        if query.year_from is not None or query.year_to is not None:
            low = query.year_from if query.year_from is not None else "*"
            high = query.year_to if query.year_to is not None else "*"
            text = f"{text} AND publicationYear:[{low} TO {high}]"

        resp = await self.client.get(
            "/dois",
            params={"query": text, "page[size]": min(query.max_results, 1000), "page[number]": 1},
        )
        resp.raise_for_status()
        payload = _ListResponse.model_validate(resp.json())
        return [r for item in payload.data if (r := self._normalize(item))]

    async def _fetch(self, source_id: str) -> OARecord | None:
        resp = await self.client.get(f"/dois/{quote(source_id, safe='/')}")
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return self._normalize(_SingleResponse.model_validate(resp.json()).data)

    def _normalize(self, item: _Item) -> OARecord | None:
        attrs = item.attributes
        published_in = any(r.relation_type == "IsPublishedIn" for r in attrs.related_identifiers)
        open_rights = any(
            marker in (r.rights_uri or "").lower().replace(" ", "")
            for r in attrs.rights_list
            for marker in _OPEN_RIGHTS_MARKERS
        )
        abstract = next(
            (d.description for d in attrs.descriptions if d.description_type == "Abstract"),
            attrs.descriptions[0].description if attrs.descriptions else None,
        )
        pdf_url = next((u for u in attrs.content_url or [] if u.lower().endswith(".pdf")), None)

        return self._record(
            item.id.lower(),
            doi=attrs.doi,
            title=clean_text(next((t.title for t in attrs.titles if t.title), None)),
            authors=[name for c in attrs.creators if (name := c.display_name)],
            year=parse_year(attrs.publication_year),
            venue=attrs.container.title if attrs.container else None,
            abstract=clean_text(abstract),
            oa_status=OAStatus.PUBLISHED if published_in or open_rights else OAStatus.OTHER,
            best_pdf_url=pdf_url,
            landing_page=attrs.url or doi_url(attrs.doi),
            topics=[s.subject for s in attrs.subjects if s.subject],
            language=language_code(attrs.language),
            publisher=attrs.publisher,
            created_at=attrs.created or utc_now_iso(),
            updated_at=attrs.updated,
        )
