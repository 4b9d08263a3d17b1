"""Query models: index search parameters and connector queries."""

from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from oaexplorer.models.record import OAStatus, Source, normalize_doi

_DOI_QUERY_RE = re.compile(r"^(https?://)?(dx\.)?doi\.org/|^doi:|^10\.", re.IGNORECASE)


def is_doi_query(text: str | None) -> bool:
    """Whether a free-text query is really a DOI."""
    return bool(text) and bool(_DOI_QUERY_RE.search(text.strip()))


class SortKey(str, Enum):
    """Result orderings offered by every search backend."""

    RELEVANCE = "relevance"
    DATE = "date"
    DATE_ASC = "date_asc"
    CITATIONS = "citations"
    CITATIONS_ASC = "citations_asc"
    AUTHOR = "author"
    AUTHOR_DESC = "author_desc"
    VENUE = "venue"
    VENUE_DESC = "venue_desc"
    TITLE = "title"
    TITLE_DESC = "title_desc"


class CamelModel(BaseModel):
    """Base model whose JSON form uses camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SearchFilters(CamelModel):
    """Facet and range filters applied to an index search."""

    source: list[Source] = Field(default_factory=list, description="Restrict to these sources")
    year_from: int | None = Field(default=None, description="Lowest publication year (inclusive)")
    year_to: int | None = Field(default=None, description="Highest publication year (inclusive)")
    oa_status: list[OAStatus] = Field(default_factory=list, description="Restrict to these OA statuses")
    venue: list[str] = Field(default_factory=list, description="Restrict to these venues")
    publisher: list[str] = Field(default_factory=list, description="Restrict to these publishers")
    topics: list[str] = Field(default_factory=list, description="Restrict to these topics")
    open_access_only: bool = Field(default=False, description="Only published or preprint records")

    @model_validator(mode="after")
    def _check_years(self) -> SearchFilters:
        if self.year_from is not None and self.year_to is not None and self.year_from > self.year_to:
            raise ValueError("yearFrom must not be greater than yearTo")
        return self

    def equality_filters(self) -> dict[str, list[str]]:
        """Non-range filters as ``indexed field -> accepted values``.

        ``open_access_only`` narrows ``oaStatus`` to published/preprint,
        intersected with any explicit status filter.
        """
        statuses = [s.value for s in self.oa_status]
        if self.open_access_only:
            open_statuses = [OAStatus.PUBLISHED.value, OAStatus.PREPRINT.value]
            statuses = [s for s in statuses if s in open_statuses] if statuses else open_statuses
            if not statuses:
                # Explicit statuses excluded every open one; match nothing.
                statuses = ["__none__"]
        filters = {
            "source": [s.value for s in self.source],
            "oaStatus": statuses,
            "venue": list(self.venue),
            "publisher": list(self.publisher),
            "topics": list(self.topics),
        }
        return {field: values for field, values in filters.items() if values}


class SearchParams(CamelModel):
    """A single search request against the index."""

    q: str = Field(default="", max_length=2000, description="Free-text query")
    doi: str | None = Field(default=None, description="Exact DOI lookup")
    filters: SearchFilters = Field(default_factory=SearchFilters, description="Filters")
    page: int = Field(default=1, ge=1, description="1-based page number")
    page_size: int = Field(default=20, ge=1, le=100, description="Hits per page")
    sort: SortKey = Field(default=SortKey.RELEVANCE, description="Result ordering")

    def effective_doi(self) -> str | None:
        """The DOI to match exactly, from ``doi`` or a DOI-shaped ``q``."""
        if self.doi:
            return normalize_doi(self.doi)
        if is_doi_query(self.q):
            return normalize_doi(self.q)
        return None

    def text_query(self) -> str:
        """Free text sent to the backend; empty when ``q`` is a DOI."""
        if not self.doi and is_doi_query(self.q):
            return ""
        return self.q.strip()


class ConnectorQuery(CamelModel):
    """Generic query handed to every source connector."""

    doi: str | None = Field(default=None, description="DOI to look up")
    title_or_keywords: str | None = Field(default=None, description="Keyword or title search")
    year_from: int | None = Field(default=None, description="Lowest publication year")
    year_to: int | None = Field(default=None, description="Highest publication year")
    max_results: int = Field(default=50, ge=1, le=200, description="Per-source result cap")

    @property
    def is_empty(self) -> bool:
        return not (self.doi and self.doi.strip()) and not (
            self.title_or_keywords and self.title_or_keywords.strip()
        )

    @property
    def normalized_doi(self) -> str | None:
        return normalize_doi(self.doi)

    @property
    def keywords(self) -> str:
        return (self.title_or_keywords or "").strip()
