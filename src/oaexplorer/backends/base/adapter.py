"""Base search adapter: abstract interface for the index backends.

Every backend must implement this interface. The adapter is responsible for:
  1. Creating its index with the canonical field set (idempotently)
  2. Bulk-replacing records keyed by ``id``
  3. Translating ``SearchParams`` into the vendor query and normalizing
     the response to ``SearchResult``
  4. Direct lookup of one record and health reporting

The module also holds what the three backends share: the indexed field
lists and the generic sort specification each adapter renders in its own
syntax.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from oaexplorer.models.query import SearchParams, SortKey
from oaexplorer.models.record import OARecord

logger = logging.getLogger(__name__)

SEARCHABLE_FIELDS = ["title", "authors", "abstract", "topics"]
FACET_FIELDS = ["source", "oaStatus", "year", "venue", "topics", "publisher"]
FILTERABLE_FIELDS = [*FACET_FIELDS, "doi"]
SORTABLE_FIELDS = ["year", "createdAt", "title", "venue", "firstAuthor"]
MAX_FACET_VALUES = 100

# Field names carried by indexed documents in addition to the record itself.
DERIVED_FIELDS = ("firstAuthor",)

# (field, descending) pairs. Every ordering ends in createdAt desc; the
# citation orderings have no indexed field and reduce to that tiebreaker.
_TIEBREAK = ("createdAt", True)

SORT_SPECS: dict[SortKey, tuple[tuple[str, bool], ...]] = {
    SortKey.RELEVANCE: (_TIEBREAK,),
    SortKey.DATE: (("year", True), _TIEBREAK),
    SortKey.DATE_ASC: (("year", False), _TIEBREAK),
    SortKey.CITATIONS: (_TIEBREAK,),
    SortKey.CITATIONS_ASC: (_TIEBREAK,),
    SortKey.AUTHOR: (("firstAuthor", False), _TIEBREAK),
    SortKey.AUTHOR_DESC: (("firstAuthor", True), _TIEBREAK),
    SortKey.VENUE: (("venue", False), _TIEBREAK),
    SortKey.VENUE_DESC: (("venue", True), _TIEBREAK),
    SortKey.TITLE: (("title", False), _TIEBREAK),
    SortKey.TITLE_DESC: (("title", True), _TIEBREAK),
}


class BackendHealth(BaseModel):
    """Health status of the search backend."""

    status: str = Field(description="Health status: healthy, degraded, unhealthy")
    latency_ms: int = Field(default=0, description="Latency of the health check in ms")
    last_check: str | None = Field(default=None, description="ISO timestamp of the health check")
    message: str | None = Field(default=None, description="Additional health message")


class SearchResult(BaseModel):
    """Backend-independent search result."""

    hits: list[OARecord] = Field(default_factory=list, description="Records on the requested page")
    total: int = Field(default=0, description="Total matching records")
    facets: dict[str, dict[str, int]] = Field(default_factory=dict, description="Facet counts")
    took_ms: int = Field(default=0, description="Backend round-trip time in ms")


class SearchAdapter(ABC):
    """Abstract base class for search backend adapters.

    Adapters hold one pooled HTTP client created in ``initialize`` and are
    safe to share between concurrent requests. Writes are assumed to come
    from a single writer per index.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend kind (e.g. 'typesense')."""

    @abstractmethod
    async def initialize(self) -> None:
        """Open connections and verify the backend is reachable."""

    @abstractmethod
    async def shutdown(self) -> None:
        """Release connections."""

    @abstractmethod
    async def ensure_index(self) -> None:
        """Create the index with the canonical schema if it does not exist.

        Raises:
            ConnectionError: If the backend is unreachable.
            IndexingError: If the backend refuses to create the index.
        """

    @abstractmethod
    async def upsert_many(self, records: list[OARecord]) -> None:
        """Insert or fully replace records keyed by ``id``.

        No-op on empty input.

        Raises:
            IndexingError: If any document is rejected.
        """

    @abstractmethod
    async def search(self, params: SearchParams) -> SearchResult:
        """Run a paginated, filtered, sorted search.

        Raises:
            QueryError: If the backend rejects or fails the query.
        """

    @abstractmethod
    async def get_record(self, record_id: str) -> OARecord | None:
        """Fetch one record by id, or ``None`` when it is not indexed.

        Raises:
            QueryError: On backend failure other than not-found.
        """

    @abstractmethod
    async def health_check(self) -> BackendHealth:
        """Report backend health."""


# ── Shared helpers ───────────────────────────────────────────────────────


def to_index_document(record: OARecord) -> dict[str, Any]:
    """Record document plus derived sort fields."""
    doc = record.to_document()
    doc["firstAuthor"] = record.authors[0] if record.authors else ""
    return doc


def records_from_hits(hits: list[dict[str, Any]], backend: str) -> list[OARecord]:
    """Validate backend documents back into records.

    Documents that no longer validate are skipped with a warning rather
    than failing the whole page.
    """
    records = []
    for hit in hits:
        try:
            records.append(OARecord.model_validate(hit))
        except ValidationError as e:
            logger.warning("Skipping invalid %s document %s: %s", backend, hit.get("id"), e)
    return records


def numeric_bounds(params: SearchParams) -> tuple[int | None, int | None]:
    return params.filters.year_from, params.filters.year_to


def equality_filters(params: SearchParams) -> dict[str, list[str]]:
    """Field -> accepted values, including the exact-DOI clause."""
    filters = params.filters.equality_filters()
    doi = params.effective_doi()
    if doi:
        filters["doi"] = [doi]
    return filters
