"""Shared test fixtures and configuration."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from oaexplorer.backends.base.adapter import BackendHealth, SearchAdapter, SearchResult
from oaexplorer.config.settings import Settings
from oaexplorer.core.seed import sample_records
from oaexplorer.models.query import SearchParams
from oaexplorer.models.record import OARecord


class InMemoryAdapter(SearchAdapter):
    """Dict-backed adapter for engine and API tests.

    Matches ``q`` as a case-insensitive substring of title, abstract or
    topics and applies the source filter; enough to drive the engine
    without a running backend.
    """

    def __init__(self) -> None:
        self.documents: dict[str, OARecord] = {}
        self.initialized = False
        self.index_ensured = False
        self.upsert_calls = 0

    @property
    def name(self) -> str:
        return "memory"

    async def initialize(self) -> None:
        self.initialized = True

    async def shutdown(self) -> None:
        self.initialized = False

    async def ensure_index(self) -> None:
        self.index_ensured = True

    async def upsert_many(self, records: list[OARecord]) -> None:
        if not records:
            return
        self.upsert_calls += 1
        for record in records:
            self.documents[record.id] = record

    async def search(self, params: SearchParams) -> SearchResult:
        text = params.text_query().lower()
        sources = {s.value for s in params.filters.source}
        doi = params.effective_doi()
        hits = []
        for record in self.documents.values():
            haystack = " ".join([record.title, record.abstract or "", *record.topics]).lower()
            if text and text not in haystack:
                continue
            if sources and record.source.value not in sources:
                continue
            if doi and record.doi != doi:
                continue
            hits.append(record)
        start = (params.page - 1) * params.page_size
        return SearchResult(
            hits=hits[start : start + params.page_size],
            total=len(hits),
            facets={"source": {s: sum(1 for h in hits if h.source.value == s) for s in {h.source.value for h in hits}}},
        )

    async def get_record(self, record_id: str) -> OARecord | None:
        return self.documents.get(record_id)

    async def health_check(self) -> BackendHealth:
        return BackendHealth(status="healthy" if self.initialized else "unhealthy")


@pytest.fixture
def settings() -> Settings:
    """Create a test Settings instance with defaults."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        debug=True,
        pdf={"verify_links": False},
        enrichment={"crossref": False, "unpaywall": False},
        observability={"log_format": "console"},
    )


@pytest.fixture
def memory_adapter() -> InMemoryAdapter:
    return InMemoryAdapter()


@pytest.fixture
def seed_records() -> list[OARecord]:
    """The three built-in sample records."""
    return sample_records()


@pytest.fixture
def make_record() -> Callable[..., OARecord]:
    """Factory for records with sensible defaults; keyword args override."""

    def _make(source: str = "arxiv", source_id: str = "2401.00001", **fields: Any) -> OARecord:
        data: dict[str, Any] = {
            "source": source,
            "source_id": source_id,
            "title": "A Study of Open Access Search",
            "authors": ["Ada Lovelace"],
            "year": 2024,
            "created_at": "2024-01-01T00:00:00Z",
        }
        data.update(fields)
        return OARecord(**data)

    return _make
