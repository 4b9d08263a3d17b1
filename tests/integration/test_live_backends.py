"""Integration tests for the Typesense and Meilisearch adapters against live servers."""

from __future__ import annotations

import pytest

from oaexplorer.backends.base.adapter import SearchAdapter
from oaexplorer.backends.meilisearch.adapter import MeilisearchAdapter
from oaexplorer.backends.typesense.adapter import TypesenseAdapter
from oaexplorer.core.seed import sample_records
from oaexplorer.models.query import SearchFilters, SearchParams, SortKey
from oaexplorer.models.record import OARecord

pytestmark = [pytest.mark.integration]

_DOI_RECORD = OARecord(
    source="doaj",
    source_id="a1b2c3",
    doi="10.5555/oa.2019.42",
    title="Data Sharing Practices in Open Repositories",
    authors=["Eve Brown"],
    year=2019,
    venue="PLOS ONE",
    oa_status="published",
    topics=["data sharing"],
    created_at="2019-05-01T00:00:00Z",
)


@pytest.fixture(params=["typesense", "meilisearch"])
async def adapter(request: pytest.FixtureRequest):
    """An initialized adapter over a throwaway index holding the sample records."""
    if request.param == "typesense":
        a: SearchAdapter = TypesenseAdapter(**request.getfixturevalue("typesense_backend"))
    else:
        a = MeilisearchAdapter(**request.getfixturevalue("meilisearch_backend"))
    await a.initialize()
    await a.ensure_index()
    await a.upsert_many([*sample_records(), _DOI_RECORD])
    yield a
    await a.shutdown()


class TestHealth:
    async def test_health_check_returns_healthy(self, adapter: SearchAdapter) -> None:
        health = await adapter.health_check()
        assert health.status == "healthy"
        assert health.latency_ms >= 0


class TestIndexing:
    async def test_round_trip(self, adapter: SearchAdapter) -> None:
        record = await adapter.get_record("doaj:a1b2c3")
        assert record is not None
        assert record.model_dump() == _DOI_RECORD.model_dump()

    async def test_missing_record(self, adapter: SearchAdapter) -> None:
        assert await adapter.get_record("doaj:does-not-exist") is None

    async def test_upsert_is_idempotent(self, adapter: SearchAdapter) -> None:
        await adapter.upsert_many(sample_records())
        result = await adapter.search(SearchParams(q=""))
        assert result.total == 4

    async def test_ensure_index_twice(self, adapter: SearchAdapter) -> None:
        await adapter.ensure_index()


class TestSearch:
    async def test_seeded_keyword_search(self, adapter: SearchAdapter) -> None:
        result = await adapter.search(SearchParams(q="machine learning"))
        ids = {h.id for h in result.hits}
        assert {"arxiv:2301.00001", "europepmc:67890"} <= ids

    async def test_no_results_for_gibberish(self, adapter: SearchAdapter) -> None:
        result = await adapter.search(SearchParams(q="xyzzyspoon999qqq"))
        assert result.total == 0
        assert result.hits == []

    async def test_pagination(self, adapter: SearchAdapter) -> None:
        first = await adapter.search(SearchParams(q="", page=1, page_size=3, sort=SortKey.TITLE))
        second = await adapter.search(SearchParams(q="", page=2, page_size=3, sort=SortKey.TITLE))

        assert first.total == second.total == 4
        assert len(first.hits) == 3
        assert len(second.hits) == 1
        assert not {h.id for h in first.hits} & {h.id for h in second.hits}

    async def test_year_filter(self, adapter: SearchAdapter) -> None:
        result = await adapter.search(SearchParams(q="", filters=SearchFilters(year_to=2020)))
        assert [h.id for h in result.hits] == ["doaj:a1b2c3"]

    async def test_source_filter_and_facets(self, adapter: SearchAdapter) -> None:
        result = await adapter.search(SearchParams(q="", filters=SearchFilters(source=["core", "doaj"])))
        assert result.total == 2
        assert result.facets["source"] == {"core": 1, "doaj": 1}

    async def test_doi_query(self, adapter: SearchAdapter) -> None:
        result = await adapter.search(SearchParams(q="https://doi.org/10.5555/OA.2019.42"))
        assert [h.id for h in result.hits] == ["doaj:a1b2c3"]

    async def test_citations_sort_orders_by_recency(self, adapter: SearchAdapter) -> None:
        result = await adapter.search(SearchParams(q="", sort=SortKey.CITATIONS))
        assert [h.id for h in result.hits] == [
            "europepmc:67890",
            "core:12345",
            "arxiv:2301.00001",
            "doaj:a1b2c3",
        ]

    async def test_date_sort(self, adapter: SearchAdapter) -> None:
        result = await adapter.search(SearchParams(q="", sort=SortKey.DATE_ASC))
        assert result.hits[0].id == "doaj:a1b2c3"
