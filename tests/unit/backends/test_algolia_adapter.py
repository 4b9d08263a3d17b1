"""Tests for the Algolia adapter."""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

from oaexplorer.backends.algolia.adapter import AlgoliaAdapter
from oaexplorer.backends.base.exceptions import ConfigurationError, IndexingError, QueryError
from oaexplorer.models.query import SearchFilters, SearchParams, SortKey
from oaexplorer.models.record import OARecord

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def adapter() -> AlgoliaAdapter:
    return AlgoliaAdapter(app_id="APPID", api_key="admin-key", index="records")


def _attach(adapter: AlgoliaAdapter, handler: Handler) -> list[httpx.Request]:
    seen: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    adapter._client = httpx.AsyncClient(base_url="https://APPID.algolia.net", transport=httpx.MockTransport(record))
    return seen


def _published(request: httpx.Request) -> httpx.Response:
    if "/task/" in request.url.path:
        return httpx.Response(200, json={"status": "published"})
    return httpx.Response(200, json={"taskID": 42})


# ── Configuration ────────────────────────────────────────────────────────────


class TestAlgoliaConfiguration:
    def test_requires_credentials(self) -> None:
        with pytest.raises(ConfigurationError, match="app_id and api_key"):
            AlgoliaAdapter(app_id="", api_key="")

    def test_default_host(self, adapter: AlgoliaAdapter) -> None:
        assert adapter._base_url == "https://APPID.algolia.net"
        assert adapter.name == "algolia"


# ── Replicas and filters ─────────────────────────────────────────────────────


class TestAlgoliaTranslation:
    def test_relevance_uses_primary(self, adapter: AlgoliaAdapter) -> None:
        assert adapter.replica_name(SortKey.RELEVANCE) is None

    def test_replica_names(self, adapter: AlgoliaAdapter) -> None:
        assert adapter.replica_name(SortKey.DATE) == "records_year_desc_createdAt_desc"
        assert adapter.replica_name(SortKey.AUTHOR) == "records_firstAuthor_asc_createdAt_desc"

    def test_citation_orderings_share_a_replica(self, adapter: AlgoliaAdapter) -> None:
        assert adapter.replica_name(SortKey.CITATIONS) == adapter.replica_name(SortKey.CITATIONS_ASC)

    def test_replica_rankings(self, adapter: AlgoliaAdapter) -> None:
        replicas = adapter.replicas()
        assert len(replicas) == 9
        assert replicas["records_title_desc_createdAt_desc"][:2] == ["desc(title)", "desc(createdAt)"]

    def test_facet_filters(self) -> None:
        params = SearchParams(q="x", doi="10.1/A", filters=SearchFilters(source=["arxiv", "core"]))
        assert AlgoliaAdapter.facet_filters(params) == [["source:arxiv", "source:core"], ["doi:10.1/a"]]

    def test_numeric_filters(self) -> None:
        params = SearchParams(q="x", filters=SearchFilters(year_from=2001, year_to=2003))
        assert AlgoliaAdapter.numeric_filters(params) == ["year>=2001", "year<=2003"]
        assert AlgoliaAdapter.numeric_filters(SearchParams(q="x")) == []


# ── Search ───────────────────────────────────────────────────────────────────


class TestAlgoliaSearch:
    async def test_search_is_zero_based(self, adapter: AlgoliaAdapter, make_record: Callable[..., OARecord]) -> None:
        hit = {**make_record().to_document(), "objectID": "arxiv:2401.00001"}
        body = {"hits": [hit], "nbHits": 30, "facets": {"year": {"2024": 30}}}
        seen = _attach(adapter, lambda r: httpx.Response(200, json=body))

        result = await adapter.search(SearchParams(q="open", page=3, page_size=10, sort=SortKey.DATE))

        assert result.total == 30
        assert result.hits[0].id == "arxiv:2401.00001"
        assert seen[0].url.path == "/1/indexes/records_year_desc_createdAt_desc/query"
        payload = json.loads(seen[0].content)
        assert payload["page"] == 2
        assert payload["hitsPerPage"] == 10
        assert "facetFilters" not in payload

    async def test_search_failure(self, adapter: AlgoliaAdapter) -> None:
        _attach(adapter, lambda r: httpx.Response(400, json={"message": "Invalid"}))
        with pytest.raises(QueryError):
            await adapter.search(SearchParams(q="x"))


# ── Indexing ─────────────────────────────────────────────────────────────────


class TestAlgoliaIndexing:
    async def test_ensure_index_configures_replicas(self, adapter: AlgoliaAdapter) -> None:
        seen = _attach(adapter, _published)
        await adapter.ensure_index()

        assert (seen[0].method, seen[0].url.path) == ("PUT", "/1/indexes/records/settings")
        primary = json.loads(seen[0].content)
        assert seen[0].url.params["forwardToReplicas"] == "true"
        assert primary["customRanking"] == ["desc(createdAt)"]
        assert len(primary["replicas"]) == 9
        replica_puts = [r for r in seen[1:] if r.method == "PUT"]
        assert len(replica_puts) == 9

    async def test_ensure_index_reapplies_settings_after_failure(self, adapter: AlgoliaAdapter) -> None:
        failures = [503]

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "PUT" and request.url.path != "/1/indexes/records/settings" and failures:
                return httpx.Response(failures.pop(), json={"message": "unavailable"})
            return _published(request)

        seen = _attach(adapter, handler)
        with pytest.raises(IndexingError):
            await adapter.ensure_index()

        seen.clear()
        await adapter.ensure_index()

        puts = [r.url.path for r in seen if r.method == "PUT"]
        assert puts[0] == "/1/indexes/records/settings"
        assert len(puts) == 10
        assert not any(r.method == "GET" and r.url.path.endswith("/settings") for r in seen)

    async def test_upsert_batch(self, adapter: AlgoliaAdapter, make_record: Callable[..., OARecord]) -> None:
        seen = _attach(adapter, _published)
        await adapter.upsert_many([make_record()])

        batch = json.loads(seen[0].content)["requests"]
        assert batch[0]["action"] == "updateObject"
        assert batch[0]["body"]["objectID"] == "arxiv:2401.00001"
        assert seen[1].url.path == "/1/indexes/records/task/42"

    async def test_upsert_failure(self, adapter: AlgoliaAdapter, make_record: Callable[..., OARecord]) -> None:
        _attach(adapter, lambda r: httpx.Response(403, json={"message": "Invalid API key"}))
        with pytest.raises(IndexingError):
            await adapter.upsert_many([make_record()])

    async def test_get_record_missing(self, adapter: AlgoliaAdapter) -> None:
        _attach(adapter, lambda r: httpx.Response(404, json={"message": "ObjectID does not exist"}))
        assert await adapter.get_record("arxiv:none") is None
