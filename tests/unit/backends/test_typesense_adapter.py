"""Tests for the Typesense adapter."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest

from oaexplorer.backends.base.exceptions import ConnectionError, IndexingError, QueryError
from oaexplorer.backends.typesense.adapter import TypesenseAdapter, collection_schema
from oaexplorer.models.query import SearchFilters, SearchParams, SortKey
from oaexplorer.models.record import OARecord

Handler = Callable[[httpx.Request], httpx.Response]

# ── Fixtures ──────────────────────────────────────────────────────────────────


@pytest.fixture
def adapter() -> TypesenseAdapter:
    return TypesenseAdapter(base_url="http://localhost:8108", api_key="test-key", collection="test_records")


def _attach(adapter: TypesenseAdapter, handler: Handler) -> list[httpx.Request]:
    seen: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    adapter._client = httpx.AsyncClient(
        base_url="http://localhost:8108",
        headers={"X-TYPESENSE-API-KEY": "test-key"},
        transport=httpx.MockTransport(record),
    )
    return seen


@pytest.fixture
def record_doc(make_record: Callable[..., OARecord]) -> dict[str, Any]:
    doc = make_record().to_document()
    doc["firstAuthor"] = "Ada Lovelace"
    return doc


# ── Properties ───────────────────────────────────────────────────────────────


class TestTypesenseProperties:
    def test_name(self, adapter: TypesenseAdapter) -> None:
        assert adapter.name == "typesense"

    def test_defaults(self) -> None:
        a = TypesenseAdapter()
        assert a._base_url == "http://localhost:8108"
        assert a._collection == "oa_records"

    def test_schema_marks_sortable_strings(self) -> None:
        fields = {f["name"]: f for f in collection_schema("c")["fields"]}
        for name in ("title", "venue", "createdAt", "firstAuthor"):
            assert fields[name]["sort"] is True
        assert fields["source"]["facet"] is True
        assert fields["bestPdfUrl"]["index"] is False


# ── Query translation ────────────────────────────────────────────────────────


class TestTypesenseTranslation:
    @pytest.mark.parametrize(
        ("sort", "clause"),
        [
            (SortKey.RELEVANCE, "_text_match:desc,createdAt:desc"),
            (SortKey.DATE, "year:desc,createdAt:desc"),
            (SortKey.DATE_ASC, "year:asc,createdAt:desc"),
            (SortKey.CITATIONS, "createdAt:desc"),
            (SortKey.AUTHOR, "firstAuthor:asc,createdAt:desc"),
            (SortKey.TITLE_DESC, "title:desc,createdAt:desc"),
        ],
    )
    def test_sort_clause(self, sort: SortKey, clause: str) -> None:
        assert TypesenseAdapter.sort_clause(sort) == clause

    def test_filter_clause(self) -> None:
        params = SearchParams(
            q="x",
            filters=SearchFilters(source=["arxiv", "doaj"], venue=["Nature`s"], year_from=2020, year_to=2022),
        )
        assert TypesenseAdapter.filter_clause(params) == (
            "source:=[`arxiv`,`doaj`] && venue:=[`Natures`] && year:>=2020 && year:<=2022"
        )

    def test_filter_clause_doi_query(self) -> None:
        params = SearchParams(q="https://doi.org/10.1038/NATURE12373")
        assert TypesenseAdapter.filter_clause(params) == "doi:=[`10.1038/nature12373`]"

    def test_no_filters(self) -> None:
        assert TypesenseAdapter.filter_clause(SearchParams(q="x")) == ""


# ── Search ───────────────────────────────────────────────────────────────────


class TestTypesenseSearch:
    async def test_not_initialized_raises(self, adapter: TypesenseAdapter) -> None:
        with pytest.raises(ConnectionError, match="not initialized"):
            await adapter.search(SearchParams(q="x"))

    async def test_search_parses_response(self, adapter: TypesenseAdapter, record_doc: dict[str, Any]) -> None:
        body = {
            "found": 41,
            "hits": [{"document": record_doc, "text_match": 100}],
            "facet_counts": [{"field_name": "year", "counts": [{"value": 2024, "count": 41}]}],
        }
        seen = _attach(adapter, lambda request: httpx.Response(200, json=body))

        result = await adapter.search(SearchParams(q="open access", page=3, page_size=10, sort=SortKey.DATE))

        assert result.total == 41
        assert [r.id for r in result.hits] == ["arxiv:2401.00001"]
        assert result.facets == {"year": {"2024": 41}}
        params = seen[0].url.params
        assert seen[0].url.path == "/collections/test_records/documents/search"
        assert params["q"] == "open access"
        assert params["query_by"] == "title,authors,abstract,topics"
        assert params["page"] == "3"
        assert params["per_page"] == "10"
        assert params["sort_by"] == "year:desc,createdAt:desc"
        assert "filter_by" not in params

    async def test_doi_query_uses_wildcard_text(self, adapter: TypesenseAdapter) -> None:
        seen = _attach(adapter, lambda request: httpx.Response(200, json={"found": 0, "hits": []}))
        await adapter.search(SearchParams(q="10.1038/nature12373"))
        assert seen[0].url.params["q"] == "*"
        assert seen[0].url.params["filter_by"] == "doi:=[`10.1038/nature12373`]"

    async def test_invalid_documents_are_skipped(self, adapter: TypesenseAdapter, record_doc: dict[str, Any]) -> None:
        body = {"found": 2, "hits": [{"document": {"id": "broken"}}, {"document": record_doc}]}
        _attach(adapter, lambda request: httpx.Response(200, json=body))
        result = await adapter.search(SearchParams(q="x"))
        assert len(result.hits) == 1

    async def test_http_error(self, adapter: TypesenseAdapter) -> None:
        _attach(adapter, lambda request: httpx.Response(400, json={"message": "bad filter"}))
        with pytest.raises(QueryError, match="Typesense query failed"):
            await adapter.search(SearchParams(q="x"))


# ── Indexing ─────────────────────────────────────────────────────────────────


class TestTypesenseIndexing:
    async def test_ensure_index_existing(self, adapter: TypesenseAdapter) -> None:
        seen = _attach(adapter, lambda request: httpx.Response(200, json={"name": "test_records"}))
        await adapter.ensure_index()
        assert [r.method for r in seen] == ["GET"]

    async def test_ensure_index_creates_collection(self, adapter: TypesenseAdapter) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(201, json={"name": "test_records"})

        seen = _attach(adapter, handler)
        await adapter.ensure_index()

        assert seen[1].url.path == "/collections"
        assert json.loads(seen[1].content)["name"] == "test_records"

    async def test_ensure_index_tolerates_concurrent_create(self, adapter: TypesenseAdapter) -> None:
        _attach(adapter, lambda r: httpx.Response(404 if r.method == "GET" else 409, json={}))
        await adapter.ensure_index()

    async def test_ensure_index_failure(self, adapter: TypesenseAdapter) -> None:
        _attach(adapter, lambda r: httpx.Response(404 if r.method == "GET" else 400, json={}))
        with pytest.raises(IndexingError):
            await adapter.ensure_index()

    async def test_upsert_sends_jsonl(self, adapter: TypesenseAdapter, make_record: Callable[..., OARecord]) -> None:
        seen = _attach(adapter, lambda r: httpx.Response(200, text='{"success": true}\n{"success": true}'))
        records = [make_record(), make_record(source_id="2401.00002", authors=[])]

        await adapter.upsert_many(records)

        request = seen[0]
        assert request.url.params["action"] == "upsert"
        lines = [json.loads(line) for line in request.content.decode().splitlines()]
        assert [line["id"] for line in lines] == ["arxiv:2401.00001", "arxiv:2401.00002"]
        assert lines[0]["firstAuthor"] == "Ada Lovelace"
        assert lines[1]["firstAuthor"] == ""

    async def test_upsert_rejected_document(
        self, adapter: TypesenseAdapter, make_record: Callable[..., OARecord]
    ) -> None:
        _attach(adapter, lambda r: httpx.Response(200, text='{"success": false, "error": "Bad field"}'))
        with pytest.raises(IndexingError, match="Bad field"):
            await adapter.upsert_many([make_record()])

    async def test_upsert_empty_is_noop(self, adapter: TypesenseAdapter) -> None:
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        adapter._client = mock_client
        await adapter.upsert_many([])
        mock_client.post.assert_not_called()


# ── Lookup and health ────────────────────────────────────────────────────────


class TestTypesenseLookup:
    async def test_get_record(self, adapter: TypesenseAdapter, record_doc: dict[str, Any]) -> None:
        seen = _attach(adapter, lambda r: httpx.Response(200, json=record_doc))
        record = await adapter.get_record("arxiv:2401.00001")

        assert record is not None
        assert record.title == "A Study of Open Access Search"
        assert seen[0].url.raw_path.endswith(b"/documents/arxiv%3A2401.00001")

    async def test_get_record_missing(self, adapter: TypesenseAdapter) -> None:
        _attach(adapter, lambda r: httpx.Response(404, json={"message": "Not Found"}))
        assert await adapter.get_record("arxiv:nope") is None

    async def test_health_not_initialized(self, adapter: TypesenseAdapter) -> None:
        health = await adapter.health_check()
        assert health.status == "unhealthy"

    async def test_health_ok(self, adapter: TypesenseAdapter) -> None:
        _attach(adapter, lambda r: httpx.Response(200, json={"ok": True}))
        health = await adapter.health_check()
        assert health.status == "healthy"
        assert "test_records" in (health.message or "")

    async def test_health_exception(self, adapter: TypesenseAdapter) -> None:
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.get.side_effect = RuntimeError("Connection refused")
        adapter._client = mock_client

        health = await adapter.health_check()
        assert health.status == "unhealthy"
