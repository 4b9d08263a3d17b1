"""Tests for the CORE connector."""

from __future__ import annotations

from typing import Any

import httpx
import pytest

from oaexplorer.connectors.core.connector import CoreConnector
from oaexplorer.models.query import ConnectorQuery
from oaexplorer.models.record import OAStatus

WORK: dict[str, Any] = {
    "id": 123456,
    "doi": "10.1016/J.CELL.2020.01.001",
    "title": "Single-cell atlas",
    "authors": [{"name": "Li Wei"}, {"name": "  "}],
    "abstract": "An atlas.",
    "yearPublished": 2020,
    "journals": [{"title": None}, {"title": "Cell"}],
    "publisher": "Elsevier",
    "downloadUrl": "https://core.ac.uk/download/123456.pdf",
    "links": [
        {"type": "display", "url": "https://core.ac.uk/works/123456"},
        {"type": "download", "url": "https://repo.example/file"},
    ],
    "language": {"code": "en", "name": "English"},
    "fieldOfStudy": "biology",
    "depositedDate": "2020-02-01T00:00:00",
    "updatedDate": "2020-03-01T00:00:00",
}


@pytest.fixture
def requests() -> list[httpx.Request]:
    return []


async def _connector(
    requests: list[httpx.Request],
    api_key: str | None = "core-key",
    results: list[dict[str, Any]] | None = None,
) -> CoreConnector:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path.startswith("/v3/works/"):
            if request.url.path.endswith("/404"):
                return httpx.Response(404)
            return httpx.Response(200, json=WORK)
        return httpx.Response(200, json={"totalHits": 1, "results": results if results is not None else [WORK]})

    connector = CoreConnector(api_key=api_key, timeout=1.0)
    await connector.initialize(transport=httpx.MockTransport(handler))
    return connector


class TestCoreSearch:
    async def test_without_api_key_answers_nothing(self, requests: list[httpx.Request]) -> None:
        connector = await _connector(requests, api_key=None)
        assert await connector.search(ConnectorQuery(title_or_keywords="atlas")) == []
        assert await connector.fetch("123456") is None
        assert requests == []

    async def test_bearer_token_and_query(self, requests: list[httpx.Request]) -> None:
        connector = await _connector(requests)
        await connector.search(ConnectorQuery(title_or_keywords="atlas", year_from=2019, year_to=2021))

        request = requests[0]
        assert request.headers["Authorization"] == "Bearer core-key"
        assert request.url.path == "/v3/search/works"
        assert request.url.params["q"] == "(atlas) AND yearPublished>=2019 AND yearPublished<=2021"

    async def test_normalizes_work(self, requests: list[httpx.Request]) -> None:
        connector = await _connector(requests)
        [record] = await connector.search(ConnectorQuery(title_or_keywords="atlas"))

        assert record.id == "core:123456"
        assert record.doi == "10.1016/j.cell.2020.01.001"
        assert record.authors == ["Li Wei"]
        assert record.venue == "Cell"
        assert record.oa_status == OAStatus.PUBLISHED
        assert record.best_pdf_url == "https://core.ac.uk/download/123456.pdf"
        assert record.landing_page == "https://core.ac.uk/works/123456"
        assert record.topics == ["biology"]
        assert record.created_at == "2020-02-01T00:00:00"

    async def test_download_link_fallback(self, requests: list[httpx.Request]) -> None:
        work = {**WORK, "downloadUrl": None, "links": [{"type": "download", "url": "https://repo.example/file"}]}
        connector = await _connector(requests, results=[work])
        [record] = await connector.search(ConnectorQuery(title_or_keywords="atlas"))

        assert record.best_pdf_url == "https://repo.example/file"
        assert record.landing_page == "https://doi.org/10.1016/j.cell.2020.01.001"

    async def test_no_download_is_not_open(self, requests: list[httpx.Request]) -> None:
        work = {**WORK, "doi": None, "downloadUrl": None, "links": []}
        connector = await _connector(requests, results=[work])
        [record] = await connector.search(ConnectorQuery(title_or_keywords="atlas"))

        assert record.oa_status == OAStatus.OTHER
        assert record.best_pdf_url is None
        assert record.landing_page == "https://core.ac.uk/works/123456"


class TestCoreFetch:
    async def test_fetch(self, requests: list[httpx.Request]) -> None:
        connector = await _connector(requests)
        record = await connector.fetch("123456")
        assert record is not None
        assert record.id == "core:123456"

    async def test_fetch_missing(self, requests: list[httpx.Request]) -> None:
        connector = await _connector(requests)
        assert await connector.fetch("404") is None
