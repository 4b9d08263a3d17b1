"""Tests for the arXiv connector."""

from __future__ import annotations

import httpx
import pytest

from oaexplorer.connectors.arxiv.connector import ArxivConnector
from oaexplorer.models.query import ConnectorQuery
from oaexplorer.models.record import OAStatus, Source

FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom" xmlns:arxiv="http://arxiv.org/schemas/atom">
  <title>ArXiv Query</title>
  <entry>
    <id>http://arxiv.org/abs/2301.00001v2</id>
    <updated>2023-02-01T10:00:00Z</updated>
    <published>2023-01-01T09:00:00Z</published>
    <title>Large Language Models
      for Scientific Discovery</title>
    <summary>  We explore large language models.  </summary>
    <author><name>John Doe</name></author>
    <author><name>Jane Smith</name></author>
    <arxiv:doi>10.48550/arXiv.2301.00001</arxiv:doi>
    <link href="http://arxiv.org/abs/2301.00001v2" rel="alternate" type="text/html"/>
    <link title="pdf" href="http://arxiv.org/pdf/2301.00001v2" rel="related" type="application/pdf"/>
    <arxiv:primary_category term="cs.CL"/>
    <category term="cs.CL"/>
    <category term="cs.AI"/>
  </entry>
  <entry>
    <id>http://arxiv.org/abs/hep-th/9901001v1</id>
    <published>1999-01-01T00:00:00Z</published>
    <title>String Theory Notes</title>
    <summary>Notes.</summary>
    <author><name>A Physicist</name></author>
    <arxiv:journal_ref>Phys. Rev. D 60 (1999)</arxiv:journal_ref>
  </entry>
</feed>
"""

ERROR_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <entry>
    <id>http://arxiv.org/api/errors#incorrect_id_format_for_1234</id>
    <title>Error</title>
    <summary>incorrect id format for 1234</summary>
  </entry>
</feed>
"""


@pytest.fixture
def requests() -> list[httpx.Request]:
    return []


async def _connector(requests: list[httpx.Request], body: str, status: int = 200) -> ArxivConnector:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status, text=body)

    connector = ArxivConnector(timeout=1.0)
    await connector.initialize(transport=httpx.MockTransport(handler))
    return connector


class TestArxivSearch:
    async def test_parses_feed(self, requests: list[httpx.Request]) -> None:
        connector = await _connector(requests, FEED)
        records = await connector.search(ConnectorQuery(title_or_keywords="language models"))

        assert [r.id for r in records] == ["arxiv:2301.00001", "arxiv:hep-th/9901001"]
        first = records[0]
        assert first.source == Source.ARXIV
        assert first.title == "Large Language Models for Scientific Discovery"
        assert first.authors == ["John Doe", "Jane Smith"]
        assert first.abstract == "We explore large language models."
        assert first.year == 2023
        assert first.venue == "arXiv"
        assert first.doi == "10.48550/arxiv.2301.00001"
        assert first.oa_status == OAStatus.PREPRINT
        assert first.best_pdf_url == "https://arxiv.org/pdf/2301.00001v2"
        assert first.landing_page == "https://arxiv.org/abs/2301.00001v2"
        assert first.topics == ["cs.CL", "cs.AI"]
        assert first.created_at == "2023-01-01T09:00:00Z"
        assert first.updated_at == "2023-02-01T10:00:00Z"

    async def test_fallback_links_and_journal_ref(self, requests: list[httpx.Request]) -> None:
        connector = await _connector(requests, FEED)
        records = await connector.search(ConnectorQuery(title_or_keywords="strings"))
        old = records[1]
        assert old.venue == "Phys. Rev. D 60 (1999)"
        assert old.best_pdf_url == "https://arxiv.org/pdf/hep-th/9901001"
        assert old.landing_page == "https://arxiv.org/abs/hep-th/9901001"

    async def test_query_parameters(self, requests: list[httpx.Request]) -> None:
        connector = await _connector(requests, FEED)
        await connector.search(ConnectorQuery(title_or_keywords='deep "learning"', year_from=2020, max_results=7))

        params = requests[0].url.params
        assert requests[0].url.path == "/api/query"
        assert params["search_query"] == 'all:"deep  learning " AND submittedDate:[202001010000 TO 300012312359]'
        assert params["max_results"] == "7"

    async def test_doi_only_query_returns_nothing(self, requests: list[httpx.Request]) -> None:
        connector = await _connector(requests, FEED)
        assert await connector.search(ConnectorQuery(doi="10.1038/nature12373")) == []
        assert requests == []

    async def test_error_entries_skipped(self, requests: list[httpx.Request]) -> None:
        connector = await _connector(requests, ERROR_FEED)
        assert await connector.search(ConnectorQuery(title_or_keywords="x")) == []

    async def test_malformed_xml_returns_empty(self, requests: list[httpx.Request]) -> None:
        connector = await _connector(requests, "<feed><entry>")
        assert await connector.search(ConnectorQuery(title_or_keywords="x")) == []

    async def test_http_error_returns_empty(self, requests: list[httpx.Request]) -> None:
        connector = await _connector(requests, "unavailable", status=503)
        assert await connector.search(ConnectorQuery(title_or_keywords="x")) == []


class TestArxivFetch:
    async def test_fetch_by_id(self, requests: list[httpx.Request]) -> None:
        connector = await _connector(requests, FEED)
        record = await connector.fetch("2301.00001")
        assert record is not None
        assert record.id == "arxiv:2301.00001"
        assert requests[0].url.params["id_list"] == "2301.00001"
