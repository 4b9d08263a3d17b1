"""Tests for the paper lookup endpoint."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from oaexplorer.api.app import create_app
from oaexplorer.api.deps import set_engine
from oaexplorer.backends.base.exceptions import ConnectionError
from oaexplorer.config.settings import Settings
from oaexplorer.core.engine import ExplorerEngine
from oaexplorer.models.record import OARecord

if TYPE_CHECKING:
    from conftest import InMemoryAdapter


@pytest.fixture
def engine(settings: Settings, memory_adapter: InMemoryAdapter, seed_records: list[OARecord]) -> ExplorerEngine:
    memory_adapter.documents = {r.id: r for r in seed_records}
    return ExplorerEngine(settings, adapter=memory_adapter)


@pytest.fixture
def client(settings: Settings, engine: ExplorerEngine) -> TestClient:
    app = create_app(settings)
    set_engine(engine)
    yield TestClient(app)
    set_engine(None)


class TestGetPaper:
    def test_indexed_paper(self, client: TestClient) -> None:
        resp = client.get("/api/paper/arxiv:2301.00001")

        assert resp.status_code == 200
        data = resp.json()
        assert data["record"]["title"] == "Large Language Models for Scientific Discovery"
        assert data["record"]["landingPage"] == "https://arxiv.org/abs/2301.00001"
        assert data["pdf"] == {"url": "https://arxiv.org/pdf/2301.00001.pdf", "status": "ok"}

    def test_none_fields_are_omitted(self, client: TestClient) -> None:
        record = client.get("/api/paper/core:12345").json()["record"]
        assert "doi" not in record
        assert "updatedAt" not in record

    def test_unknown_paper_returns_404(self, client: TestClient) -> None:
        resp = client.get("/api/paper/arxiv:9999.99999")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Paper not found"

    @pytest.mark.parametrize("record_id", ["not-an-id", "scholar:123"])
    def test_malformed_id_returns_404(self, client: TestClient, record_id: str) -> None:
        assert client.get(f"/api/paper/{record_id}").status_code == 404

    def test_id_with_slash_reaches_engine(self, client: TestClient, engine: ExplorerEngine) -> None:
        with patch.object(engine, "get_paper", new_callable=AsyncMock) as mock_get:
            mock_get.return_value = None

            client.get("/api/paper/biorxiv:10.1101/2024.01.01.123456")

        mock_get.assert_awaited_once_with("biorxiv:10.1101/2024.01.01.123456")

    def test_backend_error_returns_502(self, client: TestClient, engine: ExplorerEngine) -> None:
        with patch.object(engine, "get_paper", new_callable=AsyncMock) as mock_get:
            mock_get.side_effect = ConnectionError("Typesense unreachable")

            resp = client.get("/api/paper/arxiv:2301.00001")

        assert resp.status_code == 502
