"""Tests for the connector registry."""

from __future__ import annotations

import pytest

from oaexplorer.connectors.arxiv.connector import ArxivConnector
from oaexplorer.connectors.base.registry import ConnectorNotFoundError, ConnectorRegistry
from oaexplorer.connectors.doaj.connector import DoajConnector
from oaexplorer.connectors.europepmc.connector import EuropePmcConnector
from oaexplorer.models.record import Source


@pytest.fixture
async def registry():
    registry = ConnectorRegistry()
    registry.register("arxiv", ArxivConnector)
    registry.register("europepmc", EuropePmcConnector)
    registry.register("doaj", DoajConnector)
    for name in ("arxiv", "europepmc", "doaj"):
        await registry.initialize_connector(name, timeout=1.0)
    yield registry
    await registry.shutdown_all()


class TestConnectorRegistry:
    async def test_registration_order_is_kept(self, registry: ConnectorRegistry) -> None:
        assert registry.active_connectors == ["arxiv", "europepmc", "doaj"]
        assert [c.name for c in registry.select()] == ["arxiv", "europepmc", "doaj"]

    async def test_select_subset_keeps_registry_order(self, registry: ConnectorRegistry) -> None:
        selected = registry.select([Source.DOAJ, "arxiv"])
        assert [c.name for c in selected] == ["arxiv", "doaj"]

    async def test_select_skips_inactive(self, registry: ConnectorRegistry) -> None:
        assert [c.name for c in registry.select(["core", "doaj"])] == ["doaj"]

    async def test_get_by_enum_or_name(self, registry: ConnectorRegistry) -> None:
        assert isinstance(registry.get(Source.ARXIV), ArxivConnector)
        assert isinstance(registry.get("europepmc"), EuropePmcConnector)

    async def test_get_missing_raises(self, registry: ConnectorRegistry) -> None:
        with pytest.raises(ConnectorNotFoundError):
            registry.get("ncbi")

    async def test_initialize_unregistered_raises(self) -> None:
        with pytest.raises(ConnectorNotFoundError, match="Available connectors"):
            await ConnectorRegistry().initialize_connector("ncbi")

    async def test_shutdown_clears_instances(self, registry: ConnectorRegistry) -> None:
        await registry.shutdown_all()
        assert registry.active_connectors == []
        assert registry.registered_connectors == ["arxiv", "europepmc", "doaj"]

    async def test_add_instance(self) -> None:
        registry = ConnectorRegistry()
        registry.add(DoajConnector())
        assert registry.active_connectors == ["doaj"]
        assert registry.registered_connectors == ["doaj"]
