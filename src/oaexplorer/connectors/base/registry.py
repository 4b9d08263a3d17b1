"""Connector Registry: manages registration and retrieval of source connectors.

Connector classes are registered by source name, instantiated from
configuration, and kept in registration order. That order is the stable
merge order used by federation.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from oaexplorer.connectors.base.connector import SourceConnector
from oaexplorer.models.record import Source

logger = logging.getLogger(__name__)


class ConnectorNotFoundError(Exception):
    """Raised when a requested connector is not registered or not active."""


class ConnectorRegistry:
    """Registry for source connector instances.

    Example:
        >>> registry = ConnectorRegistry()
        >>> registry.register("arxiv", ArxivConnector)
        >>> await registry.initialize_connector("arxiv", timeout=10.0)
        >>> connector = registry.get("arxiv")
    """

    def __init__(self) -> None:
        self._classes: dict[str, type[SourceConnector]] = {}
        self._instances: dict[str, SourceConnector] = {}

    def register(self, name: str, connector_class: type[SourceConnector]) -> None:
        """Register a connector class under a source name."""
        if name in self._classes:
            logger.warning("Overwriting existing connector registration: %s", name)
        self._classes[name] = connector_class
        logger.debug("Registered connector: %s", name)

    async def initialize_connector(self, name: str, **kwargs: Any) -> SourceConnector:
        """Create and initialize a connector instance.

        Raises:
            ConnectorNotFoundError: If no connector is registered under this name.
        """
        if name not in self._classes:
            raise ConnectorNotFoundError(
                f"No connector registered with name '{name}'. "
                f"Available connectors: {list(self._classes.keys())}"
            )

        connector = self._classes[name](**kwargs)
        await connector.initialize()
        self._instances[name] = connector
        logger.info("Initialized connector: %s", name)
        return connector

    def add(self, connector: SourceConnector) -> None:
        """Add an already-initialized connector instance."""
        self._classes.setdefault(connector.name, type(connector))
        self._instances[connector.name] = connector

    def get(self, name: str | Source) -> SourceConnector:
        """Get an active connector by source name.

        Raises:
            ConnectorNotFoundError: If the connector is not active.
        """
        key = name.value if isinstance(name, Source) else name
        if key not in self._instances:
            raise ConnectorNotFoundError(f"Connector '{key}' is not active.")
        return self._instances[key]

    def select(self, names: Iterable[str | Source] | None = None) -> list[SourceConnector]:
        """Active connectors in registration order, optionally restricted to ``names``.

        Unknown or inactive names are skipped with a warning.
        """
        if names is None:
            return list(self._instances.values())
        wanted = {n.value if isinstance(n, Source) else n for n in names}
        for missing in sorted(wanted - self._instances.keys()):
            logger.warning("Requested connector '%s' is not active, skipping", missing)
        return [c for name, c in self._instances.items() if name in wanted]

    async def shutdown_all(self) -> None:
        """Close every active connector."""
        for name, connector in self._instances.items():
            try:
                await connector.shutdown()
            except Exception:
                logger.warning("Error shutting down connector: %s", name, exc_info=True)
        self._instances.clear()

    @property
    def registered_connectors(self) -> list[str]:
        return list(self._classes.keys())

    @property
    def active_connectors(self) -> list[str]:
        return list(self._instances.keys())
