"""Base connector interface: abstract class and registry for source connectors."""

from oaexplorer.connectors.base.connector import ConnectorError, SourceConnector
from oaexplorer.connectors.base.registry import ConnectorRegistry

__all__ = ["ConnectorError", "ConnectorRegistry", "SourceConnector"]
