"""Base backend interface: abstract adapter, shared schema and exceptions."""

from oaexplorer.backends.base.adapter import BackendHealth, SearchAdapter, SearchResult
from oaexplorer.backends.base.exceptions import BackendError

__all__ = ["BackendError", "BackendHealth", "SearchAdapter", "SearchResult"]
