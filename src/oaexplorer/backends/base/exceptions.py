"""Search backend exceptions.

Anything raised from an adapter is a backend failure: not recoverable
locally, surfaced to the HTTP layer as a failed request.
"""


class BackendError(Exception):
    """Base exception for search backend errors."""


class ConnectionError(BackendError):
    """Raised when the adapter cannot reach the search backend."""


class QueryError(BackendError):
    """Raised when a search or lookup fails."""


class IndexingError(BackendError):
    """Raised when creating the index or writing documents fails."""


class ConfigurationError(BackendError):
    """Raised when the backend configuration is unusable."""
