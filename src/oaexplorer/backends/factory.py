"""Backend factory: resolve ``Settings.backend`` into one adapter instance."""

from __future__ import annotations

import importlib
import logging
from collections.abc import Callable
from typing import Any

from oaexplorer.backends.base.adapter import SearchAdapter
from oaexplorer.backends.base.exceptions import ConfigurationError
from oaexplorer.config.settings import AlgoliaSettings, BackendSettings, MeilisearchSettings, TypesenseSettings

logger = logging.getLogger(__name__)

# Maps backend kinds to (module_path, class_name) for lazy import
_BACKEND_MAP: dict[str, tuple[str, str]] = {
    "typesense": ("oaexplorer.backends.typesense.adapter", "TypesenseAdapter"),
    "meilisearch": ("oaexplorer.backends.meilisearch.adapter", "MeilisearchAdapter"),
    "algolia": ("oaexplorer.backends.algolia.adapter", "AlgoliaAdapter"),
}


def _typesense_kwargs(cfg: TypesenseSettings) -> dict[str, Any]:
    return {"base_url": cfg.base_url, "api_key": cfg.api_key, "collection": cfg.collection}


def _meilisearch_kwargs(cfg: MeilisearchSettings) -> dict[str, Any]:
    return {"base_url": cfg.url, "api_key": cfg.api_key, "index": cfg.index}


def _algolia_kwargs(cfg: AlgoliaSettings) -> dict[str, Any]:
    return {"app_id": cfg.app_id, "api_key": cfg.api_key, "index": cfg.index}


_KWARGS: dict[str, Callable[[Any], dict[str, Any]]] = {
    "typesense": _typesense_kwargs,
    "meilisearch": _meilisearch_kwargs,
    "algolia": _algolia_kwargs,
}


def create_adapter(cfg: BackendSettings) -> SearchAdapter:
    """Instantiate (without initializing) the adapter for ``cfg.kind``.

    Raises:
        ConfigurationError: If the kind has no adapter.
    """
    entry = _BACKEND_MAP.get(cfg.kind)
    if entry is None:
        raise ConfigurationError(f"Unsupported search backend '{cfg.kind}'. Supported: {sorted(_BACKEND_MAP)}")
    module_path, class_name = entry
    adapter_class = getattr(importlib.import_module(module_path), class_name)
    kwargs = _KWARGS[cfg.kind](cfg)
    logger.info("Using search backend '%s'", cfg.kind)
    return adapter_class(timeout=cfg.timeout, **kwargs)
