"""Explorer Engine: orchestrates connectors, the search backend and PDF resolution.

The engine owns every long-lived component:
  - the connector registry, filled from ``Settings.connectors``
  - the one search adapter chosen by ``Settings.backend``
  - the federated search over the active connectors
  - the Crossref/Unpaywall enricher applied to ingested records
  - the PDF resolver used by the paper detail view
"""

from __future__ import annotations

import importlib
import time
from typing import TYPE_CHECKING

import structlog

from oaexplorer.backends.base.adapter import SearchAdapter
from oaexplorer.backends.factory import create_adapter
from oaexplorer.connectors.base.connector import SourceConnector
from oaexplorer.connectors.base.registry import ConnectorNotFoundError, ConnectorRegistry
from oaexplorer.core.enrich import build_enricher
from oaexplorer.core.export import MEDIA_TYPES, export_records
from oaexplorer.core.federation import FederatedSearch
from oaexplorer.core.pdf import PdfResolver
from oaexplorer.core.seed import sample_records
from oaexplorer.models.query import ConnectorQuery, SearchParams
from oaexplorer.models.record import split_record_id
from oaexplorer.models.response import (
    ExportRequest,
    IngestRequest,
    IngestResponse,
    PaperResponse,
    SearchResponse,
    SourceInfo,
)

if TYPE_CHECKING:
    from oaexplorer.config.settings import Settings

logger = structlog.stdlib.get_logger(__name__)


# Maps source names to (module_path, class_name) for lazy import.
# Insertion order is the registry order, and therefore the merge order.
_CONNECTOR_MAP: dict[str, tuple[str, str]] = {
    "arxiv": ("oaexplorer.connectors.arxiv.connector", "ArxivConnector"),
    "ncbi": ("oaexplorer.connectors.ncbi.connector", "NcbiConnector"),
    "europepmc": ("oaexplorer.connectors.europepmc.connector", "EuropePmcConnector"),
    "doaj": ("oaexplorer.connectors.doaj.connector", "DoajConnector"),
    "core": ("oaexplorer.connectors.core.connector", "CoreConnector"),
    "biorxiv": ("oaexplorer.connectors.biorxiv.connector", "BiorxivConnector"),
    "medrxiv": ("oaexplorer.connectors.biorxiv.connector", "MedrxivConnector"),
    "openaire": ("oaexplorer.connectors.openaire.connector", "OpenAireConnector"),
    "datacite": ("oaexplorer.connectors.datacite.connector", "DataCiteConnector"),
    "opencitations": ("oaexplorer.connectors.opencitations.connector", "OpenCitationsConnector"),
}


def connector_class(name: str) -> type[SourceConnector]:
    """Import the built-in connector class for a source name."""
    module_path, class_name = _CONNECTOR_MAP[name]
    return getattr(importlib.import_module(module_path), class_name)


class ExplorerEngine:
    """Core orchestrator for the Open Access Explorer.

    Attributes:
        settings: Application configuration.
        adapter: The configured search backend.
        connector_registry: Registry of source connectors.
        federation: Fan-out over the active connectors.
        enricher: Crossref and Unpaywall lookups for ingested records.
        pdf_resolver: Full-text link resolution.
    """

    def __init__(self, settings: Settings, adapter: SearchAdapter | None = None) -> None:
        self.settings = settings
        self.adapter = adapter if adapter is not None else create_adapter(settings.backend)
        self.connector_registry = ConnectorRegistry()
        self.federation = FederatedSearch(
            self.connector_registry,
            connector_timeout=settings.federation.connector_timeout,
        )
        self.pdf_resolver = PdfResolver(
            verify_links=settings.pdf.verify_links,
            timeout=settings.pdf.probe_timeout,
            user_agent=settings.federation.user_agent,
        )
        self.enricher = build_enricher(settings)

    async def initialize(self) -> None:
        """Initialize connectors, the backend and the PDF resolver.

        Raises:
            BackendError: If the backend cannot be reached or its index
                cannot be created.
        """
        await self._register_connectors()
        await self.adapter.initialize()
        if self.settings.backend.ensure_index_on_startup:
            await self.adapter.ensure_index()
        await self.pdf_resolver.initialize()
        await self.enricher.initialize()
        logger.info(
            "engine_initialized",
            backend=self.adapter.name,
            connectors=self.connector_registry.active_connectors,
        )

    async def shutdown(self) -> None:
        """Gracefully shut down all components."""
        await self.connector_registry.shutdown_all()
        await self.adapter.shutdown()
        await self.pdf_resolver.shutdown()
        await self.enricher.shutdown()
        logger.info("engine_shut_down")

    async def _register_connectors(self) -> None:
        federation = self.settings.federation
        for name in _CONNECTOR_MAP:
            cfg = self.settings.connector(name)
            if not cfg.enabled:
                logger.info("connector_disabled", connector=name)
                continue

            kwargs: dict[str, object] = {
                "api_key": cfg.api_key,
                "timeout": cfg.timeout,
                "user_agent": federation.user_agent,
                "contact_email": federation.contact_email,
            }
            if cfg.base_url:
                kwargs["base_url"] = cfg.base_url
            kwargs.update(cfg.extra)

            self.connector_registry.register(name, connector_class(name))
            try:
                await self.connector_registry.initialize_connector(name, **kwargs)
            except Exception:
                logger.warning("connector_init_failed", connector=name, exc_info=True)

    # ── Index queries ────────────────────────────────────────────────────

    async def search(self, params: SearchParams) -> SearchResponse:
        """Run one index query.

        Raises:
            BackendError: If the backend query fails.
        """
        start = time.monotonic()
        result = await self.adapter.search(params)
        logger.info(
            "search_complete",
            q=params.q,
            doi=params.effective_doi(),
            page=params.page,
            total=result.total,
            hits=len(result.hits),
            took_ms=int((time.monotonic() - start) * 1000),
        )
        return SearchResponse(
            hits=result.hits,
            facets=result.facets,
            page=params.page,
            total=result.total,
            page_size=params.page_size,
        )

    async def get_paper(self, record_id: str) -> PaperResponse | None:
        """Resolve one record by id, with its best PDF link.

        The index is tried first; on a miss the id's source prefix selects
        the connector to fetch from. Malformed ids and unknown sources are
        treated as not found.
        """
        try:
            source, source_id = split_record_id(record_id)
        except ValueError:
            return None

        record = await self.adapter.get_record(record_id)
        if record is None:
            try:
                connector = self.connector_registry.get(source)
            except ConnectorNotFoundError:
                logger.info("paper_source_unavailable", record_id=record_id, source=source)
                return None
            record = await connector.fetch(source_id)
            if record is None:
                return None

        oa_pdf_url = None
        if record.doi and not record.best_pdf_url:
            oa_pdf_url = await self.enricher.pdf_url(record.doi)
        pdf = await self.pdf_resolver.resolve(record, oa_pdf_url)
        return PaperResponse(record=record, pdf=pdf)

    async def export(self, request: ExportRequest) -> tuple[str, str]:
        """Render one page of search results in a citation format.

        Returns:
            ``(body, media_type)``.
        """
        response = await self.search(request.params)
        body = export_records(response.hits, request.format)
        return body, MEDIA_TYPES[request.format]

    # ── Indexing ─────────────────────────────────────────────────────────

    async def ingest(self, request: IngestRequest) -> IngestResponse:
        """Federate a query across the sources, enrich the merged records and index them."""
        query = ConnectorQuery(
            doi=request.doi,
            title_or_keywords=request.q,
            year_from=request.year_from,
            year_to=request.year_to,
            max_results=self.settings.federation.max_results,
        )
        result = await self.federation.run(query, request.sources)
        records = await self.enricher.enrich(result.records)
        if records:
            await self.adapter.upsert_many(records)
        logger.info("ingest_complete", indexed=len(records))
        return IngestResponse(indexed=len(records), sources=result.outcomes)

    async def seed(self) -> int:
        """Index the built-in sample records. Returns how many were written."""
        records = sample_records()
        await self.adapter.upsert_many(records)
        logger.info("seed_complete", indexed=len(records))
        return len(records)

    # ── Introspection ────────────────────────────────────────────────────

    def sources(self) -> list[SourceInfo]:
        """Every built-in source with its configured state."""
        infos = []
        for name in _CONNECTOR_MAP:
            cls = connector_class(name)
            cfg = self.settings.connector(name)
            infos.append(
                SourceInfo(
                    name=name,
                    enabled=cfg.enabled,
                    base_url=cfg.base_url or cls.default_base_url,
                    supports_doi=cls.supports_doi,
                    supports_keywords=cls.supports_keywords,
                )
            )
        return infos
