"""Federated search across source connectors.

Every selected connector runs concurrently under its own time budget. A
connector that times out or fails contributes nothing and is reported in
the per-source outcome; the other sources are unaffected. Results are
concatenated in registry order (then connector order) and de-duplicated
by DOI.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog

from oaexplorer.connectors.base.connector import SourceConnector
from oaexplorer.connectors.base.registry import ConnectorRegistry
from oaexplorer.core.merge import merge_records
from oaexplorer.models.query import ConnectorQuery
from oaexplorer.models.record import OARecord, Source
from oaexplorer.models.response import SourceOutcome

logger = structlog.stdlib.get_logger(__name__)


@dataclass
class FederationResult:
    """Merged records plus what each source contributed."""

    records: list[OARecord] = field(default_factory=list)
    outcomes: list[SourceOutcome] = field(default_factory=list)


class FederatedSearch:
    """Fan a connector query out to the registered sources.

    Args:
        registry: Active connectors, in merge order.
        connector_timeout: Seconds each connector may take.
    """

    def __init__(self, registry: ConnectorRegistry, connector_timeout: float = 10.0) -> None:
        self._registry = registry
        self._timeout = connector_timeout

    async def run(
        self,
        query: ConnectorQuery,
        sources: Iterable[str | Source] | None = None,
    ) -> FederationResult:
        """Query the selected sources (all active ones when ``sources`` is None)."""
        connectors = self._registry.select(sources)
        if query.is_empty or not connectors:
            return FederationResult(
                outcomes=[SourceOutcome(source=c.source) for c in connectors],
            )

        with structlog.contextvars.bound_contextvars(federation_id=uuid.uuid4().hex[:12]):
            logger.info(
                "federation_started",
                sources=[c.name for c in connectors],
                doi=query.doi,
                keywords=query.title_or_keywords,
            )
            start = time.monotonic()
            results = await asyncio.gather(*(self._run_one(c, query) for c in connectors))

            outcomes = [outcome for _, outcome in results]
            records = merge_records([r for batch, _ in results for r in batch])
            logger.info(
                "federation_complete",
                records=len(records),
                failed=[o.source.value for o in outcomes if o.error],
                took_ms=int((time.monotonic() - start) * 1000),
            )
            return FederationResult(records=records, outcomes=outcomes)

    async def _run_one(
        self,
        connector: SourceConnector,
        query: ConnectorQuery,
    ) -> tuple[list[OARecord], SourceOutcome]:
        start = time.monotonic()
        error: str | None = None
        records: list[OARecord] = []
        try:
            records = await asyncio.wait_for(connector.search(query), timeout=self._timeout)
        except TimeoutError:
            error = f"timed out after {self._timeout}s"
            logger.warning("connector_timeout", connector=connector.name, timeout=self._timeout)
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.warning("connector_failed", connector=connector.name, error=error, exc_info=True)

        outcome = SourceOutcome(
            source=connector.source,
            count=len(records),
            latency_ms=int((time.monotonic() - start) * 1000),
            error=error,
        )
        return records, outcome
