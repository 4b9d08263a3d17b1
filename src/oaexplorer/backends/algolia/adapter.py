"""Algolia adapter: index REST API over ``httpx``.

Algolia sorts through replica indices: each non-relevance ordering has a
standard replica whose ranking starts with that ordering. The primary
index ranks by relevance with ``desc(createdAt)`` as custom ranking.
Algolia pages are 0-based.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

import httpx

from oaexplorer.backends.base.adapter import (
    FACET_FIELDS,
    MAX_FACET_VALUES,
    SEARCHABLE_FIELDS,
    SORT_SPECS,
    BackendHealth,
    SearchAdapter,
    SearchResult,
    equality_filters,
    numeric_bounds,
    records_from_hits,
    to_index_document,
)
from oaexplorer.backends.base.exceptions import ConfigurationError, ConnectionError, IndexingError, QueryError
from oaexplorer.models.query import SearchParams, SortKey
from oaexplorer.models.record import OARecord

logger = logging.getLogger(__name__)

_DEFAULT_RANKING = ["typo", "geo", "words", "filters", "proximity", "attribute", "exact", "custom"]


def _ranking_rule(field: str, desc: bool) -> str:
    return f"{'desc' if desc else 'asc'}({field})"


class AlgoliaAdapter(SearchAdapter):
    """Search adapter for Algolia.

    Args:
        app_id: Algolia application id.
        api_key: Admin API key (writes and settings need it).
        index: Primary index name; replicas are named after it.
        base_url: Override the API host (defaults to ``https://{app_id}.algolia.net``).
        timeout: HTTP request timeout in seconds.
        task_timeout: Seconds to wait for an indexing task to be published.
    """

    def __init__(
        self,
        app_id: str,
        api_key: str,
        index: str = "oa_records",
        base_url: str | None = None,
        timeout: float = 10.0,
        task_timeout: float = 30.0,
        **kwargs: Any,
    ) -> None:
        if not app_id or not api_key:
            raise ConfigurationError("Algolia requires app_id and api_key.")
        self._app_id = app_id
        self._api_key = api_key
        self._index = index
        self._base_url = (base_url or f"https://{app_id}.algolia.net").rstrip("/")
        self._timeout = timeout
        self._task_timeout = task_timeout
        self._extra_kwargs = kwargs
        self._client: httpx.AsyncClient | None = None

    @property
    def name(self) -> str:
        return "algolia"

    async def initialize(self) -> None:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout),
            headers={
                "X-Algolia-Application-Id": self._app_id,
                "X-Algolia-API-Key": self._api_key,
                "Content-Type": "application/json",
            },
        )
        try:
            resp = await self._client.get("/1/indexes", params={"page": 0, "hitsPerPage": 1})
            resp.raise_for_status()
            logger.info("Connected to Algolia application %s (index: %s)", self._app_id, self._index)
        except httpx.HTTPError as e:
            raise ConnectionError(f"Failed to connect to Algolia: {e}") from e

    async def shutdown(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise ConnectionError("Algolia client not initialized.")
        return self._client

    def replica_name(self, sort: SortKey) -> str | None:
        """Index serving ``sort``; ``None`` means the primary index."""
        if sort == SortKey.RELEVANCE:
            return None
        suffix = "_".join(f"{field}_{'desc' if desc else 'asc'}" for field, desc in SORT_SPECS[sort])
        return f"{self._index}_{suffix}"

    def replicas(self) -> dict[str, list[str]]:
        """Replica index name -> its ranking, one per distinct ordering."""
        replicas: dict[str, list[str]] = {}
        for sort, spec in SORT_SPECS.items():
            name = self.replica_name(sort)
            if name is not None:
                replicas[name] = [_ranking_rule(f, d) for f, d in spec] + _DEFAULT_RANKING
        return replicas

    # ── Index management ─────────────────────────────────────────────────

    async def ensure_index(self) -> None:
        client = self._require_client()
        try:
            # A settings PUT creates the index when it is missing.
            replicas = self.replicas()
            resp = await client.put(
                f"/1/indexes/{self._index}/settings",
                params={"forwardToReplicas": "true"},
                json={
                    "searchableAttributes": SEARCHABLE_FIELDS,
                    "attributesForFaceting": [*FACET_FIELDS, "filterOnly(doi)"],
                    "customRanking": [_ranking_rule("createdAt", True)],
                    "replicas": list(replicas),
                },
            )
            resp.raise_for_status()
            await self._wait_for_task(self._index, resp.json()["taskID"])

            for replica, ranking in replicas.items():
                resp = await client.put(
                    f"/1/indexes/{replica}/settings",
                    json={"ranking": ranking, "customRanking": []},
                )
                resp.raise_for_status()
                await self._wait_for_task(replica, resp.json()["taskID"])
            logger.info("Configured Algolia index '%s' with %d replicas", self._index, len(replicas))
        except httpx.HTTPError as e:
            logger.error("Algolia ensure_index failed: %s", e)
            raise IndexingError(f"Failed to configure Algolia index: {e}") from e

    async def upsert_many(self, records: list[OARecord]) -> None:
        if not records:
            return
        client = self._require_client()
        requests = [
            {"action": "updateObject", "body": {**to_index_document(r), "objectID": r.id}}
            for r in records
        ]
        try:
            resp = await client.post(f"/1/indexes/{self._index}/batch", json={"requests": requests})
            resp.raise_for_status()
            await self._wait_for_task(self._index, resp.json()["taskID"])
        except httpx.HTTPError as e:
            logger.error("Algolia batch failed: %s", e)
            raise IndexingError(f"Algolia batch failed: {e}") from e

    async def _wait_for_task(self, index: str, task_id: int) -> None:
        client = self._require_client()
        deadline = time.monotonic() + self._task_timeout
        delay = 0.1
        while True:
            resp = await client.get(f"/1/indexes/{index}/task/{task_id}")
            resp.raise_for_status()
            if resp.json().get("status") == "published":
                return
            if time.monotonic() > deadline:
                raise IndexingError(f"Algolia task {task_id} not published after {self._task_timeout}s")
            await asyncio.sleep(delay)
            delay = min(delay * 2, 1.0)

    # ── Search ───────────────────────────────────────────────────────────

    async def search(self, params: SearchParams) -> SearchResult:
        client = self._require_client()
        body: dict[str, Any] = {
            "query": params.text_query(),
            "page": params.page - 1,
            "hitsPerPage": params.page_size,
            "facets": FACET_FIELDS,
            "maxValuesPerFacet": MAX_FACET_VALUES,
        }
        facet_filters = self.facet_filters(params)
        if facet_filters:
            body["facetFilters"] = facet_filters
        numeric_filters = self.numeric_filters(params)
        if numeric_filters:
            body["numericFilters"] = numeric_filters

        index = self.replica_name(params.sort) or self._index
        try:
            start = time.monotonic()
            resp = await client.post(f"/1/indexes/{index}/query", json=body)
            resp.raise_for_status()
            took_ms = int((time.monotonic() - start) * 1000)
        except httpx.HTTPError as e:
            logger.error("Algolia query failed: %s", e)
            raise QueryError(f"Algolia query failed: {e}") from e

        data = resp.json()
        return SearchResult(
            hits=records_from_hits(data.get("hits", []), self.name),
            total=data.get("nbHits", 0),
            facets={
                field: {str(value): count for value, count in counts.items()}
                for field, counts in (data.get("facets") or {}).items()
            },
            took_ms=took_ms,
        )

    async def get_record(self, record_id: str) -> OARecord | None:
        client = self._require_client()
        try:
            resp = await client.get(f"/1/indexes/{self._index}/{quote(record_id, safe='')}")
            if resp.status_code == 404:
                return None
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise QueryError(f"Failed to fetch object from Algolia: {e}") from e
        records = records_from_hits([resp.json()], self.name)
        return records[0] if records else None

    # ── Health ───────────────────────────────────────────────────────────

    async def health_check(self) -> BackendHealth:
        if not self._client:
            return BackendHealth(status="unhealthy", message="Client not initialized")
        try:
            start = time.monotonic()
            resp = await self._client.get(f"/1/indexes/{self._index}/settings")
            latency_ms = int((time.monotonic() - start) * 1000)
            if resp.status_code == 200:
                return BackendHealth(
                    status="healthy",
                    latency_ms=latency_ms,
                    last_check=datetime.now(UTC).isoformat(),
                    message=f"Index: {self._index}",
                )
            return BackendHealth(
                status="degraded",
                latency_ms=latency_ms,
                last_check=datetime.now(UTC).isoformat(),
                message=f"Algolia returned HTTP {resp.status_code}",
            )
        except Exception as e:
            return BackendHealth(status="unhealthy", message=str(e))

    # ── Query translation ────────────────────────────────────────────────

    @staticmethod
    def facet_filters(params: SearchParams) -> list[list[str]]:
        """One inner list per field: values OR-ed, fields AND-ed."""
        return [[f"{field}:{v}" for v in values] for field, values in equality_filters(params).items()]

    @staticmethod
    def numeric_filters(params: SearchParams) -> list[str]:
        year_from, year_to = numeric_bounds(params)
        filters = []
        if year_from is not None:
            filters.append(f"year>={year_from}")
        if year_to is not None:
            filters.append(f"year<={year_to}")
        return filters
