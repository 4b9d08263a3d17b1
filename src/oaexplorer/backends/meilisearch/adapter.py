"""Meilisearch adapter: index REST API over ``httpx``.

Meilisearch document ids may only contain ``[A-Za-z0-9_-]``, while record
ids contain ``:``, ``.`` and ``/``. Documents are therefore keyed by
``key``, the unpadded URL-safe base64 of the record id.

Writes are asynchronous tasks in Meilisearch; every write waits for its
task so a following search sees the change.

Usage::

    adapter = MeilisearchAdapter(
        base_url="http://localhost:7700",
        index="oa_records",
        api_key="masterKey",
    )
    await adapter.initialize()
    await adapter.ensure_index()
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import time
from datetime import UTC, datetime
from typing import Any

import httpx

from oaexplorer.backends.base.adapter import (
    FACET_FIELDS,
    FILTERABLE_FIELDS,
    MAX_FACET_VALUES,
    SEARCHABLE_FIELDS,
    SORT_SPECS,
    SORTABLE_FIELDS,
    BackendHealth,
    SearchAdapter,
    SearchResult,
    equality_filters,
    numeric_bounds,
    records_from_hits,
    to_index_document,
)
from oaexplorer.backends.base.exceptions import ConnectionError, IndexingError, QueryError
from oaexplorer.models.query import SearchParams, SortKey
from oaexplorer.models.record import OARecord

logger = logging.getLogger(__name__)

PRIMARY_KEY = "key"

# "sort" leads so an explicit sort dominates; with no sort parameter it is
# inert and relevance ends in createdAt desc.
RANKING_RULES = ["sort", "words", "typo", "proximity", "attribute", "exactness", "createdAt:desc"]


def document_key(record_id: str) -> str:
    """Meilisearch-safe primary key for a record id."""
    return base64.urlsafe_b64encode(record_id.encode("utf-8")).decode("ascii").rstrip("=")


def index_settings() -> dict[str, Any]:
    return {
        "searchableAttributes": SEARCHABLE_FIELDS,
        "filterableAttributes": FILTERABLE_FIELDS,
        "sortableAttributes": SORTABLE_FIELDS,
        "rankingRules": RANKING_RULES,
        "faceting": {"maxValuesPerFacet": MAX_FACET_VALUES},
    }


class MeilisearchAdapter(SearchAdapter):
    """Search adapter for Meilisearch.

    Args:
        base_url: Meilisearch instance URL, e.g. ``"http://localhost:7700"``.
        index: Index UID.
        api_key: Master key or API key for authentication.
        timeout: HTTP request timeout in seconds.
        task_timeout: Seconds to wait for an indexing task to finish.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:7700",
        index: str = "oa_records",
        api_key: str | None = None,
        timeout: float = 10.0,
        task_timeout: float = 30.0,
        **kwargs: Any,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._index = index
        self._api_key = api_key
        self._timeout = timeout
        self._task_timeout = task_timeout
        self._extra_kwargs = kwargs
        self._client: httpx.AsyncClient | None = None

    @property
    def name(self) -> str:
        return "meilisearch"

    async def initialize(self) -> None:
        """Create an ``httpx.AsyncClient`` and verify connection to Meilisearch."""
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout),
            headers=headers,
        )

        try:
            resp = await self._client.get("/health")
            resp.raise_for_status()
            data = resp.json()
            if data.get("status") != "available":
                raise ConnectionError(f"Meilisearch not available: {data}")
            logger.info("Connected to Meilisearch at %s (index: %s)", self._base_url, self._index)
        except httpx.HTTPError as e:
            raise ConnectionError(f"Failed to connect to Meilisearch: {e}") from e

    async def shutdown(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise ConnectionError("Meilisearch client not initialized.")
        return self._client

    # ── Index management ─────────────────────────────────────────────────

    async def ensure_index(self) -> None:
        client = self._require_client()
        try:
            resp = await client.get(f"/indexes/{self._index}")
            if resp.status_code == 404:
                resp = await client.post("/indexes", json={"uid": self._index, "primaryKey": PRIMARY_KEY})
                resp.raise_for_status()
                await self._wait_for_task(resp.json()["taskUid"], allow=("index_already_exists",))
                logger.info("Created Meilisearch index '%s'", self._index)
            else:
                resp.raise_for_status()

            # Applied on every call, not only after creation.
            resp = await client.patch(f"/indexes/{self._index}/settings", json=index_settings())
            resp.raise_for_status()
            await self._wait_for_task(resp.json()["taskUid"])
        except httpx.HTTPError as e:
            logger.error("Meilisearch ensure_index failed: %s", e)
            raise IndexingError(f"Failed to create Meilisearch index: {e}") from e

    async def upsert_many(self, records: list[OARecord]) -> None:
        if not records:
            return
        client = self._require_client()
        documents = [{**to_index_document(r), PRIMARY_KEY: document_key(r.id)} for r in records]
        try:
            # POST replaces whole documents; PUT would merge fields.
            resp = await client.post(
                f"/indexes/{self._index}/documents",
                params={"primaryKey": PRIMARY_KEY},
                json=documents,
            )
            resp.raise_for_status()
            await self._wait_for_task(resp.json()["taskUid"])
        except httpx.HTTPError as e:
            logger.error("Meilisearch document import failed: %s", e)
            raise IndexingError(f"Meilisearch document import failed: {e}") from e

    async def _wait_for_task(self, task_uid: int, allow: tuple[str, ...] = ()) -> None:
        """Poll a task until it finishes.

        Raises:
            IndexingError: If the task fails (unless its error code is in
                ``allow``) or does not finish within ``task_timeout``.
        """
        client = self._require_client()
        deadline = time.monotonic() + self._task_timeout
        delay = 0.05
        while True:
            resp = await client.get(f"/tasks/{task_uid}")
            resp.raise_for_status()
            task = resp.json()
            status = task.get("status")
            if status == "succeeded":
                return
            if status in ("failed", "canceled"):
                error = task.get("error") or {}
                if error.get("code") in allow:
                    return
                raise IndexingError(f"Meilisearch task {task_uid} {status}: {error.get('message')}")
            if time.monotonic() > deadline:
                raise IndexingError(f"Meilisearch task {task_uid} still {status} after {self._task_timeout}s")
            await asyncio.sleep(delay)
            delay = min(delay * 2, 1.0)

    # ── Search ───────────────────────────────────────────────────────────

    async def search(self, params: SearchParams) -> SearchResult:
        client = self._require_client()
        payload: dict[str, Any] = {
            "q": params.text_query(),
            "page": params.page,
            "hitsPerPage": params.page_size,
            "facets": FACET_FIELDS,
        }
        filter_expr = self.filter_expression(params)
        if filter_expr:
            payload["filter"] = filter_expr
        sort = self.sort_expression(params.sort)
        if sort:
            payload["sort"] = sort

        try:
            start = time.monotonic()
            resp = await client.post(f"/indexes/{self._index}/search", json=payload)
            resp.raise_for_status()
            took_ms = int((time.monotonic() - start) * 1000)
        except httpx.HTTPError as e:
            logger.error("Meilisearch query failed: %s", e)
            raise QueryError(f"Meilisearch query failed: {e}") from e

        data = resp.json()
        return SearchResult(
            hits=records_from_hits(data.get("hits", []), self.name),
            total=data.get("totalHits", data.get("estimatedTotalHits", 0)),
            facets={
                field: {str(value): count for value, count in counts.items()}
                for field, counts in (data.get("facetDistribution") or {}).items()
            },
            took_ms=took_ms,
        )

    async def get_record(self, record_id: str) -> OARecord | None:
        client = self._require_client()
        try:
            resp = await client.get(f"/indexes/{self._index}/documents/{document_key(record_id)}")
            if resp.status_code == 404:
                return None
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise QueryError(f"Failed to fetch document from Meilisearch: {e}") from e
        records = records_from_hits([resp.json()], self.name)
        return records[0] if records else None

    # ── Health ───────────────────────────────────────────────────────────

    async def health_check(self) -> BackendHealth:
        """Check Meilisearch health."""
        if not self._client:
            return BackendHealth(status="unhealthy", message="Client not initialized")

        try:
            start = time.monotonic()
            resp = await self._client.get("/health")
            latency_ms = int((time.monotonic() - start) * 1000)

            if resp.status_code == 200:
                status = resp.json().get("status", "unknown")
                return BackendHealth(
                    status="healthy" if status == "available" else "degraded",
                    latency_ms=latency_ms,
                    last_check=datetime.now(UTC).isoformat(),
                    message=f"Index: {self._index}, status: {status}",
                )
            return BackendHealth(
                status="degraded",
                latency_ms=latency_ms,
                last_check=datetime.now(UTC).isoformat(),
                message=f"Meilisearch returned HTTP {resp.status_code}",
            )
        except Exception as e:
            return BackendHealth(status="unhealthy", message=str(e))

    # ── Query translation ────────────────────────────────────────────────

    @staticmethod
    def sort_expression(sort: SortKey) -> list[str]:
        """Sort parameter; empty for relevance, which the ranking rules order."""
        if sort == SortKey.RELEVANCE:
            return []
        return [f"{field}:{'desc' if desc else 'asc'}" for field, desc in SORT_SPECS[sort]]

    @staticmethod
    def filter_expression(params: SearchParams) -> str:
        """``field IN ["a", "b"]`` per field and a numeric year range, joined with ``AND``."""
        clauses = [
            f"{field} IN [{', '.join(json.dumps(v, ensure_ascii=False) for v in values)}]"
            for field, values in equality_filters(params).items()
        ]
        year_from, year_to = numeric_bounds(params)
        if year_from is not None:
            clauses.append(f"year >= {year_from}")
        if year_to is not None:
            clauses.append(f"year <= {year_to}")
        return " AND ".join(clauses)
