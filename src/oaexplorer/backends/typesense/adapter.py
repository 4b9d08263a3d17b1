"""Typesense adapter: collection and document REST API over ``httpx``.

Usage::

    adapter = TypesenseAdapter(
        base_url="http://localhost:8108",
        api_key="xyz",
        collection="oa_records",
    )
    await adapter.initialize()
    await adapter.ensure_index()
    result = await adapter.search(SearchParams(q="machine learning"))
"""

from __future__ import annotations

import json
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
from oaexplorer.backends.base.exceptions import ConnectionError, IndexingError, QueryError
from oaexplorer.models.query import SearchParams, SortKey
from oaexplorer.models.record import OARecord

logger = logging.getLogger(__name__)


def collection_schema(name: str) -> dict[str, Any]:
    """Canonical Typesense collection schema.

    String fields used for ordering need ``sort: true``. Display-only
    fields are stored without being indexed.
    """
    return {
        "name": name,
        "fields": [
            {"name": "title", "type": "string", "sort": True},
            {"name": "authors", "type": "string[]", "optional": True},
            {"name": "abstract", "type": "string", "optional": True},
            {"name": "doi", "type": "string", "optional": True},
            {"name": "year", "type": "int32", "optional": True, "facet": True},
            {"name": "venue", "type": "string", "optional": True, "facet": True, "sort": True},
            {"name": "source", "type": "string", "facet": True},
            {"name": "sourceId", "type": "string"},
            {"name": "oaStatus", "type": "string", "optional": True, "facet": True},
            {"name": "topics", "type": "string[]", "optional": True, "facet": True},
            {"name": "publisher", "type": "string", "optional": True, "facet": True},
            {"name": "language", "type": "string", "optional": True},
            {"name": "bestPdfUrl", "type": "string", "optional": True, "index": False},
            {"name": "landingPage", "type": "string", "optional": True, "index": False},
            {"name": "citationCount", "type": "int32", "optional": True, "index": False},
            {"name": "createdAt", "type": "string", "sort": True},
            {"name": "updatedAt", "type": "string", "optional": True, "index": False},
            {"name": "firstAuthor", "type": "string", "sort": True},
        ],
    }


class TypesenseAdapter(SearchAdapter):
    """Search adapter for Typesense.

    Args:
        base_url: Typesense node URL, e.g. ``"http://localhost:8108"``.
        api_key: Admin API key.
        collection: Collection name.
        timeout: HTTP request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8108",
        api_key: str = "xyz",
        collection: str = "oa_records",
        timeout: float = 10.0,
        **kwargs: Any,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._collection = collection
        self._timeout = timeout
        self._extra_kwargs = kwargs
        self._client: httpx.AsyncClient | None = None

    @property
    def name(self) -> str:
        return "typesense"

    async def initialize(self) -> None:
        """Create an ``httpx.AsyncClient`` and verify the node is healthy."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(self._timeout),
            headers={"X-TYPESENSE-API-KEY": self._api_key},
        )
        try:
            resp = await self._client.get("/health")
            resp.raise_for_status()
            if not resp.json().get("ok"):
                raise ConnectionError(f"Typesense not healthy: {resp.text}")
            logger.info("Connected to Typesense at %s (collection: %s)", self._base_url, self._collection)
        except httpx.HTTPError as e:
            raise ConnectionError(f"Failed to connect to Typesense: {e}") from e

    async def shutdown(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise ConnectionError("Typesense client not initialized.")
        return self._client

    # ── Index management ─────────────────────────────────────────────────

    async def ensure_index(self) -> None:
        client = self._require_client()
        try:
            resp = await client.get(f"/collections/{self._collection}")
            if resp.status_code == 200:
                return
            if resp.status_code != 404:
                resp.raise_for_status()
            resp = await client.post("/collections", json=collection_schema(self._collection))
            # 409: created concurrently by another process.
            if resp.status_code != 409:
                resp.raise_for_status()
            logger.info("Created Typesense collection '%s'", self._collection)
        except httpx.HTTPError as e:
            logger.error("Typesense ensure_index failed: %s", e)
            raise IndexingError(f"Failed to create Typesense collection: {e}") from e

    async def upsert_many(self, records: list[OARecord]) -> None:
        if not records:
            return
        client = self._require_client()
        body = "\n".join(json.dumps(to_index_document(r), ensure_ascii=False) for r in records)
        try:
            resp = await client.post(
                f"/collections/{self._collection}/documents/import",
                params={"action": "upsert"},
                content=body.encode("utf-8"),
                headers={"Content-Type": "text/plain"},
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Typesense import failed: %s", e)
            raise IndexingError(f"Typesense import failed: {e}") from e

        failures = [
            line
            for line in (json.loads(raw) for raw in resp.text.splitlines() if raw.strip())
            if not line.get("success")
        ]
        if failures:
            logger.error("Typesense rejected %d of %d documents", len(failures), len(records))
            raise IndexingError(f"Typesense rejected {len(failures)} documents: {failures[0].get('error')}")

    # ── Search ───────────────────────────────────────────────────────────

    async def search(self, params: SearchParams) -> SearchResult:
        client = self._require_client()
        query: dict[str, Any] = {
            "q": params.text_query() or "*",
            "query_by": ",".join(SEARCHABLE_FIELDS),
            "page": params.page,
            "per_page": params.page_size,
            "facet_by": ",".join(FACET_FIELDS),
            "max_facet_values": MAX_FACET_VALUES,
            "sort_by": self.sort_clause(params.sort),
        }
        filter_by = self.filter_clause(params)
        if filter_by:
            query["filter_by"] = filter_by

        try:
            start = time.monotonic()
            resp = await client.get(f"/collections/{self._collection}/documents/search", params=query)
            resp.raise_for_status()
            took_ms = int((time.monotonic() - start) * 1000)
        except httpx.HTTPError as e:
            logger.error("Typesense query failed: %s", e)
            raise QueryError(f"Typesense query failed: {e}") from e

        data = resp.json()
        return SearchResult(
            hits=records_from_hits([h.get("document", {}) for h in data.get("hits", [])], self.name),
            total=data.get("found", 0),
            facets={
                fc["field_name"]: {str(c["value"]): c["count"] for c in fc.get("counts", [])}
                for fc in data.get("facet_counts", [])
            },
            took_ms=took_ms,
        )

    async def get_record(self, record_id: str) -> OARecord | None:
        client = self._require_client()
        try:
            resp = await client.get(f"/collections/{self._collection}/documents/{quote(record_id, safe='')}")
            if resp.status_code == 404:
                return None
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise QueryError(f"Failed to fetch document from Typesense: {e}") from e
        records = records_from_hits([resp.json()], self.name)
        return records[0] if records else None

    # ── Health ───────────────────────────────────────────────────────────

    async def health_check(self) -> BackendHealth:
        if not self._client:
            return BackendHealth(status="unhealthy", message="Client not initialized")
        try:
            start = time.monotonic()
            resp = await self._client.get("/health")
            latency_ms = int((time.monotonic() - start) * 1000)
            ok = resp.status_code == 200 and resp.json().get("ok") is True
            return BackendHealth(
                status="healthy" if ok else "degraded",
                latency_ms=latency_ms,
                last_check=datetime.now(UTC).isoformat(),
                message=f"Collection: {self._collection}" if ok else f"Typesense returned HTTP {resp.status_code}",
            )
        except Exception as e:
            return BackendHealth(status="unhealthy", message=str(e))

    # ── Query translation ────────────────────────────────────────────────

    @staticmethod
    def sort_clause(sort: SortKey) -> str:
        clauses = [f"{field}:{'desc' if desc else 'asc'}" for field, desc in SORT_SPECS[sort]]
        if sort == SortKey.RELEVANCE:
            clauses.insert(0, "_text_match:desc")
        return ",".join(clauses)

    @staticmethod
    def filter_clause(params: SearchParams) -> str:
        """``field:=[`a`,`b`]`` per field and a numeric year range, joined with ``&&``."""
        clauses = [
            f"{field}:=[{','.join(_quote(v) for v in values)}]"
            for field, values in equality_filters(params).items()
        ]
        year_from, year_to = numeric_bounds(params)
        if year_from is not None:
            clauses.append(f"year:>={year_from}")
        if year_to is not None:
            clauses.append(f"year:<={year_to}")
        return " && ".join(clauses)


def _quote(value: str) -> str:
    return "`" + value.replace("`", "") + "`"
