"""Open Access Explorer Python SDK: async and sync clients for the REST API.

Usage::

    # Async
    async with AsyncExplorerClient("http://localhost:8080") as client:
        response = await client.search("machine learning")

    # Sync (wraps async client internally)
    client = ExplorerClient("http://localhost:8080")
    response = client.search("machine learning")
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar, cast

import httpx

_T = TypeVar("_T")

# ═══════════════════════════════════════════════════════════════════════════════
# Response types (lightweight dicts, not coupled to server models)
# ═══════════════════════════════════════════════════════════════════════════════

SearchResult = dict[str, Any]
"""Search response dict (mirrors ``SearchResponse`` JSON, camelCase keys)."""

Paper = dict[str, Any]
"""Paper response dict with ``record`` and ``pdf`` keys."""

IngestResult = dict[str, Any]
"""Ingest response dict with ``indexed`` and per-source ``sources``."""


def _search_payload(
    q: str | None,
    *,
    doi: str | None = None,
    page: int = 1,
    page_size: int = 20,
    sort: str = "relevance",
    year_from: int | None = None,
    year_to: int | None = None,
    **filters: Any,
) -> dict[str, Any]:
    payload: dict[str, Any] = {"page": page, "pageSize": page_size, "sort": sort}
    if q:
        payload["q"] = q
    if doi:
        payload["doi"] = doi
    filter_body = {k: v for k, v in filters.items() if v is not None}
    if year_from is not None:
        filter_body["yearFrom"] = year_from
    if year_to is not None:
        filter_body["yearTo"] = year_to
    if filter_body:
        payload["filters"] = filter_body
    return payload


# ═══════════════════════════════════════════════════════════════════════════════
# Async client
# ═══════════════════════════════════════════════════════════════════════════════


class AsyncExplorerClient:
    """Async Python client for the explorer API.

    Args:
        base_url: Explorer server URL, e.g. ``"http://localhost:8080"``.
        timeout: Request timeout in seconds.
        **httpx_kwargs: Additional keyword arguments passed to ``httpx.AsyncClient``.

    Example::

        async with AsyncExplorerClient("http://localhost:8080") as client:
            resp = await client.search("CRISPR", source=["europepmc", "ncbi"])
            for hit in resp["hits"]:
                print(hit["title"])
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        *,
        timeout: float = 60.0,
        **httpx_kwargs: Any,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            **httpx_kwargs,
        )

    async def __aenter__(self) -> AsyncExplorerClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    # ── Health ──

    async def health(self) -> dict[str, Any]:
        resp = await self._client.get("/api/health")
        resp.raise_for_status()
        return cast(dict[str, Any], resp.json())

    async def sources(self) -> list[dict[str, Any]]:
        """List the built-in sources and whether each is enabled."""
        resp = await self._client.get("/api/sources")
        resp.raise_for_status()
        return cast(list[dict[str, Any]], resp.json())

    # ── Search ──

    async def search(
        self,
        q: str | None = None,
        *,
        doi: str | None = None,
        page: int = 1,
        page_size: int = 20,
        sort: str = "relevance",
        year_from: int | None = None,
        year_to: int | None = None,
        **filters: Any,
    ) -> SearchResult:
        """Search the index.

        Args:
            q: Free text, or a DOI.
            doi: Exact DOI lookup.
            page: 1-based page number.
            page_size: Hits per page (1-100).
            sort: Sort key, e.g. ``"date"``.
            year_from: Lowest publication year.
            year_to: Highest publication year.
            **filters: Equality filters by their JSON name (``source``,
                ``oaStatus``, ``venue``, ``publisher``, ``topics``,
                ``openAccessOnly``).

        Returns:
            Search response as a dict.
        """
        payload = _search_payload(
            q,
            doi=doi,
            page=page,
            page_size=page_size,
            sort=sort,
            year_from=year_from,
            year_to=year_to,
            **filters,
        )
        resp = await self._client.post("/api/search", json=payload)
        resp.raise_for_status()
        return cast(dict[str, Any], resp.json())

    async def get_paper(self, record_id: str) -> Paper | None:
        """Fetch one record with its resolved PDF link, or None if unknown."""
        resp = await self._client.get(f"/api/paper/{record_id}")
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return cast(dict[str, Any], resp.json())

    # ── Ingest / export ──

    async def ingest(
        self,
        q: str | None = None,
        *,
        doi: str | None = None,
        year_from: int | None = None,
        year_to: int | None = None,
        sources: list[str] | None = None,
    ) -> IngestResult:
        """Federate a query across the sources and index the results."""
        payload: dict[str, Any] = {"q": q, "doi": doi, "yearFrom": year_from, "yearTo": year_to, "sources": sources}
        resp = await self._client.post(
            "/api/ingest",
            json={k: v for k, v in payload.items() if v is not None},
        )
        resp.raise_for_status()
        return cast(dict[str, Any], resp.json())

    async def export(self, q: str | None = None, *, format: str = "bibtex", **search_kwargs: Any) -> str:
        """Render a page of search results as ``bibtex``, ``ris``, ``csv`` or ``json`` text."""
        payload = {"params": _search_payload(q, **search_kwargs), "format": format}
        resp = await self._client.post("/api/export", json=payload)
        resp.raise_for_status()
        return resp.text


# ═══════════════════════════════════════════════════════════════════════════════
# Sync client (wraps AsyncExplorerClient)
# ═══════════════════════════════════════════════════════════════════════════════


class ExplorerClient:
    """Synchronous Python client for the explorer API.

    Wraps :class:`AsyncExplorerClient` using ``asyncio.run``.

    Args:
        base_url: Explorer server URL.
        timeout: Request timeout in seconds.
        **httpx_kwargs: Additional keyword arguments passed to ``httpx.AsyncClient``.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        *,
        timeout: float = 60.0,
        **httpx_kwargs: Any,
    ) -> None:
        self._base_url = base_url
        self._timeout = timeout
        self._httpx_kwargs = httpx_kwargs

    def _run(self, coro: Coroutine[Any, Any, _T]) -> _T:
        """Run an async coroutine synchronously."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop and loop.is_running():
            import concurrent.futures

            with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
                return pool.submit(asyncio.run, coro).result()
        return asyncio.run(coro)

    def _make_client(self) -> AsyncExplorerClient:
        return AsyncExplorerClient(
            self._base_url,
            timeout=self._timeout,
            **self._httpx_kwargs,
        )

    def health(self) -> dict[str, Any]:
        async def _call() -> dict[str, Any]:
            async with self._make_client() as c:
                return await c.health()

        return self._run(_call())

    def sources(self) -> list[dict[str, Any]]:
        async def _call() -> list[dict[str, Any]]:
            async with self._make_client() as c:
                return await c.sources()

        return self._run(_call())

    def search(self, q: str | None = None, **kwargs: Any) -> SearchResult:
        """Search the index (see :meth:`AsyncExplorerClient.search`)."""

        async def _call() -> SearchResult:
            async with self._make_client() as c:
                return await c.search(q, **kwargs)

        return self._run(_call())

    def get_paper(self, record_id: str) -> Paper | None:
        async def _call() -> Paper | None:
            async with self._make_client() as c:
                return await c.get_paper(record_id)

        return self._run(_call())

    def ingest(self, q: str | None = None, **kwargs: Any) -> IngestResult:
        async def _call() -> IngestResult:
            async with self._make_client() as c:
                return await c.ingest(q, **kwargs)

        return self._run(_call())

    def export(self, q: str | None = None, *, format: str = "bibtex", **search_kwargs: Any) -> str:
        async def _call() -> str:
            async with self._make_client() as c:
                return await c.export(q, format=format, **search_kwargs)

        return self._run(_call())
