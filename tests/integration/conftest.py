"""Integration test fixtures: live search backends with throwaway indexes.

Expects backends to be running locally, e.g.:
    docker run -p 8108:8108 typesense/typesense:27.1 --data-dir /tmp --api-key=xyz
    docker run -p 7700:7700 -e MEILI_MASTER_KEY=test-master-key getmeili/meilisearch:v1.10

Each test session writes to a freshly named collection or index, deleted
again at the end. Tests for a backend that is not reachable are skipped.
"""

from __future__ import annotations

import asyncio
import time
import uuid

import httpx
import pytest

TYPESENSE_URL = "http://localhost:8108"
TYPESENSE_API_KEY = "xyz"
MEILISEARCH_URL = "http://localhost:7700"
MEILISEARCH_API_KEY = "test-master-key"


def _wait_for_service(url: str, timeout: float = 15.0) -> bool:
    """Block until *url* returns HTTP 200, or timeout."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            r = httpx.get(url, timeout=5)
            if r.status_code == 200:
                return True
        except httpx.HTTPError:
            pass
        time.sleep(1)
    return False


# ── Typesense ───────────────────────────────────────────────────


async def _drop_typesense(collection: str) -> None:
    headers = {"X-TYPESENSE-API-KEY": TYPESENSE_API_KEY}
    async with httpx.AsyncClient(base_url=TYPESENSE_URL, timeout=30, headers=headers) as client:
        await client.delete(f"/collections/{collection}")


@pytest.fixture(scope="session")
def typesense_backend():
    """Adapter kwargs for a throwaway Typesense collection; skips if Typesense is down."""
    if not _wait_for_service(f"{TYPESENSE_URL}/health"):
        pytest.skip(f"Typesense not available at {TYPESENSE_URL}")
    collection = f"oa_test_{uuid.uuid4().hex[:8]}"
    yield {"base_url": TYPESENSE_URL, "api_key": TYPESENSE_API_KEY, "collection": collection}
    asyncio.run(_drop_typesense(collection))


# ── Meilisearch ─────────────────────────────────────────────────


async def _drop_meilisearch(index: str) -> None:
    headers = {"Authorization": f"Bearer {MEILISEARCH_API_KEY}"}
    async with httpx.AsyncClient(base_url=MEILISEARCH_URL, timeout=30, headers=headers) as client:
        await client.delete(f"/indexes/{index}")


@pytest.fixture(scope="session")
def meilisearch_backend():
    """Adapter kwargs for a throwaway Meilisearch index; skips if Meilisearch is down."""
    if not _wait_for_service(f"{MEILISEARCH_URL}/health"):
        pytest.skip(f"Meilisearch not available at {MEILISEARCH_URL}")
    index = f"oa_test_{uuid.uuid4().hex[:8]}"
    yield {"base_url": MEILISEARCH_URL, "api_key": MEILISEARCH_API_KEY, "index": index}
    asyncio.run(_drop_meilisearch(index))
