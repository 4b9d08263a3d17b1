"""Open Access Explorer Python SDK: client library for the explorer API.

Provides both async and sync clients for interacting with an explorer server.

Quick start::

    from oaexplorer.client import ExplorerClient

    client = ExplorerClient("http://localhost:8080")
    response = client.search("machine learning", year_from=2020)
    for hit in response["hits"]:
        print(hit["id"], hit["title"])
"""

from oaexplorer.client.client import AsyncExplorerClient, ExplorerClient

__all__ = ["AsyncExplorerClient", "ExplorerClient"]
