"""Search backend layer: one active index behind a common adapter interface.

Built-in backends:
  - typesense: Typesense collections API
  - meilisearch: Meilisearch indexes API
  - algolia: Algolia indexes API (sorting through virtual replicas)

The backend is chosen once at startup from ``Settings.backend``.
"""
