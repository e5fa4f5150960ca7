"""Search adapter layer — Pluggable connectors for search backends.

Built-in adapters:
  - embedded: SQLite FTS5 file per collection (no server required)
  - typesense: Typesense v0.25+ (typo-tolerant search with facets)
  - meilisearch: MeiliSearch v1+ (instant, typo-tolerant search)

Implement ``SearchAdapter`` and register it with ``AdapterRegistry`` to
connect your own search backend.
"""
