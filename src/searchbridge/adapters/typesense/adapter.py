"""Typesense adapter — Typo-tolerant search server connector.

Communicates with Typesense via its REST API using ``httpx``. Collections
are created on first write from the configured schema; documents are bulk
imported as JSON lines with ``action=upsert``.

Usage::

    adapter = TypesenseAdapter(
        api_key="xyz",
        nodes=[{"host": "localhost", "port": 8108, "protocol": "http"}],
    )
    await adapter.initialize()
    envelope = await adapter.search("articles", "solar", SearchOptions(filters="year:>2020"))
"""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import quote
from uuid import uuid4

from searchbridge.adapters.base.exceptions import BackendQueryError
from searchbridge.adapters.base.remote import RemoteSearchAdapter
from searchbridge.config.settings import TypesenseAdapterSettings
from searchbridge.core.dialects import TYPESENSE, Dialect
from searchbridge.models.facets import FacetFormat
from searchbridge.models.query import SearchOptions
from searchbridge.models.result import Hit, PageInfo, SearchResultEnvelope

logger = logging.getLogger(__name__)


def _seg(value: str) -> str:
    return quote(str(value), safe="")


class TypesenseAdapter(RemoteSearchAdapter):
    """Search adapter for Typesense.

    Supports:
      - ``filter_by`` / ``sort_by`` expressions (see ``TypesenseDialect``)
      - Facet counts and numeric stats (``facet_by``)
      - Highlighting
      - Node failover on connection errors

    Args:
        api_key: Typesense API key.
        nodes: Cluster nodes (``host``, ``port``, ``protocol``).
        searchable_fields: ``query_by`` value.
        fields: Schema used when a collection is auto-created.
        connection_timeout_seconds: HTTP timeout.
        num_retries: Retries on connection failure.
        retry_interval_seconds: Fixed pause between retries.
        transport: Optional ``httpx`` transport.
    """

    config_model = TypesenseAdapterSettings

    @property
    def name(self) -> str:
        return "typesense"

    @property
    def dialect(self) -> Dialect:
        return TYPESENSE

    @property
    def facet_format(self) -> FacetFormat:
        return FacetFormat.TYPESENSE

    @property
    def _timeout(self) -> float:
        return self._config.connection_timeout_seconds

    def _base_urls(self) -> list[str]:
        return [node.url for node in self._config.nodes]

    def _headers(self) -> dict[str, str]:
        return {"X-TYPESENSE-API-KEY": self._config.api_key, "Content-Type": "application/json"}

    # ── Indexing ─────────────────────────────────────────────────────────

    async def index(self, collection: str, documents: list[dict[str, Any]]) -> None:
        """Bulk upsert ``documents``; any rejected line fails the whole call."""
        await self._ensure_collection(collection)
        if not documents:
            return

        lines = "\n".join(json.dumps(self._prepare(doc), ensure_ascii=False, default=str) for doc in documents)
        resp = await self._request(
            "POST",
            f"/collections/{_seg(collection)}/documents/import",
            operation="index",
            params={"action": "upsert"},
            content=lines.encode(),
            headers={"Content-Type": "text/plain"},
        )

        failures = []
        for line in resp.text.splitlines():
            if not line.strip():
                continue
            result = json.loads(line)
            if not result.get("success", False):
                failures.append(result.get("error", "unknown error"))
        if failures:
            raise BackendQueryError(
                f"{len(failures)} of {len(documents)} document(s) rejected: {failures[0]}",
                adapter=self.name,
                operation="index",
            )
        logger.debug("Imported %d document(s) into typesense/%s", len(documents), collection)

    async def add_document(self, collection: str, document: dict[str, Any]) -> None:
        await self._ensure_collection(collection)
        await self._request(
            "POST",
            f"/collections/{_seg(collection)}/documents",
            operation="add_document",
            params={"action": "upsert"},
            json=self._prepare(document),
        )

    async def update_document(self, collection: str, document_id: str, partial: dict[str, Any]) -> None:
        """Patch fields of a stored document. The identifier cannot change; ``id`` in ``partial`` is dropped."""
        body = {k: v for k, v in partial.items() if k != "id"}
        await self._request(
            "PATCH",
            f"/collections/{_seg(collection)}/documents/{_seg(document_id)}",
            operation="update_document",
            json=body,
        )

    async def delete_document(self, collection: str, document_id: str) -> None:
        await self._request(
            "DELETE",
            f"/collections/{_seg(collection)}/documents/{_seg(document_id)}",
            operation="delete_document",
        )

    async def delete_index(self, collection: str) -> None:
        await self._request("DELETE", f"/collections/{_seg(collection)}", operation="delete_index", allow_404=True)
        logger.info("Deleted typesense collection: %s", collection)

    async def index_exists(self, collection: str) -> bool:
        resp = await self._request(
            "GET", f"/collections/{_seg(collection)}", operation="index_exists", allow_404=True
        )
        return resp.status_code == 200

    async def _ensure_collection(self, collection: str) -> None:
        if await self.index_exists(collection):
            return
        schema: dict[str, Any] = {"name": collection, "fields": self._config.fields}
        if self._config.default_sorting_field:
            schema["default_sorting_field"] = self._config.default_sorting_field
        await self._request("POST", "/collections", operation="index", json=schema)
        logger.info("Created typesense collection: %s", collection)

    @staticmethod
    def _prepare(document: dict[str, Any]) -> dict[str, Any]:
        doc_id = document.get("id")
        return {**document, "id": str(doc_id) if doc_id not in (None, "") else uuid4().hex}

    # ── Search ───────────────────────────────────────────────────────────

    async def search(self, collection: str, query: str, options: SearchOptions) -> SearchResultEnvelope:
        """Search a collection. A missing collection yields an empty envelope."""
        params = self._search_params(query, options)
        resp = await self._request(
            "GET",
            f"/collections/{_seg(collection)}/documents/search",
            operation="search",
            allow_404=True,
            params=params,
        )
        if resp.status_code == 404:
            logger.debug("Typesense collection %s not found; returning no hits", collection)
            return SearchResultEnvelope.empty(self.name, offset=options.offset, limit=options.limit)

        data = resp.json()
        total = int(data.get("found", 0))
        return SearchResultEnvelope(
            hits=[self._to_hit(hit) for hit in data.get("hits", [])],
            total_found=total,
            page_info=PageInfo.from_window(offset=options.offset, limit=options.limit, total_found=total),
            adapter=self.name,
            processing_time_ms=int(data.get("search_time_ms", 0)),
            raw_response=data,
        )

    async def get_document(self, collection: str, document_id: str) -> dict[str, Any] | None:
        resp = await self._request(
            "GET",
            f"/collections/{_seg(collection)}/documents/{_seg(document_id)}",
            operation="get_document",
            allow_404=True,
        )
        if resp.status_code == 404:
            return None
        return resp.json()

    def _search_params(self, query: str, options: SearchOptions) -> dict[str, Any]:
        params: dict[str, Any] = {
            "q": query.strip() or "*",
            "query_by": self._config.searchable_fields,
            "highlight_start_tag": "<em>",
            "highlight_end_tag": "</em>",
        }
        if options.limit and options.offset % options.limit:
            # page/per_page only reach offsets on a page boundary
            params["offset"] = options.offset
            params["limit"] = options.limit
        else:
            params["page"] = options.offset // options.limit + 1 if options.limit else 1
            params["per_page"] = options.limit
        if options.filters:
            params["filter_by"] = options.filters
        if options.sort_by:
            params["sort_by"] = options.sort_by
        if options.facets:
            params["facet_by"] = ",".join(options.facets)
            params["max_facet_values"] = options.max_facet_values
        if options.highlight_fields:
            params["highlight_fields"] = ",".join(options.highlight_fields)
        if options.retrieve_fields:
            params["include_fields"] = ",".join(options.retrieve_fields)
        params.update(options.extra)
        return params

    @staticmethod
    def _to_hit(raw_hit: dict[str, Any]) -> Hit:
        document = raw_hit.get("document", {})
        highlights: dict[str, str] = {}

        # v0.25+ nested form first, then the flat list
        for field_name, value in (raw_hit.get("highlight") or {}).items():
            if isinstance(value, dict) and value.get("snippet"):
                highlights[field_name] = value["snippet"]
        for entry in raw_hit.get("highlights") or []:
            snippet = entry.get("snippet") or " ".join(entry.get("snippets") or [])
            if snippet:
                highlights.setdefault(entry.get("field", ""), snippet)

        score = raw_hit.get("text_match")
        if score is None:
            score = (raw_hit.get("text_match_info") or {}).get("score", 0)
        return Hit(id=str(document.get("id", "")), score=float(score), highlights=highlights, document=document)
