"""MeiliSearch adapter — Modern, developer-friendly search connector.

MeiliSearch provides instant, typo-tolerant search out of the box.
This adapter communicates via the official REST API using ``httpx``.

Writes in MeiliSearch are asynchronous tasks; every mutating call here
waits for its task to finish and raises if the task failed, so a returned
call means the change is applied.

Usage::

    adapter = MeilisearchAdapter(url="http://localhost:7700", api_key="your-master-key")
    await adapter.initialize()
    envelope = await adapter.search("articles", "solar nowcasting", SearchOptions())
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any
from urllib.parse import quote
from uuid import uuid4

import httpx

from searchbridge.adapters.base.exceptions import BackendQueryError
from searchbridge.adapters.base.remote import RemoteSearchAdapter
from searchbridge.config.settings import MeilisearchAdapterSettings
from searchbridge.core.dialects import MEILISEARCH, Dialect, split_sort_expression
from searchbridge.models.facets import FacetFormat
from searchbridge.models.query import SearchOptions
from searchbridge.models.result import Hit, PageInfo, SearchResultEnvelope

logger = logging.getLogger(__name__)

_HIT_META_KEYS = {"_formatted", "_rankingScore", "_rankingScoreDetails", "_matchesPosition"}
_TASK_DONE = {"succeeded", "failed", "canceled"}


def _seg(value: str) -> str:
    return quote(str(value), safe="")


class MeilisearchAdapter(RemoteSearchAdapter):
    """Search adapter for MeiliSearch.

    Communicates with MeiliSearch via its `REST API`_ over HTTP.

    .. _REST API: https://www.meilisearch.com/docs/reference/api/overview

    Supports:
      - Instant full-text search with typo tolerance
      - Filtering, sorting and geo sorting (see ``MeilisearchDialect``)
      - Facet distribution and facet stats
      - Highlighting

    Args:
        url: MeiliSearch instance URL, e.g. ``"http://localhost:7700"``.
        api_key: Master key or API key for authentication.
        settings: Index settings applied whenever documents are indexed.
        timeout: HTTP request timeout in seconds.
        transport: Optional ``httpx`` transport.
    """

    config_model = MeilisearchAdapterSettings

    @property
    def name(self) -> str:
        return "meilisearch"

    @property
    def dialect(self) -> Dialect:
        return MEILISEARCH

    @property
    def facet_format(self) -> FacetFormat:
        return FacetFormat.MEILISEARCH

    @property
    def _timeout(self) -> float:
        return self._config.timeout

    def _base_urls(self) -> list[str]:
        return [self._config.url.rstrip("/")]

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._config.api_key:
            headers["Authorization"] = f"Bearer {self._config.api_key}"
        return headers

    # ── Indexing ─────────────────────────────────────────────────────────

    async def index(self, collection: str, documents: list[dict[str, Any]]) -> None:
        """Create the index if needed, apply settings, then add ``documents``."""
        if not await self.index_exists(collection):
            resp = await self._request(
                "POST", "/indexes", operation="index", json={"uid": collection, "primaryKey": "id"}
            )
            await self._wait_for_task(resp, "index")
            logger.info("Created meilisearch index: %s", collection)

        if self._config.settings:
            resp = await self._request(
                "PATCH", f"/indexes/{_seg(collection)}/settings", operation="index", json=self._config.settings
            )
            await self._wait_for_task(resp, "index")

        if documents:
            resp = await self._request(
                "POST",
                f"/indexes/{_seg(collection)}/documents",
                operation="index",
                params={"primaryKey": "id"},
                json=[self._prepare(doc) for doc in documents],
            )
            await self._wait_for_task(resp, "index")
            logger.debug("Indexed %d document(s) into meilisearch/%s", len(documents), collection)

    async def add_document(self, collection: str, document: dict[str, Any]) -> None:
        resp = await self._request(
            "POST",
            f"/indexes/{_seg(collection)}/documents",
            operation="add_document",
            params={"primaryKey": "id"},
            json=[self._prepare(document)],
        )
        await self._wait_for_task(resp, "add_document")

    async def update_document(self, collection: str, document_id: str, partial: dict[str, Any]) -> None:
        """Partial update. The path identifier wins over an ``id`` inside ``partial``."""
        resp = await self._request(
            "PUT",
            f"/indexes/{_seg(collection)}/documents",
            operation="update_document",
            params={"primaryKey": "id"},
            json=[{**partial, "id": str(document_id)}],
        )
        await self._wait_for_task(resp, "update_document")

    async def delete_document(self, collection: str, document_id: str) -> None:
        resp = await self._request(
            "DELETE",
            f"/indexes/{_seg(collection)}/documents/{_seg(document_id)}",
            operation="delete_document",
        )
        await self._wait_for_task(resp, "delete_document")

    async def delete_index(self, collection: str) -> None:
        resp = await self._request(
            "DELETE", f"/indexes/{_seg(collection)}", operation="delete_index", allow_404=True
        )
        if resp.status_code != 404:
            await self._wait_for_task(resp, "delete_index")
        logger.info("Deleted meilisearch index: %s", collection)

    async def index_exists(self, collection: str) -> bool:
        resp = await self._request("GET", f"/indexes/{_seg(collection)}", operation="index_exists", allow_404=True)
        return resp.status_code == 200

    @staticmethod
    def _prepare(document: dict[str, Any]) -> dict[str, Any]:
        doc_id = document.get("id")
        return {**document, "id": str(doc_id) if doc_id not in (None, "") else uuid4().hex}

    async def _wait_for_task(self, resp: httpx.Response, operation: str) -> dict[str, Any]:
        """Poll ``/tasks/{uid}`` until the task finishes.

        Raises:
            BackendQueryError: If the task failed, was canceled, or did not
                finish within ``task_timeout_seconds``.
        """
        task_uid = resp.json().get("taskUid")
        if task_uid is None:
            return {}

        deadline = time.monotonic() + self._config.task_timeout_seconds
        while True:
            task = (await self._request("GET", f"/tasks/{task_uid}", operation=operation)).json()
            status = task.get("status")
            if status in _TASK_DONE:
                break
            if time.monotonic() >= deadline:
                raise BackendQueryError(
                    f"Task {task_uid} still '{status}' after {self._config.task_timeout_seconds}s",
                    adapter=self.name,
                    operation=operation,
                )
            await asyncio.sleep(self._config.task_poll_interval_seconds)

        if status != "succeeded":
            error = task.get("error") or {}
            raise BackendQueryError(
                f"Task {task_uid} {status}: {error.get('message', 'no error message')}",
                adapter=self.name,
                operation=operation,
            )
        return task

    # ── Search ───────────────────────────────────────────────────────────

    async def search(self, collection: str, query: str, options: SearchOptions) -> SearchResultEnvelope:
        """Search an index. A missing index yields an empty envelope."""
        resp = await self._request(
            "POST",
            f"/indexes/{_seg(collection)}/search",
            operation="search",
            allow_404=True,
            json=self._search_payload(query, options),
        )
        if resp.status_code == 404:
            logger.debug("MeiliSearch index %s not found; returning no hits", collection)
            return SearchResultEnvelope.empty(self.name, offset=options.offset, limit=options.limit)

        data = resp.json()
        total = int(data.get("estimatedTotalHits", data.get("totalHits", 0)))
        return SearchResultEnvelope(
            hits=[self._to_hit(hit) for hit in data.get("hits", [])],
            total_found=total,
            page_info=PageInfo.from_window(offset=options.offset, limit=options.limit, total_found=total),
            adapter=self.name,
            processing_time_ms=int(data.get("processingTimeMs", 0)),
            raw_response=data,
        )

    async def get_document(self, collection: str, document_id: str) -> dict[str, Any] | None:
        resp = await self._request(
            "GET",
            f"/indexes/{_seg(collection)}/documents/{_seg(document_id)}",
            operation="get_document",
            allow_404=True,
        )
        if resp.status_code == 404:
            return None
        return resp.json()

    def _search_payload(self, query: str, options: SearchOptions) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "q": "" if query.strip() == "*" else query,
            "limit": options.limit,
            "offset": options.offset,
            "attributesToHighlight": options.highlight_fields or self._config.highlight_fields,
            "highlightPreTag": "<em>",
            "highlightPostTag": "</em>",
            "showRankingScore": True,
        }
        if options.filters:
            payload["filter"] = options.filters
        if options.sort_by:
            payload["sort"] = split_sort_expression(options.sort_by)
        if options.facets:
            payload["facets"] = list(options.facets)
        if options.retrieve_fields:
            payload["attributesToRetrieve"] = list(dict.fromkeys(["id", *options.retrieve_fields]))
        payload.update(options.extra)
        return payload

    @staticmethod
    def _to_hit(raw_hit: dict[str, Any]) -> Hit:
        formatted = raw_hit.get("_formatted") or {}
        highlights = {k: v for k, v in formatted.items() if isinstance(v, str) and "<em>" in v}
        document = {k: v for k, v in raw_hit.items() if k not in _HIT_META_KEYS}
        return Hit(
            id=str(raw_hit.get("id", "")),
            score=float(raw_hit.get("_rankingScore", 0.0)),
            highlights=highlights,
            document=document,
        )
