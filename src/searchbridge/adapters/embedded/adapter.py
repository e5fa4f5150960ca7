"""Embedded adapter — File-based full-text search on SQLite FTS5.

Each collection lives in its own SQLite file ``<storage_path>/<collection>.index``
holding a JSON document table and an FTS5 table over the searchable fields.
No server is needed, which makes this the default backend for development
and tests.

Capabilities:
  - Full-text search ranked by BM25, with ``<em>`` highlights
  - Typo tolerance (``fuzziness``) through vocabulary expansion
  - Sorting by relevance, by any document field, or at random

Not supported: structured filters, aggregations, distance sorts. Searching a
collection that does not exist raises ``CollectionNotFoundError``; failures
here are local and never retried.

Usage::

    adapter = EmbeddedAdapter(storage_path="storage/search")
    await adapter.initialize()
    await adapter.index("articles", [{"id": "1", "title": "Solar power"}])
    envelope = await adapter.search("articles", "solar", SearchOptions())
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
import sqlite3
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from functools import partial
from pathlib import Path
from typing import Any, TypeVar
from uuid import uuid4

from searchbridge.adapters.base.adapter import AdapterHealth, SearchAdapter
from searchbridge.adapters.base.exceptions import (
    BackendQueryError,
    CollectionNotFoundError,
    ConfigurationError,
)
from searchbridge.adapters.embedded.fuzzy import expand_term
from searchbridge.config.settings import EmbeddedAdapterSettings
from searchbridge.core.dialects import EMBEDDED, Dialect, split_sort_expression
from searchbridge.models.query import SearchOptions
from searchbridge.models.result import Hit, PageInfo, SearchResultEnvelope

logger = logging.getLogger(__name__)

T = TypeVar("T")

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.\-]*$")
_FIELD_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")
_TOKEN_PATTERN = re.compile(r"\w+", re.UNICODE)
_MATCH_ALL = {"", "*"}


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def _field_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return " ".join(_field_text(v) for v in value)
    if isinstance(value, dict):
        return " ".join(_field_text(v) for v in value.values())
    return str(value)


class EmbeddedAdapter(SearchAdapter):
    """Search adapter storing each collection in a local SQLite FTS5 file.

    Args:
        storage_path: Directory holding the ``.index`` files.
        searchable_fields: Document fields indexed for full-text search
            (fixed per collection when the file is created).
        fuzziness: Enable typo tolerance for every search.
        fuzzy_prefix_length: Leading characters a fuzzy candidate must share.
    """

    config_model = EmbeddedAdapterSettings

    @property
    def name(self) -> str:
        return "embedded"

    @property
    def dialect(self) -> Dialect:
        return EMBEDDED

    @property
    def storage_path(self) -> Path:
        return Path(self._config.storage_path)

    async def initialize(self) -> None:
        """Create the storage directory."""
        try:
            self.storage_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(
                f"Cannot create storage directory {self.storage_path}: {e}",
                adapter=self.name,
                operation="initialize",
                cause=e,
            ) from e
        await super().initialize()
        logger.info("Initialized embedded adapter (storage: %s)", self.storage_path)

    async def health_check(self) -> AdapterHealth:
        path = self.storage_path
        if not path.is_dir():
            return AdapterHealth(status="unhealthy", message=f"Storage directory missing: {path}")
        if not os.access(path, os.W_OK):
            return AdapterHealth(status="degraded", message=f"Storage directory not writable: {path}")
        collections = sorted(p.stem for p in path.glob("*.index"))
        return AdapterHealth(
            status="healthy",
            last_check=datetime.now(UTC).isoformat(),
            message=f"{len(collections)} collection(s) in {path}",
        )

    # ── Indexing ─────────────────────────────────────────────────────────

    async def index(self, collection: str, documents: list[dict[str, Any]]) -> None:
        await self._run("index", self._index_sync, collection, documents)

    async def add_document(self, collection: str, document: dict[str, Any]) -> None:
        await self._run("add_document", self._index_sync, collection, [document])

    async def update_document(self, collection: str, document_id: str, partial_doc: dict[str, Any]) -> None:
        """Merge ``partial_doc`` over the stored document.

        The document keeps ``document_id``; an ``id`` inside ``partial_doc`` is ignored.
        """
        await self._run("update_document", self._update_sync, collection, str(document_id), partial_doc)

    async def delete_document(self, collection: str, document_id: str) -> None:
        await self._run("delete_document", self._delete_sync, collection, str(document_id))

    async def delete_index(self, collection: str) -> None:
        path = self._path(collection, "delete_index")
        for suffix in ("", "-wal", "-shm", "-journal"):
            candidate = path.with_name(path.name + suffix)
            try:
                candidate.unlink(missing_ok=True)
            except OSError as e:
                raise BackendQueryError(
                    f"Cannot delete {candidate}: {e}", adapter=self.name, operation="delete_index", cause=e
                ) from e
        logger.info("Deleted embedded collection: %s", collection)

    async def index_exists(self, collection: str) -> bool:
        return self._path(collection, "index_exists").is_file()

    # ── Search ───────────────────────────────────────────────────────────

    async def search(self, collection: str, query: str, options: SearchOptions) -> SearchResultEnvelope:
        """Full-text search over one collection file.

        An empty query (or ``"*"``) lists every document.

        Raises:
            CollectionNotFoundError: If the collection file does not exist.
            BackendQueryError: If a filter expression or distance sort is passed.
        """
        if options.filters:
            raise BackendQueryError(
                "Structured filters are not supported by the embedded adapter",
                adapter=self.name,
                operation="search",
            )
        start = time.monotonic()
        hits, total, match = await self._run("search", self._search_sync, collection, query, options)
        return SearchResultEnvelope(
            hits=hits,
            total_found=total,
            page_info=PageInfo.from_window(offset=options.offset, limit=options.limit, total_found=total),
            adapter=self.name,
            processing_time_ms=int((time.monotonic() - start) * 1000),
            raw_response={"match": match, "found": total},
        )

    async def get_document(self, collection: str, document_id: str) -> dict[str, Any] | None:
        return await self._run("get_document", self._get_sync, collection, str(document_id))

    # ── Helpers ──────────────────────────────────────────────────────────

    async def _run(self, operation: str, func: Callable[..., T], *args: Any) -> T:
        """Run blocking SQLite work in the default executor, wrapping its errors."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, partial(func, *args))
        except sqlite3.Error as e:
            raise BackendQueryError(
                f"SQLite error: {e}", adapter=self.name, operation=operation, cause=e
            ) from e

    def _path(self, collection: str, operation: str) -> Path:
        if not _NAME_PATTERN.match(collection):
            raise ConfigurationError(
                f"Invalid collection name: {collection!r}", adapter=self.name, operation=operation
            )
        return self.storage_path / f"{collection}.index"

    @contextmanager
    def _connect(self, collection: str, operation: str, *, create: bool = False) -> Iterator[sqlite3.Connection]:
        path = self._path(collection, operation)
        fields = self._searchable_fields(operation) if create else []
        fresh = not path.is_file()
        if fresh:
            if not create:
                raise CollectionNotFoundError(
                    f"Collection '{collection}' does not exist", adapter=self.name, operation=operation
                )
            path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(path)
        try:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            conn.execute("PRAGMA busy_timeout = 30000")
            if create:
                try:
                    self._ensure_schema(conn, fields)
                except sqlite3.Error:
                    if fresh:
                        conn.close()
                        path.unlink(missing_ok=True)
                    raise
            yield conn
        finally:
            conn.close()

    def _searchable_fields(self, operation: str) -> list[str]:
        """Configured searchable fields, validated before any file is created."""
        fields = list(dict.fromkeys(self._config.searchable_fields))
        for field_name in fields:
            if not _FIELD_PATTERN.match(field_name):
                raise ConfigurationError(
                    f"Invalid searchable field: {field_name!r}", adapter=self.name, operation=operation
                )
        return fields

    def _ensure_schema(self, conn: sqlite3.Connection, fields: list[str]) -> None:
        columns = ", ".join(_quote(f) for f in fields)
        with conn:
            conn.execute("CREATE TABLE IF NOT EXISTS meta (key TEXT PRIMARY KEY, value TEXT NOT NULL)")
            conn.execute("CREATE TABLE IF NOT EXISTS documents (id TEXT PRIMARY KEY, body TEXT NOT NULL)")
            conn.execute(
                f"CREATE VIRTUAL TABLE IF NOT EXISTS fts USING fts5({columns}, tokenize='unicode61 remove_diacritics 2')"
            )
            conn.execute("CREATE VIRTUAL TABLE IF NOT EXISTS fts_vocab USING fts5vocab(fts, 'row')")
            conn.execute("INSERT OR IGNORE INTO meta (key, value) VALUES ('fields', ?)", (json.dumps(fields),))

    @staticmethod
    def _fields(conn: sqlite3.Connection) -> list[str]:
        row = conn.execute("SELECT value FROM meta WHERE key = 'fields'").fetchone()
        return json.loads(row[0])

    def _write(self, conn: sqlite3.Connection, fields: list[str], document: dict[str, Any]) -> None:
        doc_id = str(document["id"])
        body = json.dumps(document, ensure_ascii=False, default=str)
        conn.execute(
            "INSERT INTO documents (id, body) VALUES (?, ?) ON CONFLICT(id) DO UPDATE SET body = excluded.body",
            (doc_id, body),
        )
        (rowid,) = conn.execute("SELECT rowid FROM documents WHERE id = ?", (doc_id,)).fetchone()
        conn.execute("DELETE FROM fts WHERE rowid = ?", (rowid,))
        placeholders = ", ".join("?" for _ in fields)
        conn.execute(
            f"INSERT INTO fts (rowid, {', '.join(_quote(f) for f in fields)}) VALUES (?, {placeholders})",
            (rowid, *(_field_text(document.get(f)) for f in fields)),
        )

    def _index_sync(self, collection: str, documents: list[dict[str, Any]]) -> None:
        with self._connect(collection, "index", create=True) as conn:
            fields = self._fields(conn)
            # one transaction: all documents are written or none
            with conn:
                for document in documents:
                    doc_id = document.get("id")
                    doc = {**document, "id": str(doc_id) if doc_id not in (None, "") else uuid4().hex}
                    self._write(conn, fields, doc)
        logger.debug("Indexed %d document(s) into embedded/%s", len(documents), collection)

    def _update_sync(self, collection: str, document_id: str, partial_doc: dict[str, Any]) -> None:
        with self._connect(collection, "update_document") as conn:
            row = conn.execute("SELECT body FROM documents WHERE id = ?", (document_id,)).fetchone()
            if row is None:
                raise BackendQueryError(
                    f"Document '{document_id}' not found in '{collection}'",
                    adapter=self.name,
                    operation="update_document",
                )
            merged = {**json.loads(row[0]), **partial_doc, "id": document_id}
            with conn:
                self._write(conn, self._fields(conn), merged)

    def _delete_sync(self, collection: str, document_id: str) -> None:
        with self._connect(collection, "delete_document") as conn, conn:
            row = conn.execute("SELECT rowid FROM documents WHERE id = ?", (document_id,)).fetchone()
            if row is None:
                return
            conn.execute("DELETE FROM fts WHERE rowid = ?", (row[0],))
            conn.execute("DELETE FROM documents WHERE rowid = ?", (row[0],))

    def _get_sync(self, collection: str, document_id: str) -> dict[str, Any] | None:
        if not self._path(collection, "get_document").is_file():
            return None
        with self._connect(collection, "get_document") as conn:
            row = conn.execute("SELECT body FROM documents WHERE id = ?", (document_id,)).fetchone()
        return json.loads(row[0]) if row else None

    # ── Query building ───────────────────────────────────────────────────

    def _match_expression(self, conn: sqlite3.Connection, terms: list[str], fuzzy: bool) -> str:
        groups = []
        for term in terms:
            variants = [term]
            if fuzzy:
                variants = expand_term(term, self._vocabulary(conn, term), self._config.fuzzy_prefix_length)
            quoted = " OR ".join('"' + v.replace('"', '""') + '"' for v in variants)
            groups.append(f"({quoted})" if len(variants) > 1 else quoted)
        return " AND ".join(groups)

    def _vocabulary(self, conn: sqlite3.Connection, term: str) -> list[str]:
        prefix = term[: self._config.fuzzy_prefix_length]
        if not prefix:
            return [row[0] for row in conn.execute("SELECT term FROM fts_vocab")]
        return [
            row[0]
            for row in conn.execute(
                "SELECT term FROM fts_vocab WHERE term >= ? AND term < ?", (prefix, prefix + "\U0010ffff")
            )
        ]

    def _order_by(self, sort_by: str | None, *, ranked: bool) -> str:
        default = "score DESC" if ranked else "d.rowid ASC"
        if not sort_by:
            return default
        clauses = []
        for part in split_sort_expression(sort_by):
            field_name, _, direction = part.rpartition(":")
            if not field_name:
                field_name, direction = part, "asc"
            direction = direction.strip().upper()
            if part == "_random":
                clauses.append("random()")
                continue
            if direction not in ("ASC", "DESC") or not _FIELD_PATTERN.match(field_name):
                raise BackendQueryError(
                    f"Unsupported sort expression: {part!r}", adapter=self.name, operation="search"
                )
            if field_name == "_score":
                clauses.append(f"score {direction}")
            else:
                clauses.append(f"json_extract(d.body, '$.{field_name}') {direction}")
        return ", ".join(clauses)

    def _search_sync(self, collection: str, query: str, options: SearchOptions) -> tuple[list[Hit], int, str]:
        with self._connect(collection, "search") as conn:
            fields = self._fields(conn)
            terms = [] if query.strip() in _MATCH_ALL else _TOKEN_PATTERN.findall(query.lower())
            fuzzy = options.fuzziness or self._config.fuzziness

            if not terms:
                match = ""
                (total,) = conn.execute("SELECT count(*) FROM documents").fetchone()
                rows = conn.execute(
                    f"SELECT d.id, d.body, 0.0 AS score FROM documents d "
                    f"ORDER BY {self._order_by(options.sort_by, ranked=False)} LIMIT ? OFFSET ?",
                    (options.limit, options.offset),
                ).fetchall()
                highlighted: list[str] = []
            else:
                match = self._match_expression(conn, terms, fuzzy)
                (total,) = conn.execute("SELECT count(*) FROM fts WHERE fts MATCH ?", (match,)).fetchone()
                highlighted = [f for f in (options.highlight_fields or fields) if f in fields]
                snippets = "".join(
                    f", highlight(fts, {fields.index(f)}, '<em>', '</em>')" for f in highlighted
                )
                rows = conn.execute(
                    f"SELECT d.id, d.body, -bm25(fts) AS score{snippets} "
                    f"FROM fts JOIN documents d ON d.rowid = fts.rowid WHERE fts MATCH ? "
                    f"ORDER BY {self._order_by(options.sort_by, ranked=True)} LIMIT ? OFFSET ?",
                    (match, options.limit, options.offset),
                ).fetchall()

        hits = []
        for row in rows:
            document = json.loads(row[1])
            if options.retrieve_fields:
                document = {k: v for k, v in document.items() if k == "id" or k in options.retrieve_fields}
            highlights = {f: text for f, text in zip(highlighted, row[3:], strict=False) if text and "<em>" in text}
            hits.append(Hit(id=row[0], score=float(row[2]), highlights=highlights, document=document))
        return hits, total, match
