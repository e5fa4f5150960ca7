"""Shared test fixtures and configuration."""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import pytest

from searchbridge.adapters.base.adapter import AdapterHealth, SearchAdapter
from searchbridge.config.settings import Settings
from searchbridge.core.dialects import TYPESENSE, Dialect
from searchbridge.core.manager import SearchManager
from searchbridge.models.facets import FacetFormat, FacetKind, FacetSpec, RangeBucket
from searchbridge.models.filters import Filter, FilterOperator
from searchbridge.models.query import SearchOptions
from searchbridge.models.result import Hit, PageInfo, SearchResultEnvelope


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Create a test Settings instance whose embedded storage lives in tmp_path."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        debug=True,
        adapters={
            "embedded": {"storage_path": str(tmp_path / "search")},
            "typesense": {"api_key": "test-key", "num_retries": 0, "retry_interval_seconds": 0},
            "meilisearch": {"api_key": "test-key", "num_retries": 0, "retry_interval_seconds": 0},
        },
    )


@pytest.fixture
async def manager(settings: Settings) -> AsyncIterator[SearchManager]:
    """An initialized manager on the embedded adapter."""
    m = SearchManager(settings)
    await m.initialize()
    yield m
    await m.shutdown()


@pytest.fixture
def articles() -> list[dict[str, Any]]:
    """Small article corpus used across adapter tests."""
    return [
        {
            "id": "a1",
            "title": "Solar Irradiance Nowcasting",
            "content": "Deep learning models predict solar irradiance from satellite imagery.",
            "category": "energy",
            "price": 120,
            "published_at": "2024-01-15",
        },
        {
            "id": "a2",
            "title": "Wind Power Forecasting",
            "content": "Statistical methods for short-term wind power output forecasting.",
            "category": "energy",
            "price": 40,
            "published_at": "2024-02-03",
        },
        {
            "id": "a3",
            "title": "Graph Neural Networks for Chemistry",
            "content": "Message passing networks predict molecular properties.",
            "category": "chemistry",
            "price": 75,
            "published_at": "2023-11-20",
        },
    ]


# ── Query fixtures (generic filters and facets) ──


@pytest.fixture
def laptop_filters() -> list[Filter]:
    """Price between 500 and 2000 AND category in (electronics, computers)."""
    return [
        Filter(field="price", operator=FilterOperator.BETWEEN, value=(500, 2000)),
        Filter(field="category", operator=FilterOperator.IN, value=["electronics", "computers"]),
    ]


@pytest.fixture
def price_range_facet() -> FacetSpec:
    return FacetSpec(
        field="price",
        kind=FacetKind.RANGE,
        ranges=(
            RangeBucket(**{"from": 0, "to": 50}),
            RangeBucket(**{"from": 50, "to": 100}),
            RangeBucket(**{"from": 100}),
        ),
    )


# ── In-process adapter (manager and builder tests) ──


class MemoryAdapter(SearchAdapter):
    """Dict-backed adapter that speaks the Typesense dialect and records every search."""

    def __init__(self, **config: Any) -> None:
        super().__init__(**config)
        self.collections: dict[str, dict[str, dict[str, Any]]] = {}
        self.searches: list[tuple[str, str, SearchOptions]] = []
        self.index_calls: list[int] = []

    @property
    def name(self) -> str:
        return "memory"

    @property
    def dialect(self) -> Dialect:
        return TYPESENSE

    @property
    def facet_format(self) -> FacetFormat:
        return FacetFormat.TYPESENSE

    async def health_check(self) -> AdapterHealth:
        return AdapterHealth(status="healthy")

    async def index(self, collection: str, documents: list[dict[str, Any]]) -> None:
        self.index_calls.append(len(documents))
        store = self.collections.setdefault(collection, {})
        for doc in documents:
            store[str(doc["id"])] = dict(doc)

    async def add_document(self, collection: str, document: dict[str, Any]) -> None:
        await self.index(collection, [document])

    async def update_document(self, collection: str, document_id: str, partial: dict[str, Any]) -> None:
        store = self.collections[collection]
        store[document_id] = {**store[document_id], **partial, "id": document_id}

    async def delete_document(self, collection: str, document_id: str) -> None:
        self.collections.get(collection, {}).pop(document_id, None)

    async def delete_index(self, collection: str) -> None:
        self.collections.pop(collection, None)

    async def index_exists(self, collection: str) -> bool:
        return collection in self.collections

    async def search(self, collection: str, query: str, options: SearchOptions) -> SearchResultEnvelope:
        self.searches.append((collection, query, options))
        docs = list(self.collections.get(collection, {}).values())
        window = docs[options.offset : options.offset + options.limit]
        return SearchResultEnvelope(
            hits=[Hit(id=str(d["id"]), document=d) for d in window],
            total_found=len(docs),
            page_info=PageInfo.from_window(offset=options.offset, limit=options.limit, total_found=len(docs)),
            adapter=self.name,
            raw_response=dict(self.config.get("raw_response", {})),
        )

    async def get_document(self, collection: str, document_id: str) -> dict[str, Any] | None:
        return self.collections.get(collection, {}).get(document_id)


@pytest.fixture
def memory_adapter_class() -> type[MemoryAdapter]:
    return MemoryAdapter


@pytest.fixture
async def memory_manager(settings: Settings) -> AsyncIterator[SearchManager]:
    """A manager whose active adapter is an empty ``MemoryAdapter``."""
    m = SearchManager(settings)
    m.register_adapter("memory", MemoryAdapter)
    await m.switch_adapter("memory")
    yield m
    await m.shutdown()
