"""Integration tests for MeilisearchAdapter against a real MeiliSearch instance."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import pytest

from searchbridge.config.settings import MeilisearchAdapterSettings, Settings
from searchbridge.core.manager import SearchManager
from searchbridge.query.builder import SearchQueryBuilder

pytestmark = [pytest.mark.integration, pytest.mark.meilisearch]

COLLECTION = "searchbridge-it-docs"


@pytest.fixture
async def manager(
    meilisearch_ready: dict[str, Any], mock_documents: list[dict[str, Any]]
) -> AsyncIterator[SearchManager]:
    index_settings = {
        **MeilisearchAdapterSettings().settings,
        "filterableAttributes": ["category", "price"],
        "sortableAttributes": ["price"],
    }
    m = SearchManager(Settings(_env_file=None))  # type: ignore[call-arg]
    await m.switch_adapter("meilisearch", {**meilisearch_ready, "settings": index_settings})
    await m.delete_index(COLLECTION)
    await m.index(COLLECTION, mock_documents)
    yield m
    await m.delete_index(COLLECTION)
    await m.shutdown()


class TestMeiliSearchHealth:
    async def test_health_check_returns_healthy(self, manager: SearchManager) -> None:
        health = await manager.health_check()
        assert health.status == "healthy"
        assert manager.current_adapter_name == "meilisearch"


class TestMeiliSearchSearch:
    async def test_search_returns_results(self, manager: SearchManager) -> None:
        envelope = await manager.search(COLLECTION, "solar nowcasting")
        assert envelope.total_found >= 1
        assert envelope.hits[0].id == "doc-001"

    async def test_typo_tolerance(self, manager: SearchManager) -> None:
        envelope = await manager.search(COLLECTION, "transformr languge")
        assert [hit.id for hit in envelope.hits][:1] == ["doc-002"]

    async def test_filter_sort_and_facets(self, manager: SearchManager) -> None:
        envelope = await (
            SearchQueryBuilder(manager, COLLECTION)
            .where_between("price", 20, 130)
            .where_in("category", ["energy", "chemistry"])
            .order_by_desc("price")
            .facet("category")
            .get()
        )
        assert [hit.id for hit in envelope.hits] == ["doc-001", "doc-005", "doc-004"]
        counts = {v.value: v.count for v in envelope.facets["category"].values}
        assert counts == {"energy": 2, "chemistry": 1}

    async def test_limit(self, manager: SearchManager) -> None:
        envelope = await manager.search(COLLECTION, "learning", {"limit": 1})
        assert len(envelope.hits) == 1


class TestMeiliSearchDocuments:
    async def test_fetch_document(self, manager: SearchManager) -> None:
        doc = await manager.get_document(COLLECTION, "doc-003")
        assert doc is not None
        assert doc["title"] == "Federated Learning for Privacy-Preserving Medical Imaging"
        assert await manager.get_document(COLLECTION, "nonexistent-999") is None

    async def test_update_document(self, manager: SearchManager) -> None:
        await manager.update_document(COLLECTION, "doc-002", {"price": 50})
        doc = await manager.get_document(COLLECTION, "doc-002")
        assert doc is not None
        assert doc["price"] == 50
