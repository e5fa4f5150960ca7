"""Tests for the embedded SQLite FTS5 adapter."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from searchbridge.adapters.base.exceptions import (
    BackendQueryError,
    CollectionNotFoundError,
    ConfigurationError,
)
from searchbridge.adapters.embedded.adapter import EmbeddedAdapter
from searchbridge.adapters.embedded.fuzzy import expand_term, levenshtein_distance, max_edit_distance
from searchbridge.models.query import SearchOptions

# ── Fixtures ──────────────────────────────────────────────────────────────────


@pytest.fixture
async def adapter(tmp_path: Path):
    a = EmbeddedAdapter(storage_path=str(tmp_path / "search"))
    await a.initialize()
    yield a
    await a.shutdown()


@pytest.fixture
async def indexed(adapter: EmbeddedAdapter, articles: list[dict[str, Any]]) -> EmbeddedAdapter:
    await adapter.index("articles", articles)
    return adapter


# ── Properties ───────────────────────────────────────────────────────────────


class TestEmbeddedProperties:
    def test_name(self, tmp_path: Path) -> None:
        assert EmbeddedAdapter(storage_path=str(tmp_path)).name == "embedded"

    def test_default_values(self) -> None:
        a = EmbeddedAdapter()
        assert a.config.storage_path == "storage/search"
        assert a.config.searchable_fields == ["title", "content"]
        assert a.config.fuzziness is False

    def test_invalid_config(self) -> None:
        with pytest.raises(ConfigurationError):
            EmbeddedAdapter(fuzzy_prefix_length=-1)

    async def test_initialize_creates_storage(self, tmp_path: Path) -> None:
        a = EmbeddedAdapter(storage_path=str(tmp_path / "nested" / "dir"))
        await a.initialize()
        assert (tmp_path / "nested" / "dir").is_dir()
        health = await a.health_check()
        assert health.status == "healthy"

    async def test_health_without_storage(self, tmp_path: Path) -> None:
        a = EmbeddedAdapter(storage_path=str(tmp_path / "missing"))
        health = await a.health_check()
        assert health.status == "unhealthy"


# ── Indexing ─────────────────────────────────────────────────────────────────


class TestEmbeddedIndexing:
    async def test_index_creates_collection_file(self, indexed: EmbeddedAdapter) -> None:
        assert await indexed.index_exists("articles")
        assert (indexed.storage_path / "articles.index").is_file()
        assert not await indexed.index_exists("other")

    async def test_get_document(self, indexed: EmbeddedAdapter) -> None:
        doc = await indexed.get_document("articles", "a2")
        assert doc is not None
        assert doc["title"] == "Wind Power Forecasting"
        assert await indexed.get_document("articles", "nope") is None
        assert await indexed.get_document("missing", "a1") is None

    async def test_missing_id_is_generated(self, adapter: EmbeddedAdapter) -> None:
        await adapter.add_document("notes", {"title": "Untitled note"})
        envelope = await adapter.search("notes", "untitled", SearchOptions())
        assert envelope.total_found == 1
        assert len(envelope.hits[0].id) == 32

    async def test_reindex_replaces_document(self, indexed: EmbeddedAdapter) -> None:
        await indexed.add_document("articles", {"id": "a1", "title": "Tidal Energy", "content": "Ocean currents."})
        assert (await indexed.search("articles", "solar", SearchOptions())).total_found == 0
        assert (await indexed.search("articles", "tidal", SearchOptions())).total_found == 1

    async def test_update_merges_and_keeps_id(self, indexed: EmbeddedAdapter) -> None:
        await indexed.update_document("articles", "a2", {"id": "zzz", "title": "Offshore Wind Power"})
        doc = await indexed.get_document("articles", "a2")
        assert doc["title"] == "Offshore Wind Power"
        assert doc["content"].startswith("Statistical methods")
        assert doc["id"] == "a2"
        assert await indexed.get_document("articles", "zzz") is None
        assert (await indexed.search("articles", "offshore", SearchOptions())).total_found == 1

    async def test_update_missing_document(self, indexed: EmbeddedAdapter) -> None:
        with pytest.raises(BackendQueryError, match="not found"):
            await indexed.update_document("articles", "nope", {"title": "x"})

    async def test_delete_document(self, indexed: EmbeddedAdapter) -> None:
        await indexed.delete_document("articles", "a1")
        await indexed.delete_document("articles", "a1")
        assert await indexed.get_document("articles", "a1") is None
        assert (await indexed.search("articles", "solar", SearchOptions())).total_found == 0

    async def test_delete_index(self, indexed: EmbeddedAdapter) -> None:
        await indexed.delete_index("articles")
        assert not await indexed.index_exists("articles")
        assert list(indexed.storage_path.glob("articles.index*")) == []
        await indexed.delete_index("articles")

    async def test_invalid_collection_name(self, adapter: EmbeddedAdapter) -> None:
        with pytest.raises(ConfigurationError):
            await adapter.index("../escape", [{"id": "1"}])

    async def test_invalid_searchable_field_creates_nothing(self, tmp_path: Path) -> None:
        a = EmbeddedAdapter(storage_path=str(tmp_path), searchable_fields=["title", "body; DROP"])
        await a.initialize()
        with pytest.raises(ConfigurationError, match="Invalid searchable field"):
            await a.index("articles", [{"id": "1", "title": "Solar"}])
        assert list(tmp_path.glob("articles.index*")) == []
        assert not await a.index_exists("articles")
        with pytest.raises(CollectionNotFoundError):
            await a.search("articles", "solar", SearchOptions())


# ── Search ───────────────────────────────────────────────────────────────────


class TestEmbeddedSearch:
    async def test_search_ranks_and_highlights(self, indexed: EmbeddedAdapter) -> None:
        envelope = await indexed.search("articles", "solar irradiance", SearchOptions())
        assert envelope.adapter == "embedded"
        assert envelope.total_found == 1
        hit = envelope.hits[0]
        assert hit.id == "a1"
        assert hit.score > 0
        assert hit.highlights["title"] == "<em>Solar</em> <em>Irradiance</em> Nowcasting"
        assert hit.document["category"] == "energy"

    async def test_terms_are_and_joined(self, indexed: EmbeddedAdapter) -> None:
        assert (await indexed.search("articles", "solar wind", SearchOptions())).total_found == 0
        assert (await indexed.search("articles", "forecasting", SearchOptions())).total_found == 1

    async def test_match_all(self, indexed: EmbeddedAdapter) -> None:
        envelope = await indexed.search("articles", "*", SearchOptions(limit=2))
        assert envelope.total_found == 3
        assert [h.id for h in envelope.hits] == ["a1", "a2"]
        assert envelope.page_info.total_pages == 2

    async def test_paging(self, indexed: EmbeddedAdapter) -> None:
        envelope = await indexed.search("articles", "", SearchOptions(limit=2, offset=2))
        assert [h.id for h in envelope.hits] == ["a3"]
        assert envelope.page_info.page == 2

    async def test_sort_by_field(self, indexed: EmbeddedAdapter) -> None:
        envelope = await indexed.search("articles", "", SearchOptions(sort_by="price:desc"))
        assert [h.id for h in envelope.hits] == ["a1", "a3", "a2"]

    async def test_invalid_sort_expression(self, indexed: EmbeddedAdapter) -> None:
        with pytest.raises(BackendQueryError, match="Unsupported sort"):
            await indexed.search("articles", "", SearchOptions(sort_by="price:sideways"))

    async def test_retrieve_fields(self, indexed: EmbeddedAdapter) -> None:
        envelope = await indexed.search("articles", "wind", SearchOptions(retrieve_fields=["title"]))
        assert envelope.hits[0].document == {"id": "a2", "title": "Wind Power Forecasting"}

    async def test_fuzzy_search(self, indexed: EmbeddedAdapter) -> None:
        assert (await indexed.search("articles", "forcasting", SearchOptions())).total_found == 0
        envelope = await indexed.search("articles", "forcasting", SearchOptions(fuzziness=True))
        assert [h.id for h in envelope.hits] == ["a2"]

    async def test_filters_rejected(self, indexed: EmbeddedAdapter) -> None:
        with pytest.raises(BackendQueryError, match="not supported"):
            await indexed.search("articles", "solar", SearchOptions(filters="price:>10"))

    async def test_missing_collection(self, adapter: EmbeddedAdapter) -> None:
        with pytest.raises(CollectionNotFoundError):
            await adapter.search("missing", "solar", SearchOptions())


# ── Fuzzy matching ───────────────────────────────────────────────────────────


class TestFuzzy:
    def test_levenshtein(self) -> None:
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("abcdef", "a", max_distance=2) == 3

    @pytest.mark.parametrize(("length", "edits"), [(2, 0), (3, 1), (5, 1), (6, 2), (12, 2)])
    def test_edit_limits(self, length: int, edits: int) -> None:
        assert max_edit_distance(length) == edits

    def test_expand_term(self) -> None:
        vocabulary = ["forecasting", "forecast", "foraging", "power", "forecastings"]
        assert expand_term("forcasting", vocabulary) == ["forcasting", "forecasting", "forecastings"]

    def test_short_terms_are_exact(self) -> None:
        assert expand_term("ab", ["ac", "ab"]) == ["ab"]

    def test_prefix_must_match(self) -> None:
        assert expand_term("power", ["tower", "powers"], prefix_length=1) == ["power", "powers"]
