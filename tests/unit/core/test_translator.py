"""Tests for the query translator and the built-in filter dialects."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from searchbridge.adapters.base.exceptions import BackendQueryError, UnknownAdapterError
from searchbridge.core.dialects import (
    EMBEDDED,
    MEILISEARCH,
    NO_FILTERS,
    TYPESENSE,
    UNSUPPORTED,
    split_sort_expression,
)
from searchbridge.core.translator import QueryTranslator, partition_runs
from searchbridge.models.filters import Combinator, Filter, FilterOperator
from searchbridge.models.sorting import SortDirection, SortKind, SortSpec

# ── Fixtures ──────────────────────────────────────────────────────────────────


@pytest.fixture
def translator() -> QueryTranslator:
    return QueryTranslator()


def _f(field: str, operator: FilterOperator, value=None, combinator: Combinator = Combinator.AND) -> Filter:
    return Filter(field=field, operator=operator, value=value, combinator=combinator)


# ── Grouping ─────────────────────────────────────────────────────────────────


class TestPartitionRuns:
    def test_consecutive_combinators_share_a_run(self) -> None:
        filters = [
            _f("a", FilterOperator.EQ, 1),
            _f("b", FilterOperator.EQ, 2, Combinator.OR),
            _f("c", FilterOperator.EQ, 3, Combinator.OR),
            _f("d", FilterOperator.EQ, 4),
        ]
        runs = partition_runs(filters)
        assert [r.combinator for r in runs] == [Combinator.AND, Combinator.OR, Combinator.AND]
        assert [[f.field for f in r.filters] for r in runs] == [["a"], ["b", "c"], ["d"]]

    def test_empty(self) -> None:
        assert partition_runs([]) == []


class TestTranslateFilters:
    def test_price_and_category_for_typesense(self, translator: QueryTranslator, laptop_filters) -> None:
        result = translator.translate_filters(laptop_filters, "typesense")
        assert result == '(price:=[500..2000]) && (category:=["electronics","computers"])'

    def test_price_and_category_for_meilisearch(self, translator: QueryTranslator, laptop_filters) -> None:
        result = translator.translate_filters(laptop_filters, MEILISEARCH)
        assert result == '(price 500 TO 2000) AND (category IN ["electronics", "computers"])'

    def test_or_run_is_one_group(self, translator: QueryTranslator) -> None:
        filters = [
            _f("status", FilterOperator.EQ, "active"),
            _f("brand", FilterOperator.EQ, "apple", Combinator.OR),
            _f("brand", FilterOperator.EQ, "dell", Combinator.OR),
        ]
        assert translator.translate_filters(filters, TYPESENSE) == "(status:=active) && (brand:=apple || brand:=dell)"
        assert (
            translator.translate_filters(filters, MEILISEARCH)
            == '(status = "active") AND (brand = "apple" OR brand = "dell")'
        )

    def test_empty_list_renders_none(self, translator: QueryTranslator) -> None:
        assert translator.translate_filters([], TYPESENSE) is None
        assert translator.translate_filters([], "embedded") is None

    def test_translation_is_deterministic(self, translator: QueryTranslator, laptop_filters) -> None:
        first = translator.translate_filters(laptop_filters, TYPESENSE)
        second = translator.translate_filters(list(laptop_filters), TYPESENSE)
        assert first == second

    def test_embedded_cannot_express_filters(self, translator: QueryTranslator, laptop_filters) -> None:
        assert translator.translate_filters(laptop_filters, EMBEDDED) is UNSUPPORTED
        assert translator.translate_filters(laptop_filters, NO_FILTERS) is UNSUPPORTED

    def test_unknown_dialect_name(self, translator: QueryTranslator, laptop_filters) -> None:
        with pytest.raises(UnknownAdapterError):
            translator.translate_filters(laptop_filters, "solr")


# ── Operator tables ──────────────────────────────────────────────────────────


class TestOperatorTables:
    @pytest.mark.parametrize("dialect", [TYPESENSE, MEILISEARCH])
    def test_every_operator_has_a_rendering(self, dialect) -> None:
        assert set(dialect.operators) == set(FilterOperator)
        assert dialect.supports_filters

    def test_embedded_has_no_operators(self) -> None:
        assert not EMBEDDED.supports_filters
        assert EMBEDDED.render_condition(_f("price", FilterOperator.GT, 1)) is UNSUPPORTED

    @pytest.mark.parametrize(
        ("condition", "expected"),
        [
            (_f("price", FilterOperator.GT, 100), "price:>100"),
            (_f("price", FilterOperator.LTE, 9.5), "price:<=9.5"),
            (_f("price", FilterOperator.GTE, 10.0), "price:>=10"),
            (_f("status", FilterOperator.NEQ, "draft"), "status:!=draft"),
            (_f("city", FilterOperator.EQ, "New York"), "city:=`New York`"),
            (_f("in_stock", FilterOperator.EQ, True), "in_stock:=true"),
            (_f("tag", FilterOperator.NOT_IN, ["a", "b"]), 'tag:!=["a","b"]'),
            (_f("year", FilterOperator.IN, [2023, 2024]), "year:=[2023,2024]"),
            (_f("title", FilterOperator.LIKE, "solar"), "title:solar"),
            (_f("deleted_at", FilterOperator.NULL), "deleted_at:="),
            (_f("deleted_at", FilterOperator.NOT_NULL), "deleted_at:!="),
            (_f("created", FilterOperator.GTE, datetime(2024, 1, 1, tzinfo=UTC)), "created:>=1704067200"),
        ],
    )
    def test_typesense_conditions(self, condition: Filter, expected: str) -> None:
        assert TYPESENSE.render_condition(condition) == expected

    @pytest.mark.parametrize(
        ("condition", "expected"),
        [
            (_f("price", FilterOperator.LT, 50), "price < 50"),
            (_f("status", FilterOperator.EQ, "active"), 'status = "active"'),
            (_f("title", FilterOperator.EQ, 'say "hi"'), 'title = "say \\"hi\\""'),
            (_f("in_stock", FilterOperator.NEQ, False), "in_stock != false"),
            (_f("tag", FilterOperator.NOT_IN, ["a", "b"]), 'tag NOT IN ["a", "b"]'),
            (_f("title", FilterOperator.LIKE, "solar"), 'title = "solar"'),
            (_f("deleted_at", FilterOperator.NULL), "deleted_at IS NULL"),
            (_f("deleted_at", FilterOperator.NOT_NULL), "deleted_at IS NOT NULL"),
        ],
    )
    def test_meilisearch_conditions(self, condition: Filter, expected: str) -> None:
        assert MEILISEARCH.render_condition(condition) == expected


# ── Sorting ──────────────────────────────────────────────────────────────────


class TestTranslateSort:
    def test_plain_and_relevance_for_typesense(self, translator: QueryTranslator) -> None:
        sort = [
            SortSpec(field="price", direction=SortDirection.DESC),
            SortSpec(field="_text_match", direction="DESC", kind=SortKind.RELEVANCE),
        ]
        assert translator.translate_sort(sort, TYPESENSE) == "price:desc,_text_match:desc"

    def test_meilisearch_leaves_relevance_implicit(self, translator: QueryTranslator) -> None:
        relevance = SortSpec(field="_text_match", direction=SortDirection.DESC, kind=SortKind.RELEVANCE)
        assert translator.translate_sort([relevance], MEILISEARCH) is None
        assert translator.translate_sort([relevance, SortSpec(field="title")], MEILISEARCH) == "title:asc"

    def test_distance_sort(self, translator: QueryTranslator) -> None:
        near = [SortSpec(field="location", kind=SortKind.DISTANCE, lat=48.85, lng=2.35)]
        assert translator.translate_sort(near, TYPESENSE) == "location(48.85, 2.35):asc"
        assert translator.translate_sort(near, MEILISEARCH) == "_geoPoint(48.85, 2.35):asc"

    def test_distance_sort_unsupported_on_embedded(self, translator: QueryTranslator) -> None:
        near = [SortSpec(field="location", kind=SortKind.DISTANCE, lat=1, lng=2)]
        with pytest.raises(BackendQueryError):
            translator.translate_sort(near, EMBEDDED)

    def test_random_sort(self, translator: QueryTranslator) -> None:
        shuffle = [SortSpec(field="_random", kind=SortKind.RANDOM)]
        assert translator.translate_sort(shuffle, TYPESENSE) == "_rand()"
        assert translator.translate_sort(shuffle, EMBEDDED) == "_random"
        with pytest.raises(BackendQueryError):
            translator.translate_sort(shuffle, MEILISEARCH)

    def test_at_most_one_distance_sort(self, translator: QueryTranslator) -> None:
        sort = [
            SortSpec(field="home", kind=SortKind.DISTANCE, lat=1, lng=2),
            SortSpec(field="work", kind=SortKind.DISTANCE, lat=3, lng=4),
        ]
        with pytest.raises(ValueError, match="At most one distance sort"):
            translator.translate_sort(sort, TYPESENSE)

    def test_empty_sort_renders_none(self, translator: QueryTranslator) -> None:
        assert translator.translate_sort([], TYPESENSE) is None

    def test_split_sort_expression_keeps_geo_points(self) -> None:
        expression = "_geoPoint(48.85, 2.35):asc,price:desc"
        assert split_sort_expression(expression) == ["_geoPoint(48.85, 2.35):asc", "price:desc"]


class TestTranslate:
    def test_unsupported_filters_flagged(self, translator: QueryTranslator, laptop_filters) -> None:
        result = translator.translate(laptop_filters, [SortSpec(field="title")], EMBEDDED)
        assert result.unsupported
        assert result.filter_by is None
        assert result.sort_by == "title:asc"

    def test_supported(self, translator: QueryTranslator, laptop_filters) -> None:
        result = translator.translate(laptop_filters, [], TYPESENSE)
        assert not result.unsupported
        assert result.filter_by is not None
        assert result.sort_by is None
