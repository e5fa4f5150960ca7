"""Tests for facet normalization across backend payload formats."""

from __future__ import annotations

from typing import Any

import pytest
from pydantic import ValidationError

from searchbridge.core.facets import FacetNormalizer, range_label, range_token
from searchbridge.models.facets import FacetFormat, FacetKind, FacetSpec, RangeBucket

# ── Fixtures ──────────────────────────────────────────────────────────────────


@pytest.fixture
def normalizer() -> FacetNormalizer:
    return FacetNormalizer()


def _typesense(field: str, counts: dict[str, int], stats: dict[str, Any] | None = None) -> dict[str, Any]:
    entry: dict[str, Any] = {"field_name": field, "counts": [{"value": v, "count": c} for v, c in counts.items()]}
    if stats:
        entry["stats"] = stats
    return {"facet_counts": [entry]}


def _meilisearch(field: str, counts: dict[str, int], stats: dict[str, Any] | None = None) -> dict[str, Any]:
    raw: dict[str, Any] = {"facetDistribution": {field: counts}}
    if stats:
        raw["facetStats"] = {field: stats}
    return raw


PRICES = {"10": 3, "75": 2, "150": 4}


# ── Range facets ─────────────────────────────────────────────────────────────


class TestRangeFacet:
    def test_open_ended_bucket_label(self, normalizer: FacetNormalizer, price_range_facet: FacetSpec) -> None:
        result = normalizer.normalize([price_range_facet], _typesense("price", PRICES), FacetFormat.TYPESENSE)["price"]
        assert result.type is FacetKind.RANGE
        assert [v.label for v in result.values] == ["0 - 50", "50 - 100", "≥ 100"]
        assert [v.count for v in result.values] == [3, 2, 4]
        assert result.values[2].value == {"from": 100}

    def test_same_data_same_result_on_every_backend(
        self, normalizer: FacetNormalizer, price_range_facet: FacetSpec
    ) -> None:
        from_typesense = normalizer.normalize(
            [price_range_facet], _typesense("price", PRICES), FacetFormat.TYPESENSE
        )
        from_meilisearch = normalizer.normalize(
            [price_range_facet], _meilisearch("price", PRICES), FacetFormat.MEILISEARCH
        )
        assert from_typesense["price"].model_dump() == from_meilisearch["price"].model_dump()

    def test_selected_bucket(self, normalizer: FacetNormalizer, price_range_facet: FacetSpec) -> None:
        result = normalizer.normalize(
            [price_range_facet],
            _typesense("price", PRICES),
            FacetFormat.TYPESENSE,
            {"price": ["100-"]},
        )["price"]
        assert [v.selected for v in result.values] == [False, False, True]

    def test_upper_bound_is_exclusive(self, normalizer: FacetNormalizer, price_range_facet: FacetSpec) -> None:
        result = normalizer.normalize([price_range_facet], _meilisearch("price", {"50": 1}), FacetFormat.MEILISEARCH)
        assert [v.count for v in result["price"].values] == [0, 1, 0]

    def test_bucket_labels_and_tokens(self) -> None:
        assert range_label(RangeBucket(to=50)) == "≤ 50"
        assert range_label(RangeBucket(**{"from": 0, "to": 50})) == "0 - 50"
        assert range_label(RangeBucket(**{"from": 1, "to": 2}, label="Cheap")) == "Cheap"
        assert range_token(RangeBucket(**{"from": 100})) == "100-"
        assert range_token(RangeBucket(to=50)) == "-50"

    def test_overlapping_buckets_rejected(self) -> None:
        with pytest.raises(ValidationError):
            FacetSpec(
                field="price",
                kind=FacetKind.RANGE,
                ranges=(RangeBucket(**{"from": 0, "to": 60}), RangeBucket(**{"from": 50, "to": 100})),
            )


# ── Terms facets ─────────────────────────────────────────────────────────────


class TestTermsFacet:
    def test_ordered_by_count_then_value(self, normalizer: FacetNormalizer) -> None:
        spec = FacetSpec(field="brand", size=2)
        raw = _typesense("brand", {"hp": 2, "dell": 5, "apple": 5})
        result = normalizer.normalize([spec], raw, FacetFormat.TYPESENSE, {"brand": ["dell"]})["brand"]
        assert [(v.value, v.count) for v in result.values] == [("apple", 5), ("dell", 5)]
        assert [v.selected for v in result.values] == [False, True]
        assert result.total == 3
        assert result.label == "Brand"

    def test_key_order_and_formatter(self, normalizer: FacetNormalizer) -> None:
        spec = FacetSpec(field="brand", sort="key", order="asc", label="Maker", value_formatter=str.upper)
        raw = _meilisearch("brand", {"hp": 2, "dell": 5, "apple": 1})
        result = normalizer.normalize([spec], raw, FacetFormat.MEILISEARCH)["brand"]
        assert [v.label for v in result.values] == ["APPLE", "DELL", "HP"]
        assert result.label == "Maker"

    def test_typesense_dict_form(self, normalizer: FacetNormalizer) -> None:
        raw = {"facet_counts": {"brand": [{"value": "apple", "count": 2}]}}
        result = normalizer.normalize([FacetSpec(field="brand")], raw, FacetFormat.TYPESENSE)["brand"]
        assert result.values[0].value == "apple"

    def test_missing_field_is_empty(self, normalizer: FacetNormalizer) -> None:
        result = normalizer.normalize([FacetSpec(field="color")], _typesense("brand", {"x": 1}), FacetFormat.TYPESENSE)
        assert result["color"].values == []
        assert result["color"].total == 0


# ── Histograms ───────────────────────────────────────────────────────────────


class TestHistogramFacets:
    def test_numeric_histogram(self, normalizer: FacetNormalizer) -> None:
        spec = FacetSpec(field="price", kind=FacetKind.HISTOGRAM, interval=50)
        result = normalizer.normalize([spec], _typesense("price", PRICES), FacetFormat.TYPESENSE)["price"]
        assert [v.label for v in result.values] == ["0 - 50", "50 - 100", "150 - 200"]
        assert [v.count for v in result.values] == [3, 2, 4]

    def test_histogram_needs_interval(self) -> None:
        with pytest.raises(ValidationError):
            FacetSpec(field="price", kind=FacetKind.HISTOGRAM)

    def test_monthly_date_histogram(self, normalizer: FacetNormalizer) -> None:
        spec = FacetSpec(field="published_at", kind=FacetKind.DATE_HISTOGRAM)
        raw = _meilisearch("published_at", {"2024-01-15": 2, "2024-01-20": 1, "2024-02-03": 4})
        result = normalizer.normalize([spec], raw, FacetFormat.MEILISEARCH, {"published_at": ["2024-02"]})
        values = result["published_at"].values
        assert [(v.value, v.label, v.count) for v in values] == [
            ("2024-01", "Jan 2024", 3),
            ("2024-02", "Feb 2024", 4),
        ]
        assert values[1].selected

    def test_yearly_date_histogram_from_epoch_seconds(self, normalizer: FacetNormalizer) -> None:
        spec = FacetSpec(field="created", kind=FacetKind.DATE_HISTOGRAM, interval="year")
        raw = _typesense("created", {"1704067200": 1, "1735689600": 2, "not a date": 9})
        values = normalizer.normalize([spec], raw, FacetFormat.TYPESENSE)["created"].values
        assert [(v.label, v.count) for v in values] == [("2024", 1), ("2025", 2)]


# ── Stats and cardinality ────────────────────────────────────────────────────


class TestStatsFacets:
    def test_stats_from_distribution(self, normalizer: FacetNormalizer) -> None:
        spec = FacetSpec(field="price", kind=FacetKind.STATS)
        result = normalizer.normalize([spec], _typesense("price", {"10": 1, "20": 3}), FacetFormat.TYPESENSE)["price"]
        assert result.stats == {"min": 10.0, "max": 20.0, "avg": 17.5, "sum": 70.0, "count": 4.0}
        assert result.total == 4

    def test_stats_from_backend_only(self, normalizer: FacetNormalizer) -> None:
        spec = FacetSpec(field="price", kind=FacetKind.STATS)
        raw = {"facetStats": {"price": {"min": 1, "max": 9}}}
        result = normalizer.normalize([spec], raw, FacetFormat.MEILISEARCH)["price"]
        assert result.stats == {"min": 1.0, "max": 9.0, "count": 0.0}

    def test_backend_stats_win_over_truncated_counts(self, normalizer: FacetNormalizer) -> None:
        spec = FacetSpec(field="price", kind=FacetKind.STATS)
        raw = _typesense("price", {"50": 3, "60": 2}, {"min": 1, "max": 1000, "avg": 210, "sum": 9000})
        result = normalizer.normalize([spec], raw, FacetFormat.TYPESENSE)["price"]
        assert result.stats == {"min": 1.0, "max": 1000.0, "avg": 210.0, "sum": 9000.0, "count": 5.0}

    def test_missing_backend_stats_are_computed(self, normalizer: FacetNormalizer) -> None:
        spec = FacetSpec(field="price", kind=FacetKind.STATS)
        raw = _meilisearch("price", {"50": 3, "60": 2}, {"min": 5, "max": 95})
        result = normalizer.normalize([spec], raw, FacetFormat.MEILISEARCH)["price"]
        assert result.stats == {"min": 5.0, "max": 95.0, "avg": 54.0, "sum": 270.0, "count": 5.0}

    def test_cardinality(self, normalizer: FacetNormalizer) -> None:
        spec = FacetSpec(field="brand", kind=FacetKind.CARDINALITY)
        result = normalizer.normalize([spec], _meilisearch("brand", {"a": 1, "b": 7}), FacetFormat.MEILISEARCH)
        assert result["brand"].total == 2
        assert result["brand"].values == []


class TestNoAggregationSupport:
    def test_backend_without_facets_yields_empty_results(self, normalizer: FacetNormalizer) -> None:
        specs = [FacetSpec(field="brand"), FacetSpec(field="price", kind=FacetKind.STATS)]
        result = normalizer.normalize(specs, {"match": "solar"}, FacetFormat.NONE)
        assert set(result) == {"brand", "price"}
        assert result["brand"].values == []
        assert result["price"].stats is None
