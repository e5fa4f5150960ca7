"""Facet builder — Facet requests, applied facet selections and facet lookups."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from searchbridge.core.facets import range_label, range_token
from searchbridge.models.facets import FacetKind, FacetResult, FacetSpec, FacetValue, RangeBucket
from searchbridge.models.query import SearchRequest

if TYPE_CHECKING:
    from searchbridge.core.manager import SearchManager

FACET_PARAM_PREFIX = "facet_"


class FacetBuilder:
    """Declares facets and tracks which facet values the user selected.

    Selections are carried as ``facet_<field>`` query parameters and passed
    to the manager as ``SearchRequest.facet_filters``.

    Args:
        manager: Manager used by ``get_facets``; optional for pure building.
        collection: Collection ``get_facets`` searches.
    """

    def __init__(self, manager: SearchManager | None = None, collection: str | None = None) -> None:
        self._manager = manager
        self._collection = collection
        self._facets: dict[str, FacetSpec] = {}
        self._selected: dict[str, list[Any]] = {}
        self._max_values = 10

    def set_max_facet_values(self, size: int) -> FacetBuilder:
        """Default ``size`` of facets declared afterwards."""
        self._max_values = size
        return self

    # ── Declaration ──────────────────────────────────────────────────────

    def facet(
        self,
        field: str,
        *,
        label: str | None = None,
        size: int | None = None,
        sort: str = "count",
        order: str = "desc",
        value_formatter: Callable[[Any], str] | None = None,
    ) -> FacetBuilder:
        return self._add(
            FacetSpec(
                field=field,
                label=label,
                size=size or self._max_values,
                sort=sort,
                order=order,
                value_formatter=value_formatter,
            )
        )

    def range_facet(
        self,
        field: str,
        ranges: Sequence[RangeBucket | Mapping[str, Any]],
        *,
        label: str | None = None,
        value_formatter: Callable[[Any], str] | None = None,
    ) -> FacetBuilder:
        buckets = tuple(r if isinstance(r, RangeBucket) else RangeBucket.model_validate(r) for r in ranges)
        return self._add(
            FacetSpec(field=field, kind=FacetKind.RANGE, label=label, ranges=buckets, value_formatter=value_formatter)
        )

    def date_histogram_facet(self, field: str, interval: str = "month", *, label: str | None = None) -> FacetBuilder:
        return self._add(FacetSpec(field=field, kind=FacetKind.DATE_HISTOGRAM, label=label, interval=interval))

    def histogram_facet(self, field: str, interval: float, *, label: str | None = None) -> FacetBuilder:
        return self._add(FacetSpec(field=field, kind=FacetKind.HISTOGRAM, label=label, interval=interval))

    def stats_facet(self, field: str, *, label: str | None = None) -> FacetBuilder:
        return self._add(FacetSpec(field=field, kind=FacetKind.STATS, label=label))

    def cardinality_facet(self, field: str, *, label: str | None = None) -> FacetBuilder:
        return self._add(FacetSpec(field=field, kind=FacetKind.CARDINALITY, label=label))

    def _add(self, spec: FacetSpec) -> FacetBuilder:
        self._facets[spec.field] = spec
        return self

    def to_specs(self) -> list[FacetSpec]:
        return list(self._facets.values())

    # ── Selections ───────────────────────────────────────────────────────

    def add_facet_filter(self, field: str, value: Any) -> FacetBuilder:
        values = self._selected.setdefault(field, [])
        if value not in values:
            values.append(value)
        return self

    def remove_facet_filter(self, field: str, value: Any = None) -> FacetBuilder:
        """Drop one selected value, or every selection on ``field`` when ``value`` is None."""
        if value is None:
            self._selected.pop(field, None)
            return self
        remaining = [v for v in self._selected.get(field, []) if v != value]
        if remaining:
            self._selected[field] = remaining
        else:
            self._selected.pop(field, None)
        return self

    def clear_facet_filters(self) -> FacetBuilder:
        self._selected.clear()
        return self

    def has_active_facets(self) -> bool:
        return bool(self._selected)

    def facet_filters(self) -> dict[str, tuple[Any, ...]]:
        return {field: tuple(values) for field, values in self._selected.items()}

    def from_query_params(self, params: Mapping[str, Any]) -> FacetBuilder:
        """Read ``facet_<field>`` parameters (single values or lists)."""
        for key, raw in params.items():
            if not key.startswith(FACET_PARAM_PREFIX) or len(key) == len(FACET_PARAM_PREFIX):
                continue
            field = key[len(FACET_PARAM_PREFIX) :]
            for value in raw if isinstance(raw, (list, tuple)) else [raw]:
                if value not in (None, ""):
                    self.add_facet_filter(field, value)
        return self

    def to_query_params(self) -> dict[str, list[str]]:
        return {f"{FACET_PARAM_PREFIX}{field}": [str(v) for v in values] for field, values in self._selected.items()}

    def selected_facets(self) -> list[dict[str, Any]]:
        """``[{field, value, label}]`` for every selected value."""
        return [
            {"field": field, "value": value, "label": self._label(field, value)}
            for field, values in self._selected.items()
            for value in values
        ]

    def _label(self, field: str, value: Any) -> str:
        spec = self._facets.get(field)
        if spec is None:
            return str(value)
        if spec.value_formatter is not None:
            return spec.value_formatter(value)
        if spec.kind is FacetKind.RANGE:
            for bucket in spec.ranges:
                if value == bucket.key() or str(value) in (range_token(bucket), range_label(bucket)):
                    return range_label(bucket)
        return str(value)

    # ── Lookup ───────────────────────────────────────────────────────────

    async def get_facets(self, query: str = "", **request_options: Any) -> dict[str, FacetResult]:
        """Run a facet-only search and return the normalized facets.

        Raises:
            ValueError: If the builder has no manager or collection.
        """
        if self._manager is None or self._collection is None:
            raise ValueError("FacetBuilder needs a manager and a collection to fetch facets")
        request = SearchRequest(
            query=query,
            facets=tuple(self._facets.values()),
            facet_filters=self.facet_filters(),
            limit=0,
            **request_options,
        )
        envelope = await self._manager.execute(self._collection, request)
        return envelope.facets or {}

    async def get_facet_values(self, field: str, query: str = "", **request_options: Any) -> list[FacetValue]:
        facets = await self.get_facets(query, **request_options)
        result = facets.get(field)
        return result.values if result else []
