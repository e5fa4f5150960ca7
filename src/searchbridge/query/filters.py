"""Filter builder — Named, typed filters that round-trip through query parameters.

Each registered filter has a type that decides how its value becomes
generic ``Filter`` conditions and how it is written to (and read back
from) URL query parameters:

  ======== ================================= ==============================
  type     conditions                        query params
  ======== ================================= ==============================
  text     ``LIKE``                          ``field=value``
  exact    ``=``                             ``field=value``
  select   ``=``                             ``field=value``
  multi    ``IN``                            ``field=a,b``
  range    ``>=`` / ``<=``                   ``field_min``, ``field_max``
  date     ``=`` (or ``>=``/``<=`` for range) ``field`` / ``field_min|max``
  boolean  ``=``                             ``field=1|0``
  exists   ``NOT NULL`` / ``NULL``           ``field_exists=1|0``
  ======== ================================= ==============================
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum
from typing import Any

from searchbridge.models.filters import Filter, FilterOperator


class FilterType(StrEnum):
    TEXT = "text"
    EXACT = "exact"
    SELECT = "select"
    MULTI_SELECT = "multiselect"
    RANGE = "range"
    DATE_RANGE = "date_range"
    DATE = "date"
    BOOLEAN = "boolean"
    EXISTS = "exists"
    CUSTOM = "custom"


_TRUE = {"1", "true", "yes", "on"}


@dataclass
class ActiveFilter:
    """A filter registered on the builder, with its current value."""

    field: str
    type: FilterType
    value: Any
    label: str | None = None
    build: Callable[[str, Any], list[Filter]] | None = field(default=None, repr=False)

    @property
    def display_label(self) -> str:
        if self.label:
            return self.label
        return self.field.replace("_", " ").capitalize()


def _parse_date(value: Any) -> date | datetime:
    if isinstance(value, (date, datetime)):
        return value
    text = str(value)
    try:
        return date.fromisoformat(text)
    except ValueError:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))


def _parse_number(value: Any) -> int | float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    number = float(str(value))
    return int(number) if number.is_integer() else number


def _param_value(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class FilterBuilder:
    """Collects named filters and converts them for the translator and for URLs.

    Example:
        >>> builder = FilterBuilder().range("price", 500, 2000).multi_select("category", ["a", "b"])
        >>> [f.operator.name for f in builder.to_filters()]
        ['GTE', 'LTE', 'IN']
        >>> builder.to_query_params()
        {'price_min': '500', 'price_max': '2000', 'category': 'a,b'}
    """

    def __init__(self) -> None:
        self._filters: dict[str, ActiveFilter] = {}

    # ── Registration ─────────────────────────────────────────────────────

    def text(self, field: str, value: str, label: str | None = None) -> FilterBuilder:
        return self._set(field, FilterType.TEXT, value, label)

    def exact(self, field: str, value: Any, label: str | None = None) -> FilterBuilder:
        return self._set(field, FilterType.EXACT, value, label)

    def select(self, field: str, value: Any, label: str | None = None) -> FilterBuilder:
        return self._set(field, FilterType.SELECT, value, label)

    def multi_select(self, field: str, values: list[Any], label: str | None = None) -> FilterBuilder:
        return self._set(field, FilterType.MULTI_SELECT, list(values), label)

    def range(
        self, field: str, minimum: float | None = None, maximum: float | None = None, label: str | None = None
    ) -> FilterBuilder:
        return self._set(field, FilterType.RANGE, {"min": minimum, "max": maximum}, label)

    def date_range(
        self,
        field: str,
        start: date | datetime | str | None = None,
        end: date | datetime | str | None = None,
        label: str | None = None,
    ) -> FilterBuilder:
        value = {
            "min": _parse_date(start) if start is not None else None,
            "max": _parse_date(end) if end is not None else None,
        }
        return self._set(field, FilterType.DATE_RANGE, value, label)

    def date(self, field: str, value: date | datetime | str, label: str | None = None) -> FilterBuilder:
        return self._set(field, FilterType.DATE, _parse_date(value), label)

    def boolean(self, field: str, value: bool, label: str | None = None) -> FilterBuilder:
        return self._set(field, FilterType.BOOLEAN, bool(value), label)

    def exists(self, field: str, value: bool = True, label: str | None = None) -> FilterBuilder:
        return self._set(field, FilterType.EXISTS, bool(value), label)

    def custom(
        self,
        field: str,
        value: Any,
        build: Callable[[str, Any], list[Filter]],
        label: str | None = None,
    ) -> FilterBuilder:
        """Register a filter whose conditions come from ``build(field, value)``."""
        self._filters[field] = ActiveFilter(field, FilterType.CUSTOM, value, label, build)
        return self

    def register(self, field: str, type: FilterType | str, value: Any, label: str | None = None) -> FilterBuilder:
        """Register a filter by type name (``"range"``, ``"multiselect"``, ...)."""
        kind = FilterType(type)
        if kind is FilterType.RANGE:
            return self.range(field, value.get("min"), value.get("max"), label)
        if kind is FilterType.DATE_RANGE:
            return self.date_range(field, value.get("min"), value.get("max"), label)
        if kind is FilterType.DATE:
            return self.date(field, value, label)
        if kind is FilterType.MULTI_SELECT:
            return self.multi_select(field, value, label)
        if kind is FilterType.CUSTOM:
            raise ValueError("Use custom() to register a custom filter")
        return self._set(field, kind, value, label)

    def remove(self, field: str) -> FilterBuilder:
        self._filters.pop(field, None)
        return self

    def clear(self) -> FilterBuilder:
        self._filters.clear()
        return self

    def _set(self, field: str, kind: FilterType, value: Any, label: str | None) -> FilterBuilder:
        self._filters[field] = ActiveFilter(field, kind, value, label)
        return self

    # ── State ────────────────────────────────────────────────────────────

    def _is_active(self, item: ActiveFilter) -> bool:
        if item.type in (FilterType.RANGE, FilterType.DATE_RANGE):
            return item.value["min"] is not None or item.value["max"] is not None
        if item.type is FilterType.MULTI_SELECT:
            return bool(item.value)
        if item.type in (FilterType.BOOLEAN, FilterType.EXISTS):
            return True
        return item.value not in (None, "")

    @property
    def active_filters(self) -> dict[str, ActiveFilter]:
        return {name: item for name, item in self._filters.items() if self._is_active(item)}

    def has_active_filters(self) -> bool:
        return bool(self.active_filters)

    # ── Conversion ───────────────────────────────────────────────────────

    def to_filters(self) -> list[Filter]:
        """Generic conditions for the translator, in registration order (all AND)."""
        conditions: list[Filter] = []
        for item in self.active_filters.values():
            conditions.extend(self._conditions(item))
        return conditions

    def _conditions(self, item: ActiveFilter) -> list[Filter]:
        name, value = item.field, item.value
        if item.type is FilterType.CUSTOM and item.build is not None:
            return item.build(name, value)
        if item.type is FilterType.TEXT:
            return [Filter(field=name, operator=FilterOperator.LIKE, value=value)]
        if item.type is FilterType.MULTI_SELECT:
            return [Filter(field=name, operator=FilterOperator.IN, value=value)]
        if item.type in (FilterType.RANGE, FilterType.DATE_RANGE):
            bounds = []
            if value["min"] is not None:
                bounds.append(Filter(field=name, operator=FilterOperator.GTE, value=value["min"]))
            if value["max"] is not None:
                bounds.append(Filter(field=name, operator=FilterOperator.LTE, value=value["max"]))
            return bounds
        if item.type is FilterType.EXISTS:
            operator = FilterOperator.NOT_NULL if value else FilterOperator.NULL
            return [Filter(field=name, operator=operator)]
        return [Filter(field=name, operator=FilterOperator.EQ, value=value)]

    def to_array(self) -> dict[str, dict[str, Any]]:
        """Active filters as ``{field: {"type": ..., "value": ...}}``."""
        return {name: {"type": item.type.value, "value": item.value} for name, item in self.active_filters.items()}

    def to_query_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        for name, item in self.active_filters.items():
            value = item.value
            if item.type in (FilterType.RANGE, FilterType.DATE_RANGE):
                if value["min"] is not None:
                    params[f"{name}_min"] = _param_value(value["min"])
                if value["max"] is not None:
                    params[f"{name}_max"] = _param_value(value["max"])
            elif item.type is FilterType.MULTI_SELECT:
                params[name] = ",".join(_param_value(v) for v in value)
            elif item.type is FilterType.EXISTS:
                params[f"{name}_exists"] = _param_value(value)
            elif item.type is not FilterType.CUSTOM:
                params[name] = _param_value(value)
        return params

    @classmethod
    def from_query_params(cls, params: Mapping[str, Any], types: Mapping[str, FilterType | str]) -> FilterBuilder:
        """Rebuild a builder from query parameters.

        Args:
            params: Query parameters (e.g. a request's query string).
            types: Filter type per field; parameters for other fields are ignored.
        """
        builder = cls()
        for name, kind in types.items():
            kind = FilterType(kind)
            if kind is FilterType.RANGE:
                low, high = params.get(f"{name}_min"), params.get(f"{name}_max")
                if low not in (None, "") or high not in (None, ""):
                    builder.range(
                        name,
                        _parse_number(low) if low not in (None, "") else None,
                        _parse_number(high) if high not in (None, "") else None,
                    )
            elif kind is FilterType.DATE_RANGE:
                low, high = params.get(f"{name}_min"), params.get(f"{name}_max")
                if low not in (None, "") or high not in (None, ""):
                    builder.date_range(name, low or None, high or None)
            elif kind is FilterType.EXISTS:
                raw = params.get(f"{name}_exists")
                if raw not in (None, ""):
                    builder.exists(name, str(raw).lower() in _TRUE)
            elif name in params and params[name] not in (None, ""):
                raw = params[name]
                if kind is FilterType.MULTI_SELECT:
                    values = raw if isinstance(raw, (list, tuple)) else str(raw).split(",")
                    builder.multi_select(name, [v for v in values if v != ""])
                elif kind is FilterType.BOOLEAN:
                    builder.boolean(name, str(raw).lower() in _TRUE)
                elif kind is FilterType.DATE:
                    builder.date(name, raw)
                elif kind is not FilterType.CUSTOM:
                    builder._set(name, kind, raw, None)
        return builder

    # ── Display ──────────────────────────────────────────────────────────

    def summary(self) -> list[str]:
        """Human-readable description of each active filter."""
        lines = []
        for item in self.active_filters.values():
            label, value = item.display_label, item.value
            if item.type in (FilterType.RANGE, FilterType.DATE_RANGE):
                low, high = value["min"], value["max"]
                if low is not None and high is not None:
                    lines.append(f"{label}: {_param_value(low)} - {_param_value(high)}")
                elif low is not None:
                    lines.append(f"{label}: ≥ {_param_value(low)}")
                else:
                    lines.append(f"{label}: ≤ {_param_value(high)}")
            elif item.type is FilterType.MULTI_SELECT:
                lines.append(f"{label}: {', '.join(_param_value(v) for v in value)}")
            elif item.type is FilterType.BOOLEAN:
                lines.append(f"{label}: {'Yes' if value else 'No'}")
            elif item.type is FilterType.EXISTS:
                lines.append(f"{label}: {'exists' if value else 'missing'}")
            else:
                lines.append(f"{label}: {_param_value(value)}")
        return lines
