"""Filter and sort dialects — Per-backend operator tables.

A dialect knows how one backend spells a single filter condition, how it
joins conditions, and how it spells each kind of sort. The translator owns
the grouping algorithm; dialects only render leaves.

Built-in dialects:
  - ``TYPESENSE``: ``price:>=100``, ``category:=["a","b"]``, ``&&`` / ``||``
  - ``MEILISEARCH``: ``price >= 100``, ``category IN ["a","b"]``, ``AND`` / ``OR``
  - ``EMBEDDED``: no structured filters; every operator is ``UNSUPPORTED``
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from datetime import date, datetime
from typing import Any, Final

from searchbridge.adapters.base.exceptions import BackendQueryError
from searchbridge.models.filters import Filter, FilterOperator
from searchbridge.models.sorting import SortKind, SortSpec


class _Unsupported:
    """Marker for a condition the backend cannot express."""

    _instance: _Unsupported | None = None

    def __new__(cls) -> _Unsupported:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSUPPORTED"

    def __bool__(self) -> bool:
        return False


UNSUPPORTED: Final = _Unsupported()

Rendering = str | _Unsupported
ConditionRenderer = Callable[[str, Any], str]


def _epoch(value: date | datetime) -> int:
    if isinstance(value, datetime):
        return int(value.timestamp())
    return int(datetime(value.year, value.month, value.day).timestamp())


def _number(value: int | float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class Dialect:
    """Base dialect: a backend with no structured-filter support.

    Subclasses fill ``operators`` with one renderer per ``FilterOperator``
    and override the sort hooks they support.
    """

    name: str = "none"
    and_token: str = " AND "
    or_token: str = " OR "
    sort_separator: str = ","
    operators: dict[FilterOperator, ConditionRenderer] = {}

    @property
    def supports_filters(self) -> bool:
        return bool(self.operators)

    # ── Filters ──────────────────────────────────────────────────────────

    def render_condition(self, condition: Filter) -> Rendering:
        renderer = self.operators.get(condition.operator)
        if renderer is None:
            return UNSUPPORTED
        return renderer(condition.field, condition.value)

    def group(self, conditions: list[str], joiner: str) -> str:
        return "(" + joiner.join(conditions) + ")"

    # ── Sorts ────────────────────────────────────────────────────────────

    def render_sort(self, spec: SortSpec) -> str | None:
        """Render one sort entry, or ``None`` when the backend implies it."""
        if spec.kind is SortKind.PLAIN:
            return f"{spec.field}:{spec.direction.value}"
        if spec.kind is SortKind.RELEVANCE:
            return self.relevance_sort(spec)
        if spec.kind is SortKind.RANDOM:
            return self.random_sort(spec)
        return self.distance_sort(spec)

    def relevance_sort(self, spec: SortSpec) -> str | None:
        return None

    def random_sort(self, spec: SortSpec) -> str | None:
        raise BackendQueryError("Random sort is not supported", adapter=self.name, operation="sort")

    def distance_sort(self, spec: SortSpec) -> str | None:
        raise BackendQueryError("Distance sort is not supported", adapter=self.name, operation="sort")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


# ── Typesense ────────────────────────────────────────────────────────────

_TS_PLAIN = re.compile(r"^[\w.\-:@]+$")


def _ts_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return _number(value)
    if isinstance(value, (date, datetime)):
        return str(_epoch(value))
    text = str(value)
    if _TS_PLAIN.match(text):
        return text
    return "`" + text.replace("`", "\\`") + "`"


def _ts_item(value: Any) -> str:
    if isinstance(value, str):
        return '"' + value.replace('"', '\\"') + '"'
    return _ts_scalar(value)


def _ts_list(values: Any) -> str:
    return "[" + ",".join(_ts_item(v) for v in values) + "]"


class TypesenseDialect(Dialect):
    """Typesense ``filter_by`` / ``sort_by`` syntax."""

    name = "typesense"
    and_token = " && "
    or_token = " || "
    operators = {
        FilterOperator.EQ: lambda f, v: f"{f}:={_ts_scalar(v)}",
        FilterOperator.NEQ: lambda f, v: f"{f}:!={_ts_scalar(v)}",
        FilterOperator.GT: lambda f, v: f"{f}:>{_ts_scalar(v)}",
        FilterOperator.GTE: lambda f, v: f"{f}:>={_ts_scalar(v)}",
        FilterOperator.LT: lambda f, v: f"{f}:<{_ts_scalar(v)}",
        FilterOperator.LTE: lambda f, v: f"{f}:<={_ts_scalar(v)}",
        FilterOperator.IN: lambda f, v: f"{f}:={_ts_list(v)}",
        FilterOperator.NOT_IN: lambda f, v: f"{f}:!={_ts_list(v)}",
        FilterOperator.BETWEEN: lambda f, v: f"{f}:=[{_ts_scalar(v[0])}..{_ts_scalar(v[1])}]",
        # non-exact match on a string field
        FilterOperator.LIKE: lambda f, v: f"{f}:{_ts_scalar(v)}",
        FilterOperator.NULL: lambda f, v: f"{f}:=",
        FilterOperator.NOT_NULL: lambda f, v: f"{f}:!=",
    }

    def relevance_sort(self, spec: SortSpec) -> str | None:
        return f"_text_match:{spec.direction.value}"

    def random_sort(self, spec: SortSpec) -> str | None:
        return "_rand()"

    def distance_sort(self, spec: SortSpec) -> str | None:
        return f"{spec.field}({_number(spec.lat)}, {_number(spec.lng)}):{spec.direction.value}"


# ── MeiliSearch ──────────────────────────────────────────────────────────


def _meili_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return _number(value)
    if isinstance(value, (date, datetime)):
        return str(_epoch(value))
    return json.dumps(str(value), ensure_ascii=False)


def _meili_list(values: Any) -> str:
    return "[" + ", ".join(_meili_scalar(v) for v in values) + "]"


class MeilisearchDialect(Dialect):
    """MeiliSearch ``filter`` / ``sort`` syntax."""

    name = "meilisearch"
    operators = {
        FilterOperator.EQ: lambda f, v: f"{f} = {_meili_scalar(v)}",
        FilterOperator.NEQ: lambda f, v: f"{f} != {_meili_scalar(v)}",
        FilterOperator.GT: lambda f, v: f"{f} > {_meili_scalar(v)}",
        FilterOperator.GTE: lambda f, v: f"{f} >= {_meili_scalar(v)}",
        FilterOperator.LT: lambda f, v: f"{f} < {_meili_scalar(v)}",
        FilterOperator.LTE: lambda f, v: f"{f} <= {_meili_scalar(v)}",
        FilterOperator.IN: lambda f, v: f"{f} IN {_meili_list(v)}",
        FilterOperator.NOT_IN: lambda f, v: f"{f} NOT IN {_meili_list(v)}",
        FilterOperator.BETWEEN: lambda f, v: f"{f} {_meili_scalar(v[0])} TO {_meili_scalar(v[1])}",
        # MeiliSearch has no pattern match; LIKE degrades to equality
        FilterOperator.LIKE: lambda f, v: f"{f} = {_meili_scalar(v)}",
        FilterOperator.NULL: lambda f, v: f"{f} IS NULL",
        FilterOperator.NOT_NULL: lambda f, v: f"{f} IS NOT NULL",
    }

    def relevance_sort(self, spec: SortSpec) -> str | None:
        # ranking rules already order by relevance
        return None

    def distance_sort(self, spec: SortSpec) -> str | None:
        return f"_geoPoint({_number(spec.lat)}, {_number(spec.lng)}):{spec.direction.value}"


# ── Embedded ─────────────────────────────────────────────────────────────


class EmbeddedDialect(Dialect):
    """Embedded FTS index: full-text only, sortable by score, field or at random."""

    name = "embedded"

    def relevance_sort(self, spec: SortSpec) -> str | None:
        return f"_score:{spec.direction.value}"

    def random_sort(self, spec: SortSpec) -> str | None:
        return "_random"


NO_FILTERS: Final = Dialect()
TYPESENSE: Final = TypesenseDialect()
MEILISEARCH: Final = MeilisearchDialect()
EMBEDDED: Final = EmbeddedDialect()

BUILTIN_DIALECTS: Final[dict[str, Dialect]] = {
    TYPESENSE.name: TYPESENSE,
    MEILISEARCH.name: MEILISEARCH,
    EMBEDDED.name: EMBEDDED,
}


def split_sort_expression(expression: str) -> list[str]:
    """Split a rendered sort expression on commas outside parentheses."""
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for char in expression:
        if char == "(":
            depth += 1
        elif char == ")":
            depth = max(depth - 1, 0)
        if char == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return [p for p in parts if p]
