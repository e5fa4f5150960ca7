"""Search query builder — Fluent construction and execution of search requests.

Usage::

    results = await (
        SearchQueryBuilder(manager, "products")
        .query("laptop")
        .where_between("price", 500, 2000)
        .where_in("category", ["electronics", "computers"])
        .order_by_desc("rating")
        .facet("brand")
        .limit(20)
        .get()
    )
"""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from searchbridge.models.facets import FacetSpec
from searchbridge.models.filters import Combinator, Filter, FilterOperator
from searchbridge.models.query import SearchRequest
from searchbridge.models.result import Hit, SearchResultEnvelope
from searchbridge.models.sorting import SortDirection, SortKind, SortSpec

if TYPE_CHECKING:
    from searchbridge.core.manager import SearchManager


class Paginated(BaseModel):
    """One page of hits with paging metadata."""

    data: list[Hit] = Field(default_factory=list)
    total: int = 0
    per_page: int = 10
    current_page: int = 1
    last_page: int = 0


class SearchQueryBuilder:
    """Fluent builder producing a ``SearchRequest`` for one collection.

    ``where`` conditions join with AND; ``or_where`` conditions join the
    consecutive run they belong to with OR.
    """

    def __init__(self, manager: SearchManager, collection: str) -> None:
        self._manager = manager
        self._collection = collection
        self._query = ""
        self._filters: list[Filter] = []
        self._sort: list[SortSpec] = []
        self._facets: list[FacetSpec] = []
        self._facet_filters: dict[str, tuple[Any, ...]] = {}
        self._fields: list[str] = []
        self._highlight: list[str] = []
        self._limit = manager.settings.search.default_limit
        self._offset = 0
        self._fuzzy = False

    def query(self, text: str) -> SearchQueryBuilder:
        self._query = text
        return self

    # ── Filters ──────────────────────────────────────────────────────────

    def where(self, field: str, operator: Any, value: Any = None) -> SearchQueryBuilder:
        """``where("status", "active")`` or ``where("price", ">=", 100)``."""
        return self._where(field, operator, value, Combinator.AND)

    def or_where(self, field: str, operator: Any, value: Any = None) -> SearchQueryBuilder:
        return self._where(field, operator, value, Combinator.OR)

    def where_in(self, field: str, values: list[Any]) -> SearchQueryBuilder:
        return self._add(field, FilterOperator.IN, list(values))

    def where_not_in(self, field: str, values: list[Any]) -> SearchQueryBuilder:
        return self._add(field, FilterOperator.NOT_IN, list(values))

    def where_between(self, field: str, low: Any, high: Any) -> SearchQueryBuilder:
        return self._add(field, FilterOperator.BETWEEN, (low, high))

    def where_like(self, field: str, value: str) -> SearchQueryBuilder:
        return self._add(field, FilterOperator.LIKE, value)

    def where_null(self, field: str) -> SearchQueryBuilder:
        return self._add(field, FilterOperator.NULL, None)

    def where_not_null(self, field: str) -> SearchQueryBuilder:
        return self._add(field, FilterOperator.NOT_NULL, None)

    def where_date(self, field: str, operator: str | FilterOperator, value: date | datetime | str) -> SearchQueryBuilder:
        if isinstance(value, str):
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        return self._add(field, FilterOperator.parse(operator), value)

    def where_filters(self, filters: list[Filter]) -> SearchQueryBuilder:
        """Append pre-built conditions, e.g. ``FilterBuilder.to_filters()``."""
        self._filters.extend(filters)
        return self

    def _where(self, field: str, operator: Any, value: Any, combinator: Combinator) -> SearchQueryBuilder:
        if value is None:
            try:
                parsed = FilterOperator.parse(operator) if isinstance(operator, str) else None
            except ValueError:
                parsed = None
            if parsed not in (FilterOperator.NULL, FilterOperator.NOT_NULL):
                return self._add(field, FilterOperator.EQ, operator, combinator)
            return self._add(field, parsed, None, combinator)
        return self._add(field, FilterOperator.parse(operator), value, combinator)

    def _add(
        self, field: str, operator: FilterOperator, value: Any, combinator: Combinator = Combinator.AND
    ) -> SearchQueryBuilder:
        self._filters.append(Filter(field=field, operator=operator, value=value, combinator=combinator))
        return self

    # ── Sorting ──────────────────────────────────────────────────────────

    def order_by(self, field: str, direction: SortDirection | str = SortDirection.ASC) -> SearchQueryBuilder:
        self._sort.append(SortSpec(field=field, direction=direction))
        return self

    def order_by_desc(self, field: str) -> SearchQueryBuilder:
        return self.order_by(field, SortDirection.DESC)

    def order_by_relevance(self, direction: SortDirection | str = SortDirection.DESC) -> SearchQueryBuilder:
        self._sort.append(SortSpec(field="_text_match", direction=direction, kind=SortKind.RELEVANCE))
        return self

    def order_by_random(self) -> SearchQueryBuilder:
        self._sort.append(SortSpec(field="_random", kind=SortKind.RANDOM))
        return self

    def order_by_distance(
        self, field: str, lat: float, lng: float, direction: SortDirection | str = SortDirection.ASC
    ) -> SearchQueryBuilder:
        self._sort.append(SortSpec(field=field, direction=direction, kind=SortKind.DISTANCE, lat=lat, lng=lng))
        return self

    def sort(self, specs: list[SortSpec]) -> SearchQueryBuilder:
        self._sort.extend(specs)
        return self

    # ── Window, projection, facets ───────────────────────────────────────

    def select(self, fields: list[str]) -> SearchQueryBuilder:
        self._fields = list(fields)
        return self

    def limit(self, limit: int) -> SearchQueryBuilder:
        self._limit = limit
        return self

    def offset(self, offset: int) -> SearchQueryBuilder:
        self._offset = offset
        return self

    def for_page(self, page: int, per_page: int = 10) -> SearchQueryBuilder:
        self._limit = per_page
        self._offset = (max(page, 1) - 1) * per_page
        return self

    def facet(self, field: str | FacetSpec) -> SearchQueryBuilder:
        self._facets.append(field if isinstance(field, FacetSpec) else FacetSpec(field=field))
        return self

    def facets(self, fields: list[str | FacetSpec]) -> SearchQueryBuilder:
        for field in fields:
            self.facet(field)
        return self

    def facet_filters(self, selections: dict[str, tuple[Any, ...]]) -> SearchQueryBuilder:
        """Apply facet selections, e.g. ``FacetBuilder.facet_filters()``."""
        self._facet_filters.update(selections)
        return self

    def highlight(self, *fields: str) -> SearchQueryBuilder:
        self._highlight.extend(fields)
        return self

    def fuzzy(self, enabled: bool = True) -> SearchQueryBuilder:
        self._fuzzy = enabled
        return self

    def build(self) -> SearchRequest:
        return SearchRequest(
            query=self._query,
            filters=tuple(self._filters),
            sort=tuple(self._sort),
            facets=tuple(self._facets),
            facet_filters=dict(self._facet_filters),
            limit=self._limit,
            offset=self._offset,
            highlight_fields=tuple(self._highlight),
            retrieve_fields=tuple(self._fields),
            fuzziness=self._fuzzy,
        )

    # ── Execution ────────────────────────────────────────────────────────

    async def get(self) -> SearchResultEnvelope:
        return await self._manager.execute(self._collection, self.build())

    async def first(self) -> Hit | None:
        envelope = await self._manager.execute(self._collection, self.build().model_copy(update={"limit": 1}))
        return envelope.hits[0] if envelope.hits else None

    async def count(self) -> int:
        request = self.build().model_copy(update={"limit": 0, "offset": 0, "facets": ()})
        envelope = await self._manager.execute(self._collection, request)
        return envelope.total_found

    async def exists(self) -> bool:
        return await self.count() > 0

    async def paginate(self, page: int = 1, per_page: int = 10) -> Paginated:
        self.for_page(page, per_page)
        envelope = await self.get()
        return Paginated(
            data=envelope.hits,
            total=envelope.total_found,
            per_page=per_page,
            current_page=max(page, 1),
            last_page=math.ceil(envelope.total_found / per_page) if per_page else 0,
        )
