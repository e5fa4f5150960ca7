"""Query builders — Produce the generic filters, sorts and facets the core consumes."""

from searchbridge.query.builder import Paginated, SearchQueryBuilder
from searchbridge.query.facets import FacetBuilder
from searchbridge.query.filters import FilterBuilder, FilterType
from searchbridge.query.sorting import SortBuilder

__all__ = ["FacetBuilder", "FilterBuilder", "FilterType", "Paginated", "SearchQueryBuilder", "SortBuilder"]
