"""Data models shared by adapters, translator, normalizer and builders."""

from searchbridge.models.benchmark import BenchmarkResult
from searchbridge.models.facets import FacetFormat, FacetKind, FacetResult, FacetSpec, FacetValue, RangeBucket
from searchbridge.models.filters import Combinator, Filter, FilterOperator
from searchbridge.models.query import SearchOptions, SearchRequest
from searchbridge.models.result import Hit, PageInfo, SearchResultEnvelope
from searchbridge.models.sorting import SortDirection, SortKind, SortSpec

__all__ = [
    "BenchmarkResult",
    "Combinator",
    "FacetFormat",
    "FacetKind",
    "FacetResult",
    "FacetSpec",
    "FacetValue",
    "Filter",
    "FilterOperator",
    "Hit",
    "PageInfo",
    "RangeBucket",
    "SearchOptions",
    "SearchRequest",
    "SearchResultEnvelope",
    "SortDirection",
    "SortKind",
    "SortSpec",
]
