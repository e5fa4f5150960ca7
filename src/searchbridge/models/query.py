"""Query and search request models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from searchbridge.models.facets import FacetSpec
from searchbridge.models.filters import Filter
from searchbridge.models.sorting import SortSpec, validate_sort_list


class SearchOptions(BaseModel):
    """Per-call options handed to an adapter's ``search``.

    ``filters`` and ``sort_by`` are already rendered in the adapter's own
    syntax; see ``QueryTranslator``.
    """

    limit: int = Field(default=10, ge=0, description="Maximum number of hits to return")
    offset: int = Field(default=0, ge=0, description="Number of hits to skip")
    sort_by: str | None = Field(default=None, description="Rendered sort expression")
    filters: str | None = Field(default=None, description="Rendered filter expression")
    facets: list[str] | None = Field(default=None, description="Fields to compute facet counts for")
    highlight_fields: list[str] | None = Field(default=None, description="Fields to highlight")
    retrieve_fields: list[str] | None = Field(default=None, description="Fields to return (None = all)")
    fuzziness: bool = Field(default=False, description="Typo-tolerant matching (embedded adapter only)")
    max_facet_values: int = Field(default=100, ge=1, description="Maximum values per facet requested from the backend")
    extra: dict[str, Any] = Field(default_factory=dict, description="Backend-native parameters passed through as-is")

    @field_validator("sort_by", "filters", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class SearchRequest(BaseModel):
    """An engine-neutral search request.

    Built by callers (usually through ``SearchQueryBuilder``) and executed by
    ``SearchManager.execute`` against whichever adapter is active.
    """

    model_config = ConfigDict(frozen=True)

    query: str = Field(default="", description="Full-text query; empty means filter-only search")
    filters: tuple[Filter, ...] = Field(default=(), description="Generic filter conditions, in order")
    sort: tuple[SortSpec, ...] = Field(default=(), description="Ordered sort list")
    facets: tuple[FacetSpec, ...] = Field(default=(), description="Requested facets")
    facet_filters: dict[str, tuple[Any, ...]] = Field(
        default_factory=dict, description="Currently applied facet values, per field"
    )
    limit: int | None = Field(default=None, ge=0, description="Maximum number of hits; None uses the configured default")
    offset: int = Field(default=0, ge=0)
    highlight_fields: tuple[str, ...] = Field(default=())
    retrieve_fields: tuple[str, ...] = Field(default=())
    fuzziness: bool = Field(default=False)
    extra: dict[str, Any] = Field(default_factory=dict)

    @field_validator("sort")
    @classmethod
    def _check_sort(cls, v: tuple[SortSpec, ...]) -> tuple[SortSpec, ...]:
        validate_sort_list(v)
        return v
