"""Facet models — Facet requests and normalized facet results."""

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class FacetKind(StrEnum):
    TERMS = "terms"
    RANGE = "range"
    DATE_HISTOGRAM = "date_histogram"
    HISTOGRAM = "histogram"
    STATS = "stats"
    CARDINALITY = "cardinality"


class FacetFormat(StrEnum):
    """Shape of the raw aggregation payload an adapter returns."""

    TYPESENSE = "typesense"
    MEILISEARCH = "meilisearch"
    NONE = "none"


class RangeBucket(BaseModel):
    """A half-open numeric bucket ``[from, to)`` of a range facet."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_: float | None = Field(default=None, alias="from", description="Inclusive lower bound")
    to: float | None = Field(default=None, description="Exclusive upper bound")
    label: str | None = Field(default=None, description="Display label (derived from the bounds if omitted)")

    @model_validator(mode="after")
    def _check_bounds(self) -> RangeBucket:
        if self.from_ is None and self.to is None:
            raise ValueError("A range bucket must define at least one of 'from' / 'to'")
        if self.from_ is not None and self.to is not None and self.from_ >= self.to:
            raise ValueError(f"Range bucket 'from' ({self.from_}) must be lower than 'to' ({self.to})")
        return self

    def contains(self, number: float) -> bool:
        if self.from_ is not None and number < self.from_:
            return False
        return not (self.to is not None and number >= self.to)

    def key(self) -> dict[str, float]:
        """Bucket identity used as the facet value (``{"from": .., "to": ..}``)."""
        key: dict[str, float] = {}
        if self.from_ is not None:
            key["from"] = self.from_
        if self.to is not None:
            key["to"] = self.to
        return key


class FacetSpec(BaseModel):
    """A requested facet (aggregation) over one field."""

    model_config = ConfigDict(frozen=True)

    field: str = Field(min_length=1, description="Field to aggregate")
    kind: FacetKind = Field(default=FacetKind.TERMS, description="Aggregation kind")
    label: str | None = Field(default=None, description="Display label (defaults to the capitalized field name)")
    size: int = Field(default=10, ge=1, description="Maximum number of values returned for terms facets")
    sort: str = Field(default="count", pattern="^(count|key)$", description="Order terms by count or by key")
    order: str = Field(default="desc", pattern="^(asc|desc)$", description="Sort order of term values")
    ranges: tuple[RangeBucket, ...] = Field(default=(), description="Buckets of a range facet")
    interval: float | str | None = Field(
        default=None,
        description="Histogram bucket width, or date histogram calendar interval (day, month, year)",
    )
    value_formatter: Callable[[Any], str] | None = Field(
        default=None, exclude=True, description="Custom label formatter for facet values"
    )

    @model_validator(mode="after")
    def _check_kind_parameters(self) -> FacetSpec:
        if self.kind is FacetKind.RANGE:
            if not self.ranges:
                raise ValueError(f"Range facet '{self.field}' needs at least one bucket")
            previous: RangeBucket | None = None
            for bucket in self.ranges:
                if previous is not None:
                    if previous.to is None or bucket.from_ is None or bucket.from_ < previous.to:
                        raise ValueError(f"Range facet '{self.field}' buckets must be ordered and non-overlapping")
                previous = bucket
        elif self.kind is FacetKind.HISTOGRAM:
            if not isinstance(self.interval, (int, float)) or self.interval <= 0:
                raise ValueError(f"Histogram facet '{self.field}' needs a positive numeric interval")
        elif self.kind is FacetKind.DATE_HISTOGRAM:
            if self.interval is None:
                object.__setattr__(self, "interval", "month")
            elif self.interval not in ("day", "month", "year"):
                raise ValueError(f"Date histogram facet '{self.field}' interval must be day, month or year")
        return self

    @property
    def display_label(self) -> str:
        if self.label:
            return self.label
        return self.field[:1].upper() + self.field[1:]


class FacetValue(BaseModel):
    """One value (or bucket) of a normalized facet."""

    value: Any = Field(description="Raw facet value or bucket key")
    label: str = Field(description="Formatted display label")
    count: int = Field(default=0, description="Number of matching documents")
    selected: bool = Field(default=False, description="Whether the caller currently filters on this value")


class FacetResult(BaseModel):
    """Backend-independent facet result."""

    field: str
    label: str
    type: FacetKind
    values: list[FacetValue] = Field(default_factory=list)
    total: int = Field(default=0, description="Number of distinct values (or documents for stats facets)")
    missing: int = Field(default=0, description="Documents without a value for this field, when reported")
    stats: dict[str, float] | None = Field(default=None, description="min / max / avg / sum / count for stats facets")
