"""Sort models — Engine-neutral sort specifications."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class SortDirection(StrEnum):
    ASC = "asc"
    DESC = "desc"


class SortKind(StrEnum):
    """Kinds of sort the dialects know how to render."""

    PLAIN = "plain"
    RELEVANCE = "relevance"
    DISTANCE = "distance"
    RANDOM = "random"


class SortSpec(BaseModel):
    """One entry of an ordered sort list."""

    model_config = ConfigDict(frozen=True)

    field: str = Field(min_length=1, description="Field to sort on (geo field for distance sorts)")
    direction: SortDirection = Field(default=SortDirection.ASC, description="Sort direction")
    kind: SortKind = Field(default=SortKind.PLAIN, description="Sort kind")
    lat: float | None = Field(default=None, description="Reference latitude (distance sorts)")
    lng: float | None = Field(default=None, description="Reference longitude (distance sorts)")

    @field_validator("direction", mode="before")
    @classmethod
    def _lower_direction(cls, v: Any) -> Any:
        return v.lower() if isinstance(v, str) else v

    @model_validator(mode="after")
    def _check_kind(self) -> SortSpec:
        if self.kind is SortKind.DISTANCE and (self.lat is None or self.lng is None):
            raise ValueError(f"Distance sort on '{self.field}' needs a (lat, lng) reference point")
        if self.kind is SortKind.RANDOM and self.direction is not SortDirection.ASC:
            # random ordering has no direction
            object.__setattr__(self, "direction", SortDirection.ASC)
        return self


def validate_sort_list(sorts: list[SortSpec] | tuple[SortSpec, ...]) -> None:
    """Raise ``ValueError`` if a sort list holds more than one distance sort."""
    distance_sorts = [s for s in sorts if s.kind is SortKind.DISTANCE]
    if len(distance_sorts) > 1:
        fields = ", ".join(s.field for s in distance_sorts)
        raise ValueError(f"At most one distance sort is allowed, got {len(distance_sorts)} ({fields})")
