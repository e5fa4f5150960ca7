"""Sort builder — Ordered sort lists with URL-parameter round-tripping.

The URL form is a comma-separated list of names, ``-`` marking descending
order: ``sort=-price,title``.
"""

from __future__ import annotations

from dataclasses import dataclass

from searchbridge.models.sorting import SortDirection, SortKind, SortSpec, validate_sort_list

_RELEVANCE_FIELDS = {"relevance", "_score", "_text_match"}
_RANDOM_FIELD = "_random"
_ARROWS = {SortDirection.ASC: "↑", SortDirection.DESC: "↓"}


@dataclass(frozen=True)
class SortOption:
    """A sort offered to users."""

    name: str
    field: str
    direction: SortDirection = SortDirection.ASC
    label: str = ""
    description: str = ""


class SortBuilder:
    """Builds the ``SortSpec`` list of a request.

    Example:
        >>> sorts = SortBuilder().register("price").from_param("-price")
        >>> sorts.to_url_params()
        {'sort': '-price'}
    """

    def __init__(self) -> None:
        self._sorts: list[SortSpec] = []
        self._options: dict[str, SortOption] = {}
        self._default: tuple[str, SortDirection] = ("relevance", SortDirection.DESC)

    def register(
        self,
        name: str,
        field: str | None = None,
        direction: SortDirection | str = SortDirection.ASC,
        label: str | None = None,
        description: str = "",
    ) -> SortBuilder:
        """Offer a sort under ``name``; ``from_param`` only accepts offered names."""
        self._options[name] = SortOption(
            name=name,
            field=field or name,
            direction=SortDirection(str(direction).lower()),
            label=label or name[:1].upper() + name[1:],
            description=description,
        )
        return self

    # ── Building ─────────────────────────────────────────────────────────

    def add(self, field: str, direction: SortDirection | str = SortDirection.ASC) -> SortBuilder:
        return self._append(SortSpec(field=field, direction=direction))

    def then_by(self, field: str, direction: SortDirection | str = SortDirection.ASC) -> SortBuilder:
        return self.add(field, direction)

    def then_by_desc(self, field: str) -> SortBuilder:
        return self.add(field, SortDirection.DESC)

    def score(self, direction: SortDirection | str = SortDirection.DESC) -> SortBuilder:
        return self._append(SortSpec(field="_score", direction=direction, kind=SortKind.RELEVANCE))

    def relevance(self, direction: SortDirection | str = SortDirection.DESC) -> SortBuilder:
        return self._append(SortSpec(field="_text_match", direction=direction, kind=SortKind.RELEVANCE))

    def distance(
        self, field: str, lat: float, lng: float, direction: SortDirection | str = SortDirection.ASC
    ) -> SortBuilder:
        return self._append(SortSpec(field=field, direction=direction, kind=SortKind.DISTANCE, lat=lat, lng=lng))

    def random(self) -> SortBuilder:
        return self._append(SortSpec(field=_RANDOM_FIELD, kind=SortKind.RANDOM))

    def with_relevance(self) -> SortBuilder:
        """Put a relevance sort first unless one is already present."""
        if not any(s.kind is SortKind.RELEVANCE for s in self._sorts):
            self._sorts.insert(0, SortSpec(field="_text_match", direction=SortDirection.DESC, kind=SortKind.RELEVANCE))
        return self

    def from_param(self, value: str | None) -> SortBuilder:
        """Append sorts parsed from ``"-price,title"``; unknown names are skipped."""
        if not value:
            return self
        for token in value.split(","):
            token = token.strip()
            direction = SortDirection.ASC
            if token.startswith("-"):
                token, direction = token[1:], SortDirection.DESC
            if token in _RELEVANCE_FIELDS:
                self._append(SortSpec(field="_text_match", direction=direction, kind=SortKind.RELEVANCE))
            elif token == _RANDOM_FIELD:
                self.random()
            elif token in self._options:
                self.add(self._options[token].field, direction)
        return self

    def set_default(self, field: str, direction: SortDirection | str = SortDirection.ASC) -> SortBuilder:
        self._default = (field, SortDirection(str(direction).lower()))
        return self

    def apply_default(self) -> SortBuilder:
        """Add the default sort if nothing else was added."""
        if self._sorts:
            return self
        field, direction = self._default
        if field in _RELEVANCE_FIELDS:
            return self.relevance(direction)
        return self.add(field, direction)

    def remove(self, field: str) -> SortBuilder:
        self._sorts = [s for s in self._sorts if s.field != field]
        return self

    def clear(self) -> SortBuilder:
        self._sorts.clear()
        return self

    def _append(self, spec: SortSpec) -> SortBuilder:
        validate_sort_list([*self._sorts, spec])
        self._sorts.append(spec)
        return self

    # ── Output ───────────────────────────────────────────────────────────

    def to_specs(self) -> list[SortSpec]:
        return list(self._sorts)

    @property
    def current(self) -> SortSpec | None:
        return self._sorts[0] if self._sorts else None

    def has_sorts(self) -> bool:
        return bool(self._sorts)

    def to_url_params(self) -> dict[str, str]:
        if not self._sorts:
            return {}
        tokens = []
        for spec in self._sorts:
            name = self._name_for(spec)
            tokens.append(f"-{name}" if spec.direction is SortDirection.DESC else name)
        return {"sort": ",".join(tokens)}

    def sort_options(self) -> dict[str, dict[str, str]]:
        return {
            name: {"label": o.label, "description": o.description, "default_direction": o.direction.value}
            for name, o in self._options.items()
        }

    def summary(self) -> str:
        """``"Price ↓, Title ↑"``; ``"Relevance"`` when nothing is sorted."""
        if not self._sorts:
            return "Relevance"
        return ", ".join(self._label(spec) for spec in self._sorts)

    def _name_for(self, spec: SortSpec) -> str:
        if spec.kind is SortKind.RELEVANCE:
            return "relevance"
        for name, option in self._options.items():
            if option.field == spec.field:
                return name
        return spec.field

    def _label(self, spec: SortSpec) -> str:
        arrow = _ARROWS[spec.direction]
        if spec.kind is SortKind.RANDOM:
            return "Random"
        if spec.kind is SortKind.RELEVANCE:
            return f"{'Score' if spec.field == '_score' else 'Relevance'} {arrow}"
        if spec.kind is SortKind.DISTANCE:
            return f"Distance {arrow}"
        option = next((o for o in self._options.values() if o.field == spec.field), None)
        label = option.label if option else spec.field[:1].upper() + spec.field[1:]
        return f"{label} {arrow}"
