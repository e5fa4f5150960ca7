"""Filter models — Engine-neutral filter conditions."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class FilterOperator(StrEnum):
    """Comparison operators understood by every filter dialect."""

    EQ = "="
    NEQ = "!="
    GT = ">"
    GTE = ">="
    LT = "<"
    LTE = "<="
    IN = "IN"
    NOT_IN = "NOT IN"
    BETWEEN = "BETWEEN"
    LIKE = "LIKE"
    NULL = "NULL"
    NOT_NULL = "NOT NULL"

    @classmethod
    def parse(cls, value: str | FilterOperator) -> FilterOperator:
        """Resolve an operator symbol (``">="``, ``"not in"``, ``"=="``) or name (``"GTE"``)."""
        if isinstance(value, FilterOperator):
            return value
        token = " ".join(str(value).strip().upper().split())
        if token == "==":
            return cls.EQ
        if token == "<>":
            return cls.NEQ
        try:
            return cls(token)
        except ValueError:
            pass
        try:
            return cls[token.replace(" ", "_")]
        except KeyError:
            raise ValueError(f"Unknown filter operator: {value!r}") from None


class Combinator(StrEnum):
    """How a filter joins the run it belongs to."""

    AND = "AND"
    OR = "OR"


_NO_VALUE_OPERATORS = {FilterOperator.NULL, FilterOperator.NOT_NULL}
_LIST_OPERATORS = {FilterOperator.IN, FilterOperator.NOT_IN}


class Filter(BaseModel):
    """A single filter condition.

    Filters are immutable once built. Consecutive filters sharing a
    combinator are grouped into one run by the translator.
    """

    model_config = ConfigDict(frozen=True)

    field: str = Field(min_length=1, description="Document field to filter on")
    operator: FilterOperator = Field(default=FilterOperator.EQ, description="Comparison operator")
    value: Any = Field(default=None, description="Scalar, list (IN/NOT_IN) or (low, high) pair (BETWEEN)")
    combinator: Combinator = Field(default=Combinator.AND, description="Run this filter belongs to")

    @model_validator(mode="before")
    @classmethod
    def _coerce_operator(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("operator"), str):
            data = {**data, "operator": FilterOperator.parse(data["operator"])}
        return data

    @model_validator(mode="after")
    def _check_value_shape(self) -> Filter:
        if self.operator is FilterOperator.BETWEEN:
            if not isinstance(self.value, (list, tuple)) or len(self.value) != 2:
                raise ValueError(f"BETWEEN filter on '{self.field}' needs exactly two values (low, high)")
            object.__setattr__(self, "value", tuple(self.value))
        elif self.operator in _LIST_OPERATORS:
            if isinstance(self.value, (str, bytes)) or not isinstance(self.value, (list, tuple, set, frozenset)):
                raise ValueError(f"{self.operator.name} filter on '{self.field}' needs a list of values")
            if not self.value:
                raise ValueError(f"{self.operator.name} filter on '{self.field}' needs at least one value")
            object.__setattr__(self, "value", tuple(self.value))
        elif self.operator in _NO_VALUE_OPERATORS:
            object.__setattr__(self, "value", None)
        elif self.value is None:
            raise ValueError(f"{self.operator.name} filter on '{self.field}' needs a value")
        return self

    def as_tuple(self) -> tuple[str, FilterOperator, Any]:
        """Return the ``(field, operator, value)`` identity of this filter."""
        return (self.field, self.operator, self.value)
