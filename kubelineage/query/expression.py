"""Query AST."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class Operator(StrEnum):
    EQ = "="
    NE = "!="
    REGEX = "~="
    IN = "IN"
    PREFIX = "PREFIX"


@dataclass(frozen=True)
class Comparison:
    """``field OP values``. ``field`` is ``labels[key]`` for label lookups."""

    field: str
    operator: Operator
    values: tuple[str, ...]

    def __str__(self) -> str:
        if self.operator is Operator.PREFIX:
            return f"{self.field}={self.values[0]}*"
        op = "=" if self.operator is Operator.IN else str(self.operator)
        return f"{self.field}{op}{','.join(self.values)}"


@dataclass(frozen=True)
class And:
    """Conjunction. An empty conjunction matches everything."""

    terms: tuple[Expression, ...]

    def __str__(self) -> str:
        return " AND ".join(str(t) for t in self.terms)


@dataclass(frozen=True)
class Or:
    terms: tuple[Expression, ...]

    def __str__(self) -> str:
        return " OR ".join(str(t) for t in self.terms)


Expression = Comparison | And | Or

MATCH_ALL = And(terms=())
