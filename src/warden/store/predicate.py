"""
Storage-native filter expressions.

A Predicate is a parameterized SQL boolean expression plus its bound
parameters. It is the exact type the predicate compiler emits and the type
WardenDB.find() accepts, so authorization can be pushed into the query
instead of filtering rows after they are fetched.

Two sentinels complete the picture:
    - UNRESTRICTED: no filter is needed, every row is visible
    - MATCH_NOTHING: no row can be visible; callers skip the query entirely

Column names are never taken from callers verbatim: every name is checked
against the table's column whitelist before it is quoted into SQL.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from warden.schema import Document, Project, ResourceType

TABLES: dict[ResourceType, str] = {
    ResourceType.PROJECT: "projects",
    ResourceType.DOCUMENT: "documents",
}

COLUMNS: dict[ResourceType, frozenset[str]] = {
    ResourceType.PROJECT: frozenset(Project.model_fields),
    ResourceType.DOCUMENT: frozenset(Document.model_fields),
}


class PredicateSentinel(str, Enum):
    """Compiled results that are not SQL expressions."""

    UNRESTRICTED = "unrestricted"
    MATCH_NOTHING = "match_nothing"


UNRESTRICTED = PredicateSentinel.UNRESTRICTED
MATCH_NOTHING = PredicateSentinel.MATCH_NOTHING


def to_db_value(value: Any) -> Any:
    """Convert a Python value to what sqlite3 binds."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


@dataclass(frozen=True)
class Predicate:
    """
    A parameterized SQL boolean expression.

    Attributes:
        sql: Expression text with ``?`` placeholders
        params: Values bound to the placeholders, in order
    """

    sql: str
    params: tuple[Any, ...] = ()

    @classmethod
    def equals(cls, column: str, value: Any) -> "Predicate":
        """Equality against a literal; None becomes IS NULL."""
        if value is None:
            return cls(f'"{column}" IS NULL')
        return cls(f'"{column}" = ?', (to_db_value(value),))

    @classmethod
    def all_of(cls, predicates: list["Predicate"]) -> "Predicate":
        """Conjunction of predicates."""
        return cls._join(" AND ", predicates)

    @classmethod
    def any_of(cls, predicates: list["Predicate"]) -> "Predicate":
        """Disjunction of predicates."""
        return cls._join(" OR ", predicates)

    @classmethod
    def _join(cls, joiner: str, predicates: list["Predicate"]) -> "Predicate":
        if not predicates:
            msg = "Cannot join an empty list of predicates"
            raise ValueError(msg)
        if len(predicates) == 1:
            return predicates[0]
        sql = "(" + joiner.join(p.sql for p in predicates) + ")"
        params = tuple(param for p in predicates for param in p.params)
        return cls(sql, params)

    def __and__(self, other: "Predicate") -> "Predicate":
        return Predicate.all_of([self, other])

    def __or__(self, other: "Predicate") -> "Predicate":
        return Predicate.any_of([self, other])

    def __str__(self) -> str:
        return self.sql


CompiledPredicate = Predicate | PredicateSentinel
