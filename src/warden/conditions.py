"""
Condition AST for Warden policy rules.

A rule's condition is a small tree of nodes:

    FieldCondition("eq", "status", "published")
    CompoundCondition("and", (FieldCondition(...), FieldCondition(...)))
    CompoundCondition("or", (...))

The same tree is evaluated in memory against a single instance (decision
engine, field projector) and lowered to a storage predicate (compiler).
Both walkers dispatch on the node's operator and reject operators they do
not know, so the two paths can never disagree about what a node means.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from warden.errors import UnsupportedOperatorError

_MISSING = object()


class Condition:
    """Base class for condition AST nodes."""

    __slots__ = ()

    operator: str


@dataclass(frozen=True)
class FieldCondition(Condition):
    """Compare one instance attribute against a literal."""

    operator: str
    field: str
    value: Any

    def __str__(self) -> str:
        value = self.value.value if isinstance(self.value, Enum) else self.value
        if self.operator == "eq":
            return f"{self.field} = {value!r}"
        return f"{self.field} {self.operator} {value!r}"


@dataclass(frozen=True)
class CompoundCondition(Condition):
    """Combine child conditions with a logical operator."""

    operator: str
    children: tuple[Condition, ...]

    def __str__(self) -> str:
        joiner = f" {self.operator.upper()} "
        return "(" + joiner.join(str(child) for child in self.children) + ")"


# =============================================================================
# Constructors
# =============================================================================


def eq(field: str, value: Any) -> FieldCondition:
    """Build an equality node."""
    return FieldCondition("eq", field, value)


def and_(*children: Condition) -> Condition:
    """Build an AND node, collapsing a single child."""
    if len(children) == 1:
        return children[0]
    return CompoundCondition("and", tuple(children))


def or_(*children: Condition) -> Condition:
    """Build an OR node, collapsing a single child."""
    if len(children) == 1:
        return children[0]
    return CompoundCondition("or", tuple(children))


def from_mapping(condition: Mapping[str, Any] | Condition | None) -> Condition | None:
    """
    Normalize a flat attribute mapping into an AST.

    Each key becomes an ``eq`` node; several keys are joined with ``and``.
    An empty mapping, like None, means the rule is unconditional.

    Args:
        condition: Mapping of attribute name to required value, an existing
            AST node, or None

    Returns:
        The equivalent AST, or None for an unconditional rule
    """
    if condition is None or isinstance(condition, Condition):
        return condition
    if not condition:
        return None
    return and_(*(eq(key, value) for key, value in condition.items()))


# =============================================================================
# In-memory evaluation
# =============================================================================


def evaluate(condition: Condition, instance: Any) -> bool:
    """
    Evaluate a condition tree against a single instance.

    Attribute names are not checked here: a missing attribute just fails
    to match. PolicyEngine rejects names the resource does not have before
    it evaluates, like the predicate compiler.

    Args:
        condition: Root node of the condition
        instance: A mapping or an object exposing the attributes as properties

    Returns:
        True if the instance satisfies the condition

    Raises:
        UnsupportedOperatorError: If a node uses an unknown operator
    """
    if isinstance(condition, CompoundCondition):
        if condition.operator == "and":
            return all(evaluate(child, instance) for child in condition.children)
        if condition.operator == "or":
            return any(evaluate(child, instance) for child in condition.children)
        raise UnsupportedOperatorError(operator=condition.operator, node_kind="compound")

    if isinstance(condition, FieldCondition):
        if condition.operator == "eq":
            return strict_equals(get_attribute(instance, condition.field), condition.value)
        raise UnsupportedOperatorError(operator=condition.operator, node_kind="field")

    raise UnsupportedOperatorError(
        operator=getattr(condition, "operator", "?"),
        node_kind=type(condition).__name__,
    )


def condition_fields(condition: Condition) -> frozenset[str]:
    """Names of every attribute a condition tree compares."""
    if isinstance(condition, FieldCondition):
        return frozenset({condition.field})
    if isinstance(condition, CompoundCondition):
        return frozenset().union(*(condition_fields(c) for c in condition.children))
    return frozenset()


def get_attribute(instance: Any, name: str) -> Any:
    """Read an attribute from a mapping or object; missing yields a sentinel."""
    if isinstance(instance, Mapping):
        return instance.get(name, _MISSING)
    return getattr(instance, name, _MISSING)


def strict_equals(actual: Any, expected: Any) -> bool:
    """
    Equality without Python's loose spots.

    A missing attribute never matches, None only matches None, and booleans
    never match integers (``False == 0`` is true in Python).
    """
    if actual is _MISSING:
        return False
    if actual is None or expected is None:
        return actual is None and expected is None
    if isinstance(actual, bool) != isinstance(expected, bool):
        return False
    return actual == expected
