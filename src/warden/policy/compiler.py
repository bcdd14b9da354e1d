"""
Predicate Compiler for Warden.

Turns the rules a principal holds for ``(resource_type, action)`` into a
single storage predicate, so a listing query returns exactly the rows the
principal may see. Counts and pagination stay correct and unauthorized rows
are never fetched.

How it works:
    1. Collect the rules for the pair
    2. Any unconditional rule -> UNRESTRICTED
    3. No rules at all -> MATCH_NOTHING (callers skip the query)
    4. Otherwise OR the rule conditions together into one AST
    5. Lower the AST node by node into a Predicate

Each AST operator maps to exactly one storage primitive:

    eq   -> "column" = ?   (or "column" IS NULL for None)
    and  -> ( a AND b ... )
    or   -> ( a OR b ... )

Anything else raises UnsupportedOperatorError; an unknown node never
compiles to "allow all" or "allow nothing".
"""

import logging

from warden.conditions import CompoundCondition, Condition, FieldCondition, or_
from warden.errors import UnsupportedFieldError, UnsupportedOperatorError
from warden.schema import Action, ResourceType, RuleSet
from warden.store.predicate import (
    COLUMNS,
    MATCH_NOTHING,
    UNRESTRICTED,
    CompiledPredicate,
    Predicate,
    PredicateSentinel,
)

logger = logging.getLogger(__name__)


def rules_to_ast(
    rule_set: RuleSet,
    resource_type: ResourceType,
    action: Action,
) -> Condition | PredicateSentinel:
    """
    Merge the conditions of every matching rule into one AST.

    Returns:
        The OR of all rule conditions, UNRESTRICTED if any rule is
        unconditional, or MATCH_NOTHING if there are no rules
    """
    rules = rule_set.rules_for(resource_type, action)
    if not rules:
        return MATCH_NOTHING
    if any(rule.is_universal for rule in rules):
        return UNRESTRICTED
    return or_(*(rule.condition for rule in rules))


def compile_predicate(
    rule_set: RuleSet,
    resource_type: ResourceType,
    action: Action,
) -> CompiledPredicate:
    """
    Compile a rule set into a storage predicate for bulk queries.

    Args:
        rule_set: Rules of the current principal
        resource_type: Resource being listed
        action: Action the listing stands for (usually read)

    Returns:
        A Predicate, UNRESTRICTED or MATCH_NOTHING

    Raises:
        UnsupportedOperatorError: If a condition uses an unknown operator
        UnsupportedFieldError: If a condition names an unknown column
    """
    ast = rules_to_ast(rule_set, resource_type, action)
    if isinstance(ast, PredicateSentinel):
        logger.debug("Compiled %s %s to %s", action.value, resource_type.value, ast.value)
        return ast

    predicate = lower(ast, resource_type)
    logger.debug(
        "Compiled %s %s to %s %r",
        action.value,
        resource_type.value,
        predicate.sql,
        predicate.params,
    )
    return predicate


def lower(condition: Condition, resource_type: ResourceType) -> Predicate:
    """
    Recursively lower a condition AST into a storage Predicate.

    Raises:
        UnsupportedOperatorError: If a node uses an unknown operator
        UnsupportedFieldError: If a field node names an unknown column
    """
    if isinstance(condition, CompoundCondition):
        if condition.operator == "and":
            return Predicate.all_of([lower(c, resource_type) for c in condition.children])
        if condition.operator == "or":
            return Predicate.any_of([lower(c, resource_type) for c in condition.children])
        raise UnsupportedOperatorError(operator=condition.operator, node_kind="compound")

    if isinstance(condition, FieldCondition):
        if condition.field not in COLUMNS[resource_type]:
            raise UnsupportedFieldError(
                resource_type=resource_type.value,
                field_name=condition.field,
            )
        if condition.operator == "eq":
            return Predicate.equals(condition.field, condition.value)
        raise UnsupportedOperatorError(operator=condition.operator, node_kind="field")

    raise UnsupportedOperatorError(
        operator=getattr(condition, "operator", "?"),
        node_kind=type(condition).__name__,
    )
