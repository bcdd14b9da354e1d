"""
Decision Engine and Field Projector for Warden.

Every read and write in the resource services passes through here.

Design Principles:
    - Allow-list only: rules only ever grant; no matching rule means denial
    - Union semantics: any matching rule is enough, and field grants of all
      matching rules add up (ALL_FIELDS wins outright)
    - Never fabricate: projection only keeps keys the payload already has,
      and returns an empty payload when nothing matches

How a decision works:
    1. Take the rules for (resource_type, action)
    2. Without an instance only unconditional rules match; with an instance
       a rule matches iff its condition evaluates true
    3. Without a field, any match allows; with a field, the matching rule
       must also cover that field
"""

import logging
from collections.abc import Mapping
from typing import Any

from warden.conditions import condition_fields, evaluate
from warden.errors import UnsupportedFieldError
from warden.schema import (
    ALL_FIELDS,
    Action,
    FieldSet,
    PolicyDecision,
    PolicyRule,
    ResourceType,
    RuleSet,
)
from warden.store.predicate import COLUMNS

logger = logging.getLogger(__name__)


class PolicyEngine:
    """
    Evaluates requests against one principal's rule set.

    Usage:
        engine = PolicyEngine(ctx.rule_set)
        decision = engine.evaluate(ResourceType.DOCUMENT, Action.UPDATE, document)
        if decision.allowed:
            payload = engine.project(ResourceType.DOCUMENT, Action.UPDATE, data, document)

    Attributes:
        rule_set: The immutable rule set decisions are made against
    """

    def __init__(self, rule_set: RuleSet) -> None:
        self.rule_set = rule_set

    def matching_rules(
        self,
        resource_type: ResourceType,
        action: Action,
        instance: Any | None = None,
    ) -> list[PolicyRule]:
        """
        Rules for the pair whose condition holds for ``instance``.

        Without an instance only unconditional rules match; this is the
        coarse "is this always possible" probe.

        Raises:
            UnsupportedFieldError: If no rule is unconditional and a
                condition names an attribute the resource does not have,
                the same rule sets the predicate compiler rejects
        """
        rules = self.rule_set.rules_for(resource_type, action)
        if not any(rule.is_universal for rule in rules):
            for rule in rules:
                _check_condition_fields(resource_type, rule)
        if instance is None:
            return [rule for rule in rules if rule.is_universal]
        return [
            rule
            for rule in rules
            if rule.is_universal or evaluate(rule.condition, instance)
        ]

    def evaluate(
        self,
        resource_type: ResourceType,
        action: Action,
        instance: Any | None = None,
        field: str | None = None,
    ) -> PolicyDecision:
        """
        Decide a request and explain the outcome.

        Args:
            resource_type: Resource being accessed
            action: Requested action
            instance: The record (mapping or model); None for a type-level probe
            field: Restrict the question to one attribute

        Returns:
            PolicyDecision indicating allow/deny with reason
        """
        target = f"{action.value} {resource_type.value}"
        if field is not None:
            target += f".{field}"

        matching = self.matching_rules(resource_type, action, instance)
        if not matching:
            if not self.rule_set.has_rules(resource_type, action):
                return PolicyDecision.deny(
                    f"No rule grants {action.value} on {resource_type.value}",
                    rule="deny_by_default",
                )
            return PolicyDecision.deny(
                f"No rule condition matches for {target}",
                rule="no_matching_condition",
            )

        for rule in matching:
            if field is None or rule.covers_field(field):
                return PolicyDecision.allow(
                    f"Allowed {target}",
                    rule=rule.describe(),
                )

        return PolicyDecision.deny(
            f"Field {field} is not covered by any matching rule",
            rule="field_not_permitted",
        )

    def can(
        self,
        resource_type: ResourceType,
        action: Action,
        instance: Any | None = None,
        field: str | None = None,
    ) -> bool:
        """Boolean form of evaluate()."""
        return self.evaluate(resource_type, action, instance, field).allowed

    def permitted_fields(
        self,
        resource_type: ResourceType,
        action: Action,
        instance: Any | None = None,
    ) -> FieldSet:
        """
        Union of the fields granted by every matching rule.

        Returns:
            ALL_FIELDS if any matching rule is unrestricted, otherwise the
            union of explicit field sets (empty when nothing matches)
        """
        fields: set[str] = set()
        for rule in self.matching_rules(resource_type, action, instance):
            if rule.has_all_fields:
                return ALL_FIELDS
            fields.update(rule.fields)
        return frozenset(fields)

    def project(
        self,
        resource_type: ResourceType,
        action: Action,
        payload: Mapping[str, Any],
        instance: Any | None = None,
    ) -> dict[str, Any]:
        """
        Narrow a payload to the fields the principal may touch.

        Used before a write (drop fields the caller may not set) and before
        returning a read (redact fields the caller may not see). Keys outside
        the permitted set are dropped silently.

        Returns:
            A new dict; unchanged copy for ALL_FIELDS, empty if no rule matches
        """
        fields = self.permitted_fields(resource_type, action, instance)
        if fields == ALL_FIELDS:
            return dict(payload)

        projected = {key: value for key, value in payload.items() if key in fields}
        dropped = sorted(set(payload) - set(projected))
        if dropped:
            logger.debug(
                "Projection of %s %s dropped fields: %s",
                action.value,
                resource_type.value,
                ", ".join(dropped),
            )
        return projected


def _check_condition_fields(resource_type: ResourceType, rule: PolicyRule) -> None:
    unknown = condition_fields(rule.condition) - COLUMNS[resource_type]
    if unknown:
        raise UnsupportedFieldError(
            resource_type=resource_type.value,
            field_name=min(unknown),
        )


# =============================================================================
# Functional interface
# =============================================================================


def can(
    rule_set: RuleSet,
    resource_type: ResourceType,
    action: Action,
    instance: Any | None = None,
    field: str | None = None,
) -> bool:
    """Decide whether ``rule_set`` allows the request."""
    return PolicyEngine(rule_set).can(resource_type, action, instance, field)


def project(
    rule_set: RuleSet,
    resource_type: ResourceType,
    action: Action,
    payload: Mapping[str, Any],
    instance: Any | None = None,
) -> dict[str, Any]:
    """Narrow ``payload`` to the fields ``rule_set`` permits."""
    return PolicyEngine(rule_set).project(resource_type, action, payload, instance)
