"""
Unit tests for schema models.

Tests cover:
- Principal and record models
- Write payload validation
- PolicyRule normalization and description
- RuleSet partitioning and lookups
- PolicyDecision and UpdateResult helpers
"""

import pytest
from pydantic import ValidationError

from warden.conditions import CompoundCondition, eq
from warden.schema import (
    ALL_FIELDS,
    Action,
    DocumentCreate,
    DocumentStatus,
    DocumentUpdate,
    PolicyDecision,
    PolicyRule,
    Principal,
    ProjectCreate,
    ResourceType,
    Role,
    RuleSet,
    UpdateResult,
    User,
)


# =============================================================================
# Principal and Records
# =============================================================================


class TestPrincipal:
    """Tests for Principal and User."""

    def test_requires_id(self) -> None:
        with pytest.raises(ValidationError):
            Principal(id="", role=Role.VIEWER, department="Engineering")

    def test_frozen(self) -> None:
        principal = Principal(id="u1", role=Role.AUTHOR, department="Engineering")
        with pytest.raises(ValidationError):
            principal.role = Role.ADMIN

    def test_role_from_string(self) -> None:
        principal = Principal(id="u1", role="editor", department="Marketing")
        assert principal.role == Role.EDITOR

    def test_user_to_principal(self) -> None:
        user = User(
            id="u1",
            email="author.eng@example.com",
            name="Bob Author",
            department="Engineering",
            role=Role.AUTHOR,
        )
        assert user.to_principal() == Principal(
            id="u1", role=Role.AUTHOR, department="Engineering"
        )


# =============================================================================
# Write Payloads
# =============================================================================


class TestPayloads:
    """Tests for create/update payload models."""

    def test_document_create_requires_title_and_content(self) -> None:
        with pytest.raises(ValidationError):
            DocumentCreate(title="", content="body")
        with pytest.raises(ValidationError):
            DocumentCreate(title="Title")

    def test_document_create_rejects_unknown_fields(self) -> None:
        with pytest.raises(ValidationError):
            DocumentCreate(title="T", content="C", creator_id="u1")

    def test_document_update_all_optional(self) -> None:
        update = DocumentUpdate()
        assert update.model_dump(exclude_unset=True) == {}

    def test_document_update_status(self) -> None:
        update = DocumentUpdate(status="archived")
        assert update.status == DocumentStatus.ARCHIVED
        with pytest.raises(ValidationError):
            DocumentUpdate(status="deleted")

    def test_project_create_strips_department(self) -> None:
        form = ProjectCreate(name="N", description="D", department="  Sales  ")
        assert form.department == "Sales"
        assert ProjectCreate(name="N", description="D").department == ""


# =============================================================================
# Policy Models
# =============================================================================


class TestPolicyRule:
    """Tests for PolicyRule."""

    def test_defaults_are_universal_all_fields(self) -> None:
        rule = PolicyRule(resource_type=ResourceType.DOCUMENT, action=Action.READ)
        assert rule.is_universal
        assert rule.has_all_fields
        assert rule.covers_field("anything")

    def test_mapping_condition_becomes_ast(self) -> None:
        rule = PolicyRule(
            resource_type=ResourceType.DOCUMENT,
            action=Action.UPDATE,
            condition={"creator_id": "u1", "is_locked": False},
        )
        assert isinstance(rule.condition, CompoundCondition)
        assert not rule.is_universal

    def test_empty_mapping_condition_is_universal(self) -> None:
        rule = PolicyRule(
            resource_type=ResourceType.PROJECT,
            action=Action.READ,
            condition={},
        )
        assert rule.is_universal

    def test_fields_normalized_to_frozenset(self) -> None:
        rule = PolicyRule(
            resource_type=ResourceType.DOCUMENT,
            action=Action.UPDATE,
            fields=["title", "content"],
        )
        assert rule.fields == frozenset({"title", "content"})
        assert rule.covers_field("title")
        assert not rule.covers_field("status")

    def test_none_fields_means_all(self) -> None:
        rule = PolicyRule(
            resource_type=ResourceType.DOCUMENT,
            action=Action.READ,
            fields=None,
        )
        assert rule.fields == ALL_FIELDS

    def test_bare_string_fields_rejected(self) -> None:
        """A single string would otherwise become a set of characters."""
        with pytest.raises(ValidationError):
            PolicyRule(
                resource_type=ResourceType.DOCUMENT,
                action=Action.READ,
                fields="title",
            )

    def test_describe(self) -> None:
        rule = PolicyRule(
            resource_type=ResourceType.DOCUMENT,
            action=Action.READ,
            condition=eq("status", DocumentStatus.PUBLISHED),
            fields={"title", "id"},
        )
        assert rule.describe() == "read document where status = 'published' [id,title]"

    def test_describe_universal(self) -> None:
        rule = PolicyRule(resource_type=ResourceType.PROJECT, action=Action.DELETE)
        assert rule.describe() == "delete project where always [*]"


class TestRuleSet:
    """Tests for RuleSet."""

    @pytest.fixture
    def rule_set(self) -> RuleSet:
        return RuleSet.from_rules([
            PolicyRule(resource_type=ResourceType.PROJECT, action=Action.READ),
            PolicyRule(
                resource_type=ResourceType.DOCUMENT,
                action=Action.READ,
                condition={"status": "published"},
            ),
            PolicyRule(resource_type=ResourceType.DOCUMENT, action=Action.CREATE),
        ])

    def test_partitions_by_resource_type(self, rule_set: RuleSet) -> None:
        assert len(rule_set.partitions[ResourceType.PROJECT]) == 1
        assert len(rule_set.partitions[ResourceType.DOCUMENT]) == 2

    def test_partitions_are_read_only(self, rule_set: RuleSet) -> None:
        with pytest.raises(TypeError):
            rule_set.partitions[ResourceType.DOCUMENT] = ()
        assert rule_set.rule_count == 3
        assert rule_set.has_rules(ResourceType.DOCUMENT, Action.CREATE)

    def test_groups_cannot_be_reassigned(self, rule_set: RuleSet) -> None:
        with pytest.raises(ValidationError):
            rule_set.groups = ()
        assert rule_set.rule_count == 3

    def test_rules_for(self, rule_set: RuleSet) -> None:
        rules = rule_set.rules_for(ResourceType.DOCUMENT, Action.READ)
        assert len(rules) == 1
        assert rules[0].condition == eq("status", "published")
        assert rule_set.rules_for(ResourceType.PROJECT, Action.DELETE) == ()

    def test_has_rules(self, rule_set: RuleSet) -> None:
        assert rule_set.has_rules(ResourceType.DOCUMENT, Action.CREATE)
        assert not rule_set.has_rules(ResourceType.DOCUMENT, Action.DELETE)

    def test_rule_count_and_flattening(self, rule_set: RuleSet) -> None:
        assert rule_set.rule_count == 3
        assert len(rule_set.rules) == 3

    def test_empty_rule_set(self) -> None:
        empty = RuleSet.from_rules([])
        assert empty.rule_count == 0
        assert empty.principal is None
        assert not empty.has_rules(ResourceType.PROJECT, Action.READ)


class TestRuntimeModels:
    """Tests for PolicyDecision and UpdateResult."""

    def test_decision_helpers(self) -> None:
        allow = PolicyDecision.allow("ok", rule="r1")
        deny = PolicyDecision.deny("no")
        assert allow.allowed and allow.rule_matched == "r1"
        assert not deny.allowed and deny.rule_matched is None

    def test_update_result_changed(self) -> None:
        noop = UpdateResult(resource_type=ResourceType.DOCUMENT, resource_id="d1")
        assert noop.changed_fields == ()
        assert not noop.changed

        changed = UpdateResult(
            resource_type=ResourceType.DOCUMENT,
            resource_id="d1",
            changed_fields=("title",),
        )
        assert changed.changed
