"""
Unit tests for the rule-set builder and request context.

Tests cover:
- Per-role catalogues (admin, viewer, author, editor)
- Department project scope on document rules
- Weekend gate from the request clock
- Memoization of the project query and the rule set
- Anonymous principals and unknown roles
"""

import pytest

from warden.config import Settings
from warden.context import RequestContext
from warden.errors import UnknownRoleError
from warden.policy.builder import (
    AUTHOR_DOCUMENT_FIELDS,
    EDITOR_DOCUMENT_FIELDS,
    VIEWER_DOCUMENT_FIELDS,
    RuleCollector,
    build_rule_set,
)
from warden.schema import ALL_FIELDS, Action, Principal, ResourceType


@pytest.fixture
def find_calls(seeded_db, monkeypatch) -> list:
    """Record every WardenDB.find call made on the seeded database."""
    calls = []
    original = seeded_db.find

    def counting_find(*args, **kwargs):
        calls.append(args)
        return original(*args, **kwargs)

    monkeypatch.setattr(seeded_db, "find", counting_find)
    return calls


# =============================================================================
# Catalogue per role
# =============================================================================


class TestAdminRules:
    """Tests for the admin catalogue."""

    def test_universal_rule_for_every_pair(self, context_for) -> None:
        rule_set = context_for("admin.eng@example.com").rule_set
        for resource_type in ResourceType:
            for action in Action:
                (rule,) = rule_set.rules_for(resource_type, action)
                assert rule.is_universal
                assert rule.fields == ALL_FIELDS

    def test_no_project_query(self, context_for, find_calls) -> None:
        """Admin rules need no department scope."""
        context_for("admin.marketing@example.com").rule_set
        assert find_calls == []


class TestViewerRules:
    """Tests for the viewer catalogue."""

    def test_rule_count(self, context_for) -> None:
        # 2 project rules + (published, archived) x 3 visible projects
        assert context_for("viewer.eng@example.com").rule_set.rule_count == 8

    def test_document_rules_are_redacted(self, context_for) -> None:
        rule_set = context_for("viewer.eng@example.com").rule_set
        for rule in rule_set.rules_for(ResourceType.DOCUMENT, Action.READ):
            assert rule.fields == VIEWER_DOCUMENT_FIELDS
        assert "creator_id" not in VIEWER_DOCUMENT_FIELDS

    def test_no_write_rules(self, context_for) -> None:
        rule_set = context_for("viewer.eng@example.com").rule_set
        for resource_type in ResourceType:
            for action in (Action.CREATE, Action.UPDATE, Action.DELETE):
                assert not rule_set.has_rules(resource_type, action)

    def test_project_read_scope(self, context_for) -> None:
        rule_set = context_for("viewer.marketing@example.com").rule_set
        conditions = {
            str(rule.condition)
            for rule in rule_set.rules_for(ResourceType.PROJECT, Action.READ)
        }
        assert conditions == {"department = 'Marketing'", "department = None"}


class TestAuthorRules:
    """Tests for the author catalogue."""

    def test_weekday_rules(self, context_for) -> None:
        rule_set = context_for("author.eng@example.com").rule_set
        # 2 project + 3 read variants x 3 projects + 1 create + 3 updates
        assert rule_set.rule_count == 15
        (create,) = rule_set.rules_for(ResourceType.DOCUMENT, Action.CREATE)
        assert create.is_universal
        assert create.fields == AUTHOR_DOCUMENT_FIELDS

    def test_update_requires_own_unlocked_draft(self, context_for) -> None:
        context = context_for("author.eng@example.com")
        for rule in context.rule_set.rules_for(ResourceType.DOCUMENT, Action.UPDATE):
            text = str(rule.condition)
            assert f"creator_id = '{context.principal.id}'" in text
            assert "is_locked = False" in text
            assert "status = 'draft'" in text
            assert rule.fields == AUTHOR_DOCUMENT_FIELDS

    def test_weekend_drops_write_rules(self, context_for, saturday_clock) -> None:
        rule_set = context_for("author.eng@example.com", clock=saturday_clock).rule_set
        assert rule_set.is_weekend
        assert not rule_set.has_rules(ResourceType.DOCUMENT, Action.CREATE)
        assert not rule_set.has_rules(ResourceType.DOCUMENT, Action.UPDATE)
        assert rule_set.has_rules(ResourceType.DOCUMENT, Action.READ)
        assert rule_set.rule_count == 11


class TestEditorRules:
    """Tests for the editor catalogue."""

    def test_weekday_rules(self, context_for) -> None:
        rule_set = context_for("editor.eng@example.com").rule_set
        assert rule_set.rule_count == 8
        for rule in rule_set.rules_for(ResourceType.DOCUMENT, Action.READ):
            assert rule.fields == ALL_FIELDS
        for rule in rule_set.rules_for(ResourceType.DOCUMENT, Action.UPDATE):
            assert "is_locked = False" in str(rule.condition)
            assert rule.fields == EDITOR_DOCUMENT_FIELDS

    def test_no_create_rule(self, context_for) -> None:
        rule_set = context_for("editor.eng@example.com").rule_set
        assert not rule_set.has_rules(ResourceType.DOCUMENT, Action.CREATE)

    def test_weekend_drops_update(self, context_for, saturday_clock) -> None:
        rule_set = context_for("editor.eng@example.com", clock=saturday_clock).rule_set
        assert not rule_set.has_rules(ResourceType.DOCUMENT, Action.UPDATE)
        assert rule_set.rule_count == 5


# =============================================================================
# Project scope
# =============================================================================


class TestProjectScope:
    """Tests for the department project scope."""

    def test_visible_projects(self, context_for) -> None:
        names = [p.name for p in context_for("viewer.marketing@example.com").visible_projects()]
        assert names == ["Brand Guidelines", "Campaign Plans", "Company Wiki"]

    def test_every_document_rule_is_project_scoped(self, context_for) -> None:
        """Only the author create rule is unscoped."""
        for email in (
            "viewer.eng@example.com",
            "author.eng@example.com",
            "editor.eng@example.com",
        ):
            context = context_for(email)
            visible_ids = {p.id for p in context.visible_projects()}
            for rule in context.rule_set.partitions[ResourceType.DOCUMENT]:
                if rule.action == Action.CREATE:
                    continue
                scoped = [pid for pid in visible_ids if f"project_id = '{pid}'" in str(rule.condition)]
                assert len(scoped) == 1

    def test_custom_weekend_days(self, context_for) -> None:
        """The gate follows the configured weekdays; Tuesday is weekday 1."""
        settings = Settings(weekend_days=frozenset({1}))
        rule_set = context_for("author.eng@example.com", settings=settings).rule_set
        assert rule_set.is_weekend
        assert not rule_set.has_rules(ResourceType.DOCUMENT, Action.CREATE)


# =============================================================================
# Memoization, anonymous and unknown roles
# =============================================================================


class TestRequestContext:
    """Tests for request-scoped memoization."""

    def test_rule_set_memoized(self, context_for, find_calls) -> None:
        context = context_for("editor.marketing@example.com")
        first = context.rule_set
        for _ in range(5):
            assert context.rule_set is first
            context.visible_projects()
        assert len(find_calls) == 1

    def test_contexts_do_not_share_rule_sets(self, context_for, find_calls) -> None:
        first = context_for("author.eng@example.com").rule_set
        second = context_for("author.eng@example.com").rule_set
        assert first is not second
        assert len(find_calls) == 2

    def test_built_at_comes_from_clock(self, context_for, saturday_clock) -> None:
        rule_set = context_for("viewer.eng@example.com", clock=saturday_clock).rule_set
        assert rule_set.built_at == saturday_clock()

    def test_anonymous_gets_empty_rule_set(self, seeded_db, tuesday_clock, find_calls) -> None:
        context = RequestContext(None, seeded_db, clock=tuesday_clock)
        assert context.rule_set.rule_count == 0
        assert context.rule_set.principal is None
        assert context.visible_projects() == ()
        assert find_calls == []

    def test_unknown_role_fails_loudly(self, seeded_db, tuesday_clock) -> None:
        principal = Principal.model_construct(id="u1", role="owner", department="Engineering")
        context = RequestContext(principal, seeded_db, clock=tuesday_clock)
        with pytest.raises(UnknownRoleError) as exc_info:
            build_rule_set(context)
        assert exc_info.value.role == "owner"


class TestRuleCollector:
    """Tests for the chainable collector."""

    def test_chaining(self) -> None:
        collector = (
            RuleCollector()
            .allow(ResourceType.PROJECT, Action.READ)
            .allow(ResourceType.DOCUMENT, Action.READ, {"status": "published"})
        )
        assert len(collector.rules) == 2

    def test_allow_in_projects_with_no_projects(self) -> None:
        """No visible projects means no document rules at all."""
        collector = RuleCollector().allow_in_projects((), Action.READ)
        assert collector.rules == ()
