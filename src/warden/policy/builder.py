"""
Rule-Set Builder for Warden.

Builds the full list of allow-rules for the principal of a request. The
catalogue is a pure dispatch on role, with two inputs besides the principal:

    - the weekend gate, read once per build from the request clock;
      authors and editors lose their write rules on weekend days
    - the department project scope; every document rule is specialized per
      visible project (``project_id = <id>``), so document access can never
      leak into another department's projects

The project scope comes from RequestContext.visible_projects(), which queries
storage once per request. Admin rule sets need no scope and never query.
"""

import logging
from typing import TYPE_CHECKING, Any

from warden.errors import UnknownRoleError
from warden.schema import (
    ALL_FIELDS,
    Action,
    DocumentStatus,
    FieldSet,
    PolicyRule,
    Principal,
    Project,
    ResourceType,
    Role,
    RuleSet,
)

if TYPE_CHECKING:
    from warden.context import RequestContext

logger = logging.getLogger(__name__)

# Fields a viewer may see on a document
VIEWER_DOCUMENT_FIELDS = frozenset({
    "id",
    "title",
    "content",
    "status",
    "project_id",
    "created_at",
    "updated_at",
})

# Fields an author may set when creating or updating a document
AUTHOR_DOCUMENT_FIELDS = frozenset({"title", "content"})

# Fields an editor may set when updating a document
EDITOR_DOCUMENT_FIELDS = frozenset({"title", "content", "status"})


class RuleCollector:
    """Accumulates rules for one principal. Chainable like a builder."""

    def __init__(self) -> None:
        self._rules: list[PolicyRule] = []

    def allow(
        self,
        resource_type: ResourceType,
        action: Action,
        condition: dict[str, Any] | None = None,
        fields: FieldSet = ALL_FIELDS,
    ) -> "RuleCollector":
        self._rules.append(
            PolicyRule(
                resource_type=resource_type,
                action=action,
                condition=condition,
                fields=fields,
            )
        )
        return self

    def allow_in_projects(
        self,
        projects: tuple[Project, ...],
        action: Action,
        condition: dict[str, Any] | None = None,
        fields: FieldSet = ALL_FIELDS,
    ) -> "RuleCollector":
        """Emit one document rule per project, scoped by project_id."""
        for project in projects:
            self.allow(
                ResourceType.DOCUMENT,
                action,
                {"project_id": project.id, **(condition or {})},
                fields,
            )
        return self

    @property
    def rules(self) -> tuple[PolicyRule, ...]:
        return tuple(self._rules)


def is_weekend(context: "RequestContext") -> bool:
    """Weekend gate, evaluated from the request clock."""
    return context.clock().weekday() in context.settings.weekend_days


def build_rule_set(context: "RequestContext") -> RuleSet:
    """
    Build the rule set for the principal of a request.

    Prefer ``context.rule_set``, which calls this once and memoizes it.

    Args:
        context: The request context (principal, storage, clock, settings)

    Returns:
        An immutable RuleSet; empty for anonymous requests

    Raises:
        UnknownRoleError: If the principal's role has no catalogue entry
    """
    principal = context.principal
    built_at = context.clock()
    weekend = is_weekend(context)

    if principal is None:
        return RuleSet.from_rules((), built_at=built_at, is_weekend=weekend)

    collector = RuleCollector()
    role = principal.role
    if role == Role.ADMIN:
        _add_admin_rules(collector)
    elif role == Role.AUTHOR:
        _add_author_rules(collector, principal, context.visible_projects(), weekend)
    elif role == Role.EDITOR:
        _add_editor_rules(collector, principal, context.visible_projects(), weekend)
    elif role == Role.VIEWER:
        _add_viewer_rules(collector, principal, context.visible_projects())
    else:
        raise UnknownRoleError(role=str(role))

    rule_set = RuleSet.from_rules(
        collector.rules,
        principal=principal,
        built_at=built_at,
        is_weekend=weekend,
    )
    logger.debug(
        "Built %d rules for %s (%s, weekend=%s)",
        rule_set.rule_count,
        principal.id,
        role.value,
        weekend,
    )
    return rule_set


def _add_project_read_rules(collector: RuleCollector, principal: Principal) -> None:
    collector.allow(
        ResourceType.PROJECT, Action.READ, {"department": principal.department}
    ).allow(
        ResourceType.PROJECT, Action.READ, {"department": None}
    )


def _add_admin_rules(collector: RuleCollector) -> None:
    for resource_type in ResourceType:
        for action in Action:
            collector.allow(resource_type, action)


def _add_viewer_rules(
    collector: RuleCollector,
    principal: Principal,
    projects: tuple[Project, ...],
) -> None:
    _add_project_read_rules(collector, principal)
    collector.allow_in_projects(
        projects,
        Action.READ,
        {"status": DocumentStatus.PUBLISHED},
        VIEWER_DOCUMENT_FIELDS,
    ).allow_in_projects(
        projects,
        Action.READ,
        {"status": DocumentStatus.ARCHIVED},
        VIEWER_DOCUMENT_FIELDS,
    )


def _add_author_rules(
    collector: RuleCollector,
    principal: Principal,
    projects: tuple[Project, ...],
    weekend: bool,
) -> None:
    _add_project_read_rules(collector, principal)
    collector.allow_in_projects(
        projects, Action.READ, {"status": DocumentStatus.PUBLISHED}
    ).allow_in_projects(
        projects, Action.READ, {"status": DocumentStatus.ARCHIVED}
    ).allow_in_projects(
        projects, Action.READ, {"creator_id": principal.id}
    )

    if not weekend:
        collector.allow(
            ResourceType.DOCUMENT,
            Action.CREATE,
            fields=AUTHOR_DOCUMENT_FIELDS,
        ).allow_in_projects(
            projects,
            Action.UPDATE,
            {
                "creator_id": principal.id,
                "is_locked": False,
                "status": DocumentStatus.DRAFT,
            },
            AUTHOR_DOCUMENT_FIELDS,
        )


def _add_editor_rules(
    collector: RuleCollector,
    principal: Principal,
    projects: tuple[Project, ...],
    weekend: bool,
) -> None:
    _add_project_read_rules(collector, principal)
    collector.allow_in_projects(projects, Action.READ)

    if not weekend:
        collector.allow_in_projects(
            projects,
            Action.UPDATE,
            {"is_locked": False},
            EDITOR_DOCUMENT_FIELDS,
        )
