"""
Per-request context.

A RequestContext lives for exactly one request. It carries the principal,
the storage handle, the clock and the settings, and memoizes the two
expensive steps of authorization:

    - the department project-scope query used to expand document rules
    - the rule set itself

so that N decisions within the request cost at most one extra query. It is
an explicit object passed to the builder and the services; nothing is cached
globally or across requests, because policy depends on the current time and
on the current project roster.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from warden.conditions import eq, or_
from warden.config import Settings
from warden.policy.builder import build_rule_set
from warden.policy.compiler import lower
from warden.schema import Principal, Project, ResourceType, RuleSet, now_utc
from warden.store import WardenDB

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class RequestContext:
    """
    Request-scoped authorization state.

    Usage:
        ctx = RequestContext(principal, db)
        if can(ctx.rule_set, ResourceType.DOCUMENT, Action.READ, doc):
            ...

    Attributes:
        principal: Authenticated caller, or None for anonymous
        db: Storage collaborator
        clock: Returns the current time; injected for tests
        settings: Runtime settings (weekend days)
    """

    def __init__(
        self,
        principal: Principal | None,
        db: WardenDB,
        clock: Clock = now_utc,
        settings: Settings | None = None,
    ) -> None:
        self.principal = principal
        self.db = db
        self.clock = clock
        self.settings = settings or Settings()
        self._visible_projects: tuple[Project, ...] | None = None
        self._rule_set: RuleSet | None = None

    @property
    def rule_set(self) -> RuleSet:
        """The principal's rule set, built on first use."""
        if self._rule_set is None:
            self._rule_set = build_rule_set(self)
        return self._rule_set

    def visible_projects(self) -> tuple[Project, ...]:
        """
        Projects of the principal's department plus department-less ones.

        Runs one storage query per request; later calls reuse the result.
        """
        if self._visible_projects is None:
            if self.principal is None:
                self._visible_projects = ()
            else:
                scope = or_(
                    eq("department", self.principal.department),
                    eq("department", None),
                )
                self._visible_projects = tuple(
                    self.db.find(
                        ResourceType.PROJECT,
                        lower(scope, ResourceType.PROJECT),
                        order_by="created_at",
                    )
                )
                logger.debug(
                    "Loaded %d visible projects for department %s",
                    len(self._visible_projects),
                    self.principal.department,
                )
        return self._visible_projects
