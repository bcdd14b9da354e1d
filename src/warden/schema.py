"""
Schema definitions for Warden.

This module defines the Pydantic models used throughout Warden:
- Principal/User: Who is asking
- Project/Document: What they are asking about
- DocumentCreate/DocumentUpdate/ProjectCreate/ProjectUpdate: Write payloads
- PolicyRule/RuleSet: What is allowed
- PolicyDecision: The explained result of a decision

Design Decisions:
    - Records are immutable (frozen=True); updates produce new records
    - Enums are str-based so they compare equal to their stored values
    - Resource type is carried explicitly alongside instances, never inferred
"""

from collections.abc import Mapping
from datetime import UTC, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from warden.conditions import Condition, from_mapping


# =============================================================================
# Enums
# =============================================================================


class Role(str, Enum):
    """Role of a principal. Drives rule-set construction."""

    VIEWER = "viewer"
    EDITOR = "editor"
    AUTHOR = "author"
    ADMIN = "admin"


class ResourceType(str, Enum):
    """Closed set of resource types the engine knows about."""

    PROJECT = "project"
    DOCUMENT = "document"


class Action(str, Enum):
    """Actions that can be granted on a resource."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class DocumentStatus(str, Enum):
    """Lifecycle status of a document."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class AllFields(str, Enum):
    """Sentinel type for an unrestricted field set."""

    ALL = "*"


ALL_FIELDS = AllFields.ALL

FieldSet = AllFields | frozenset[str]


def now_utc() -> datetime:
    """Current UTC time."""
    return datetime.now(UTC)


# =============================================================================
# Principal and Records
# =============================================================================


class Principal(BaseModel):
    """
    The authenticated caller for one request.

    Attributes:
        id: User ID
        role: Role used to pick the rule catalogue
        department: Department used for project scoping
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(..., min_length=1)
    role: Role
    department: str


class User(BaseModel):
    """A stored user account."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    email: str = Field(..., min_length=3)
    name: str = Field(..., min_length=1)
    department: str
    role: Role = Role.VIEWER
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)

    def to_principal(self) -> Principal:
        """Reduce the account to what the authorization core needs."""
        return Principal(id=self.id, role=self.role, department=self.department)


class Project(BaseModel):
    """
    A project record.

    Attributes:
        department: Owning department; None means visible to every department
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    name: str
    description: str
    owner_id: str
    department: str | None = None
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)


class Document(BaseModel):
    """A document record, always owned by one project."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    title: str
    content: str
    status: DocumentStatus = DocumentStatus.DRAFT
    is_locked: bool = False
    project_id: str
    creator_id: str
    last_edited_by_id: str
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)


RECORD_MODELS: dict[ResourceType, type[BaseModel]] = {
    ResourceType.PROJECT: Project,
    ResourceType.DOCUMENT: Document,
}


# =============================================================================
# Write Payloads
# =============================================================================


class DocumentCreate(BaseModel):
    """Validated payload for creating a document."""

    model_config = ConfigDict(extra="forbid")

    title: str = Field(..., min_length=1, description="Title is required")
    content: str = Field(..., min_length=1, description="Content is required")
    status: DocumentStatus | None = None
    is_locked: bool | None = None


class DocumentUpdate(BaseModel):
    """Validated payload for updating a document. Every field is optional."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1)
    content: str | None = Field(default=None, min_length=1)
    status: DocumentStatus | None = None
    is_locked: bool | None = None


class ProjectCreate(BaseModel):
    """Validated payload for creating a project."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, description="Name is required")
    description: str = Field(..., min_length=1, description="Description is required")
    department: str = ""

    @field_validator("department")
    @classmethod
    def strip_department(cls, v: str) -> str:
        return v.strip()


class ProjectUpdate(BaseModel):
    """Validated payload for updating a project."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, min_length=1)
    department: str | None = None


# =============================================================================
# Policy Models
# =============================================================================


class PolicyRule(BaseModel):
    """
    One declarative allow-statement.

    A rule grants ``action`` on ``resource_type`` for every instance that
    satisfies ``condition`` (every instance when condition is None). The
    grant covers ``fields``, either ALL_FIELDS or an explicit set.

    Conditions may be given as a flat mapping (``{"status": "draft"}``); they
    are normalized to a condition AST on construction.

    Attributes:
        resource_type: Resource the rule applies to
        action: Action the rule grants
        condition: Condition AST, or None for a universal rule
        fields: Fields covered by the grant
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    resource_type: ResourceType
    action: Action
    condition: Condition | None = None
    fields: FieldSet = ALL_FIELDS

    @field_validator("condition", mode="before")
    @classmethod
    def normalize_condition(cls, v: Any) -> Condition | None:
        """Accept flat mappings and turn them into an AST."""
        if isinstance(v, Mapping) or v is None:
            return from_mapping(v)
        return v

    @field_validator("fields", mode="before")
    @classmethod
    def normalize_fields(cls, v: Any) -> Any:
        """Accept any iterable of field names for an explicit set."""
        if v is None or v == ALL_FIELDS:
            return ALL_FIELDS
        if isinstance(v, str):
            msg = f"fields must be ALL_FIELDS or a collection of names, got {v!r}"
            raise ValueError(msg)
        return frozenset(v)

    @property
    def is_universal(self) -> bool:
        """True when the rule has no condition."""
        return self.condition is None

    @property
    def has_all_fields(self) -> bool:
        return self.fields == ALL_FIELDS

    def covers_field(self, field: str) -> bool:
        """True when the rule's field grant includes ``field``."""
        return self.has_all_fields or field in self.fields

    def describe(self) -> str:
        """Short label used in decision reasons and CLI output."""
        where = str(self.condition) if self.condition is not None else "always"
        fields = "*" if self.has_all_fields else ",".join(sorted(self.fields))
        return f"{self.action.value} {self.resource_type.value} where {where} [{fields}]"


class RuleSet(BaseModel):
    """
    Every rule that applies to one principal for one request.

    Rules are partitioned by resource type. A RuleSet is never mutated after
    construction and must not outlive the request that built it: policy
    depends on the clock and on the current project roster.

    Attributes:
        principal: Principal the rules were built for (None for anonymous)
        groups: (resource type, rules) pairs, one per resource type
        built_at: Instant the contextual gates were evaluated
        is_weekend: Result of the weekend gate at build time
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    principal: Principal | None = None
    groups: tuple[tuple[ResourceType, tuple[PolicyRule, ...]], ...] = ()
    built_at: datetime = Field(default_factory=now_utc)
    is_weekend: bool = False

    @classmethod
    def from_rules(
        cls,
        rules: list[PolicyRule] | tuple[PolicyRule, ...],
        principal: Principal | None = None,
        built_at: datetime | None = None,
        is_weekend: bool = False,
    ) -> "RuleSet":
        """Partition a flat list of rules by resource type."""
        groups = tuple(
            (resource_type, tuple(r for r in rules if r.resource_type == resource_type))
            for resource_type in ResourceType
        )
        return cls(
            principal=principal,
            groups=groups,
            built_at=built_at or now_utc(),
            is_weekend=is_weekend,
        )

    @property
    def partitions(self) -> Mapping[ResourceType, tuple[PolicyRule, ...]]:
        """Read-only view of the rules per resource type."""
        return MappingProxyType(dict(self.groups))

    @property
    def rules(self) -> tuple[PolicyRule, ...]:
        """All rules, flattened."""
        return tuple(rule for _, group in self.groups for rule in group)

    def rules_for(
        self,
        resource_type: ResourceType,
        action: Action,
    ) -> tuple[PolicyRule, ...]:
        """Rules granting ``action`` on ``resource_type``."""
        return tuple(
            rule
            for rule in self.partitions.get(resource_type, ())
            if rule.action == action
        )

    def has_rules(self, resource_type: ResourceType, action: Action) -> bool:
        """
        True when any rule at all exists for the pair.

        This is the "could this ever be allowed" probe for showing an
        affordance; it ignores conditions entirely.
        """
        return bool(self.rules_for(resource_type, action))

    @property
    def rule_count(self) -> int:
        """Number of rules across all resource types."""
        return sum(len(group) for _, group in self.groups)


# =============================================================================
# Runtime Models
# =============================================================================


class PolicyDecision(BaseModel):
    """
    Result of evaluating one request against a rule set.

    Attributes:
        allowed: Whether the action is permitted
        reason: Human-readable explanation of the decision
        rule_matched: Which rule caused this decision
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    allowed: bool = Field(..., description="Whether the action is permitted")
    reason: str = Field(..., description="Human-readable explanation of the decision")
    rule_matched: str | None = Field(
        default=None,
        description="Which policy rule caused this decision",
    )

    @classmethod
    def allow(cls, reason: str, rule: str | None = None) -> "PolicyDecision":
        """Create an ALLOW decision."""
        return cls(allowed=True, reason=reason, rule_matched=rule)

    @classmethod
    def deny(cls, reason: str, rule: str | None = None) -> "PolicyDecision":
        """Create a DENY decision."""
        return cls(allowed=False, reason=reason, rule_matched=rule)


class UpdateResult(BaseModel):
    """
    Outcome of an update through a resource service.

    ``changed_fields`` is empty when projection left nothing to write; no
    storage write happens in that case.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    resource_type: ResourceType
    resource_id: str
    changed_fields: tuple[str, ...] = ()
    record: Project | Document | None = None

    @property
    def changed(self) -> bool:
        return bool(self.changed_fields)
