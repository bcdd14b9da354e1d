"""
Base class for resource services.

A resource service wraps plain storage calls with the authorization core:

    - reads: decide per record, redact fields, and answer None on denial,
      the same as for a missing record
    - lists: compile the rule set into a storage predicate and let the
      query do the filtering
    - writes: decide before touching storage, project the payload, then
      validate what is left

Every service works inside one RequestContext.
"""

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from warden.context import RequestContext
from warden.errors import AuthorizationError, UnauthenticatedError, ValidationError
from warden.policy.engine import PolicyEngine
from warden.schema import Action, Principal, ResourceType
from warden.store import WardenDB

logger = logging.getLogger(__name__)


class ResourceService:
    """
    Shared plumbing for the per-resource services.

    Subclasses set ``resource_type``.
    """

    resource_type: ResourceType

    def __init__(self, context: RequestContext) -> None:
        self.context = context
        self._engine: PolicyEngine | None = None

    @property
    def db(self) -> WardenDB:
        return self.context.db

    @property
    def engine(self) -> PolicyEngine:
        """Policy engine over the request's rule set, built on first use."""
        if self._engine is None:
            self._engine = PolicyEngine(self.context.rule_set)
        return self._engine

    def _require_principal(self, action: Action) -> Principal:
        principal = self.context.principal
        if principal is None:
            raise UnauthenticatedError(
                resource_type=self.resource_type.value,
                action=action.value,
            )
        return principal

    def _authorize(
        self,
        action: Action,
        instance: Any | None = None,
        resource_id: str | None = None,
    ) -> None:
        """
        Raise AuthorizationError unless the rule set allows the write.

        Without an instance this only checks that some rule for the action
        exists at all; the instance-level check follows once the record is
        known.
        """
        if instance is None:
            allowed = self.context.rule_set.has_rules(self.resource_type, action)
        else:
            allowed = self.engine.can(self.resource_type, action, instance)
        if not allowed:
            logger.warning(
                "Denied %s %s %s for principal %s",
                action.value,
                self.resource_type.value,
                resource_id or "",
                self.context.principal.id if self.context.principal else "anonymous",
            )
            raise AuthorizationError(
                resource_type=self.resource_type.value,
                action=action.value,
                resource_id=resource_id,
            )

    def _readable(self, record: Any) -> dict[str, Any] | None:
        """Redacted view of a record, or None if the principal may not read it."""
        if not self.engine.can(self.resource_type, Action.READ, record):
            return None
        payload = record if isinstance(record, Mapping) else record.model_dump()
        return self.engine.project(self.resource_type, Action.READ, payload, record)

    def _validate(
        self,
        model: type[BaseModel],
        payload: Mapping[str, Any],
    ) -> BaseModel:
        try:
            return model.model_validate(payload)
        except PydanticValidationError as e:
            errors = [
                f"{'.'.join(str(part) for part in err['loc']) or 'payload'}: {err['msg']}"
                for err in e.errors()
            ]
            raise ValidationError(
                resource_type=self.resource_type.value,
                errors=errors,
            ) from e
