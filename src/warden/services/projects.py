"""Project service: authorization-aware CRUD for projects."""

import logging
from collections.abc import Mapping
from typing import Any

from warden.errors import NotFoundError
from warden.policy.compiler import compile_predicate
from warden.schema import (
    Action,
    Project,
    ProjectCreate,
    ProjectUpdate,
    ResourceType,
    UpdateResult,
)
from warden.services.base import ResourceService
from warden.store import MATCH_NOTHING

logger = logging.getLogger(__name__)


class ProjectService(ResourceService):
    """Reads, lists and writes projects on behalf of the request principal."""

    resource_type = ResourceType.PROJECT

    def list_projects(self, ordered: bool = False) -> list[dict[str, Any]]:
        """
        Projects the principal may read.

        The read rules are compiled into the query, so only visible rows are
        fetched. Anonymous callers and principals without read rules get an
        empty list without a query.

        Args:
            ordered: Sort by name instead of storage order
        """
        predicate = compile_predicate(self.context.rule_set, self.resource_type, Action.READ)
        if predicate is MATCH_NOTHING:
            return []

        projects = self.db.find(
            self.resource_type,
            predicate,
            order_by="name" if ordered else None,
        )
        return [
            self.engine.project(self.resource_type, Action.READ, p.model_dump(), p)
            for p in projects
        ]

    def get_project(self, project_id: str) -> dict[str, Any] | None:
        """A readable project, or None when missing or not readable."""
        project = self.db.find_by_id(self.resource_type, project_id)
        if project is None:
            return None
        return self._readable(project)

    def create_project(self, data: Mapping[str, Any]) -> Project:
        """
        Create a project owned by the principal.

        Raises:
            UnauthenticatedError: Without a principal
            AuthorizationError: If the principal may not create this project
            ValidationError: If the permitted fields do not form a valid project
        """
        principal = self._require_principal(Action.CREATE)
        self._authorize(Action.CREATE)

        permitted = self.engine.project(self.resource_type, Action.CREATE, data)
        form = self._validate(ProjectCreate, permitted)

        new_project = {
            "name": form.name,
            "description": form.description,
            "owner_id": principal.id,
            "department": form.department or None,
        }
        self._authorize(Action.CREATE, new_project)

        project = self.db.insert(self.resource_type, new_project)
        logger.info("Project %s created by %s", project.id, principal.id)
        return project

    def update_project(self, project_id: str, data: Mapping[str, Any]) -> UpdateResult:
        """
        Update the permitted fields of a project.

        Returns:
            UpdateResult; ``changed_fields`` is empty when nothing was permitted

        Raises:
            AuthorizationError: If the principal may not update projects at all, or not this one
            NotFoundError: If the project does not exist
            ValidationError: If a permitted field has an invalid value
        """
        principal = self._require_principal(Action.UPDATE)
        self._authorize(Action.UPDATE, resource_id=project_id)
        project = self.db.find_by_id(self.resource_type, project_id)
        if project is None:
            raise NotFoundError(resource_type=self.resource_type.value, resource_id=project_id)
        self._authorize(Action.UPDATE, project, project_id)

        permitted = self.engine.project(self.resource_type, Action.UPDATE, data, project)
        form = self._validate(ProjectUpdate, permitted)
        changes = {
            key: value
            for key, value in form.model_dump(exclude_unset=True).items()
            if value is not None or key == "department"
        }
        if "department" in changes:
            changes["department"] = (changes["department"] or "").strip() or None

        if not changes:
            return UpdateResult(
                resource_type=self.resource_type,
                resource_id=project_id,
                record=project,
            )

        updated = self.db.update(self.resource_type, project_id, changes)
        logger.info(
            "Project %s updated by %s: %s",
            project_id,
            principal.id,
            ", ".join(sorted(changes)),
        )
        return UpdateResult(
            resource_type=self.resource_type,
            resource_id=project_id,
            changed_fields=tuple(sorted(changes)),
            record=updated,
        )

    def delete_project(self, project_id: str) -> Project:
        """
        Delete a project and, through the foreign key, its documents.

        Raises:
            AuthorizationError: If the principal may not delete projects at all, or not this one
            NotFoundError: If the project does not exist
        """
        principal = self._require_principal(Action.DELETE)
        self._authorize(Action.DELETE, resource_id=project_id)
        project = self.db.find_by_id(self.resource_type, project_id)
        if project is None:
            raise NotFoundError(resource_type=self.resource_type.value, resource_id=project_id)
        self._authorize(Action.DELETE, project, project_id)

        self.db.delete(self.resource_type, project_id)
        logger.info("Project %s deleted by %s", project_id, principal.id)
        return project
