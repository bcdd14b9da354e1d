"""Document service: authorization-aware CRUD for documents."""

import logging
from collections.abc import Mapping
from typing import Any

from warden.errors import NotFoundError
from warden.policy.compiler import compile_predicate
from warden.schema import (
    Action,
    Document,
    DocumentCreate,
    DocumentStatus,
    DocumentUpdate,
    ResourceType,
    UpdateResult,
)
from warden.services.base import ResourceService
from warden.services.projects import ProjectService
from warden.store import MATCH_NOTHING

logger = logging.getLogger(__name__)


class DocumentService(ResourceService):
    """Reads, lists and writes documents on behalf of the request principal."""

    resource_type = ResourceType.DOCUMENT

    def list_project_documents(self, project_id: str) -> list[dict[str, Any]]:
        """
        Documents of a project the principal may read, oldest first.

        The read rules become part of the query; rows the principal may not
        see are never fetched.
        """
        predicate = compile_predicate(self.context.rule_set, self.resource_type, Action.READ)
        if predicate is MATCH_NOTHING:
            return []

        documents = self.db.find(
            self.resource_type,
            predicate,
            filters={"project_id": project_id},
            order_by="created_at",
        )
        return [
            self.engine.project(self.resource_type, Action.READ, d.model_dump(), d)
            for d in documents
        ]

    def get_document(self, document_id: str) -> dict[str, Any] | None:
        """A readable document, or None when missing or not readable."""
        document = self.db.find_by_id(self.resource_type, document_id)
        if document is None:
            return None
        return self._readable(document)

    def get_document_with_user_info(self, document_id: str) -> dict[str, Any] | None:
        """Like get_document(), with creator and last editor names attached."""
        document = self.db.get_document_with_user_info(document_id)
        if document is None:
            return None
        return self._readable(document)

    def create_document(self, project_id: str, data: Mapping[str, Any]) -> Document:
        """
        Create a document in a project.

        New documents start as unlocked drafts unless the permitted payload
        says otherwise. The principal becomes creator and last editor.

        Raises:
            UnauthenticatedError: Without a principal
            AuthorizationError: If the principal may not create documents
            NotFoundError: If the project does not exist or is not readable
            ValidationError: If the permitted fields do not form a valid document
        """
        principal = self._require_principal(Action.CREATE)
        self._authorize(Action.CREATE)

        if ProjectService(self.context).get_project(project_id) is None:
            raise NotFoundError(resource_type=ResourceType.PROJECT.value, resource_id=project_id)

        permitted = self.engine.project(self.resource_type, Action.CREATE, data)
        form = self._validate(DocumentCreate, permitted)

        new_document = {
            "title": form.title,
            "content": form.content,
            "status": form.status or DocumentStatus.DRAFT,
            "is_locked": form.is_locked if form.is_locked is not None else False,
            "creator_id": principal.id,
            "last_edited_by_id": principal.id,
            "project_id": project_id,
        }
        self._authorize(Action.CREATE, new_document)

        document = self.db.insert(self.resource_type, new_document)
        logger.info("Document %s created by %s in project %s", document.id, principal.id, project_id)
        return document

    def update_document(self, document_id: str, data: Mapping[str, Any]) -> UpdateResult:
        """
        Update the permitted fields of a document.

        Fields the principal may not set are dropped silently. If nothing is
        left the document is not written and the result reports no changed
        fields.

        Raises:
            AuthorizationError: If the principal may not update documents at all, or not this one
            NotFoundError: If the document does not exist
            ValidationError: If a permitted field has an invalid value
        """
        principal = self._require_principal(Action.UPDATE)
        self._authorize(Action.UPDATE, resource_id=document_id)
        document = self.db.find_by_id(self.resource_type, document_id)
        if document is None:
            raise NotFoundError(resource_type=self.resource_type.value, resource_id=document_id)
        self._authorize(Action.UPDATE, document, document_id)

        permitted = self.engine.project(self.resource_type, Action.UPDATE, data, document)
        form = self._validate(DocumentUpdate, permitted)
        changes = form.model_dump(exclude_unset=True, exclude_none=True)

        if not changes:
            return UpdateResult(
                resource_type=self.resource_type,
                resource_id=document_id,
                record=document,
            )

        updated = self.db.update(
            self.resource_type,
            document_id,
            {**changes, "last_edited_by_id": principal.id},
        )
        logger.info(
            "Document %s updated by %s: %s",
            document_id,
            principal.id,
            ", ".join(sorted(changes)),
        )
        return UpdateResult(
            resource_type=self.resource_type,
            resource_id=document_id,
            changed_fields=tuple(sorted(changes)),
            record=updated,
        )

    def delete_document(self, document_id: str) -> Document:
        """
        Delete a document.

        Raises:
            AuthorizationError: If the principal may not delete documents at all, or not this one
            NotFoundError: If the document does not exist
        """
        principal = self._require_principal(Action.DELETE)
        self._authorize(Action.DELETE, resource_id=document_id)
        document = self.db.find_by_id(self.resource_type, document_id)
        if document is None:
            raise NotFoundError(resource_type=self.resource_type.value, resource_id=document_id)
        self._authorize(Action.DELETE, document, document_id)

        self.db.delete(self.resource_type, document_id)
        logger.info("Document %s deleted by %s", document_id, principal.id)
        return document
