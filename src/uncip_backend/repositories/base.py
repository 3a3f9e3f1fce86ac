"""
Resource repository.

Wraps the document store with permission-filtered reads. Every list and
single-record read takes the FilterPredicate produced by the permission
handlers; records outside of it are reported as not found.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from uncip_backend.api.exceptions import ConflictException, NotFoundException, ServiceUnavailableException
from uncip_backend.interface.base import ResourceType
from uncip_backend.interface.users import ROLE_FIELDS
from uncip_backend.permissions.principal import Actor
from uncip_backend.permissions.query_builders import FilterPredicate, Scope
from uncip_backend.store.base import Condition, DocumentStore, DuplicateDocumentError, FilterOp, StoreError

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def created_at_key(document: Dict[str, Any]) -> datetime:
    value = document.get("created_at")
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return _EPOCH
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return _EPOCH


@contextmanager
def store_errors(resource_type: ResourceType):
    """Translate store failures into API errors"""
    try:
        yield
    except DuplicateDocumentError as e:
        raise ConflictException(f"{resource_type.value} {e.doc_id} already exists", reason="duplicate-id")
    except StoreError as e:
        logger.error(f"Document store failure on {resource_type.value}: {e}")
        raise ServiceUnavailableException("Document store unavailable")


class ResourceRepository:
    """Permission-aware access to the users, children and alerts collections"""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def find(self, resource_type: ResourceType, resource_id: str) -> Optional[Dict[str, Any]]:
        """Unfiltered lookup, None when absent"""
        with store_errors(resource_type):
            return await self.store.get(resource_type.collection, resource_id)

    async def get(self, resource_type: ResourceType, resource_id: str, predicate: FilterPredicate) -> Dict[str, Any]:
        """Return the record if it exists and the predicate admits it, else NotFound"""
        document = await self.find(resource_type, resource_id)
        if document is None or not await self.matches(resource_type, document, predicate):
            raise NotFoundException(f"{resource_type.value} {resource_id} not found")
        return document

    async def list(
        self,
        resource_type: ResourceType,
        predicate: FilterPredicate,
        conditions: Sequence[Condition] = (),
    ) -> List[Dict[str, Any]]:
        """List records admitted by the predicate and matching every extra condition"""
        if predicate.matches_nothing:
            return []

        results: Dict[str, Dict[str, Any]] = {}
        for scope in predicate.narrow(conditions).scopes:
            resolved = await self._resolve_scope(scope)
            if resolved is None:
                continue
            with store_errors(resource_type):
                documents = await self.store.query(resource_type.collection, resolved)
            for document in documents:
                results.setdefault(document["id"], document)

        return sorted(results.values(), key=created_at_key)

    async def exists(self, resource_type: ResourceType, conditions: Sequence[Condition], exclude_id: Optional[str] = None) -> bool:
        """Unfiltered existence check used by uniqueness rules"""
        with store_errors(resource_type):
            documents = await self.store.query(resource_type.collection, conditions)
        return any(document["id"] != exclude_id for document in documents)

    async def create(self, resource_type: ResourceType, data: Dict[str, Any], resource_id: Optional[str] = None) -> Dict[str, Any]:
        with store_errors(resource_type):
            return await self.store.create(resource_type.collection, data, doc_id=resource_id)

    async def update(
        self,
        resource_type: ResourceType,
        resource_id: str,
        patch: Dict[str, Any],
        actor: Optional[Actor] = None,
    ) -> Dict[str, Any]:
        """Field-level merge; role fields on users only change for admins"""
        if resource_type == ResourceType.USER and (actor is None or not actor.is_admin):
            patch = {k: v for k, v in patch.items() if k not in ROLE_FIELDS}

        with store_errors(resource_type):
            document = await self.store.update(resource_type.collection, resource_id, patch)
        if document is None:
            raise NotFoundException(f"{resource_type.value} {resource_id} not found")
        return document

    async def delete(self, resource_type: ResourceType, resource_id: str) -> None:
        with store_errors(resource_type):
            deleted = await self.store.delete(resource_type.collection, resource_id)
        if not deleted:
            raise NotFoundException(f"{resource_type.value} {resource_id} not found")

    async def matches(self, resource_type: ResourceType, document: Dict[str, Any], predicate: FilterPredicate) -> bool:
        """Evaluate the predicate against a single record already in hand"""
        for scope in predicate.scopes:
            if not scope.matches_locally(document):
                continue
            if scope.through is None:
                return True

            relation = scope.through
            related_id = document.get(relation.field)
            if not related_id:
                continue
            related = await self.find(relation.resource_type, related_id)
            if related is not None and await self.matches(relation.resource_type, related, relation.predicate):
                return True

        return False

    async def _resolve_scope(self, scope: Scope) -> Optional[List[Condition]]:
        """Flatten a scope into plain store conditions; None when it cannot match"""
        conditions = list(scope.conditions)
        if scope.through is None:
            return conditions

        relation = scope.through
        related = await self.list(relation.resource_type, relation.predicate)
        related_ids = [document["id"] for document in related]
        if not related_ids:
            return None

        conditions.append(Condition(field=relation.field, op=FilterOp.IN, value=related_ids))
        return conditions
