import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from uncip_backend.context import BackendContext
from uncip_backend.interface.audit import AuditOperation
from uncip_backend.interface.base import ResourceType
from uncip_backend.permissions.core import authorize, check_permissions, normalize_payload
from uncip_backend.permissions.handlers import Action
from uncip_backend.permissions.principal import Actor
from uncip_backend.store.base import Condition

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
BeforeUpdate = Callable[[Document, Document], Awaitable[Document]]
BeforeCreate = Callable[[Document], Awaitable[None]]
BeforeDelete = Callable[[Document], Awaitable[None]]


async def create_entity(
    context: BackendContext,
    actor: Actor,
    resource_type: ResourceType,
    payload: Document,
    related: Optional[Document] = None,
    resource_id: Optional[str] = None,
    before_create: Optional[BeforeCreate] = None,
    details: Optional[str] = None,
) -> Document:
    """Authorize, normalize, store and audit a new record.

    `related` is the existing record the new one hangs off (the child of an
    alert) and is handed to the permission handler for the create decision.
    """
    authorize(actor, resource_type, Action.CREATE, resource=related, payload=payload)

    data = normalize_payload(actor, resource_type, Action.CREATE, payload)
    if before_create is not None:
        await before_create(data)

    document = await context.repository.create(resource_type, data, resource_id=resource_id)

    logger.info(f"{actor.id} created {resource_type.value}/{document['id']}")
    await context.audit.record(actor, AuditOperation.CREATE, resource_type, document["id"], details=details)

    return document


async def get_entity(context: BackendContext, actor: Actor, resource_type: ResourceType, resource_id: str) -> Document:
    predicate = check_permissions(actor, resource_type, Action.READ)
    document = await context.repository.get(resource_type, resource_id, predicate)
    authorize(actor, resource_type, Action.READ, resource=document, conceal=True)
    return document


async def list_entities(
    context: BackendContext,
    actor: Actor,
    resource_type: ResourceType,
    conditions: Sequence[Condition] = (),
) -> List[Document]:
    authorize(actor, resource_type, Action.LIST)
    predicate = check_permissions(actor, resource_type, Action.LIST)
    return await context.repository.list(resource_type, predicate, conditions)


async def update_entity(
    context: BackendContext,
    actor: Actor,
    resource_type: ResourceType,
    resource_id: str,
    patch: Document,
    before_update: Optional[BeforeUpdate] = None,
    details: Optional[str] = None,
) -> Document:
    """Apply a partial update to a record visible to the actor.

    Invisible targets are NotFound; visible targets the actor may not modify
    are Forbidden.
    """
    current = await get_entity(context, actor, resource_type, resource_id)
    authorize(actor, resource_type, Action.UPDATE, resource=current, payload=patch)

    patch = normalize_payload(actor, resource_type, Action.UPDATE, patch)
    if before_update is not None:
        patch = await before_update(current, patch)

    document = await context.repository.update(resource_type, resource_id, patch, actor=actor)

    logger.info(f"{actor.id} updated {resource_type.value}/{resource_id}")
    await context.audit.record(
        actor,
        AuditOperation.UPDATE,
        resource_type,
        resource_id,
        details=details or ", ".join(sorted(patch)),
    )

    return document


async def delete_entity(
    context: BackendContext,
    actor: Actor,
    resource_type: ResourceType,
    resource_id: str,
    before_delete: Optional[BeforeDelete] = None,
) -> None:
    current = await get_entity(context, actor, resource_type, resource_id)
    authorize(actor, resource_type, Action.DELETE, resource=current)

    if before_delete is not None:
        await before_delete(current)

    await context.repository.delete(resource_type, resource_id)

    logger.info(f"{actor.id} deleted {resource_type.value}/{resource_id}")
    await context.audit.record(actor, AuditOperation.DELETE, resource_type, resource_id)
