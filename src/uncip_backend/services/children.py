from typing import Any, Dict, List, Optional, Sequence

from uncip_backend.api.crud import create_entity, delete_entity, get_entity, list_entities, update_entity
from uncip_backend.api.exceptions import ConflictException
from uncip_backend.context import BackendContext
from uncip_backend.interface.base import ResourceType, parse_payload, to_document
from uncip_backend.interface.children import ChildCreate, ChildUpdate
from uncip_backend.permissions.core import check_permissions
from uncip_backend.permissions.handlers import Action
from uncip_backend.permissions.principal import Actor
from uncip_backend.store.base import Condition, FilterOp


async def _child_registered(context: BackendContext, actor: Actor, conditions: Sequence[Condition], exclude_id: Optional[str]) -> bool:
    """Administrators check the whole registry, everyone else only the children they can see"""
    if actor.is_admin:
        return await context.repository.exists(ResourceType.CHILD, conditions, exclude_id=exclude_id)

    predicate = check_permissions(actor, ResourceType.CHILD, Action.LIST)
    visible = await context.repository.list(ResourceType.CHILD, predicate, conditions)
    return any(document["id"] != exclude_id for document in visible)


async def ensure_unique_child(context: BackendContext, actor: Actor, data: Dict[str, Any], exclude_id: Optional[str] = None):
    """Reject a child already registered under the same id number or name and birth date"""
    identification_number = data.get("identification_number")
    if identification_number:
        taken = await _child_registered(
            context,
            actor,
            [Condition(field="identification_number", op=FilterOp.EQ, value=identification_number)],
            exclude_id,
        )
        if taken:
            raise ConflictException(
                "A child with this identification number is already registered",
                reason="duplicate-child",
            )

    if data.get("first_name") and data.get("last_name") and data.get("date_of_birth"):
        taken = await _child_registered(
            context,
            actor,
            [
                Condition(field="first_name", op=FilterOp.EQ, value=data["first_name"]),
                Condition(field="last_name", op=FilterOp.EQ, value=data["last_name"]),
                Condition(field="date_of_birth", op=FilterOp.EQ, value=data["date_of_birth"]),
            ],
            exclude_id,
        )
        if taken:
            raise ConflictException(
                "A child with the same name and date of birth is already registered",
                reason="duplicate-child",
            )


async def create_child(context: BackendContext, actor: Actor, payload: Any) -> Dict[str, Any]:
    child = parse_payload(ChildCreate, payload)

    async def before_create(data: Dict[str, Any]):
        await ensure_unique_child(context, actor, data)

    return await create_entity(
        context,
        actor,
        ResourceType.CHILD,
        to_document(child),
        before_create=before_create,
    )


async def get_child(context: BackendContext, actor: Actor, child_id: str) -> Dict[str, Any]:
    return await get_entity(context, actor, ResourceType.CHILD, child_id)


async def list_children(context: BackendContext, actor: Actor) -> List[Dict[str, Any]]:
    return await list_entities(context, actor, ResourceType.CHILD)


async def update_child(context: BackendContext, actor: Actor, child_id: str, payload: Any) -> Dict[str, Any]:
    patch = to_document(parse_payload(ChildUpdate, payload), exclude_unset=True)

    async def before_update(current: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
        identity_fields = ("identification_number", "first_name", "last_name", "date_of_birth")
        if any(key in patch for key in identity_fields):
            await ensure_unique_child(context, actor, {**current, **patch}, exclude_id=current["id"])
        return patch

    return await update_entity(context, actor, ResourceType.CHILD, child_id, patch, before_update=before_update)


async def delete_child(context: BackendContext, actor: Actor, child_id: str) -> None:
    await delete_entity(context, actor, ResourceType.CHILD, child_id)
