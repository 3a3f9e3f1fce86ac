"""
Missing-child alerts.

Alerts are created against an existing child the actor can see. At most one
active alert per (child, alert type) is allowed; the check and the insert are
separate store calls, so two concurrent creations can both pass the check.
"""

import logging
from typing import Any, Dict, List, Optional

from uncip_backend.api.crud import create_entity, delete_entity, get_entity, list_entities, update_entity
from uncip_backend.api.exceptions import BadRequestException, ConflictException
from uncip_backend.context import BackendContext
from uncip_backend.interface.alerts import AlertCreate, AlertQuery, AlertStatus, AlertUpdate, can_transition
from uncip_backend.interface.base import ResourceType, parse_payload, to_document
from uncip_backend.permissions.core import authorize
from uncip_backend.permissions.handlers import Action
from uncip_backend.permissions.principal import Actor
from uncip_backend.repositories.base import created_at_key
from uncip_backend.store.base import Condition, FilterOp, utc_now

logger = logging.getLogger(__name__)


async def ensure_no_active_alert(context: BackendContext, child_id: str, alert_type: str):
    active = await context.repository.exists(
        ResourceType.ALERT,
        [
            Condition(field="child_id", op=FilterOp.EQ, value=child_id),
            Condition(field="alert_type", op=FilterOp.EQ, value=alert_type),
            Condition(field="status", op=FilterOp.EQ, value=AlertStatus.ACTIVE.value),
        ],
    )
    if active:
        raise ConflictException(
            f"An active {alert_type} alert already exists for this child",
            reason="duplicate-active-alert",
        )


async def create_alert(context: BackendContext, actor: Actor, payload: Any) -> Dict[str, Any]:
    alert = parse_payload(AlertCreate, payload)

    # Role check first so roles that never raise alerts do not probe children
    authorize(actor, ResourceType.ALERT, Action.CREATE)
    child = await get_entity(context, actor, ResourceType.CHILD, alert.child_id)

    async def before_create(data: Dict[str, Any]):
        await ensure_no_active_alert(context, data["child_id"], data["alert_type"])

    return await create_entity(
        context,
        actor,
        ResourceType.ALERT,
        to_document(alert),
        related=child,
        before_create=before_create,
    )


async def get_alert(context: BackendContext, actor: Actor, alert_id: str) -> Dict[str, Any]:
    return await get_entity(context, actor, ResourceType.ALERT, alert_id)


async def list_alerts(context: BackendContext, actor: Actor, query: Optional[AlertQuery] = None) -> List[Dict[str, Any]]:
    """Visible alerts, newest first, optionally narrowed by status, child or type"""
    query = query or AlertQuery()

    conditions = [
        Condition(field=field, op=FilterOp.EQ, value=value)
        for field, value in to_document(query).items()
        if value is not None
    ]

    alerts = await list_entities(context, actor, ResourceType.ALERT, conditions)
    return sorted(alerts, key=created_at_key, reverse=True)


async def update_alert(context: BackendContext, actor: Actor, alert_id: str, payload: Any) -> Dict[str, Any]:
    patch = to_document(parse_payload(AlertUpdate, payload), exclude_unset=True)

    async def before_update(current: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
        if patch.get("status") is None:
            patch.pop("status", None)
            return patch

        current_status = AlertStatus(current.get("status", AlertStatus.ACTIVE.value))
        target_status = AlertStatus(patch["status"])

        if not can_transition(current_status, target_status):
            raise BadRequestException(
                "Invalid status change",
                fields={"status": f"Cannot change status from {current_status.value} to {target_status.value}"},
            )

        if target_status == AlertStatus.RESOLVED and current_status != AlertStatus.RESOLVED:
            patch["resolved_at"] = utc_now().isoformat()
            patch["resolved_by"] = actor.id
            logger.info(f"Alert {current['id']} resolved by {actor.id}")

        return patch

    return await update_entity(context, actor, ResourceType.ALERT, alert_id, patch, before_update=before_update)


async def delete_alert(context: BackendContext, actor: Actor, alert_id: str) -> None:
    await delete_entity(context, actor, ResourceType.ALERT, alert_id)
