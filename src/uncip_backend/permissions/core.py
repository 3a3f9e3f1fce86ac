"""
Permission checks for users, children and alerts.

Every entry point goes through the handlers registered here; no caller
re-implements a role check inline.
"""

import logging
from typing import Any, Dict, Optional

from uncip_backend.api.exceptions import ForbiddenException, NotFoundException
from uncip_backend.interface.base import ResourceType
from uncip_backend.permissions.handlers import Action, Decision, permission_registry
from uncip_backend.permissions.handlers_impl import (
    AlertPermissionHandler,
    ChildPermissionHandler,
    UserPermissionHandler,
)
from uncip_backend.permissions.principal import Actor
from uncip_backend.permissions.query_builders import FilterPredicate

logger = logging.getLogger(__name__)


def initialize_permission_handlers():
    """Initialize and register all permission handlers"""

    child_handler = ChildPermissionHandler(ResourceType.CHILD)

    permission_registry.register(ResourceType.USER, UserPermissionHandler(ResourceType.USER))
    permission_registry.register(ResourceType.CHILD, child_handler)
    permission_registry.register(ResourceType.ALERT, AlertPermissionHandler(ResourceType.ALERT, child_handler))


def check_permissions(actor: Actor, resource_type: ResourceType, action: Action = Action.LIST) -> FilterPredicate:
    """
    Main entry point for read filtering.
    Returns the predicate the actor's reads of `resource_type` are restricted to.
    """
    return permission_registry.check_permissions(actor, resource_type, action)


def decide(
    actor: Actor,
    resource_type: ResourceType,
    action: Action,
    resource: Optional[Dict[str, Any]] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> Decision:
    handler = permission_registry.get_handler(resource_type)
    if handler is None:
        return Decision.allow() if actor.is_admin else Decision.deny("no handler registered")
    return handler.can_perform_action(actor, action, resource=resource, payload=payload)


def authorize(
    actor: Actor,
    resource_type: ResourceType,
    action: Action,
    resource: Optional[Dict[str, Any]] = None,
    payload: Optional[Dict[str, Any]] = None,
    conceal: bool = False,
) -> None:
    """Raise unless the actor may perform the action.

    With `conceal` the denial reads as NotFound so callers cannot learn that
    the target exists.
    """
    decision = decide(actor, resource_type, action, resource=resource, payload=payload)
    if decision:
        return

    resource_id = resource.get("id") if resource else None
    logger.warning(
        f"Denied {action.value} on {resource_type.value}"
        f"{'/' + str(resource_id) if resource_id else ''} for {actor.id}: {decision.reason}"
    )

    if conceal:
        raise NotFoundException()
    raise ForbiddenException()


def normalize_payload(actor: Actor, resource_type: ResourceType, action: Action, payload: Dict[str, Any]) -> Dict[str, Any]:
    handler = permission_registry.get_handler(resource_type)
    if handler is None:
        return dict(payload)
    return handler.normalize_payload(actor, action, payload)


# Initialize handlers on module import
initialize_permission_handlers()
