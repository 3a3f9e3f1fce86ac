import logging
from typing import Any, Dict, List, Optional

from uncip_backend.api.exceptions import BadRequestException
from uncip_backend.interface.alerts import AlertStatus
from uncip_backend.interface.users import ADMIN_ONLY_FIELDS
from uncip_backend.permissions.handlers import Action, Decision, PermissionHandler
from uncip_backend.permissions.principal import Actor, Role
from uncip_backend.permissions.query_builders import (
    AlertQueryBuilder,
    ChildQueryBuilder,
    FilterPredicate,
    Scope,
    UserQueryBuilder,
)

logger = logging.getLogger(__name__)

READ_ACTIONS = (Action.READ, Action.LIST)


class UserPermissionHandler(PermissionHandler):
    """Permission handler for user profiles"""

    def can_perform_action(self, actor: Actor, action: Action, resource: Optional[Dict[str, Any]] = None, payload: Optional[Dict[str, Any]] = None) -> Decision:
        # Admin can do anything
        if self.check_admin(actor):
            return Decision.allow()

        if action in (Action.CREATE, Action.DELETE):
            return Decision.deny("only administrators manage user accounts")

        if action == Action.LIST:
            return Decision.allow()

        is_self = resource is not None and resource.get("id") == actor.id

        if action == Action.READ:
            return Decision.allow() if is_self else Decision.deny("users can only read their own profile")

        if action == Action.UPDATE:
            if not is_self:
                return Decision.deny("users can only update their own profile")
            restricted = sorted(set(payload or {}) & set(ADMIN_ONLY_FIELDS))
            if restricted:
                return Decision.deny(f"only administrators may change {', '.join(restricted)}")
            return Decision.allow()

        return Decision.deny(f"unsupported action {action}")

    def build_filter(self, actor: Actor, action: Action = Action.LIST) -> FilterPredicate:
        if self.check_admin(actor):
            return FilterPredicate.everything()

        return UserQueryBuilder.self_only(actor.id)


class ChildPermissionHandler(PermissionHandler):
    """Permission handler for child profiles"""

    # Roles that can see every child
    UNRESTRICTED_READERS = (Role.ADMIN, Role.AUTHORITY, Role.COMMUNITY)

    def can_perform_action(self, actor: Actor, action: Action, resource: Optional[Dict[str, Any]] = None, payload: Optional[Dict[str, Any]] = None) -> Decision:
        if self.check_admin(actor):
            return Decision.allow()

        if action == Action.CREATE:
            if actor.has_role(Role.PARENT):
                return Decision.allow()
            return Decision.deny("only parents and administrators create child profiles")

        if action in READ_ACTIONS:
            if action == Action.LIST or resource is None:
                return Decision.allow()
            return Decision.allow() if self._visible(actor, resource) else Decision.deny("child is not visible")

        if action in (Action.UPDATE, Action.DELETE):
            if resource is not None and actor.has_role(Role.PARENT) and actor.id in (resource.get("guardians") or []):
                return Decision.allow()
            return Decision.deny("only guardians and administrators modify child profiles")

        return Decision.deny(f"unsupported action {action}")

    def build_filter(self, actor: Actor, action: Action = Action.LIST) -> FilterPredicate:
        if actor.has_any_role(*self.UNRESTRICTED_READERS):
            return FilterPredicate.everything()

        return FilterPredicate(scopes=self.restricted_scopes(actor))

    def restricted_scopes(self, actor: Actor) -> List[Scope]:
        scopes = []
        if actor.has_role(Role.PARENT):
            scopes.append(ChildQueryBuilder.guardian_scope(actor.id))
        if actor.has_role(Role.SCHOOL):
            school_scope = ChildQueryBuilder.school_scope(actor.school_id)
            if school_scope is not None:
                scopes.append(school_scope)
        return scopes

    def _visible(self, actor: Actor, resource: Dict[str, Any]) -> bool:
        return any(scope.matches_locally(resource) for scope in self.build_filter(actor).scopes)

    def normalize_payload(self, actor: Actor, action: Action, payload: Dict[str, Any]) -> Dict[str, Any]:
        payload = dict(payload)

        if action == Action.CREATE:
            payload["created_by"] = actor.id
            guardians = list(payload.get("guardians") or [])
            if actor.has_role(Role.PARENT) and actor.id not in guardians:
                guardians.append(actor.id)
            if not guardians:
                raise BadRequestException("Invalid payload", fields={"guardians": "At least one guardian is required"})
            payload["guardians"] = guardians

        elif action == Action.UPDATE:
            payload.pop("created_by", None)
            if "guardians" in payload:
                guardians = list(payload.get("guardians") or [])
                if actor.has_role(Role.PARENT) and not actor.is_admin and actor.id not in guardians:
                    guardians.append(actor.id)
                if not guardians:
                    raise BadRequestException("Invalid payload", fields={"guardians": "At least one guardian is required"})
                payload["guardians"] = guardians

        return payload


class AlertPermissionHandler(PermissionHandler):
    """Permission handler for missing-child alerts"""

    UNRESTRICTED_READERS = (Role.ADMIN, Role.AUTHORITY, Role.COMMUNITY)

    def __init__(self, resource_type, child_handler: ChildPermissionHandler):
        super().__init__(resource_type)
        self.child_handler = child_handler

    def can_perform_action(self, actor: Actor, action: Action, resource: Optional[Dict[str, Any]] = None, payload: Optional[Dict[str, Any]] = None) -> Decision:
        if self.check_admin(actor):
            return Decision.allow()

        if action == Action.CREATE:
            if actor.has_role(Role.AUTHORITY):
                return Decision.allow()
            if actor.has_role(Role.PARENT):
                # Without the child only the role is checked; with it, guardianship
                if resource is None or actor.id in (resource.get("guardians") or []):
                    return Decision.allow()
                return Decision.deny("parents only raise alerts for their own children")
            return Decision.deny("role cannot raise alerts")

        if action in READ_ACTIONS:
            return Decision.allow()

        if action == Action.UPDATE:
            if actor.has_role(Role.AUTHORITY):
                return Decision.allow()
            if actor.has_role(Role.PARENT) and resource is not None and resource.get("created_by") == actor.id:
                return Decision.allow()
            return Decision.deny("only the reporter, authorities and administrators update alerts")

        if action == Action.DELETE:
            return Decision.deny("only administrators delete alerts")

        return Decision.deny(f"unsupported action {action}")

    def build_filter(self, actor: Actor, action: Action = Action.LIST) -> FilterPredicate:
        if actor.has_any_role(*self.UNRESTRICTED_READERS):
            return FilterPredicate.everything()

        child_predicate = FilterPredicate(scopes=self.child_handler.restricted_scopes(actor))
        return AlertQueryBuilder.through_children(child_predicate)

    def normalize_payload(self, actor: Actor, action: Action, payload: Dict[str, Any]) -> Dict[str, Any]:
        payload = dict(payload)

        if action == Action.CREATE:
            payload["created_by"] = actor.id
            payload["status"] = AlertStatus.ACTIVE.value
            for key in ("resolved_at", "resolved_by", "resolution_details"):
                payload.pop(key, None)

        elif action == Action.UPDATE:
            for key in ("created_by", "child_id", "alert_type", "resolved_at", "resolved_by"):
                payload.pop(key, None)

        return payload
