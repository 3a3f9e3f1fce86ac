from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel

from uncip_backend.api.exceptions import ForbiddenException
from uncip_backend.interface.base import ResourceType
from uncip_backend.permissions.principal import Actor
from uncip_backend.permissions.query_builders import FilterPredicate


class Action(str, Enum):
    CREATE = "create"
    READ = "read"
    LIST = "list"
    UPDATE = "update"
    DELETE = "delete"


class Decision(BaseModel):
    allowed: bool
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str) -> "Decision":
        return cls(allowed=False, reason=reason)

    def __bool__(self) -> bool:
        return self.allowed


class PermissionHandler(ABC):
    """Base class for resource-specific permission handlers"""

    def __init__(self, resource_type: ResourceType):
        self.resource_type = resource_type

    @abstractmethod
    def can_perform_action(
        self,
        actor: Actor,
        action: Action,
        resource: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Decision:
        """Decide whether the actor may perform an action.

        Args:
            actor: Current actor
            action: Action to perform
            resource: The stored record the action targets (update/delete/read),
                or the record a new one will reference (create)
            payload: The caller-supplied data for create/update
        """
        pass

    @abstractmethod
    def build_filter(self, actor: Actor, action: Action = Action.LIST) -> FilterPredicate:
        """Build the list/read filter for the actor"""
        pass

    def normalize_payload(self, actor: Actor, action: Action, payload: Dict[str, Any]) -> Dict[str, Any]:
        return payload

    def check_admin(self, actor: Actor) -> bool:
        return actor.is_admin


class PermissionRegistry:
    """Registry for managing resource permission handlers"""

    _instance = None
    _handlers: Dict[ResourceType, PermissionHandler] = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def register(self, resource_type: ResourceType, handler: PermissionHandler):
        self._handlers[resource_type] = handler

    def get_handler(self, resource_type: ResourceType) -> Optional[PermissionHandler]:
        return self._handlers.get(resource_type)

    def check_permissions(self, actor: Actor, resource_type: ResourceType, action: Action) -> FilterPredicate:
        """Return the filter an actor's reads of this resource are restricted to"""
        handler = self.get_handler(resource_type)
        if not handler:
            # Unregistered resources are admin-only
            if not actor.is_admin:
                raise ForbiddenException()
            return FilterPredicate.everything()

        return handler.build_filter(actor, action)


permission_registry = PermissionRegistry()
