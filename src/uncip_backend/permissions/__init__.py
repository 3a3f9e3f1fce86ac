"""
Authorization and visibility rules for users, children and alerts.

Main components:
- principal: Actor and Role
- auth: session token handling and Actor resolution
- handlers: permission handler interface and registry
- handlers_impl: handlers for users, children and alerts
- query_builders: list filters expressible with the document store's predicates
- core: registration and the authorize/check entry points
"""

from .principal import Actor, Role, parse_role, parse_roles

__all__ = [
    "Actor",
    "Role",
    "parse_role",
    "parse_roles",
]
