"""
User accounts and profiles.

An account is created in the identity provider first; the profile is stored
under the account's id. Role claims on the account mirror the profile's
role fields and are re-synced whenever an administrator changes them.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, List

from uncip_backend.api.crud import create_entity, delete_entity, get_entity, list_entities, update_entity
from uncip_backend.api.exceptions import ConflictException, ServiceUnavailableException
from uncip_backend.context import BackendContext
from uncip_backend.interface.audit import AuditOperation
from uncip_backend.interface.base import ResourceType, parse_payload, to_document
from uncip_backend.interface.users import ROLE_FIELDS, UserCreate, UserSignup, UserUpdate
from uncip_backend.permissions.core import authorize
from uncip_backend.permissions.handlers import Action
from uncip_backend.permissions.principal import Actor, Role, parse_role, parse_roles
from uncip_backend.services.identity import (
    IdentityConflictError,
    IdentityNotFoundError,
    IdentityProvider,
    IdentityProviderError,
    IdentityRecord,
    role_claims,
)
from uncip_backend.store.base import Condition, FilterOp

logger = logging.getLogger(__name__)

CLAIM_FIELDS = (*ROLE_FIELDS, "school_id")


@contextmanager
def identity_errors():
    """Translate identity provider failures into API errors"""
    try:
        yield
    except IdentityConflictError:
        raise ConflictException("An account with this email already exists", reason="duplicate-email")
    except IdentityProviderError as e:
        logger.error(f"Identity provider failure: {e}")
        raise ServiceUnavailableException("Identity provider unavailable")


def _identity_provider(context: BackendContext) -> IdentityProvider:
    if context.identity_provider is None:
        raise ServiceUnavailableException("Identity provider unavailable")
    return context.identity_provider


def profile_claims(profile: Dict[str, Any]) -> Dict[str, Any]:
    role = parse_role(profile.get("role")) or Role.PARENT
    claims = role_claims(role, list(parse_roles(profile.get("roles") or [])))
    if profile.get("school_id"):
        claims["school_id"] = profile["school_id"]
    return claims


async def ensure_email_available(context: BackendContext, email: str):
    taken = await context.repository.exists(
        ResourceType.USER,
        [Condition(field="email", op=FilterOp.EQ, value=email)],
    )
    if taken:
        raise ConflictException("An account with this email already exists", reason="duplicate-email")


async def _rollback_identity(provider: IdentityProvider, uid: str):
    try:
        await provider.delete_identity(uid)
    except IdentityProviderError:
        logger.exception(f"Failed to roll back identity {uid}")


async def _provision_identity(context: BackendContext, email: str, display_name: str, password, profile: Dict[str, Any]) -> IdentityRecord:
    provider = _identity_provider(context)

    await ensure_email_available(context, email)

    with identity_errors():
        identity = await provider.create_identity(email, display_name, password=password)

    try:
        with identity_errors():
            await provider.set_role_claims(identity.uid, profile_claims(profile))
    except Exception:
        await _rollback_identity(provider, identity.uid)
        raise

    return identity


async def create_user(context: BackendContext, actor: Actor, payload: Any) -> Dict[str, Any]:
    """Administrator-initiated account creation"""
    authorize(actor, ResourceType.USER, Action.CREATE)
    user = parse_payload(UserCreate, payload)

    profile = to_document(user)
    profile.pop("password", None)
    profile["roles"] = [profile["role"]]
    profile["is_active"] = True

    identity = await _provision_identity(context, user.email, user.display_name, user.password, profile)

    try:
        return await create_entity(context, actor, ResourceType.USER, profile, resource_id=identity.uid)
    except Exception:
        await _rollback_identity(_identity_provider(context), identity.uid)
        raise


async def signup(context: BackendContext, payload: Any) -> Dict[str, Any]:
    """Self-registration; always yields a parent account"""
    user = parse_payload(UserSignup, payload)

    profile = to_document(user)
    profile.pop("password", None)
    profile.update({"role": Role.PARENT.value, "roles": [Role.PARENT.value], "is_active": True})

    identity = await _provision_identity(context, user.email, user.display_name, user.password, profile)

    try:
        document = await context.repository.create(ResourceType.USER, profile, resource_id=identity.uid)
    except Exception:
        await _rollback_identity(_identity_provider(context), identity.uid)
        raise

    actor = Actor(id=identity.uid, primary_role=Role.PARENT, email=user.email, display_name=user.display_name)
    logger.info(f"Registered parent account {identity.uid}")
    await context.audit.record(actor, AuditOperation.CREATE, ResourceType.USER, identity.uid, details="signup")

    return document


async def get_user(context: BackendContext, actor: Actor, user_id: str) -> Dict[str, Any]:
    return await get_entity(context, actor, ResourceType.USER, user_id)


async def list_users(context: BackendContext, actor: Actor) -> List[Dict[str, Any]]:
    return await list_entities(context, actor, ResourceType.USER)


async def update_user(context: BackendContext, actor: Actor, user_id: str, payload: Any) -> Dict[str, Any]:
    patch = to_document(parse_payload(UserUpdate, payload), exclude_unset=True)

    async def before_update(current: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
        if patch.get("role") is not None:
            if patch.get("roles") is not None:
                roles = set(patch["roles"])
            else:
                # Secondary roles survive a change of primary role
                roles = set(current.get("roles") or []) - {current.get("role")}
            patch["roles"] = sorted(roles | {patch["role"]})
        elif patch.get("roles") is not None and current.get("role"):
            patch["roles"] = sorted(set(patch["roles"]) | {current["role"]})
        return {k: v for k, v in patch.items() if v is not None or k not in ROLE_FIELDS}

    document = await update_entity(context, actor, ResourceType.USER, user_id, patch, before_update=before_update)

    if actor.is_admin and any(field in patch for field in CLAIM_FIELDS):
        with identity_errors():
            await _identity_provider(context).set_role_claims(user_id, profile_claims(document))
        logger.info(f"Synced role claims for {user_id}")

    return document


async def delete_user(context: BackendContext, actor: Actor, user_id: str) -> None:

    async def before_delete(current: Dict[str, Any]):
        provider = _identity_provider(context)
        try:
            await provider.delete_identity(current["id"])
        except IdentityNotFoundError:
            logger.warning(f"Identity {current['id']} was already gone")
        except IdentityProviderError as e:
            logger.error(f"Failed to delete identity {current['id']}: {e}")
            raise ServiceUnavailableException("Identity provider unavailable")

    await delete_entity(context, actor, ResourceType.USER, user_id, before_delete=before_delete)


async def bootstrap_admin(context: BackendContext, email: str, display_name: str, password: str) -> Dict[str, Any]:
    """Create the first administrator account; used by the admin CLI"""
    user = parse_payload(UserCreate, {"email": email, "display_name": display_name, "role": Role.ADMIN.value, "password": password})

    profile = to_document(user)
    profile.pop("password", None)
    profile.update({"roles": [Role.ADMIN.value], "is_active": True})

    identity = await _provision_identity(context, user.email, user.display_name, user.password, profile)

    try:
        document = await context.repository.create(ResourceType.USER, profile, resource_id=identity.uid)
    except Exception:
        await _rollback_identity(_identity_provider(context), identity.uid)
        raise

    actor = Actor(id=identity.uid, primary_role=Role.ADMIN, email=user.email, display_name=user.display_name)
    await context.audit.record(actor, AuditOperation.CREATE, ResourceType.USER, identity.uid, details="bootstrap")

    return document
