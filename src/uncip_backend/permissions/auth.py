"""
Identity context resolution.

Turns the caller's session into an Actor. This is the only place role data is
read off a session; everything downstream works with the typed Actor.
"""

import datetime
import logging
from typing import Any, Dict, List, Optional
from fastapi import Depends, Request
from fastapi.security.utils import get_authorization_scheme_param
from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict, ValidationError

from uncip_backend.api.exceptions import UnauthorizedException
from uncip_backend.context import BackendContext, get_context
from uncip_backend.interface.base import ResourceType
from uncip_backend.permissions.principal import Actor, Role, parse_role, parse_roles, DEFAULT_ROLE
from uncip_backend.settings import BackendSettings, settings as default_settings

logger = logging.getLogger(__name__)


class SessionData(BaseModel):
    """Claims carried by an authenticated session"""
    model_config = ConfigDict(extra="ignore")

    user_id: Optional[str] = None
    role: Optional[str] = None
    roles: Optional[List[str]] = None
    email: Optional[str] = None
    display_name: Optional[str] = None
    school_id: Optional[str] = None


def resolve_actor(session: Optional[SessionData | Dict[str, Any]]) -> Actor:
    """Project a session onto an Actor.

    Raises UnauthorizedException when there is no session or no user id.
    A missing or unknown role resolves to the least privileged role.
    """
    if session is None:
        raise UnauthorizedException()

    if isinstance(session, dict):
        try:
            session = SessionData.model_validate(session)
        except ValidationError:
            raise UnauthorizedException("Invalid session")

    if not session.user_id:
        raise UnauthorizedException()

    primary_role = parse_role(session.role) or DEFAULT_ROLE
    roles = parse_roles(session.roles) if session.roles else {primary_role}

    return Actor(
        id=session.user_id,
        primary_role=primary_role,
        roles=roles | {primary_role},
        school_id=session.school_id,
        email=session.email,
        display_name=session.display_name,
    )


def encode_session_token(session: SessionData, settings: Optional[BackendSettings] = None, expires_in: Optional[int] = None) -> str:
    """Mint a signed session token for the given claims"""
    settings = settings or default_settings
    now = datetime.datetime.now(datetime.timezone.utc)
    ttl = expires_in if expires_in is not None else settings.SESSION_TTL_SECONDS

    claims = {
        "sub": session.user_id,
        "role": session.role,
        "roles": session.roles,
        "email": session.email,
        "name": session.display_name,
        "school_id": session.school_id,
        "iat": int(now.timestamp()),
        "exp": int((now + datetime.timedelta(seconds=ttl)).timestamp()),
    }
    claims = {k: v for k, v in claims.items() if v is not None}

    return jwt.encode(claims, settings.SESSION_SECRET, algorithm=settings.SESSION_ALGORITHM)


def decode_session_token(token: str, settings: Optional[BackendSettings] = None) -> SessionData:
    """Verify a session token and return its claims"""
    settings = settings or default_settings

    try:
        claims = jwt.decode(token, settings.SESSION_SECRET, algorithms=[settings.SESSION_ALGORITHM])
    except JWTError as e:
        logger.info(f"Rejected session token: {e}")
        raise UnauthorizedException("Invalid or expired session")

    roles = claims.get("roles")
    if isinstance(roles, str):
        roles = [roles]

    return SessionData(
        user_id=claims.get("sub") or claims.get("id"),
        role=claims.get("role"),
        roles=roles if isinstance(roles, list) else None,
        email=claims.get("email"),
        display_name=claims.get("name"),
        school_id=claims.get("school_id"),
    )


def parse_authorization_header(request: Request) -> str:
    """Extract the bearer token from the Authorization header"""
    authorization = request.headers.get("Authorization")
    if not authorization:
        raise UnauthorizedException("No authorization provided")

    scheme, param = get_authorization_scheme_param(authorization)

    if scheme.lower() != "bearer" or not param:
        raise UnauthorizedException("Invalid authorization format")

    return param


async def get_current_actor(
    token: str = Depends(parse_authorization_header),
    context: BackendContext = Depends(get_context),
) -> Actor:
    """
    Main dependency for getting the current authenticated actor.
    """
    actor = resolve_actor(decode_session_token(token))

    # Older sessions carry no school id; fall back to the school's own profile
    if actor.has_role(Role.SCHOOL) and not actor.school_id:
        profile = await context.repository.find(ResourceType.USER, actor.id)
        if profile and profile.get("school_id"):
            actor = actor.model_copy(update={"school_id": profile["school_id"]})

    return actor
