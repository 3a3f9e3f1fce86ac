from typing import Annotated, List, Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from uncip_backend.permissions.auth import get_current_actor
from uncip_backend.permissions.principal import Actor, Role

auth_router = APIRouter()


class SessionGet(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: Role
    roles: List[Role]
    school_id: Optional[str] = None


@auth_router.get("/session", response_model=SessionGet)
async def get_session(actor: Annotated[Actor, Depends(get_current_actor)]):
    """The actor the presented session resolves to"""
    return SessionGet(
        id=actor.id,
        email=actor.email,
        name=actor.display_name,
        role=actor.primary_role,
        roles=sorted(actor.roles, key=lambda r: r.value),
        school_id=actor.school_id,
    )
