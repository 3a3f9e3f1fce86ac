from typing import Annotated, List
from fastapi import APIRouter, Depends, Response, status

from uncip_backend.context import BackendContext, get_context
from uncip_backend.interface.users import UserCreate, UserGet, UserList, UserSignup, UserUpdate
from uncip_backend.permissions.auth import get_current_actor
from uncip_backend.permissions.principal import Actor
from uncip_backend.services import users

user_router = APIRouter()
signup_router = APIRouter()


@signup_router.post("", response_model=UserGet, status_code=status.HTTP_201_CREATED)
async def signup(payload: UserSignup, context: BackendContext = Depends(get_context)):
    return await users.signup(context, payload)


@user_router.post("", response_model=UserGet, status_code=status.HTTP_201_CREATED)
async def create_user(
    actor: Annotated[Actor, Depends(get_current_actor)],
    payload: UserCreate,
    context: BackendContext = Depends(get_context),
):
    return await users.create_user(context, actor, payload)


@user_router.get("", response_model=List[UserList])
async def list_users(
    actor: Annotated[Actor, Depends(get_current_actor)],
    response: Response,
    context: BackendContext = Depends(get_context),
):
    items = await users.list_users(context, actor)
    response.headers["X-Total-Count"] = str(len(items))
    return items


@user_router.get("/{user_id}", response_model=UserGet)
async def get_user(
    actor: Annotated[Actor, Depends(get_current_actor)],
    user_id: str,
    context: BackendContext = Depends(get_context),
):
    return await users.get_user(context, actor, user_id)


@user_router.patch("/{user_id}", response_model=UserGet)
async def update_user(
    actor: Annotated[Actor, Depends(get_current_actor)],
    user_id: str,
    payload: UserUpdate,
    context: BackendContext = Depends(get_context),
):
    return await users.update_user(context, actor, user_id, payload)


@user_router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    actor: Annotated[Actor, Depends(get_current_actor)],
    user_id: str,
    context: BackendContext = Depends(get_context),
):
    await users.delete_user(context, actor, user_id)
