from typing import Annotated, List
from fastapi import APIRouter, Depends, Response, status

from uncip_backend.context import BackendContext, get_context
from uncip_backend.interface.children import ChildCreate, ChildGet, ChildList, ChildUpdate
from uncip_backend.permissions.auth import get_current_actor
from uncip_backend.permissions.principal import Actor
from uncip_backend.services import children

child_router = APIRouter()


@child_router.post("", response_model=ChildGet, status_code=status.HTTP_201_CREATED)
async def create_child(
    actor: Annotated[Actor, Depends(get_current_actor)],
    payload: ChildCreate,
    context: BackendContext = Depends(get_context),
):
    return await children.create_child(context, actor, payload)


@child_router.get("", response_model=List[ChildList])
async def list_children(
    actor: Annotated[Actor, Depends(get_current_actor)],
    response: Response,
    context: BackendContext = Depends(get_context),
):
    items = await children.list_children(context, actor)
    response.headers["X-Total-Count"] = str(len(items))
    return items


@child_router.get("/{child_id}", response_model=ChildGet)
async def get_child(
    actor: Annotated[Actor, Depends(get_current_actor)],
    child_id: str,
    context: BackendContext = Depends(get_context),
):
    return await children.get_child(context, actor, child_id)


@child_router.patch("/{child_id}", response_model=ChildGet)
async def update_child(
    actor: Annotated[Actor, Depends(get_current_actor)],
    child_id: str,
    payload: ChildUpdate,
    context: BackendContext = Depends(get_context),
):
    return await children.update_child(context, actor, child_id, payload)


@child_router.delete("/{child_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_child(
    actor: Annotated[Actor, Depends(get_current_actor)],
    child_id: str,
    context: BackendContext = Depends(get_context),
):
    await children.delete_child(context, actor, child_id)
