from typing import Annotated, List
from fastapi import APIRouter, Depends, Response, status

from uncip_backend.context import BackendContext, get_context
from uncip_backend.interface.alerts import AlertCreate, AlertGet, AlertList, AlertQuery, AlertUpdate
from uncip_backend.permissions.auth import get_current_actor
from uncip_backend.permissions.principal import Actor
from uncip_backend.services import alerts

alert_router = APIRouter()


@alert_router.post("", response_model=AlertGet, status_code=status.HTTP_201_CREATED)
async def create_alert(
    actor: Annotated[Actor, Depends(get_current_actor)],
    payload: AlertCreate,
    context: BackendContext = Depends(get_context),
):
    return await alerts.create_alert(context, actor, payload)


@alert_router.get("", response_model=List[AlertList])
async def list_alerts(
    actor: Annotated[Actor, Depends(get_current_actor)],
    response: Response,
    params: AlertQuery = Depends(),
    context: BackendContext = Depends(get_context),
):
    items = await alerts.list_alerts(context, actor, params)
    response.headers["X-Total-Count"] = str(len(items))
    return items


@alert_router.get("/{alert_id}", response_model=AlertGet)
async def get_alert(
    actor: Annotated[Actor, Depends(get_current_actor)],
    alert_id: str,
    context: BackendContext = Depends(get_context),
):
    return await alerts.get_alert(context, actor, alert_id)


@alert_router.patch("/{alert_id}", response_model=AlertGet)
async def update_alert(
    actor: Annotated[Actor, Depends(get_current_actor)],
    alert_id: str,
    payload: AlertUpdate,
    context: BackendContext = Depends(get_context),
):
    return await alerts.update_alert(context, actor, alert_id, payload)


@alert_router.delete("/{alert_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_alert(
    actor: Annotated[Actor, Depends(get_current_actor)],
    alert_id: str,
    context: BackendContext = Depends(get_context),
):
    await alerts.delete_alert(context, actor, alert_id)
