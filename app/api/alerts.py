from __future__ import annotations

from typing import Any, List

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel

from app.auth import require_identity
from app.domain import Alert, Identity
from app.services.alerts import AlertService, AlertView


class AlertCreate(BaseModel):
    # Loosely typed so that missing or malformed values reach the service's
    # validation and come back as 400 with a readable message.
    asset: Any = None
    target_price: Any = None
    condition: Any = None


class AlertList(BaseModel):
    alerts: List[AlertView]


class AlertCreated(BaseModel):
    message: str
    alert: Alert


class Message(BaseModel):
    message: str


router = APIRouter(prefix="/alerts", tags=["alerts"])


def get_service(request: Request) -> AlertService:
    return AlertService(request.app.state.store)


@router.get("/", response_model=AlertList)
def list_alerts(
    triggered: bool | None = Query(None, description="Only triggered (true) or pending (false) alerts"),
    identity: Identity = Depends(require_identity),
    service: AlertService = Depends(get_service),
) -> AlertList:
    return AlertList(alerts=service.list_alerts(identity.user_id, triggered=triggered))


@router.post("/", status_code=status.HTTP_201_CREATED, response_model=AlertCreated)
def create_alert(
    payload: AlertCreate,
    identity: Identity = Depends(require_identity),
    service: AlertService = Depends(get_service),
) -> AlertCreated:
    alert = service.create_alert(
        identity.user_id, payload.asset, payload.target_price, payload.condition
    )
    service.register_caller(identity)
    return AlertCreated(message="Alert created successfully", alert=alert)


@router.delete("/{alert_id}", response_model=Message)
def delete_alert(
    alert_id: str,
    identity: Identity = Depends(require_identity),
    service: AlertService = Depends(get_service),
) -> Message:
    service.delete_alert(identity.user_id, alert_id)
    return Message(message="Alert deleted successfully")
