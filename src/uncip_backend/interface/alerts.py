from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from uncip_backend.interface.base import BaseEntityGet


class AlertStatus(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"
    FALSE = "false"


class AlertType(str, Enum):
    MISSING = "missing"
    MEDICAL = "medical"
    DANGER = "danger"
    OTHER = "other"


# Allowed status changes; terminal states have no outgoing edges
STATUS_TRANSITIONS = {
    AlertStatus.ACTIVE: {AlertStatus.RESOLVED, AlertStatus.CANCELLED, AlertStatus.FALSE},
    AlertStatus.RESOLVED: set(),
    AlertStatus.CANCELLED: set(),
    AlertStatus.FALSE: set(),
}


def can_transition(current: AlertStatus, target: AlertStatus) -> bool:
    if current == target:
        return True
    return target in STATUS_TRANSITIONS.get(current, set())


class Location(BaseModel):
    address: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    timestamp: Optional[datetime] = None


def _lower(value):
    return value.strip().lower() if isinstance(value, str) else value


class AlertCreate(BaseModel):
    child_id: str = Field(..., min_length=1)
    alert_type: AlertType
    description: str = Field(..., min_length=1)
    contact_info: str = Field(..., min_length=1)
    last_seen_location: Optional[Location] = None
    last_seen_wearing: Optional[str] = None

    @field_validator("alert_type", mode="before")
    @classmethod
    def normalize_alert_type(cls, value):
        return _lower(value)


class AlertUpdate(BaseModel):
    status: Optional[AlertStatus] = None
    description: Optional[str] = Field(None, min_length=1)
    contact_info: Optional[str] = Field(None, min_length=1)
    last_seen_location: Optional[Location] = None
    last_seen_wearing: Optional[str] = None
    resolution_details: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value):
        return _lower(value)


class AlertQuery(BaseModel):
    status: Optional[AlertStatus] = None
    child_id: Optional[str] = None
    alert_type: Optional[AlertType] = None


class AlertGet(BaseEntityGet):
    child_id: str
    status: AlertStatus
    alert_type: AlertType
    description: str
    contact_info: str
    last_seen_location: Optional[Location] = None
    last_seen_wearing: Optional[str] = None
    resolution_details: Optional[str] = None
    created_by: str
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None


class AlertList(AlertGet):
    pass
