from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Type
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from uncip_backend.api.exceptions import BadRequestException, validation_error_fields


class ResourceType(str, Enum):
    USER = "users"
    CHILD = "children"
    ALERT = "alerts"

    @property
    def collection(self) -> str:
        return self.value


AUDIT_COLLECTION = "audit_logs"


class BaseEntityGet(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Update timestamp")


def parse_payload(model: Type[BaseModel], payload: Any) -> BaseModel:
    """Validate a raw payload, turning pydantic errors into field-level Invalid errors"""
    if isinstance(payload, model):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(exclude_unset=True)
    try:
        return model.model_validate(payload or {})
    except ValidationError as e:
        raise BadRequestException("Invalid payload", fields=validation_error_fields(e.errors()))


def to_document(entity: BaseModel, exclude_unset: bool = False) -> Dict[str, Any]:
    """JSON-compatible dict ready for the document store"""
    return entity.model_dump(mode="json", exclude_unset=exclude_unset)
