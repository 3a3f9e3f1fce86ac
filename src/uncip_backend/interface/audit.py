from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel


class AuditOperation(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class AuditLogEntry(BaseModel):
    user_id: str
    user_role: str
    operation: AuditOperation
    resource_id: str
    resource_type: str
    timestamp: datetime
    details: Optional[str] = None
