"""Helpers for writing audit log entries."""

import logging
from typing import Optional

from uncip_backend.interface.audit import AuditLogEntry, AuditOperation
from uncip_backend.interface.base import AUDIT_COLLECTION, ResourceType, to_document
from uncip_backend.permissions.principal import Actor
from uncip_backend.store.base import DocumentStore, utc_now

logger = logging.getLogger(__name__)


class AuditRecorder:

    def __init__(self, store: DocumentStore):
        self.store = store

    async def record(
        self,
        actor: Actor,
        operation: AuditOperation,
        resource_type: ResourceType,
        resource_id: str,
        details: Optional[str] = None,
    ) -> Optional[AuditLogEntry]:
        """Append a best-effort audit entry.

        Failures are logged and never propagate; the mutation they describe
        has already been committed.
        """
        entry = AuditLogEntry(
            user_id=actor.id,
            user_role=actor.primary_role.value,
            operation=operation,
            resource_id=resource_id,
            resource_type=resource_type.value,
            timestamp=utc_now(),
            details=details,
        )

        try:
            await self.store.create(AUDIT_COLLECTION, to_document(entry))
        except Exception:
            logger.exception(f"Failed to write audit entry for {operation.value} {resource_type.value}/{resource_id}")
            return None

        return entry
