"""
Shared test helpers: actors, payload builders and a fake identity provider.
"""

import uuid
from typing import Any, Dict, Optional

from uncip_backend.permissions.principal import Actor
from uncip_backend.services.identity import (
    IdentityConflictError,
    IdentityNotFoundError,
    IdentityProvider,
    IdentityRecord,
)


class FakeIdentityProvider(IdentityProvider):
    """In-memory identity provider recording every call"""

    def __init__(self):
        self.identities: Dict[str, IdentityRecord] = {}
        self.deleted = []

    async def create_identity(self, email: str, display_name: str, password: Optional[str] = None) -> IdentityRecord:
        if any(identity.email == email for identity in self.identities.values()):
            raise IdentityConflictError(f"User already exists: {email}")
        record = IdentityRecord(uid=f"uid-{uuid.uuid4().hex[:8]}", email=email, display_name=display_name)
        self.identities[record.uid] = record
        return record

    async def set_role_claims(self, uid: str, claims: Dict[str, Any]) -> None:
        if uid not in self.identities:
            raise IdentityNotFoundError(uid)
        self.identities[uid].role_claims = dict(claims)

    async def delete_identity(self, uid: str) -> None:
        if self.identities.pop(uid, None) is None:
            raise IdentityNotFoundError(uid)
        self.deleted.append(uid)

    async def find_identity_by_email(self, email: str) -> Optional[IdentityRecord]:
        for identity in self.identities.values():
            if identity.email == email:
                return identity
        return None


def make_actor(user_id: str, role: str, roles=None, school_id: Optional[str] = None) -> Actor:
    return Actor(id=user_id, primary_role=role, roles=roles or [role], school_id=school_id)


def child_payload(**overrides) -> Dict[str, Any]:
    payload = {
        "first_name": "Amina",
        "last_name": "Okello",
        "date_of_birth": "2016-04-12",
        "gender": "female",
    }
    payload.update(overrides)
    return payload


def alert_payload(child_id: str, **overrides) -> Dict[str, Any]:
    payload = {
        "child_id": child_id,
        "alert_type": "missing",
        "description": "Did not come home from school",
        "contact_info": "+256 700 000000",
    }
    payload.update(overrides)
    return payload
