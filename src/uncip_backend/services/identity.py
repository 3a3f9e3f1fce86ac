"""
Identity provider client for account management.

Accounts live in Keycloak; profiles live in the document store under the
same id. Role claims are mirrored into the account's attributes so that
issued sessions carry them.
"""

import logging
import secrets
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
import httpx
from pydantic import BaseModel, Field

from uncip_backend.permissions.principal import Role
from uncip_backend.settings import BackendSettings

logger = logging.getLogger(__name__)


class IdentityProviderError(Exception):
    """Raised when the identity provider cannot complete a request."""
    pass


class IdentityConflictError(IdentityProviderError):
    """Raised when an account with the same email already exists."""
    pass


class IdentityNotFoundError(IdentityProviderError):
    pass


class IdentityRecord(BaseModel):
    uid: str
    email: str
    display_name: Optional[str] = None
    role_claims: Dict[str, Any] = Field(default_factory=dict)


def role_claims(role: Role, roles: Optional[List[Role]] = None) -> Dict[str, Any]:
    """Custom claims attached to an account for the given roles"""
    all_roles = sorted({role, *(roles or [])}, key=lambda r: r.value)
    return {"role": role.value, "roles": [r.value for r in all_roles]}


class IdentityProvider(ABC):

    @abstractmethod
    async def create_identity(self, email: str, display_name: str, password: Optional[str] = None) -> IdentityRecord:
        pass

    @abstractmethod
    async def set_role_claims(self, uid: str, claims: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def delete_identity(self, uid: str) -> None:
        pass

    @abstractmethod
    async def find_identity_by_email(self, email: str) -> Optional[IdentityRecord]:
        pass


class KeycloakIdentityProvider(IdentityProvider):
    """
    Keycloak Admin REST API client for the account operations the backend needs.
    """

    def __init__(self, settings: BackendSettings):
        self.server_url = settings.KEYCLOAK_SERVER_URL
        self.realm = settings.KEYCLOAK_REALM
        self.admin_username = settings.KEYCLOAK_ADMIN
        self.admin_password = settings.KEYCLOAK_ADMIN_PASSWORD
        self.verify_ssl = settings.KEYCLOAK_VERIFY_SSL
        self.timeout = 30.0

    @property
    def users_url(self) -> str:
        return f"{self.server_url}/admin/realms/{self.realm}/users"

    async def _get_admin_token(self) -> str:
        """Get an admin access token for Keycloak API operations."""
        token_url = f"{self.server_url}/realms/master/protocol/openid-connect/token"

        data = {
            "grant_type": "password",
            "username": self.admin_username,
            "password": self.admin_password,
            "client_id": "admin-cli",
        }

        try:
            async with httpx.AsyncClient(verify=self.verify_ssl, timeout=self.timeout) as client:
                response = await client.post(
                    token_url,
                    data=data,
                    headers={"Content-Type": "application/x-www-form-urlencoded"}
                )
        except httpx.HTTPError as e:
            raise IdentityProviderError(f"Identity provider unreachable: {e}") from e

        if response.status_code != 200:
            logger.error(f"Failed to get admin token: {response.status_code} - {response.text}")
            raise IdentityProviderError("Identity provider rejected admin credentials")

        return response.json()["access_token"]

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        token = await self._get_admin_token()
        headers = {"Authorization": f"Bearer {token}", **kwargs.pop("headers", {})}

        try:
            async with httpx.AsyncClient(verify=self.verify_ssl, timeout=self.timeout) as client:
                return await client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise IdentityProviderError(f"Identity provider unreachable: {e}") from e

    async def create_identity(self, email: str, display_name: str, password: Optional[str] = None) -> IdentityRecord:
        """
        Create a new account.

        Without a password a random temporary one is set that must be changed
        on first login.
        """
        user_data = {
            "username": email,
            "email": email,
            "firstName": display_name,
            "enabled": True,
            "emailVerified": False,
            "credentials": [{
                "type": "password",
                "value": password or secrets.token_urlsafe(16),
                "temporary": password is None,
            }],
        }

        response = await self._request("POST", self.users_url, json=user_data)

        if response.status_code == 409:
            raise IdentityConflictError(f"User already exists: {email}")

        if response.status_code != 201:
            logger.error(f"Failed to create user: {response.status_code} - {response.text}")
            raise IdentityProviderError(f"Failed to create user {email}")

        # Extract user ID from Location header
        location_header = response.headers.get("Location")
        if location_header:
            uid = location_header.rstrip("/").split("/")[-1]
            logger.info(f"Created Keycloak user: {email} (ID: {uid})")
            return IdentityRecord(uid=uid, email=email, display_name=display_name)

        record = await self.find_identity_by_email(email)
        if record is None:
            raise IdentityProviderError(f"Created user {email} could not be found")
        return record

    async def set_role_claims(self, uid: str, claims: Dict[str, Any]) -> None:
        attributes = {
            key: value if isinstance(value, list) else [value]
            for key, value in claims.items()
        }

        response = await self._request("PUT", f"{self.users_url}/{uid}", json={"attributes": attributes})

        if response.status_code == 404:
            raise IdentityNotFoundError(f"User not found: {uid}")
        if response.status_code not in (200, 204):
            logger.error(f"Failed to update user: {response.status_code} - {response.text}")
            raise IdentityProviderError(f"Failed to set role claims for {uid}")

    async def delete_identity(self, uid: str) -> None:
        response = await self._request("DELETE", f"{self.users_url}/{uid}")

        if response.status_code == 404:
            raise IdentityNotFoundError(f"User not found: {uid}")
        if response.status_code not in (200, 204):
            logger.error(f"Failed to delete user: {response.status_code} - {response.text}")
            raise IdentityProviderError(f"Failed to delete user {uid}")

    async def find_identity_by_email(self, email: str) -> Optional[IdentityRecord]:
        response = await self._request("GET", self.users_url, params={"email": email, "exact": "true"})

        if response.status_code != 200:
            logger.error(f"Failed to look up user: {response.status_code} - {response.text}")
            raise IdentityProviderError(f"Failed to look up {email}")

        users = response.json()
        if not users:
            return None

        user = users[0]
        attributes = user.get("attributes") or {}
        claims = {}
        if attributes.get("role"):
            claims["role"] = attributes["role"][0]
        if attributes.get("roles"):
            claims["roles"] = attributes["roles"]

        return IdentityRecord(
            uid=user["id"],
            email=user.get("email") or email,
            display_name=user.get("firstName"),
            role_claims=claims,
        )
