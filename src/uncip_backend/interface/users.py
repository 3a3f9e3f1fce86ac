from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

from uncip_backend.interface.base import BaseEntityGet
from uncip_backend.permissions.principal import Role, parse_role, parse_roles

# Profile fields only an admin may change
ADMIN_ONLY_FIELDS = ("role", "roles", "is_active", "school_id")
ROLE_FIELDS = ("role", "roles")


def _required_role(value):
    role = parse_role(value)
    if role is None:
        raise ValueError(f"Role must be one of: {', '.join(r.value for r in Role)}")
    return role


class Organization(BaseModel):
    id: str
    name: str
    type: Optional[str] = None


class UserCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
    display_name: str = Field(..., min_length=1, max_length=255)
    role: Role
    password: Optional[str] = Field(None, min_length=8)
    organization: Optional[Organization] = None
    school_id: Optional[str] = None
    phone_number: Optional[str] = None

    @field_validator("role", mode="before")
    @classmethod
    def validate_role(cls, value):
        return _required_role(value)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class UserSignup(BaseModel):
    email: str = Field(..., min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
    display_name: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=8)
    phone_number: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class UserUpdate(BaseModel):
    display_name: Optional[str] = Field(None, min_length=1, max_length=255)
    organization: Optional[Organization] = None
    phone_number: Optional[str] = None
    school_id: Optional[str] = None
    role: Optional[Role] = None
    roles: Optional[List[Role]] = None
    is_active: Optional[bool] = None

    @field_validator("role", mode="before")
    @classmethod
    def validate_role(cls, value):
        return None if value is None else _required_role(value)

    @field_validator("roles", mode="before")
    @classmethod
    def validate_roles(cls, value):
        if value is None:
            return None
        values = [value] if isinstance(value, str) else list(value)
        if any(parse_role(v) is None for v in values):
            raise ValueError(f"Roles must be among: {', '.join(r.value for r in Role)}")
        return sorted(parse_roles(values), key=lambda r: r.value)


class UserGet(BaseEntityGet):
    email: str
    display_name: str
    role: Role
    roles: List[Role] = Field(default_factory=list)
    organization: Optional[Organization] = None
    school_id: Optional[str] = None
    phone_number: Optional[str] = None
    is_active: bool = True

    @field_validator("role", mode="before")
    @classmethod
    def validate_role(cls, value):
        return _required_role(value)

    @field_validator("roles", mode="before")
    @classmethod
    def validate_roles(cls, value):
        return sorted(parse_roles(value), key=lambda r: r.value)


class UserList(UserGet):
    pass
