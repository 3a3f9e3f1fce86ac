from enum import Enum
from typing import Iterable, Optional, Set
from pydantic import BaseModel, Field, field_validator, model_validator


class Role(str, Enum):
    ADMIN = "admin"
    PARENT = "parent"
    SCHOOL = "school"
    AUTHORITY = "authority"
    COMMUNITY = "community"


# Unresolvable roles fall back to the least privileged one
DEFAULT_ROLE = Role.PARENT


def parse_role(value) -> Optional[Role]:
    """Case-insensitive role lookup, None for anything unknown"""
    if value is None:
        return None
    if isinstance(value, Role):
        return value
    normalized = str(value).strip().lower()
    for role in Role:
        if role.value == normalized:
            return role
    return None


def parse_roles(values: Optional[Iterable]) -> Set[Role]:
    if isinstance(values, (str, Role)):
        values = [values]
    roles = set()
    for value in values or []:
        role = parse_role(value)
        if role is not None:
            roles.add(role)
    return roles


class Actor(BaseModel):
    """The authenticated caller of a single request"""

    id: str
    primary_role: Role = DEFAULT_ROLE
    roles: Set[Role] = Field(default_factory=set)

    school_id: Optional[str] = None
    email: Optional[str] = None
    display_name: Optional[str] = None

    @field_validator("primary_role", mode="before")
    @classmethod
    def normalize_primary_role(cls, value):
        return parse_role(value) or DEFAULT_ROLE

    @field_validator("roles", mode="before")
    @classmethod
    def normalize_roles(cls, value):
        return parse_roles(value)

    @model_validator(mode="after")
    def include_primary_role(self):
        if self.primary_role not in self.roles:
            self.roles = set(self.roles) | {self.primary_role}
        return self

    def has_role(self, role) -> bool:
        role = parse_role(role)
        if role is None:
            return False
        return role in self.roles or self.primary_role == role

    def has_any_role(self, *roles) -> bool:
        return any(self.has_role(role) for role in roles)

    @property
    def is_admin(self) -> bool:
        return self.has_role(Role.ADMIN)
