from datetime import date
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

from uncip_backend.interface.base import BaseEntityGet


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class MedicalInfo(BaseModel):
    blood_type: Optional[str] = None
    allergies: List[str] = Field(default_factory=list)
    conditions: List[str] = Field(default_factory=list)
    medications: List[str] = Field(default_factory=list)
    doctor_name: Optional[str] = None
    doctor_contact: Optional[str] = None


class EmergencyContact(BaseModel):
    name: str = Field(..., min_length=1)
    relationship: str
    phone_number: str
    email: Optional[str] = None


def _dedupe(values: List[str]) -> List[str]:
    seen = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen


class ChildCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str = Field(..., min_length=1, max_length=255)
    date_of_birth: date
    gender: Gender
    guardians: List[str] = Field(default_factory=list)
    school_id: Optional[str] = None
    is_active: bool = True
    medical_info: Optional[MedicalInfo] = None
    identification_number: Optional[str] = None
    emergency_contacts: List[EmergencyContact] = Field(default_factory=list)

    @field_validator("gender", mode="before")
    @classmethod
    def normalize_gender(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("guardians")
    @classmethod
    def unique_guardians(cls, value: List[str]) -> List[str]:
        return _dedupe(value)


class ChildUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=255)
    last_name: Optional[str] = Field(None, min_length=1, max_length=255)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    guardians: Optional[List[str]] = None
    school_id: Optional[str] = None
    is_active: Optional[bool] = None
    medical_info: Optional[MedicalInfo] = None
    identification_number: Optional[str] = None
    emergency_contacts: Optional[List[EmergencyContact]] = None

    @field_validator("gender", mode="before")
    @classmethod
    def normalize_gender(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("guardians")
    @classmethod
    def unique_guardians(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return None if value is None else _dedupe(value)


class ChildGet(BaseEntityGet):
    first_name: str
    last_name: str
    date_of_birth: date
    gender: Gender
    guardians: List[str]
    school_id: Optional[str] = None
    is_active: bool = True
    medical_info: Optional[MedicalInfo] = None
    identification_number: Optional[str] = None
    emergency_contacts: List[EmergencyContact] = Field(default_factory=list)
    created_by: str


class ChildList(ChildGet):
    pass
