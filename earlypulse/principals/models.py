"""Pydantic models for authenticatable principals (users, doctors, labs)."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, Field, field_validator


class PrincipalType(StrEnum):
    """Discriminator embedded in tokens to select the principal store."""

    USER = "User"
    DOCTOR = "Doctor"
    LAB = "Lab"


class BloodType(StrEnum):
    """Blood groups tracked in lab inventories."""

    A_POSITIVE = "A_Positive"
    A_NEGATIVE = "A_Negative"
    B_POSITIVE = "B_Positive"
    B_NEGATIVE = "B_Negative"
    AB_POSITIVE = "AB_Positive"
    AB_NEGATIVE = "AB_Negative"
    O_POSITIVE = "O_Positive"
    O_NEGATIVE = "O_Negative"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_email(value: str) -> str:
    return (value or "").strip().lower()


def _empty_inventory() -> dict[str, int]:
    return {blood_type.value: 0 for blood_type in BloodType}


class Principal(BaseModel):
    """Persisted principal with credentials and the current refresh token."""

    principal_type: ClassVar[PrincipalType]
    profile_fields: ClassVar[tuple[str, ...]] = ("name", "phone_number", "address")
    redacted_fields: ClassVar[set[str]] = {"password_hash", "refresh_token"}

    principal_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    email: str
    password_hash: str
    refresh_token: str | None = None
    name: str
    phone_number: str = ""
    address: str = ""
    role: str
    created_at: str = Field(default_factory=now_iso)
    updated_at: str = Field(default_factory=now_iso)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return normalize_email(value)

    def redacted(self) -> dict[str, Any]:
        """Return the principal without credential fields."""
        payload = self.model_dump(exclude=self.redacted_fields)
        payload["principal_type"] = str(self.principal_type)
        return payload


class User(Principal):
    """Patient account; ``medicalOwner`` users manage the pharmacy."""

    principal_type: ClassVar[PrincipalType] = PrincipalType.USER
    profile_fields: ClassVar[tuple[str, ...]] = (
        "name",
        "phone_number",
        "address",
        "emergency_contact_number",
    )

    role: str = "user"
    emergency_contact_number: str = ""


class Doctor(Principal):
    principal_type: ClassVar[PrincipalType] = PrincipalType.DOCTOR
    profile_fields: ClassVar[tuple[str, ...]] = (
        "name",
        "phone_number",
        "address",
        "specialization",
    )

    role: str = "doctor"
    specialization: str = ""


class Lab(Principal):
    principal_type: ClassVar[PrincipalType] = PrincipalType.LAB
    profile_fields: ClassVar[tuple[str, ...]] = (
        "name",
        "phone_number",
        "address",
        "tests_offered",
    )

    role: str = "lab"
    tests_offered: list[str] = Field(default_factory=list)
    blood_inventory: dict[str, int] = Field(default_factory=_empty_inventory)


PRINCIPAL_MODELS: dict[PrincipalType, type[Principal]] = {
    PrincipalType.USER: User,
    PrincipalType.DOCTOR: Doctor,
    PrincipalType.LAB: Lab,
}

COLLECTION_NAMES: dict[PrincipalType, str] = {
    PrincipalType.USER: "users",
    PrincipalType.DOCTOR: "doctors",
    PrincipalType.LAB: "labs",
}


class RegisterRequest(BaseModel):
    """Fields shared by every registration payload."""

    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    phone_number: str = Field(min_length=1)
    address: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RegisterUserRequest(RegisterRequest):
    emergency_contact_number: str = Field(min_length=1)
    role: Literal["user", "medicalOwner"] = "user"


class RegisterDoctorRequest(RegisterRequest):
    specialization: str = Field(min_length=1)


class RegisterLabRequest(RegisterRequest):
    tests_offered: list[str] = Field(min_length=1)


class ProfileUpdateRequest(BaseModel):
    """Partial profile update; unknown or credential fields are ignored."""

    name: str | None = None
    phone_number: str | None = None
    address: str | None = None
    emergency_contact_number: str | None = None
    specialization: str | None = None
    tests_offered: list[str] | None = None


class ChangePasswordRequest(BaseModel):
    old_password: str = Field(min_length=1)
    new_password: str = Field(min_length=1)


class LabTestRequest(BaseModel):
    test_name: str = Field(min_length=1)


class BloodInventoryRequest(BaseModel):
    blood_type: str = Field(min_length=1)
    quantity: int
