"""
Institution Models
==================

Certificate-issuing organizations.

Version: 0.1.0
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import Field, field_validator

from educhain.models.common import ApiModel
from educhain.validation import (
    is_valid_phone,
    is_valid_url,
    normalize_address,
    normalize_email,
    to_utc,
    validate_password_strength,
)


class ContactInfo(ApiModel):
    """Optional institution contact details."""

    phone: str | None = None
    address: str | None = Field(default=None, max_length=500)
    website: str | None = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        if v is not None and not is_valid_phone(v):
            raise ValueError("Please provide a valid phone number")
        return v

    @field_validator("website")
    @classmethod
    def validate_website(cls, v: str | None) -> str | None:
        if v is not None and not is_valid_url(v):
            raise ValueError("Please provide a valid URL")
        return v


class InstitutionCreate(ApiModel):
    """Registration request."""

    name: str = Field(..., min_length=2, max_length=200)
    email: str
    password: str
    wallet_address: str
    registration_number: str = Field(..., min_length=1, max_length=50)
    contact_info: ContactInfo | None = None

    @field_validator("name", "registration_number", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return validate_password_strength(v)

    @field_validator("wallet_address")
    @classmethod
    def validate_wallet(cls, v: str) -> str:
        return normalize_address(v)


class LoginRequest(ApiModel):
    """Login request."""

    email: str
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)


class Institution(ApiModel):
    """Stored institution, without the password hash."""

    id: str
    name: str
    email: str
    wallet_address: str
    registration_number: str
    is_verified: bool = False
    contact_info: ContactInfo | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return to_utc(v)

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Institution":
        """Build from a MongoDB document."""
        return cls(
            id=str(doc["_id"]),
            name=doc["name"],
            email=doc["email"],
            wallet_address=doc["wallet_address"],
            registration_number=doc["registration_number"],
            is_verified=doc.get("is_verified", False),
            contact_info=doc.get("contact_info"),
            created_at=doc.get("created_at") or datetime.now(UTC),
            updated_at=doc.get("updated_at") or datetime.now(UTC),
        )


class InstitutionSummary(ApiModel):
    """Institution summary returned on login."""

    id: str
    name: str
    email: str
    wallet_address: str
    is_verified: bool


class RegistrationResponse(ApiModel):
    """Response to a successful registration."""

    success: bool = True
    message: str = "Institution registered successfully"
    institution_id: str
    wallet_address: str


class LoginResponse(ApiModel):
    """Session token plus institution summary."""

    success: bool = True
    token: str
    token_type: str = "bearer"
    expires_in: int
    institution: InstitutionSummary
