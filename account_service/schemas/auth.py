"""
Account request/response schemas.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator, model_validator

from account_service.schemas.common import CamelModel


def _check_password_strength(v: str) -> str:
    if len(v) < 8:
        raise ValueError("Password must be at least 8 characters")
    if not any(c.isupper() for c in v):
        raise ValueError("Password must contain at least one uppercase letter")
    if not any(c.islower() for c in v):
        raise ValueError("Password must contain at least one lowercase letter")
    if not any(c.isdigit() for c in v):
        raise ValueError("Password must contain at least one digit")
    return v


class ShippingAddress(CamelModel):
    line1: str = Field(..., min_length=1, max_length=255)
    line2: Optional[str] = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=2, max_length=100)


def address_records(addresses: list[ShippingAddress]) -> list[dict]:
    """Addresses as stored on the user: camelCase, the same shape tokens and events carry."""
    return [a.model_dump(by_alias=True) for a in addresses]


class ProfileFields(CamelModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone_number: Optional[str] = Field(None, max_length=32)
    company: Optional[str] = Field(None, max_length=255)


class RegisterRequest(ProfileFields):
    """Sign-up payload."""

    username: str = Field(..., min_length=3, max_length=64, pattern=r"^[A-Za-z0-9_.-]+$")
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    shipping_addresses: list[ShippingAddress] = Field(default_factory=list)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_strength(v)

    def address_records(self) -> list[dict]:
        return address_records(self.shipping_addresses)


class LoginRequest(CamelModel):
    """Sign-in payload."""

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserResponse(ProfileFields):
    """Sanitized user profile."""

    id: uuid.UUID
    username: str
    email: str
    shipping_addresses: list[ShippingAddress] = Field(default_factory=list)
    is_email_verified: bool = False
    created_at: Optional[datetime] = None


class ProfileUpdate(ProfileFields):
    """Partial profile update; omitted fields are left unchanged."""

    email: Optional[EmailStr] = None
    shipping_addresses: Optional[list[ShippingAddress]] = None

    def changes(self) -> dict:
        data = self.model_dump(exclude_unset=True, exclude={"user_id"})
        if data.get("shipping_addresses") is not None:
            data["shipping_addresses"] = address_records(self.shipping_addresses)
        return {k: v for k, v in data.items() if v is not None}


class ChangePasswordRequest(CamelModel):
    old_password: str
    new_password: str = Field(..., min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_strength(v)


class PasswordResetRequest(CamelModel):
    email: EmailStr


class PasswordResetComplete(CamelModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_strength(v)


class TokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime


# Internal channel payloads that name the target user explicitly


class UpdatePasswordMessage(ChangePasswordRequest):
    user_id: uuid.UUID


class UpdateProfileMessage(ProfileUpdate):
    user_id: uuid.UUID


class GetUserMessage(CamelModel):
    user_id: Optional[uuid.UUID] = None
    username: Optional[str] = None

    @model_validator(mode="after")
    def exactly_one_key(self) -> "GetUserMessage":
        if (self.user_id is None) == (self.username is None):
            raise ValueError("Provide exactly one of userId or username")
        return self
