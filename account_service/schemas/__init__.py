"""
Pydantic schemas for request/response validation.
"""

from account_service.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    PasswordResetComplete,
    PasswordResetRequest,
    ProfileUpdate,
    RegisterRequest,
    ShippingAddress,
    TokenResponse,
    UserResponse,
)
from account_service.schemas.common import (
    ErrorResponse,
    HealthResponse,
    SuccessResponse,
)

__all__ = [
    "ChangePasswordRequest",
    "LoginRequest",
    "PasswordResetComplete",
    "PasswordResetRequest",
    "ProfileUpdate",
    "RegisterRequest",
    "ShippingAddress",
    "TokenResponse",
    "UserResponse",
    "ErrorResponse",
    "HealthResponse",
    "SuccessResponse",
]
