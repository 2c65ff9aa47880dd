"""
Account endpoints served directly by the account service.
"""

from fastapi import APIRouter, status

from account_service.api.deps import CurrentClaims, Identity, current_user_id
from account_service.kernel.identity.identity_service import LoginResult
from account_service.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    PasswordResetComplete,
    PasswordResetRequest,
    ProfileUpdate,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from account_service.schemas.common import SuccessResponse

router = APIRouter()


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(data: RegisterRequest, identity: Identity):
    """Create an account. 409 when the username or email is taken."""
    user = await identity.register(
        username=data.username,
        email=data.email,
        password=data.password,
        first_name=data.first_name,
        last_name=data.last_name,
        phone_number=data.phone_number,
        company=data.company,
        shipping_addresses=data.address_records(),
    )
    return UserResponse.model_validate(user)


@router.post("/login", response_model=LoginResult, response_model_exclude_none=True)
async def login(data: LoginRequest, identity: Identity):
    """
    Exchange credentials for an access token.

    Always 200; ``success`` is false for any bad credential.
    """
    return await identity.login(data.username, data.password)


@router.post("/guest", response_model=TokenResponse)
async def guest_token(identity: Identity):
    """Issue a guest shopper token."""
    issued = await identity.create_guest_token()
    return TokenResponse(access_token=issued.token, expires_at=issued.expires_at)


@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(claims: CurrentClaims, identity: Identity):
    user = await identity.get_user(current_user_id(claims))
    return UserResponse.model_validate(user)


@router.patch("/me", response_model=UserResponse)
async def update_profile(data: ProfileUpdate, claims: CurrentClaims, identity: Identity):
    user = await identity.update_profile(current_user_id(claims), **data.changes())
    return UserResponse.model_validate(user)


@router.post("/change-password", response_model=SuccessResponse)
async def change_password(data: ChangePasswordRequest, claims: CurrentClaims, identity: Identity):
    await identity.update_password(
        current_user_id(claims),
        data.old_password,
        data.new_password,
    )
    return SuccessResponse(message="Password changed successfully")


@router.post("/password-reset/request", response_model=SuccessResponse)
async def request_password_reset(data: PasswordResetRequest, identity: Identity):
    await identity.request_password_reset(data.email)
    return SuccessResponse(message="Password reset link sent")


@router.post("/password-reset/complete", response_model=SuccessResponse)
async def complete_password_reset(data: PasswordResetComplete, identity: Identity):
    await identity.reset_password(data.token, data.new_password)
    return SuccessResponse(message="Password has been reset")
