"""
Topics served by the account service on the internal channel.
"""

from typing import Any

from account_service.kernel.identity.identity_service import IdentityService
from account_service.messaging.dispatcher import MessageDispatcher
from account_service.schemas.auth import (
    GetUserMessage,
    LoginRequest,
    PasswordResetComplete,
    PasswordResetRequest,
    RegisterRequest,
    TokenResponse,
    UpdatePasswordMessage,
    UpdateProfileMessage,
    UserResponse,
)

HELLO_MESSAGE = "Hello from the account service"

dispatcher = MessageDispatcher()


def _user_body(user) -> dict:
    return UserResponse.model_validate(user).model_dump(by_alias=True, mode="json")


@dispatcher.route("hellofromapi")
async def hello(service: IdentityService, payload: Any) -> dict:
    return {"message": HELLO_MESSAGE}


@dispatcher.route("register")
async def register(service: IdentityService, payload: Any) -> dict:
    data = RegisterRequest.model_validate(payload)
    user = await service.register(
        username=data.username,
        email=data.email,
        password=data.password,
        first_name=data.first_name,
        last_name=data.last_name,
        phone_number=data.phone_number,
        company=data.company,
        shipping_addresses=data.address_records(),
    )
    return _user_body(user)


@dispatcher.route("login")
async def login(service: IdentityService, payload: Any) -> dict:
    data = LoginRequest.model_validate(payload)
    result = await service.login(data.username, data.password)
    return result.model_dump(by_alias=True, exclude_none=True)


@dispatcher.route("guest-token")
async def guest_token(service: IdentityService, payload: Any) -> dict:
    issued = await service.create_guest_token()
    return TokenResponse(
        access_token=issued.token,
        expires_at=issued.expires_at,
    ).model_dump(by_alias=True, mode="json")


@dispatcher.route("update-password")
async def update_password(service: IdentityService, payload: Any) -> dict:
    data = UpdatePasswordMessage.model_validate(payload)
    await service.update_password(data.user_id, data.old_password, data.new_password)
    return {"success": True}


@dispatcher.route("request-password-reset")
async def request_password_reset(service: IdentityService, payload: Any) -> dict:
    data = PasswordResetRequest.model_validate(payload)
    await service.request_password_reset(data.email)
    return {"success": True}


@dispatcher.route("reset-password")
async def reset_password(service: IdentityService, payload: Any) -> dict:
    data = PasswordResetComplete.model_validate(payload)
    await service.reset_password(data.token, data.new_password)
    return {"success": True}


@dispatcher.route("get-user")
async def get_user(service: IdentityService, payload: Any) -> dict:
    data = GetUserMessage.model_validate(payload)
    if data.user_id is not None:
        user = await service.get_user(data.user_id)
    else:
        user = await service.get_user_by_username(data.username)
    return _user_body(user)


@dispatcher.route("update-profile")
async def update_profile(service: IdentityService, payload: Any) -> dict:
    data = UpdateProfileMessage.model_validate(payload)
    user = await service.update_profile(data.user_id, **data.changes())
    return _user_body(user)
