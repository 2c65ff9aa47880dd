"""
Event topics and payloads published to downstream services.

Payloads serialize with camelCase keys; other services (cart, mailer) read them.
"""

from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class EventTopic(str, Enum):
    """One-way notification topics."""

    USER_REGISTERED = "user-registered"
    USER_LOGGED_IN = "user-logged-in"
    PASSWORD_RESET_REQUEST = "password-reset-request"


class BaseEvent(BaseModel):
    """Base class for published events."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    topic: ClassVar[EventTopic]

    def to_message(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class UserRegistered(BaseEvent):
    """A new account exists; the cart service creates its cart."""

    topic: ClassVar[EventTopic] = EventTopic.USER_REGISTERED

    user_id: str


class UserLoggedIn(BaseEvent):
    topic: ClassVar[EventTopic] = EventTopic.USER_LOGGED_IN

    user_id: str
    user_details: dict[str, Any]
    token: str


class PasswordResetRequested(BaseEvent):
    """The mailer sends ``reset_url`` to ``email``."""

    topic: ClassVar[EventTopic] = EventTopic.PASSWORD_RESET_REQUEST

    user_id: str
    email: str
    reset_url: str
