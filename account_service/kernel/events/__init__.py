"""
Fire-and-forget events for downstream services.
"""

from account_service.kernel.events.event_types import (
    BaseEvent,
    EventTopic,
    PasswordResetRequested,
    UserLoggedIn,
    UserRegistered,
)
from account_service.kernel.events.publisher import (
    EventPublisher,
    InMemoryEventPublisher,
    RedisEventPublisher,
    create_event_publisher,
    publish_best_effort,
)

__all__ = [
    "BaseEvent",
    "EventTopic",
    "PasswordResetRequested",
    "UserLoggedIn",
    "UserRegistered",
    "EventPublisher",
    "InMemoryEventPublisher",
    "RedisEventPublisher",
    "create_event_publisher",
    "publish_best_effort",
]
