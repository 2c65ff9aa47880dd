"""
Request/response message dispatch for the internal channel.

Each topic maps to one coroutine ``handler(service, payload) -> body``.
Identity errors and payload validation errors become non-2xx replies so the
caller can pass them on without knowing the error types.
"""

from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import BaseModel, ValidationError

from account_service.api.errors import validation_errors
from account_service.kernel.errors import IdentityError
from account_service.kernel.identity.identity_service import IdentityService
from account_service.logging_config import get_logger

logger = get_logger(__name__)

Handler = Callable[[IdentityService, Any], Awaitable[Any]]


class MessageReply(BaseModel):
    """Status and JSON body returned for one message."""

    status_code: int = 200
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class MessageDispatcher:
    """
    Topic registry.

    Usage:
        dispatcher = MessageDispatcher()

        @dispatcher.route("login")
        async def login(service, payload):
            ...

        reply = await dispatcher.dispatch("login", {"username": ...}, service)
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, Handler] = {}

    def register(self, topic: str, handler: Handler) -> None:
        if topic in self._handlers:
            raise ValueError(f"Topic already registered: {topic}")
        self._handlers[topic] = handler

    def route(self, topic: str) -> Callable[[Handler], Handler]:
        def decorator(handler: Handler) -> Handler:
            self.register(topic, handler)
            return handler
        return decorator

    @property
    def topics(self) -> list[str]:
        return sorted(self._handlers)

    def handles(self, topic: str) -> bool:
        return topic in self._handlers

    async def dispatch(
        self,
        topic: str,
        payload: Optional[Any],
        service: IdentityService,
    ) -> MessageReply:
        handler = self._handlers.get(topic)
        if handler is None:
            logger.warning("Message for unknown topic", extra={"topic": topic})
            return MessageReply(
                status_code=404,
                body={"detail": f"Unknown topic: {topic}", "code": "unknown_topic"},
            )

        try:
            body = await handler(service, payload if payload is not None else {})
        except ValidationError as e:
            return MessageReply(
                status_code=422,
                body={"detail": "Validation error", "errors": validation_errors(e)},
            )
        except IdentityError as e:
            logger.info(
                "Message rejected",
                extra={"topic": topic, "code": e.code, "status_code": e.status_code},
            )
            return MessageReply(status_code=e.status_code, body=e.to_dict())

        return MessageReply(status_code=200, body=body)
