"""
Gateway side of the internal channel: an httpx client that posts a topic's
payload to the account service and returns the reply as-is.
"""

from typing import Any, Optional

import httpx

from account_service.api.middleware.request_id import REQUEST_ID_HEADER
from account_service.logging_config import get_logger, get_request_id
from account_service.messaging.dispatcher import MessageReply

logger = get_logger(__name__)

MESSAGES_PATH = "/internal/messages"


class MessageChannelError(Exception):
    """The account service could not be reached or did not answer."""


class MessageClient:
    """
    Send request/response messages to the account service.

    ``transport`` lets tests route calls into an ASGI app in-process.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
        )

    async def send(self, topic: str, payload: Optional[Any] = None) -> MessageReply:
        headers = {}
        request_id = get_request_id()
        if request_id:
            headers[REQUEST_ID_HEADER] = request_id

        try:
            response = await self._client.post(
                f"{MESSAGES_PATH}/{topic}",
                json=payload if payload is not None else {},
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.error(
                "Account service unreachable",
                extra={"topic": topic, "error": str(e), "error_type": type(e).__name__},
            )
            raise MessageChannelError(f"Message '{topic}' was not delivered") from e

        try:
            body = response.json()
        except ValueError:
            body = {"detail": response.text}

        logger.debug(
            "Message reply received",
            extra={"topic": topic, "status_code": response.status_code},
        )
        return MessageReply(status_code=response.status_code, body=body)

    async def close(self) -> None:
        await self._client.aclose()
