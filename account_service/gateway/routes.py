"""
Public /account routes.

Each route forwards the request body (or the object under its ``data``
key) to one account service topic and returns the reply body and status
unchanged.
"""

from typing import Any

from fastapi import APIRouter, Body, Request, status
from fastapi.responses import JSONResponse

from account_service.logging_config import get_logger
from account_service.messaging.client import MessageChannelError, MessageClient

logger = get_logger(__name__)

router = APIRouter()


def unwrap(payload: Any) -> Any:
    """Storefront clients send ``{"data": {...}}``; bare bodies pass through."""
    if isinstance(payload, dict) and set(payload) == {"data"}:
        return payload["data"]
    return payload


async def forward(request: Request, topic: str, payload: Any = None) -> JSONResponse:
    client: MessageClient = request.app.state.message_client
    payload = unwrap(payload)
    try:
        reply = await client.send(topic, payload)
    except MessageChannelError:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Account service unavailable", "code": "service_unavailable"},
        )
    return JSONResponse(status_code=reply.status_code, content=reply.body)


@router.get("/hello")
async def get_hello(request: Request):
    return await forward(request, "hellofromapi")


@router.post("/sign-up")
async def register(request: Request, payload: Any = Body(default=None)):
    return await forward(request, "register", payload)


@router.post("/sign-in")
async def login(request: Request, payload: Any = Body(default=None)):
    return await forward(request, "login", payload)
