"""
Internal channel endpoint: one POST per message, topic in the path.

Not part of the public API; the gateway is the only expected caller.
"""

from typing import Any

from fastapi import APIRouter, Body, Request
from fastapi.responses import JSONResponse

from account_service.api.deps import Identity

router = APIRouter()


@router.post("/{topic}", include_in_schema=False)
async def handle_message(
    topic: str,
    request: Request,
    identity: Identity,
    payload: Any = Body(default=None),
):
    reply = await request.app.state.dispatcher.dispatch(topic, payload, identity)
    return JSONResponse(status_code=reply.status_code, content=reply.body)
