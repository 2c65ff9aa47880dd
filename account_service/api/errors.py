"""
Exception handlers shared by the account service and the gateway.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from account_service.api.middleware.request_id import REQUEST_ID_HEADER
from account_service.kernel.errors import IdentityError
from account_service.logging_config import get_logger

logger = get_logger(__name__)


def _request_id_headers(request: Request) -> dict:
    req_id = getattr(request.state, "request_id", None)
    return {REQUEST_ID_HEADER: req_id} if req_id else {}


def validation_errors(exc) -> list[dict]:
    """Flatten pydantic/FastAPI validation errors into field/message pairs."""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        })
    return errors


def install_exception_handlers(app: FastAPI, debug: bool = False) -> None:
    """Register identity, validation and catch-all handlers on ``app``."""

    @app.exception_handler(IdentityError)
    async def identity_error_handler(request: Request, exc: IdentityError):
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
            headers=_request_id_headers(request),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": "Validation error", "errors": validation_errors(exc)},
            headers=_request_id_headers(request),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception: %s", exc)
        content = {"detail": "Internal server error", "code": "internal_error"}
        if debug:
            content["error"] = f"{type(exc).__name__}: {exc}"
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=content,
            headers=_request_id_headers(request),
        )
