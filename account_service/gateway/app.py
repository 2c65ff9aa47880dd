"""
API gateway - public entry point for the storefront.

Run with:
    uvicorn account_service.gateway.app:create_gateway_app --factory --port 8000
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from account_service.api.errors import install_exception_handlers
from account_service.api.middleware.request_id import RequestIdMiddleware
from account_service.config import Settings, get_settings
from account_service.gateway.routes import router as account_router
from account_service.logging_config import configure_logging, get_logger
from account_service.messaging.client import MessageClient

logger = get_logger(__name__)

SERVICE_NAME = "api-gateway"


def create_gateway_app(
    settings: Optional[Settings] = None,
    *,
    message_client: Optional[MessageClient] = None,
) -> FastAPI:
    """Build the gateway app; ``message_client`` defaults to HTTP to ``account_service_url``."""
    settings = settings or get_settings()

    if message_client is None:
        message_client = MessageClient(
            settings.account_service_url,
            timeout=settings.gateway_timeout_seconds,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        configure_logging(
            service=SERVICE_NAME,
            log_level=settings.log_level,
            environment=settings.environment,
            debug=settings.debug,
        )
        logger.info("Gateway forwarding to %s", settings.account_service_url)

        yield

        await app.state.message_client.close()

    app = FastAPI(
        title="Storefront API Gateway",
        version=settings.version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
    )
    app.state.settings = settings
    app.state.message_client = message_client

    # add_middleware stacks innermost-first: CORS added last wraps everything
    app.add_middleware(RequestIdMiddleware, slow_request_ms=settings.slow_request_ms)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_exception_handlers(app, debug=settings.debug)

    app.include_router(account_router, prefix="/account", tags=["Account"])

    @app.get("/health", tags=["Health"])
    async def health_check():
        return {"status": "ok", "version": settings.version}

    return app
