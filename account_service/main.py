"""
Account service - FastAPI application factory.

Run with:
    uvicorn account_service.main:create_app --factory --port 8001
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI

from account_service.api.errors import install_exception_handlers
from account_service.api.middleware.request_id import RequestIdMiddleware
from account_service.api.v1 import router as api_v1_router
from account_service.api.v1.messages import router as messages_router
from account_service.config import Settings, get_settings
from account_service.database import Database
from account_service.kernel.events.publisher import EventPublisher, create_event_publisher
from account_service.kernel.identity.jwt import TokenIssuer
from account_service.kernel.identity.password import PasswordHasher
from account_service.kernel.identity.store import InMemoryUserStore, UserStore
from account_service.logging_config import configure_logging, get_logger
from account_service.messaging.handlers import dispatcher
from account_service.schemas.common import HealthResponse

logger = get_logger(__name__)

SERVICE_NAME = "account-service"


def create_app(
    settings: Optional[Settings] = None,
    *,
    user_store: Optional[UserStore] = None,
    events: Optional[EventPublisher] = None,
    database: Optional[Database] = None,
) -> FastAPI:
    """
    Build the account service app.

    Collaborators are created once here and stored on ``app.state``; tests
    pass their own store/publisher/database instead of configuring them.
    """
    settings = settings or get_settings()

    if user_store is None and database is None:
        if settings.user_store == "memory":
            user_store = InMemoryUserStore()
        else:
            database = Database(settings.database_url, echo=settings.debug)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        configure_logging(
            service=SERVICE_NAME,
            log_level=settings.log_level,
            environment=settings.environment,
            debug=settings.debug,
        )
        logger.info("Starting %s v%s", settings.project_name, settings.version)
        if app.state.database is not None:
            await app.state.database.init()
            logger.info("Database initialized")

        # Unknown-username logins check against this hash
        await asyncio.to_thread(lambda: app.state.hasher.dummy_hash)

        yield

        logger.info("Shutting down...")
        await app.state.events.close()
        if app.state.database is not None:
            await app.state.database.close()
            logger.info("Database connections closed")

    app = FastAPI(
        title=settings.project_name,
        description="Identity and account management for the storefront.",
        version=settings.version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.state.settings = settings
    app.state.user_store = user_store
    app.state.database = database
    app.state.hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    app.state.tokens = TokenIssuer.from_settings(settings)
    app.state.events = events if events is not None else create_event_publisher(settings)
    app.state.dispatcher = dispatcher

    app.add_middleware(RequestIdMiddleware, slow_request_ms=settings.slow_request_ms)
    install_exception_handlers(app, debug=settings.debug)

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check():
        return HealthResponse(
            status="ok",
            version=settings.version,
            user_store="memory" if app.state.user_store is not None else "sql",
            event_backend=settings.event_backend,
        )

    app.include_router(api_v1_router, prefix=settings.api_v1_prefix)
    app.include_router(messages_router, prefix="/internal/messages", tags=["Internal"])

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "account_service.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8001,
    )
