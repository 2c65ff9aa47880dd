"""
Pytest fixtures for account service tests.
"""

from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from account_service.config import Settings
from account_service.database import Database
from account_service.gateway.app import create_gateway_app
from account_service.kernel.events.publisher import InMemoryEventPublisher
from account_service.kernel.identity.identity_service import IdentityService
from account_service.kernel.identity.jwt import TokenIssuer
from account_service.kernel.identity.password import PasswordHasher
from account_service.kernel.identity.store import InMemoryUserStore
from account_service.kernel.models.user import User
from account_service.main import create_app
from account_service.messaging.client import MessageClient

TEST_SECRET = "test-secret-key-for-testing-only-0123456789"
FRONTEND_URL = "https://shop.example.com"
PASSWORD = "Secret123"


@pytest.fixture
def settings() -> Settings:
    """Settings that never read the environment or a .env file."""
    return Settings(
        _env_file=None,
        jwt_secret=TEST_SECRET,
        user_store="memory",
        event_backend="memory",
        bcrypt_rounds=4,
        frontend_url=FRONTEND_URL,
    )


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def tokens(settings: Settings) -> TokenIssuer:
    return TokenIssuer.from_settings(settings)


@pytest.fixture
def events() -> InMemoryEventPublisher:
    return InMemoryEventPublisher()


@pytest.fixture
def store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture
def identity_service(
    store: InMemoryUserStore,
    hasher: PasswordHasher,
    tokens: TokenIssuer,
    events: InMemoryEventPublisher,
) -> IdentityService:
    return IdentityService(
        store=store,
        hasher=hasher,
        tokens=tokens,
        events=events,
        frontend_url=FRONTEND_URL,
    )


@pytest_asyncio.fixture
async def registered_user(identity_service: IdentityService, events: InMemoryEventPublisher) -> User:
    """A registered user; the registration event is cleared."""
    user = await identity_service.register(
        username="alice",
        email="alice@example.com",
        password=PASSWORD,
        first_name="Alice",
        last_name="Liddell",
    )
    events.events.clear()
    return user


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """File-backed SQLite database with the schema created."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'accounts.db'}")
    await db.init()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    async with database.session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def account_app(settings: Settings, store: InMemoryUserStore, events: InMemoryEventPublisher):
    return create_app(settings, user_store=store, events=events)


@pytest_asyncio.fixture
async def client(account_app) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client talking to the account service in-process."""
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=account_app),
        base_url="http://account",
    ) as c:
        yield c


@pytest_asyncio.fixture
async def gateway_client(settings: Settings, account_app) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client for the gateway, whose channel points at ``account_app``."""
    message_client = MessageClient(
        "http://account",
        transport=httpx.ASGITransport(app=account_app),
    )
    gateway = create_gateway_app(settings, message_client=message_client)
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=gateway),
        base_url="http://gateway",
    ) as c:
        yield c
    await message_client.close()


@pytest.fixture
def register_payload() -> dict:
    return {
        "username": "bob",
        "email": "bob@example.com",
        "password": PASSWORD,
        "firstName": "Bob",
        "lastName": "Builder",
        "company": "Pallets Ltd",
        "shippingAddresses": [
            {
                "line1": "1 Dock Road",
                "city": "Rotterdam",
                "postalCode": "3011",
                "country": "NL",
            }
        ],
    }
