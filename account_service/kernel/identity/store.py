"""
Identity store: persistence boundary for user records.

``SqlAlchemyUserStore`` wraps one request-scoped AsyncSession.
``InMemoryUserStore`` keeps users in a dict for tests and local runs.
Both enforce username/email uniqueness and raise ConflictError on a clash.
"""

import copy
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from sqlalchemy import inspect as sa_inspect, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from account_service.kernel.errors import ConflictError
from account_service.kernel.models.user import User
from account_service.logging_config import get_logger

logger = get_logger(__name__)


class UserStore(Protocol):
    """Interface the identity service depends on."""

    async def get_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        ...

    async def get_by_username(self, username: str) -> Optional[User]:
        ...

    async def get_by_email(self, email: str) -> Optional[User]:
        ...

    async def find_by_username_or_email(self, username: str, email: str) -> Optional[User]:
        ...

    async def add(self, user: User) -> User:
        """Persist a new user; raise ConflictError on a uniqueness clash."""
        ...

    async def save(self, user: User) -> User:
        """Persist changes to an existing user."""
        ...


def normalize_email(email: str) -> str:
    return email.strip().lower()


class SqlAlchemyUserStore:
    """User store backed by SQLAlchemy. Commit is left to the session owner."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.session.get(User, user_id)

    async def get_by_username(self, username: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(
            select(User).where(User.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def find_by_username_or_email(self, username: str, email: str) -> Optional[User]:
        query = select(User).where(
            or_(User.username == username, User.email == normalize_email(email))
        ).limit(1)
        result = await self.session.execute(query)
        return result.scalars().first()

    async def add(self, user: User) -> User:
        self.session.add(user)
        await self._flush(user)
        await self.session.refresh(user)
        return user

    async def save(self, user: User) -> User:
        await self._flush(user)
        return user

    async def _flush(self, user: User) -> None:
        try:
            await self.session.flush()
        except IntegrityError as e:
            # Loser of a concurrent registration or email change
            await self.session.rollback()
            logger.warning(
                "Unique constraint rejected user write",
                extra={"username": user.username, "error": str(e.orig)},
            )
            raise ConflictError("User with this username or email already exists") from e


class InMemoryUserStore:
    """
    Dict-backed user store.

    Writes complete without awaiting anything, so the uniqueness check and
    the insert cannot interleave with another coroutine. Like a rolled-back
    session, a rejected save leaves the user with its last saved values.
    """

    def __init__(self) -> None:
        self._users: Dict[uuid.UUID, User] = {}
        self._saved: Dict[uuid.UUID, Dict[str, Any]] = {}

    async def get_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        return self._users.get(user_id)

    async def get_by_username(self, username: str) -> Optional[User]:
        for user in self._users.values():
            if user.username == username:
                return user
        return None

    async def get_by_email(self, email: str) -> Optional[User]:
        email = normalize_email(email)
        for user in self._users.values():
            if user.email == email:
                return user
        return None

    async def find_by_username_or_email(self, username: str, email: str) -> Optional[User]:
        email = normalize_email(email)
        for user in self._users.values():
            if user.username == username or user.email == email:
                return user
        return None

    def _check_unique(self, user: User) -> None:
        for other in self._users.values():
            if other.id == user.id:
                continue
            saved = self._saved[other.id]
            if saved["username"] == user.username or saved["email"] == user.email:
                raise ConflictError("User with this username or email already exists")

    @staticmethod
    def _snapshot(user: User) -> Dict[str, Any]:
        return {
            attr.key: copy.deepcopy(getattr(user, attr.key))
            for attr in sa_inspect(User).column_attrs
        }

    def _restore(self, user: User) -> None:
        for key, value in self._saved[user.id].items():
            setattr(user, key, copy.deepcopy(value))

    async def add(self, user: User) -> User:
        if user.id is None:
            user.id = uuid.uuid4()
        self._check_unique(user)
        now = datetime.now(timezone.utc)
        user.created_at = now
        user.updated_at = now
        self._users[user.id] = user
        self._saved[user.id] = self._snapshot(user)
        return user

    async def save(self, user: User) -> User:
        try:
            self._check_unique(user)
        except ConflictError:
            self._restore(user)
            raise
        user.updated_at = datetime.now(timezone.utc)
        self._users[user.id] = user
        self._saved[user.id] = self._snapshot(user)
        return user

    def __len__(self) -> int:
        return len(self._users)
