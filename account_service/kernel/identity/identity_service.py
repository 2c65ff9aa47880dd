"""
Identity service: registration, login, password management and guest tokens.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from account_service.kernel.errors import (
    ConflictError,
    InternalError,
    NotFoundError,
    PasswordReuseError,
    UnauthorizedError,
)
from account_service.kernel.events.event_types import (
    PasswordResetRequested,
    UserLoggedIn,
    UserRegistered,
)
from account_service.kernel.events.publisher import EventPublisher, publish_best_effort
from account_service.kernel.identity.jwt import IssuedToken, SessionClaims, TokenError, TokenIssuer
from account_service.kernel.identity.password import PasswordHasher
from account_service.kernel.identity.store import UserStore, normalize_email
from account_service.kernel.models.base import as_utc
from account_service.kernel.models.user import User
from account_service.logging_config import get_logger

logger = get_logger(__name__)

# Profile columns a user may change after registration
PROFILE_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "phone_number",
    "company",
    "shipping_addresses",
)


class LoginResult(BaseModel):
    """
    Outcome of a login attempt.

    A failure carries no token and no reason, so an unknown username and a
    wrong password look the same to the caller.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    access_token: Optional[str] = Field(default=None)


def sanitize(user: User) -> SessionClaims:
    """User fields safe to hand out: no password hash, no reset token."""
    return SessionClaims(
        id=str(user.id),
        username=user.username,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        phone_number=user.phone_number,
        company=user.company,
        shipping_addresses=list(user.shipping_addresses or []),
        is_email_verified=bool(user.is_email_verified),
    )


class IdentityService:
    """
    Orchestrates the identity store, credential hashing, token signing and
    event publication.

    All collaborators are passed in; the service reads no configuration.
    """

    def __init__(
        self,
        store: UserStore,
        hasher: PasswordHasher,
        tokens: TokenIssuer,
        events: EventPublisher,
        frontend_url: str,
    ):
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.events = events
        self.frontend_url = frontend_url.rstrip("/")

    # bcrypt is CPU bound; keep it off the event loop
    async def _hash(self, password: str) -> str:
        return await asyncio.to_thread(self.hasher.hash, password)

    async def _verify(self, password: str, password_hash: str) -> bool:
        return await asyncio.to_thread(self.hasher.verify, password, password_hash)

    async def _burn_verify(self, password: str) -> None:
        """Spend one bcrypt check so an unknown username costs as much as a wrong password."""
        dummy_hash = await asyncio.to_thread(lambda: self.hasher.dummy_hash)
        await self._verify(password, dummy_hash)

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone_number: Optional[str] = None,
        company: Optional[str] = None,
        shipping_addresses: Optional[list[dict[str, Any]]] = None,
    ) -> User:
        """
        Register a new user.

        Returns:
            The persisted User with its generated id

        Raises:
            ConflictError: username or email already registered, including the
                losing side of a concurrent registration
        """
        logger.debug("Attempting to register a new user", extra={"username": username})
        email = normalize_email(email)

        if await self.store.find_by_username_or_email(username, email):
            logger.warning(
                "Registration rejected: username or email already in use",
                extra={"username": username, "email": email},
            )
            raise ConflictError("User with this username or email already exists")

        user = User(
            id=uuid.uuid4(),
            username=username,
            email=email,
            password_hash=await self._hash(password),
            first_name=first_name,
            last_name=last_name,
            phone_number=phone_number,
            company=company,
            shipping_addresses=list(shipping_addresses or []),
            is_email_verified=False,
        )
        user = await self.store.add(user)
        logger.info("User registered", extra={"user_id": str(user.id)})

        await publish_best_effort(self.events, UserRegistered(user_id=str(user.id)))
        return user

    async def validate_user(self, username: str, password: str) -> Optional[SessionClaims]:
        """
        Check credentials.

        Returns the sanitized profile, or None for an unknown user or a wrong
        password. Only the logs tell the two apart.
        """
        user = await self.store.get_by_username(username)
        if user is None:
            await self._burn_verify(password)
            logger.warning("Login failed: unknown username", extra={"username": username})
            return None

        if not await self._verify(password, user.password_hash):
            logger.warning("Login failed: incorrect password", extra={"username": username})
            return None

        logger.debug("User authenticated", extra={"user_id": str(user.id)})
        return sanitize(user)

    async def login(self, username: str, password: str) -> LoginResult:
        """Validate credentials, sign a session token and announce the login."""
        profile = await self.validate_user(username, password)
        if profile is None:
            return LoginResult(success=False)

        issued = self.tokens.create_access_token(profile)

        await publish_best_effort(
            self.events,
            UserLoggedIn(
                user_id=profile.id,
                user_details=profile.model_dump(by_alias=True, mode="json"),
                token=issued.token,
            ),
        )
        return LoginResult(success=True, access_token=issued.token)

    async def update_password(
        self,
        user_id: uuid.UUID,
        old_password: str,
        new_password: str,
    ) -> None:
        """
        Change a password after checking the current one.

        Raises:
            NotFoundError: no user with this id
            UnauthorizedError: old password is wrong
            PasswordReuseError: new password matches the current hash
        """
        user = await self.get_user(user_id)

        if not await self._verify(old_password, user.password_hash):
            raise UnauthorizedError("Old password is incorrect")

        if await self._verify(new_password, user.password_hash):
            raise PasswordReuseError("The new password cannot be the same as the old password")

        user.password_hash = await self._hash(new_password)
        await self.store.save(user)
        logger.info("Password updated", extra={"user_id": str(user.id)})

    def reset_url(self, token: str) -> str:
        return f"{self.frontend_url}/reset-password?{urlencode({'token': token})}"

    async def request_password_reset(self, email: str) -> None:
        """
        Store a reset token on the user and ask the mailer to send the link.

        A newer request replaces any outstanding token.

        Raises:
            NotFoundError: no user with this email
        """
        user = await self.store.get_by_email(email)
        if user is None:
            logger.warning("Password reset requested for unknown email", extra={"email": email})
            raise NotFoundError("User not found")

        issued = self.tokens.create_reset_token(user.id)
        user.password_reset_token = issued.token
        user.password_reset_expires = issued.expires_at
        await self.store.save(user)

        await publish_best_effort(
            self.events,
            PasswordResetRequested(
                user_id=str(user.id),
                email=user.email,
                reset_url=self.reset_url(issued.token),
            ),
        )
        logger.info("Password reset token issued", extra={"user_id": str(user.id)})

    async def reset_password(self, token: str, new_password: str) -> None:
        """
        Consume a reset token and set a new password.

        The token must verify, match the one stored on the user and not be
        past the stored expiry. It is cleared on success so it works once.
        """
        user_id = self.tokens.verify_reset_token(token)
        if user_id is None:
            raise UnauthorizedError("Invalid or expired reset token")

        user = await self.get_user(user_id)

        if user.password_reset_token != token or user.password_reset_expires is None:
            raise UnauthorizedError("Invalid or expired reset token")
        if as_utc(user.password_reset_expires) <= datetime.now(timezone.utc):
            raise UnauthorizedError("Invalid or expired reset token")

        user.password_hash = await self._hash(new_password)
        user.clear_password_reset()
        await self.store.save(user)
        logger.info("Password reset completed", extra={"user_id": str(user.id)})

    async def create_guest_token(self) -> IssuedToken:
        """Sign a guest token; signing failures become InternalError."""
        try:
            issued = self.tokens.create_guest_token()
        except TokenError as e:
            logger.error("Failed to create guest token", exc_info=True)
            raise InternalError("Failed to create guest user") from e
        logger.debug("Guest token issued", extra={"jti": issued.jti})
        return issued

    async def get_user(self, user_id: uuid.UUID) -> User:
        user = await self.store.get_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User with ID {user_id} not found")
        return user

    async def get_user_by_username(self, username: str) -> User:
        user = await self.store.get_by_username(username)
        if user is None:
            raise NotFoundError(f"User {username} not found")
        return user

    async def update_profile(self, user_id: uuid.UUID, **changes: Any) -> User:
        """
        Apply profile changes. Keys outside PROFILE_FIELDS are rejected.

        Raises:
            NotFoundError: no user with this id
            ConflictError: new email belongs to another user
        """
        unknown = set(changes) - set(PROFILE_FIELDS)
        if unknown:
            raise ValueError(f"Not a profile field: {', '.join(sorted(unknown))}")

        user = await self.get_user(user_id)

        if changes.get("email") is not None:
            new_email = normalize_email(changes["email"])
            existing = await self.store.get_by_email(new_email)
            if existing is not None and existing.id != user.id:
                raise ConflictError("Email already in use")
            if new_email != user.email:
                user.is_email_verified = False
            changes["email"] = new_email

        for field, value in changes.items():
            if value is None:
                continue
            setattr(user, field, value)

        await self.store.save(user)
        logger.info(
            "Profile updated",
            extra={"user_id": str(user.id), "fields": sorted(k for k, v in changes.items() if v is not None)},
        )
        return user
