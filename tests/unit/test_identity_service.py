"""Unit tests for the identity service on the in-memory store."""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt
from redis.exceptions import ConnectionError as RedisConnectionError

from account_service.kernel.errors import (
    BadRequestError,
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
from account_service.kernel.identity.identity_service import IdentityService
from account_service.kernel.identity.jwt import TokenError
from account_service.kernel.models.user import User

from tests.conftest import FRONTEND_URL, PASSWORD, TEST_SECRET


class FailingPublisher:
    """Publisher whose broker is down."""

    def __init__(self, error: Exception):
        self.error = error
        self.attempts = 0

    async def publish(self, event) -> None:
        self.attempts += 1
        raise self.error

    async def close(self) -> None:
        pass


class TestRegistration:

    async def test_register_persists_hashed_password(self, identity_service, hasher, store):
        user = await identity_service.register("carol", "carol@example.com", PASSWORD)

        assert isinstance(user.id, uuid.UUID)
        assert user.password_hash != PASSWORD
        assert hasher.verify(PASSWORD, user.password_hash)
        assert user.is_email_verified is False
        assert await store.get_by_id(user.id) is user

    async def test_register_normalizes_email(self, identity_service):
        user = await identity_service.register("carol", "  Carol@Example.COM ", PASSWORD)
        assert user.email == "carol@example.com"

    async def test_register_keeps_profile_fields(self, identity_service):
        address = {"line1": "1 Main St", "city": "Oslo", "postalCode": "0150", "country": "NO"}
        user = await identity_service.register(
            "carol",
            "carol@example.com",
            PASSWORD,
            first_name="Carol",
            phone_number="+4712345678",
            shipping_addresses=[address],
        )
        assert user.first_name == "Carol"
        assert user.phone_number == "+4712345678"
        assert user.shipping_addresses == [address]

    async def test_register_publishes_user_registered(self, identity_service, events):
        user = await identity_service.register("carol", "carol@example.com", PASSWORD)

        assert len(events.events) == 1
        event = events.events[0]
        assert isinstance(event, UserRegistered)
        assert event.to_message() == {"userId": str(user.id)}

    async def test_duplicate_username_conflicts(self, identity_service, registered_user):
        with pytest.raises(ConflictError):
            await identity_service.register("alice", "other@example.com", PASSWORD)

    async def test_duplicate_email_conflicts(self, identity_service, registered_user):
        with pytest.raises(ConflictError):
            await identity_service.register("other", "ALICE@example.com", PASSWORD)

    async def test_conflict_publishes_nothing(self, identity_service, registered_user, events):
        with pytest.raises(ConflictError):
            await identity_service.register("alice", "alice@example.com", PASSWORD)
        assert events.events == []

    async def test_concurrent_registrations_yield_one_conflict(self, identity_service, store):
        results = await asyncio.gather(
            identity_service.register("dave", "dave@example.com", PASSWORD),
            identity_service.register("dave", "dave2@example.com", PASSWORD),
            return_exceptions=True,
        )

        users = [r for r in results if isinstance(r, User)]
        conflicts = [r for r in results if isinstance(r, ConflictError)]
        assert len(users) == 1
        assert len(conflicts) == 1
        assert len(store) == 1

    async def test_concurrent_same_email_yields_one_conflict(self, identity_service, store):
        results = await asyncio.gather(
            identity_service.register("erin", "shared@example.com", PASSWORD),
            identity_service.register("frank", "shared@example.com", PASSWORD),
            return_exceptions=True,
        )

        assert sum(isinstance(r, User) for r in results) == 1
        assert sum(isinstance(r, ConflictError) for r in results) == 1
        assert len(store) == 1

    @pytest.mark.parametrize("error", [RedisConnectionError("down"), RuntimeError("boom")])
    async def test_publish_failure_does_not_fail_registration(
        self, store, hasher, tokens, error
    ):
        publisher = FailingPublisher(error)
        service = IdentityService(store, hasher, tokens, publisher, FRONTEND_URL)

        user = await service.register("carol", "carol@example.com", PASSWORD)

        assert publisher.attempts == 1
        assert await store.get_by_id(user.id) is user


class TestLogin:

    async def test_login_success_returns_token(self, identity_service, registered_user):
        result = await identity_service.login("alice", PASSWORD)

        assert result.success is True
        payload = jwt.decode(result.access_token, TEST_SECRET, algorithms=["HS256"])
        assert payload["username"] == "alice"
        assert payload["id"] == str(registered_user.id)
        assert payload["exp"] - payload["iat"] == 3600

    async def test_login_publishes_sanitized_details(self, identity_service, registered_user, events):
        result = await identity_service.login("alice", PASSWORD)

        assert len(events.events) == 1
        message = events.events[0].to_message()
        assert isinstance(events.events[0], UserLoggedIn)
        assert message["userId"] == str(registered_user.id)
        assert message["token"] == result.access_token
        details = message["userDetails"]
        assert details["username"] == "alice"
        assert details["firstName"] == "Alice"
        for secret in ("passwordHash", "password", "passwordResetToken", "passwordResetExpires"):
            assert secret not in details

    async def test_wrong_password_and_unknown_user_are_indistinguishable(
        self, identity_service, registered_user, events
    ):
        wrong_password = await identity_service.login("alice", "WrongPass1")
        unknown_user = await identity_service.login("nobody", PASSWORD)

        assert wrong_password.success is False
        assert wrong_password.access_token is None
        assert wrong_password.model_dump(by_alias=True) == unknown_user.model_dump(by_alias=True)
        assert events.events == []

    async def test_unknown_user_still_runs_one_bcrypt_check(
        self, identity_service, registered_user, monkeypatch
    ):
        checked = []
        real_verify = identity_service.hasher.verify

        def recording_verify(password, password_hash):
            checked.append(password_hash)
            return real_verify(password, password_hash)

        monkeypatch.setattr(identity_service.hasher, "verify", recording_verify)

        await identity_service.login("alice", "WrongPass1")
        await identity_service.login("nobody", PASSWORD)
        await identity_service.login("nobody-else", PASSWORD)

        assert len(checked) == 3
        assert checked[0] == registered_user.password_hash
        assert checked[1] == checked[2] == identity_service.hasher.dummy_hash
        assert checked[1].startswith("$2b$04$")

    async def test_validate_user_strips_sensitive_fields(self, identity_service, registered_user):
        profile = await identity_service.validate_user("alice", PASSWORD)

        dumped = profile.model_dump()
        assert dumped["id"] == str(registered_user.id)
        assert "password_hash" not in dumped
        assert "password_reset_token" not in dumped

    async def test_login_succeeds_when_publisher_fails(self, store, hasher, tokens, registered_user):
        service = IdentityService(store, hasher, tokens, FailingPublisher(RedisConnectionError()), FRONTEND_URL)

        result = await service.login("alice", PASSWORD)

        assert result.success is True


class TestUpdatePassword:

    async def test_update_password(self, identity_service, registered_user, events):
        await identity_service.update_password(registered_user.id, PASSWORD, "NewSecret456")

        assert (await identity_service.login("alice", "NewSecret456")).success is True
        assert (await identity_service.login("alice", PASSWORD)).success is False

    async def test_update_password_publishes_nothing(self, identity_service, registered_user, events):
        await identity_service.update_password(registered_user.id, PASSWORD, "NewSecret456")
        assert events.events == []

    async def test_same_password_is_rejected(self, identity_service, registered_user):
        with pytest.raises(PasswordReuseError) as exc_info:
            await identity_service.update_password(registered_user.id, PASSWORD, PASSWORD)

        assert isinstance(exc_info.value, BadRequestError)
        assert exc_info.value.status_code == 400

    async def test_wrong_old_password_is_unauthorized(self, identity_service, registered_user):
        with pytest.raises(UnauthorizedError):
            await identity_service.update_password(registered_user.id, "WrongPass1", "NewSecret456")

    async def test_unknown_user_is_not_found(self, identity_service):
        with pytest.raises(NotFoundError):
            await identity_service.update_password(uuid.uuid4(), PASSWORD, "NewSecret456")


class TestPasswordReset:

    async def test_unknown_email_is_not_found(self, identity_service, events):
        with pytest.raises(NotFoundError):
            await identity_service.request_password_reset("ghost@example.com")
        assert events.events == []

    async def test_request_sets_token_and_expiry(self, identity_service, registered_user, tokens):
        await identity_service.request_password_reset("alice@example.com")

        assert registered_user.password_reset_token is not None
        assert tokens.verify_reset_token(registered_user.password_reset_token) == registered_user.id
        remaining = registered_user.password_reset_expires - datetime.now(timezone.utc)
        assert timedelta(minutes=59) < remaining <= timedelta(minutes=60)
        assert registered_user.reset_pending is True

    async def test_request_publishes_reset_url(self, identity_service, registered_user, events):
        await identity_service.request_password_reset("alice@example.com")

        assert len(events.events) == 1
        event = events.events[0]
        assert isinstance(event, PasswordResetRequested)
        token = registered_user.password_reset_token
        assert event.to_message() == {
            "userId": str(registered_user.id),
            "email": "alice@example.com",
            "resetUrl": f"{FRONTEND_URL}/reset-password?token={token}",
        }

    async def test_reset_completes_once(self, identity_service, registered_user):
        await identity_service.request_password_reset("alice@example.com")
        token = registered_user.password_reset_token

        await identity_service.reset_password(token, "Brand1New")

        assert registered_user.password_reset_token is None
        assert registered_user.password_reset_expires is None
        assert (await identity_service.login("alice", "Brand1New")).success is True
        assert (await identity_service.login("alice", PASSWORD)).success is False

        with pytest.raises(UnauthorizedError):
            await identity_service.reset_password(token, "Another1Pw")

    async def test_superseded_token_is_rejected(self, identity_service, registered_user):
        await identity_service.request_password_reset("alice@example.com")
        first = registered_user.password_reset_token
        await identity_service.request_password_reset("alice@example.com")

        with pytest.raises(UnauthorizedError):
            await identity_service.reset_password(first, "Brand1New")

    async def test_expired_stored_token_is_rejected(self, identity_service, registered_user):
        await identity_service.request_password_reset("alice@example.com")
        registered_user.password_reset_expires = datetime.now(timezone.utc) - timedelta(seconds=1)

        assert registered_user.reset_pending is False
        with pytest.raises(UnauthorizedError):
            await identity_service.reset_password(registered_user.password_reset_token, "Brand1New")

    async def test_garbage_token_is_rejected(self, identity_service):
        with pytest.raises(UnauthorizedError):
            await identity_service.reset_password("not-a-token", "Brand1New")

    async def test_token_for_deleted_user_is_not_found(self, identity_service, tokens):
        issued = tokens.create_reset_token(uuid.uuid4())
        with pytest.raises(NotFoundError):
            await identity_service.reset_password(issued.token, "Brand1New")


class TestGuestToken:

    async def test_guest_token_has_guest_role(self, identity_service):
        issued = await identity_service.create_guest_token()

        payload = jwt.decode(issued.token, TEST_SECRET, algorithms=["HS256"])
        assert payload["role"] == "guest"
        assert "username" not in payload

    async def test_signing_failure_becomes_internal_error(self, identity_service, monkeypatch):
        def broken():
            raise TokenError("signing backend unavailable")

        monkeypatch.setattr(identity_service.tokens, "create_guest_token", broken)

        with pytest.raises(InternalError) as exc_info:
            await identity_service.create_guest_token()
        assert exc_info.value.message == "Failed to create guest user"


class TestProfile:

    async def test_update_profile(self, identity_service, registered_user):
        user = await identity_service.update_profile(
            registered_user.id,
            company="Wonderland Inc",
            phone_number="+441234",
        )

        assert user.company == "Wonderland Inc"
        assert user.phone_number == "+441234"
        assert user.first_name == "Alice"

    async def test_email_change_resets_verification(self, identity_service, registered_user):
        registered_user.is_email_verified = True

        user = await identity_service.update_profile(registered_user.id, email="New@Example.com")

        assert user.email == "new@example.com"
        assert user.is_email_verified is False

    async def test_email_taken_by_other_user_conflicts(self, identity_service, registered_user):
        await identity_service.register("bob", "bob@example.com", PASSWORD)

        with pytest.raises(ConflictError):
            await identity_service.update_profile(registered_user.id, email="bob@example.com")
        assert registered_user.email == "alice@example.com"

    async def test_email_claimed_during_update_leaves_record_unchanged(
        self, identity_service, registered_user, store, monkeypatch
    ):
        bob = await identity_service.register("bob", "bob@example.com", PASSWORD)

        # The rival's email is not visible yet when the service looks it up
        async def not_yet_visible(email):
            return None

        monkeypatch.setattr(store, "get_by_email", not_yet_visible)

        with pytest.raises(ConflictError):
            await identity_service.update_profile(
                registered_user.id,
                email="bob@example.com",
                company="Rabbit Hole Ltd",
            )

        assert registered_user.email == "alice@example.com"
        assert registered_user.company is None
        assert bob.email == "bob@example.com"

    async def test_password_is_not_a_profile_field(self, identity_service, registered_user):
        with pytest.raises(ValueError):
            await identity_service.update_profile(registered_user.id, password_hash="x")

    async def test_lookup_by_username(self, identity_service, registered_user):
        assert await identity_service.get_user_by_username("alice") is registered_user
        with pytest.raises(NotFoundError):
            await identity_service.get_user_by_username("nobody")
