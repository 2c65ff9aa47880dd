"""
JWT issuance and verification.

Three token types share one signing key and are told apart by the ``type``
claim: session access tokens, password reset tokens and guest tokens.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt
from jose.exceptions import JOSEError
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ACCESS_TOKEN = "access"
RESET_TOKEN = "password_reset"
GUEST_TOKEN = "guest"


class TokenError(Exception):
    """Raised when a token cannot be signed."""


class SessionClaims(BaseModel):
    """User snapshot embedded in an access token at login."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    company: Optional[str] = None
    shipping_addresses: list[dict[str, Any]] = Field(default_factory=list)
    is_email_verified: bool = False


class IssuedToken(BaseModel):
    """A signed token and its expiry."""

    token: str
    expires_at: datetime
    jti: str


class TokenIssuer:
    """
    Sign and verify bearer tokens.

    The secret is passed in explicitly; there is no fallback key.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_token_expire_minutes: int = 60,
        reset_token_expire_minutes: int = 60,
        guest_token_expire_minutes: int = 60,
    ):
        if not secret_key:
            raise ValueError("A signing secret is required")
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_token_ttl = timedelta(minutes=access_token_expire_minutes)
        self.reset_token_ttl = timedelta(minutes=reset_token_expire_minutes)
        self.guest_token_ttl = timedelta(minutes=guest_token_expire_minutes)

    @classmethod
    def from_settings(cls, settings) -> "TokenIssuer":
        return cls(
            secret_key=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            access_token_expire_minutes=settings.access_token_expire_minutes,
            reset_token_expire_minutes=settings.password_reset_expire_minutes,
            guest_token_expire_minutes=settings.guest_token_expire_minutes,
        )

    def _sign(
        self,
        claims: dict[str, Any],
        token_type: str,
        ttl: timedelta,
    ) -> IssuedToken:
        now = datetime.now(timezone.utc)
        expire = now + ttl
        jti = str(uuid.uuid4())
        payload = {
            **claims,
            "type": token_type,
            "iat": now,
            "exp": expire,
            "jti": jti,
        }
        try:
            token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        except JOSEError as e:
            raise TokenError(f"Could not sign {token_type} token: {e}") from e
        return IssuedToken(token=token, expires_at=expire, jti=jti)

    def create_access_token(self, claims: SessionClaims) -> IssuedToken:
        """Sign a session token carrying the user's claim set."""
        return self._sign(
            claims.model_dump(by_alias=True, mode="json"),
            ACCESS_TOKEN,
            self.access_token_ttl,
        )

    def create_reset_token(self, user_id: uuid.UUID) -> IssuedToken:
        """Sign a short-lived token that identifies a password reset."""
        return self._sign({"id": str(user_id)}, RESET_TOKEN, self.reset_token_ttl)

    def create_guest_token(self) -> IssuedToken:
        """Sign a token for an anonymous shopper."""
        return self._sign({"role": "guest"}, GUEST_TOKEN, self.guest_token_ttl)

    def decode(self, token: str, expected_type: Optional[str] = None) -> Optional[dict[str, Any]]:
        """
        Verify signature and expiry and return the raw claims.

        Returns None for any invalid token or a token of another type.
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None
        if expected_type is not None and payload.get("type") != expected_type:
            return None
        return payload

    def verify_access_token(self, token: str) -> Optional[SessionClaims]:
        payload = self.decode(token, ACCESS_TOKEN)
        if payload is None:
            return None
        return SessionClaims.model_validate(payload)

    def verify_reset_token(self, token: str) -> Optional[uuid.UUID]:
        """Return the user id a reset token was issued for."""
        payload = self.decode(token, RESET_TOKEN)
        if payload is None:
            return None
        try:
            return uuid.UUID(payload["id"])
        except (KeyError, ValueError):
            return None
