"""
Identity core - credentials, tokens, user store and the identity service.
"""

from account_service.kernel.identity.password import PasswordHasher
from account_service.kernel.identity.jwt import (
    IssuedToken,
    SessionClaims,
    TokenError,
    TokenIssuer,
)
from account_service.kernel.identity.store import (
    InMemoryUserStore,
    SqlAlchemyUserStore,
    UserStore,
)
from account_service.kernel.identity.identity_service import (
    IdentityService,
    LoginResult,
    sanitize,
)

__all__ = [
    "PasswordHasher",
    "IssuedToken",
    "SessionClaims",
    "TokenError",
    "TokenIssuer",
    "InMemoryUserStore",
    "SqlAlchemyUserStore",
    "UserStore",
    "IdentityService",
    "LoginResult",
    "sanitize",
]
