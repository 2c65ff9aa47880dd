"""
FastAPI dependencies: identity store, identity service and the bearer token.

Process-wide collaborators live on ``app.state`` (set by ``create_app``);
the SQL store is built per request around one session.
"""

import uuid
from typing import Annotated, AsyncIterator, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from account_service.kernel.identity.identity_service import IdentityService
from account_service.kernel.identity.jwt import SessionClaims
from account_service.kernel.identity.store import SqlAlchemyUserStore, UserStore

security = HTTPBearer(auto_error=False)


async def get_user_store(request: Request) -> AsyncIterator[UserStore]:
    """Yield the configured store; SQL sessions commit when the request succeeds."""
    state = request.app.state
    if state.user_store is not None:
        yield state.user_store
        return

    async with state.database.session() as session:
        yield SqlAlchemyUserStore(session)


Store = Annotated[UserStore, Depends(get_user_store)]


def get_identity_service(request: Request, store: Store) -> IdentityService:
    state = request.app.state
    return IdentityService(
        store=store,
        hasher=state.hasher,
        tokens=state.tokens,
        events=state.events,
        frontend_url=state.settings.frontend_url,
    )


Identity = Annotated[IdentityService, Depends(get_identity_service)]


async def get_current_claims(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> SessionClaims:
    """Verify the bearer access token or raise 401."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    claims = request.app.state.tokens.verify_access_token(credentials.credentials)
    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return claims


CurrentClaims = Annotated[SessionClaims, Depends(get_current_claims)]


def current_user_id(claims: SessionClaims) -> uuid.UUID:
    return uuid.UUID(claims.id)
