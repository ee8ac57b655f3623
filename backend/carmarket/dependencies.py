"""FastAPI dependencies for the remote clients, the cache and the session."""

from __future__ import annotations

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from carmarket.services import query_cache
from carmarket.services.identity_client import IdentityClient
from carmarket.services.query_cache import QueryCache
from carmarket.services.session_service import AuthEvent, Principal, SessionContext
from carmarket.services.storage_client import StorageClient

bearer_scheme = HTTPBearer(auto_error=False)


def get_storage(request: Request) -> StorageClient:
    return request.app.state.storage


def get_identity(request: Request) -> IdentityClient:
    return request.app.state.identity


def get_cache(request: Request) -> QueryCache:
    return request.app.state.query_cache


def invalidate_on_profile_change(cache: QueryCache):
    """Session listener dropping cached pages that show the seller's name."""

    def listener(event: AuthEvent, user: Principal | None) -> None:
        if event == AuthEvent.USER_UPDATED:
            cache.invalidate(query_cache.LISTING_DETAIL)

    return listener


async def get_session_context(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    identity: IdentityClient = Depends(get_identity),
    cache: QueryCache = Depends(get_cache),
) -> SessionContext:
    """A loaded session for this request; anonymous when no valid token is sent."""
    token = credentials.credentials if credentials else None
    session = SessionContext(identity, access_token=token)
    session.subscribe(invalidate_on_profile_change(cache))
    await session.load()
    return session


def get_current_user(
    session: SessionContext = Depends(get_session_context),
) -> Principal:
    """The signed-in principal; raises UnauthenticatedError for anonymous viewers."""
    return session.require_user()


def get_optional_user(
    session: SessionContext = Depends(get_session_context),
) -> Principal | None:
    return session.user
