"""Session context: the one owner of the signed-in principal.

A ``SessionContext`` is built per request from the bearer token, loaded once,
and passed to whatever needs the current user. Components read ``user``;
only the context's own methods change it, and each change is published to
subscribers as an ``AuthEvent``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from carmarket.config import settings
from carmarket.models.profile import UserRole
from carmarket.services.identity_client import IdentityClient
from carmarket.utils.exceptions import IdentityProviderError, UnauthenticatedError

logger = logging.getLogger(__name__)


class AuthEvent(StrEnum):
    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    USER_UPDATED = "USER_UPDATED"


@dataclass(frozen=True)
class Principal:
    id: str
    email: str | None = None
    full_name: str | None = None
    role: str = UserRole.BUYER.value
    seller_phone: str | None = None

    @classmethod
    def from_user_payload(cls, user: dict[str, Any]) -> Principal:
        metadata = user.get("user_metadata") or {}
        return cls(
            id=str(user["id"]),
            email=user.get("email"),
            full_name=metadata.get("full_name") or None,
            role=metadata.get("role") or UserRole.BUYER.value,
            seller_phone=metadata.get("seller_phone") or None,
        )

    @property
    def display_name(self) -> str:
        return self.full_name or "Seller"


Listener = Callable[[AuthEvent, "Principal | None"], None]


class SessionContext:
    def __init__(self, identity: IdentityClient, access_token: str | None = None) -> None:
        self._identity = identity
        self._access_token = access_token
        self._user: Principal | None = None
        self._loaded = False
        self._listeners: list[Listener] = []

    # -- read side -------------------------------------------------------------

    @property
    def user(self) -> Principal | None:
        return self._user

    @property
    def access_token(self) -> str | None:
        return self._access_token

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None

    @property
    def loaded(self) -> bool:
        return self._loaded

    def require_user(self) -> Principal:
        if self._user is None:
            raise UnauthenticatedError("You must be logged in to do that")
        return self._user

    # -- change notification ---------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_user(
        self, user: Principal | None, access_token: str | None, event: AuthEvent
    ) -> None:
        self._user = user
        self._access_token = access_token
        for listener in list(self._listeners):
            listener(event, user)

    # -- lifecycle -------------------------------------------------------------

    async def load(self) -> Principal | None:
        """Resolve the access token into a principal.

        Missing, expired or revoked tokens leave the session anonymous. An
        unreachable provider is an error, not an anonymous session.
        """
        user: Principal | None = None
        token = self._access_token
        if token:
            try:
                payload = await self._identity.get_user(token)
                user = Principal.from_user_payload(payload)
            except IdentityProviderError as e:
                if e.retryable:
                    raise
                logger.info("Discarding rejected session token: %s", e)
                token = None
        self._loaded = True
        self._set_user(user, token, AuthEvent.INITIAL_SESSION)
        return user

    async def sign_in_with_password(self, email: str, password: str) -> dict[str, Any]:
        session = await self._identity.sign_in_with_password(email, password)
        self._apply_session(session)
        return session

    async def sign_up(self, email: str, password: str, role: UserRole) -> dict[str, Any]:
        """Create an account. The provider emails a confirmation link, so no
        session is established here."""
        return await self._identity.sign_up(email, password, {"role": role.value})

    def sign_in_with_oauth(self, provider: str) -> str:
        return self._identity.get_oauth_url(provider, settings.oauth_redirect_url)

    async def exchange_code(self, auth_code: str, code_verifier: str) -> dict[str, Any]:
        session = await self._identity.exchange_code_for_session(auth_code, code_verifier)
        self._apply_session(session)
        return session

    async def sign_out(self) -> None:
        token = self._access_token
        try:
            if token:
                await self._identity.sign_out(token)
        finally:
            # The local principal is cleared even when revocation fails.
            self._set_user(None, None, AuthEvent.SIGNED_OUT)

    async def update_metadata(self, **changes: Any) -> Principal:
        """Merge *changes* into the user's metadata and return the new principal."""
        self.require_user()
        payload = await self._identity.update_user(self._access_token, data=changes)
        user = Principal.from_user_payload(payload)
        self._set_user(user, self._access_token, AuthEvent.USER_UPDATED)
        return user

    async def update_password(self, password: str) -> None:
        self.require_user()
        await self._identity.update_user(self._access_token, password=password)

    async def request_password_reset(self, email: str) -> None:
        await self._identity.reset_password_for_email(
            email, settings.password_reset_redirect_url
        )

    def _apply_session(self, session: dict[str, Any]) -> None:
        user_payload = session.get("user")
        if not user_payload:
            raise IdentityProviderError("Identity provider returned no user", 502)
        user = Principal.from_user_payload(user_payload)
        self._loaded = True
        self._set_user(user, session.get("access_token"), AuthEvent.SIGNED_IN)
        logger.info("User %s signed in", user.id)
