"""Client for the platform's identity provider (auth REST API)."""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any
from urllib.parse import urlencode

import httpx

from carmarket.config import settings
from carmarket.utils.exceptions import IdentityProviderError

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        for key in ("msg", "error_description", "message", "error"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {response.status_code}"


class IdentityClient:
    """Thin wrapper over the auth endpoints the marketplace uses.

    Every method returns the provider's JSON payload unchanged; interpreting
    it is the session context's job.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = (base_url or settings.platform_url).rstrip("/")
        self._api_key = api_key or settings.platform_anon_key
        self._shared_http = http_client
        self._owns_http = False

    async def __aenter__(self) -> IdentityClient:
        if self._shared_http is None:
            self._shared_http = httpx.AsyncClient(timeout=settings.platform_timeout_seconds)
            self._owns_http = True
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._owns_http and self._shared_http is not None:
            await self._shared_http.aclose()
            self._shared_http = None
            self._owns_http = False

    # -- sign in / sign up -----------------------------------------------------

    async def sign_in_with_password(self, email: str, password: str) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )

    async def sign_up(
        self, email: str, password: str, metadata: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/auth/v1/signup",
            json={"email": email, "password": password, "data": metadata or {}},
        )

    def get_oauth_url(self, provider: str, redirect_to: str | None = None) -> str:
        """URL the browser is sent to for federated sign-in. No request is made."""
        query = {"provider": provider}
        if redirect_to:
            query["redirect_to"] = redirect_to
        return f"{self._base_url}/auth/v1/authorize?{urlencode(query)}"

    async def exchange_code_for_session(
        self, auth_code: str, code_verifier: str
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "pkce"},
            json={"auth_code": auth_code, "code_verifier": code_verifier},
        )

    # -- current user ----------------------------------------------------------

    async def get_user(self, access_token: str) -> dict[str, Any]:
        return await self._request("GET", "/auth/v1/user", access_token=access_token)

    async def update_user(
        self,
        access_token: str,
        *,
        data: dict[str, Any] | None = None,
        password: str | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {}
        if data is not None:
            body["data"] = data
        if password is not None:
            body["password"] = password
        return await self._request(
            "PUT", "/auth/v1/user", json=body, access_token=access_token
        )

    async def sign_out(self, access_token: str) -> None:
        await self._request("POST", "/auth/v1/logout", access_token=access_token)

    async def reset_password_for_email(self, email: str, redirect_to: str | None = None) -> None:
        params = {"redirect_to": redirect_to} if redirect_to else None
        await self._request(
            "POST", "/auth/v1/recover", params=params, json={"email": email}
        )

    # -- internals -------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        access_token: str | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {access_token or self._api_key}",
        }
        url = f"{self._base_url}{path}"
        try:
            if self._shared_http is not None:
                response = await self._shared_http.request(method, url, headers=headers, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=settings.platform_timeout_seconds) as http:
                    response = await http.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Identity provider unreachable (%s %s): %s", method, path, e)
            raise IdentityProviderError(f"Identity provider unreachable: {e}") from e

        if response.is_error:
            raise IdentityProviderError(_error_message(response), response.status_code)
        if not response.content:
            return {}
        return response.json()
