"""Tests for the storage and identity HTTP clients, using mocked transports.

They never hit the real platform.
"""

from __future__ import annotations

import json

import httpx
import pytest

from carmarket.services.identity_client import IdentityClient
from carmarket.services.storage_client import StorageClient
from carmarket.utils.exceptions import IdentityProviderError, StorageError

BASE_URL = "https://project.platform.test"


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# StorageClient
# ---------------------------------------------------------------------------


def test_public_url():
    storage = StorageClient(base_url=BASE_URL, api_key="k", bucket="car-images")
    assert storage.get_public_url("car-1/1-0.jpg") == (
        f"{BASE_URL}/storage/v1/object/public/car-images/car-1/1-0.jpg"
    )


@pytest.mark.asyncio
async def test_upload_posts_content_to_path():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["content"] = request.content
        seen["headers"] = request.headers
        return httpx.Response(200, json={"Key": "car-images/car-1/1-0.jpg"})

    async with StorageClient(BASE_URL, "service-key", "car-images", http_client=_client(handler)) as storage:
        path = await storage.upload("car-1/1-0.jpg", b"jpeg-bytes", "image/jpeg")

    assert path == "car-1/1-0.jpg"
    assert seen["method"] == "POST"
    assert seen["url"] == f"{BASE_URL}/storage/v1/object/car-images/car-1/1-0.jpg"
    assert seen["content"] == b"jpeg-bytes"
    assert seen["headers"]["content-type"] == "image/jpeg"
    assert seen["headers"]["authorization"] == "Bearer service-key"
    assert seen["headers"]["x-upsert"] == "false"


@pytest.mark.asyncio
async def test_upload_error_raises_storage_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, json={"error": "Duplicate"})

    storage = StorageClient(BASE_URL, "k", http_client=_client(handler))
    with pytest.raises(StorageError, match="409"):
        await storage.upload("car-1/1-0.jpg", b"x")


@pytest.mark.asyncio
async def test_unreachable_storage():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    storage = StorageClient(BASE_URL, "k", http_client=_client(handler))
    with pytest.raises(StorageError, match="unreachable"):
        await storage.remove(["car-1/1-0.jpg"])


@pytest.mark.asyncio
async def test_remove_sends_prefixes():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=[])

    storage = StorageClient(BASE_URL, "k", "car-images", http_client=_client(handler))
    await storage.remove(["a.jpg", "b.jpg"])
    assert seen == {"method": "DELETE", "body": {"prefixes": ["a.jpg", "b.jpg"]}}


@pytest.mark.asyncio
async def test_remove_nothing_makes_no_request():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    await StorageClient(BASE_URL, "k", http_client=_client(handler)).remove([])


# ---------------------------------------------------------------------------
# IdentityClient
# ---------------------------------------------------------------------------


USER = {"id": "u1", "email": "u1@example.com", "user_metadata": {"role": "seller"}}


@pytest.mark.asyncio
async def test_password_sign_in():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        seen["body"] = json.loads(request.content)
        seen["apikey"] = request.headers["apikey"]
        return httpx.Response(200, json={"access_token": "tok", "user": USER})

    identity = IdentityClient(BASE_URL, "anon", http_client=_client(handler))
    session = await identity.sign_in_with_password("u1@example.com", "pw")

    assert session["access_token"] == "tok"
    assert seen["url"].path == "/auth/v1/token"
    assert seen["url"].params["grant_type"] == "password"
    assert seen["body"] == {"email": "u1@example.com", "password": "pw"}
    assert seen["apikey"] == "anon"


@pytest.mark.asyncio
async def test_get_user_sends_access_token():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["authorization"] == "Bearer user-token"
        return httpx.Response(200, json=USER)

    identity = IdentityClient(BASE_URL, "anon", http_client=_client(handler))
    assert await identity.get_user("user-token") == USER


@pytest.mark.asyncio
async def test_provider_error_keeps_status_and_message():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "invalid_grant", "error_description": "Invalid login credentials"})

    identity = IdentityClient(BASE_URL, "anon", http_client=_client(handler))
    with pytest.raises(IdentityProviderError) as exc_info:
        await identity.sign_in_with_password("u1@example.com", "bad")
    assert exc_info.value.status_code == 400
    assert str(exc_info.value) == "Invalid login credentials"
    assert exc_info.value.retryable is False


@pytest.mark.asyncio
async def test_unreachable_provider_is_retryable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    identity = IdentityClient(BASE_URL, "anon", http_client=_client(handler))
    with pytest.raises(IdentityProviderError) as exc_info:
        await identity.get_user("tok")
    assert exc_info.value.status_code == 503
    assert exc_info.value.retryable is True


@pytest.mark.asyncio
async def test_update_user_body():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=USER)

    identity = IdentityClient(BASE_URL, "anon", http_client=_client(handler))
    await identity.update_user("tok", data={"full_name": "Arta"})
    assert seen == {"method": "PUT", "body": {"data": {"full_name": "Arta"}}}


@pytest.mark.asyncio
async def test_logout_with_empty_response():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(204)

    identity = IdentityClient(BASE_URL, "anon", http_client=_client(handler))
    assert await identity.sign_out("tok") is None


@pytest.mark.asyncio
async def test_recover_passes_redirect():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        return httpx.Response(200, json={})

    identity = IdentityClient(BASE_URL, "anon", http_client=_client(handler))
    await identity.reset_password_for_email("u1@example.com", "https://app.test/update-password")
    assert seen["url"].path == "/auth/v1/recover"
    assert seen["url"].params["redirect_to"] == "https://app.test/update-password"


def test_oauth_url():
    identity = IdentityClient(BASE_URL, "anon")
    url = identity.get_oauth_url("google", "https://app.test/")
    assert url.startswith(f"{BASE_URL}/auth/v1/authorize?")
    assert "provider=google" in url
    assert "redirect_to=https%3A%2F%2Fapp.test%2F" in url
