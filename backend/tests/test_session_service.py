"""Tests for the session context and its change notifications."""

from __future__ import annotations

import pytest

from carmarket.models.profile import UserRole
from carmarket.services.session_service import AuthEvent, Principal, SessionContext
from carmarket.utils.exceptions import IdentityProviderError, UnauthenticatedError


@pytest.fixture
def events():
    return []


def _listen(session: SessionContext, events: list):
    return session.subscribe(lambda event, user: events.append((event, user.id if user else None)))


def test_principal_from_payload_defaults():
    principal = Principal.from_user_payload({"id": "u1", "email": "a@b.c", "user_metadata": {}})
    assert principal.role == "buyer"
    assert principal.full_name is None
    assert principal.display_name == "Seller"


@pytest.mark.asyncio
async def test_load_with_valid_token(identity, events):
    identity.add_user("tok", "u1", full_name="Arta", role="seller", seller_phone="+38345123456")
    session = SessionContext(identity, "tok")
    _listen(session, events)

    user = await session.load()

    assert user.id == "u1"
    assert user.role == "seller"
    assert session.is_authenticated and session.loaded
    assert events == [(AuthEvent.INITIAL_SESSION, "u1")]


@pytest.mark.asyncio
async def test_load_with_rejected_token_is_anonymous(identity):
    session = SessionContext(identity, "expired")
    assert await session.load() is None
    assert session.access_token is None
    with pytest.raises(UnauthenticatedError):
        session.require_user()


@pytest.mark.asyncio
async def test_load_when_provider_is_down_raises(identity):
    identity.unreachable = True
    with pytest.raises(IdentityProviderError):
        await SessionContext(identity, "tok").load()


@pytest.mark.asyncio
async def test_anonymous_load_makes_no_call(identity):
    identity.unreachable = True
    session = SessionContext(identity)
    assert await session.load() is None


@pytest.mark.asyncio
async def test_sign_in_and_out_publish_events(identity, events):
    identity.add_user("tok", "u1", email="u1@example.com", password="pw123456")
    session = SessionContext(identity)
    _listen(session, events)

    await session.sign_in_with_password("u1@example.com", "pw123456")
    assert session.user.id == "u1"
    assert session.access_token == "tok"

    await session.sign_out()
    assert session.user is None
    assert identity.signed_out == ["tok"]
    assert events == [(AuthEvent.SIGNED_IN, "u1"), (AuthEvent.SIGNED_OUT, None)]


@pytest.mark.asyncio
async def test_bad_credentials(identity):
    identity.add_user("tok", "u1", email="u1@example.com", password="right")
    session = SessionContext(identity)
    with pytest.raises(IdentityProviderError) as exc_info:
        await session.sign_in_with_password("u1@example.com", "wrong")
    assert exc_info.value.status_code == 400
    assert session.user is None


@pytest.mark.asyncio
async def test_sign_out_clears_even_if_revocation_fails(identity):
    identity.add_user("tok", "u1")
    session = SessionContext(identity, "tok")
    await session.load()
    identity.unreachable = True

    with pytest.raises(IdentityProviderError):
        await session.sign_out()
    assert session.user is None


@pytest.mark.asyncio
async def test_update_metadata_replaces_principal(identity, events):
    identity.add_user("tok", "u1", full_name="Old", role="buyer")
    session = SessionContext(identity, "tok")
    await session.load()
    _listen(session, events)

    user = await session.update_metadata(full_name="New", role="seller")

    assert user.full_name == "New"
    assert session.user.role == "seller"
    assert events == [(AuthEvent.USER_UPDATED, "u1")]


@pytest.mark.asyncio
async def test_update_requires_user(identity):
    session = SessionContext(identity)
    await session.load()
    with pytest.raises(UnauthenticatedError):
        await session.update_metadata(full_name="x")
    with pytest.raises(UnauthenticatedError):
        await session.update_password("newpassword")


@pytest.mark.asyncio
async def test_unsubscribe_stops_notifications(identity, events):
    identity.add_user("tok", "u1")
    session = SessionContext(identity, "tok")
    unsubscribe = _listen(session, events)
    unsubscribe()
    unsubscribe()

    await session.load()
    assert events == []


@pytest.mark.asyncio
async def test_sign_up_and_reset_do_not_sign_in(identity):
    session = SessionContext(identity)
    await session.sign_up("new@example.com", "secret123", UserRole.SELLER)
    await session.request_password_reset("new@example.com")
    assert session.user is None
    assert identity.reset_requests == ["new@example.com"]


def test_oauth_url(identity):
    assert "provider=google" in SessionContext(identity).sign_in_with_oauth("google")
