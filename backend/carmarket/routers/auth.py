from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from carmarket.dependencies import get_session_context
from carmarket.schemas.auth import (
    OAuthCallbackRequest,
    OAuthRedirectResponse,
    PasswordResetRequest,
    PasswordUpdateRequest,
    PrincipalResponse,
    SessionResponse,
    SignInRequest,
    SignUpRequest,
)
from carmarket.services.session_service import SessionContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth")

OAUTH_PROVIDERS = {"google"}


def _session_response(session: SessionContext, payload: dict[str, Any] | None = None) -> SessionResponse:
    user = PrincipalResponse.model_validate(session.user) if session.user else None
    return SessionResponse(
        access_token=session.access_token,
        refresh_token=(payload or {}).get("refresh_token"),
        user=user,
    )


@router.post("/login", response_model=SessionResponse)
async def login(
    body: SignInRequest,
    session: SessionContext = Depends(get_session_context),
) -> SessionResponse:
    payload = await session.sign_in_with_password(body.email, body.password)
    return _session_response(session, payload)


@router.post("/register")
async def register(
    body: SignUpRequest,
    session: SessionContext = Depends(get_session_context),
) -> dict:
    await session.sign_up(body.email, body.password, body.role)
    return {"message": "Check email for confirmation!"}


@router.get("/oauth/{provider}", response_model=OAuthRedirectResponse)
def oauth_redirect(
    provider: str,
    session: SessionContext = Depends(get_session_context),
) -> OAuthRedirectResponse:
    if provider not in OAUTH_PROVIDERS:
        raise HTTPException(status_code=404, detail=f"Unknown provider '{provider}'")
    return OAuthRedirectResponse(url=session.sign_in_with_oauth(provider))


@router.post("/callback", response_model=SessionResponse)
async def oauth_callback(
    body: OAuthCallbackRequest,
    session: SessionContext = Depends(get_session_context),
) -> SessionResponse:
    payload = await session.exchange_code(body.auth_code, body.code_verifier)
    return _session_response(session, payload)


@router.get("/session", response_model=SessionResponse)
def current_session(
    session: SessionContext = Depends(get_session_context),
) -> SessionResponse:
    return _session_response(session)


@router.post("/logout")
async def logout(session: SessionContext = Depends(get_session_context)) -> dict:
    await session.sign_out()
    return {"message": "Signed out"}


@router.post("/reset-password")
async def reset_password(
    body: PasswordResetRequest,
    session: SessionContext = Depends(get_session_context),
) -> dict:
    await session.request_password_reset(body.email)
    return {"message": "Password reset link sent! Check your email."}


@router.post("/update-password")
async def update_password(
    body: PasswordUpdateRequest,
    session: SessionContext = Depends(get_session_context),
) -> dict:
    await session.update_password(body.password)
    return {"message": "Password updated successfully! Please log in."}
