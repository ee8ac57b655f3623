from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from carmarket.database import get_db
from carmarket.dependencies import get_cache, get_session_context
from carmarket.schemas.auth import (
    ApplyPhoneRequest,
    CountryResponse,
    ProfileResponse,
    ProfileUpdateRequest,
)
from carmarket.services import listing_service, profile_service
from carmarket.services.query_cache import QueryCache
from carmarket.services.session_service import Principal, SessionContext
from carmarket.utils.phone import COUNTRIES, assemble_phone

router = APIRouter(prefix="/profile")


def _profile_response(principal: Principal) -> ProfileResponse:
    dial_code, subscriber = profile_service.phone_parts(principal)
    return ProfileResponse(
        id=principal.id,
        email=principal.email,
        full_name=principal.full_name,
        role=principal.role,
        seller_phone=principal.seller_phone,
        dial_code=dial_code,
        subscriber=subscriber,
    )


@router.get("", response_model=ProfileResponse)
def get_profile(session: SessionContext = Depends(get_session_context)) -> ProfileResponse:
    return _profile_response(session.require_user())


@router.put("", response_model=ProfileResponse)
async def update_profile(
    body: ProfileUpdateRequest,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
) -> ProfileResponse:
    principal = await profile_service.update_profile(
        db, session, body.full_name, body.role, body.dial_code, body.subscriber
    )
    return _profile_response(principal)


@router.post("/apply-phone")
async def apply_phone_to_listings(
    body: ApplyPhoneRequest,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_cache),
    session: SessionContext = Depends(get_session_context),
) -> dict:
    """Copy the phone onto every listing of the signed-in seller."""
    principal = session.require_user()
    phone = assemble_phone(body.dial_code, body.subscriber)
    updated = listing_service.apply_phone_to_listings(db, principal, phone)
    cache.invalidate(*listing_service.LISTING_READS)
    return {"message": "Updated phone on all your listings.", "updated": updated}


@router.get("/countries", response_model=list[CountryResponse])
def list_countries() -> list[CountryResponse]:
    return [CountryResponse(**country) for country in COUNTRIES]
