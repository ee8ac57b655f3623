from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from carmarket.models.profile import Profile, UserRole
from carmarket.utils.exceptions import StoreError
from carmarket.utils.phone import assemble_phone, parse_e164_to_parts

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from carmarket.services.session_service import Principal, SessionContext

logger = logging.getLogger(__name__)


def phone_parts(principal: Principal) -> tuple[str | None, str | None]:
    """(dial code, subscriber) to pre-fill the profile form."""
    if not principal.seller_phone:
        return None, None
    parts = parse_e164_to_parts(principal.seller_phone)
    if parts is None:
        return None, None
    return parts


def sync_public_profile(db: Session, principal: Principal) -> None:
    """Keep the public display name in step with the session metadata."""
    try:
        profile = db.get(Profile, principal.id)
        if profile is None:
            db.add(Profile(id=principal.id, full_name=principal.full_name))
        else:
            profile.full_name = principal.full_name
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreError(f"Failed to update public profile: {e}") from e


async def update_profile(
    db: Session,
    session: SessionContext,
    full_name: str,
    role: UserRole,
    dial_code: str,
    subscriber: str,
) -> Principal:
    """Validate the phone, then write name, role and phone to the user's metadata.

    An invalid phone stops the update before the identity provider is called.
    """
    session.require_user()
    phone = assemble_phone(dial_code, subscriber)
    principal = await session.update_metadata(
        full_name=full_name.strip(),
        role=role.value,
        seller_phone=phone,
    )
    sync_public_profile(db, principal)
    logger.info("Profile of %s updated", principal.id)
    return principal
