from __future__ import annotations

import logging
from typing import TYPE_CHECKING, NamedTuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from carmarket.models.favorite import Favorite
from carmarket.models.listing import Listing
from carmarket.services.image_service import load_thumbnails
from carmarket.utils.exceptions import ListingNotFoundError, StoreError, UnauthenticatedError

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from carmarket.services.storage_client import StorageClient

logger = logging.getLogger(__name__)


class FavoriteListings(NamedTuple):
    listings: list[Listing]
    favorite_ids: set[str]
    thumbnails: dict[str, str]
    thumbnails_failed: bool = False


def list_favorite_ids(db: Session, viewer_id: str) -> set[str]:
    """Every listing id the viewer has favorited, regardless of any filter."""
    try:
        rows = db.scalars(select(Favorite.car_id).where(Favorite.user_id == viewer_id))
        return set(rows)
    except SQLAlchemyError as e:
        raise StoreError(f"Failed to load favorites: {e}") from e


def is_favorite(db: Session, viewer_id: str, car_id: str) -> bool:
    try:
        return db.get(Favorite, (viewer_id, car_id)) is not None
    except SQLAlchemyError as e:
        raise StoreError(f"Failed to load favorite: {e}") from e


def toggle_favorite(db: Session, viewer_id: str | None, car_id: str) -> bool:
    """Flip the (viewer, listing) favorite and return the stored state afterwards.

    The returned flag is read back from the store after the commit rather
    than inferred from the branch taken.
    """
    if not viewer_id:
        raise UnauthenticatedError("Please login to favorite cars")

    try:
        existing = db.get(Favorite, (viewer_id, car_id))
        if existing is not None:
            db.delete(existing)
        elif db.get(Listing, car_id) is None:
            raise ListingNotFoundError(f"Car {car_id} not found")
        else:
            db.add(Favorite(user_id=viewer_id, car_id=car_id))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Favorite toggle failed for user=%s car=%s", viewer_id, car_id)
        raise StoreError(f"Failed to update favorite: {e}") from e

    db.expire_all()
    now_favorite = is_favorite(db, viewer_id, car_id)
    logger.info(
        "User %s %s car %s",
        viewer_id,
        "favorited" if now_favorite else "unfavorited",
        car_id,
    )
    return now_favorite


def list_favorite_listings(
    db: Session, storage: StorageClient, viewer_id: str
) -> FavoriteListings:
    """Listings the viewer has favorited, with the favorite set and thumbnails.

    Favorites pointing at deleted listings are simply not matched.
    """
    favorite_ids = list_favorite_ids(db, viewer_id)
    if not favorite_ids:
        return FavoriteListings([], favorite_ids, {})

    try:
        listings = list(
            db.scalars(
                select(Listing)
                .where(Listing.id.in_(favorite_ids))
                .order_by(Listing.created_at.desc(), Listing.id)
            )
        )
    except SQLAlchemyError as e:
        raise StoreError(f"Failed to load favorite cars: {e}") from e

    try:
        thumbnails = load_thumbnails(db, storage, [car.id for car in listings])
    except StoreError:
        logger.warning("Thumbnails unavailable for favorites of %s", viewer_id, exc_info=True)
        return FavoriteListings(listings, favorite_ids, {}, thumbnails_failed=True)
    return FavoriteListings(listings, favorite_ids, thumbnails)
