"""Creating, editing and deleting listings."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError

from carmarket.models.listing import FuelType, Gearbox, Listing
from carmarket.services import image_service, query_cache
from carmarket.utils.exceptions import (
    ListingNotFoundError,
    ListingValidationError,
    NotListingOwnerError,
    StorageError,
    StoreError,
    UnauthenticatedError,
)
from carmarket.utils.phone import is_valid_e164

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from carmarket.schemas.listing import ListingForm
    from carmarket.services.image_service import ImageUploadResult, StagedImage
    from carmarket.services.query_cache import QueryCache
    from carmarket.services.session_service import Principal
    from carmarket.services.storage_client import StorageClient

logger = logging.getLogger(__name__)

MIN_YEAR = 1886

# Reads whose results change when a listing is written
LISTING_READS = (
    query_cache.LISTINGS,
    query_cache.LISTING_DETAIL,
    query_cache.SELLER_LISTINGS,
    query_cache.FAVORITE_CARS,
    query_cache.LISTING_IMAGES,
)


# ---------------------------------------------------------------------------
# Form parsing
# ---------------------------------------------------------------------------


def _is_blank(raw: Any) -> bool:
    return raw is None or (isinstance(raw, str) and not raw.strip())


def _parse_number(
    raw: Any,
    field: str,
    *,
    integer: bool = False,
    minimum: float | None = None,
    maximum: float | None = None,
) -> float | int:
    if _is_blank(raw):
        raise ListingValidationError(f"{field} is required", field=field)
    text = str(raw).strip()
    try:
        value = int(text) if integer else float(text.replace(",", "."))
    except ValueError as e:
        raise ListingValidationError(f"{field} must be a number", field=field) from e
    if not math.isfinite(value):
        raise ListingValidationError(f"{field} must be a number", field=field)
    if minimum is not None and value < minimum:
        raise ListingValidationError(f"{field} must be at least {minimum:g}", field=field)
    if maximum is not None and value > maximum:
        raise ListingValidationError(f"{field} must be at most {maximum:g}", field=field)
    return value


def _parse_location(raw_lat: Any, raw_lng: Any) -> tuple[float | None, float | None]:
    """Both blank gives (None, None); exactly one filled in is rejected."""
    lat_blank, lng_blank = _is_blank(raw_lat), _is_blank(raw_lng)
    if lat_blank and lng_blank:
        return None, None
    if lat_blank or lng_blank:
        raise ListingValidationError(
            "Provide both latitude and longitude, or neither", field="location"
        )
    lat = _parse_number(raw_lat, "location_lat", minimum=-90, maximum=90)
    lng = _parse_number(raw_lng, "location_lng", minimum=-180, maximum=180)
    return float(lat), float(lng)


def parse_listing_form(form: ListingForm) -> dict[str, Any]:
    """Validate the form and return column values ready to store."""
    brand = form.brand.strip()
    model = form.model.strip()
    if not brand:
        raise ListingValidationError("brand is required", field="brand")
    if not model:
        raise ListingValidationError("model is required", field="model")

    max_year = datetime.now(timezone.utc).year + 1
    year = _parse_number(form.year, "year", integer=True, minimum=MIN_YEAR, maximum=max_year)
    price = _parse_number(form.price, "price", minimum=0)
    mileage = _parse_number(form.mileage, "mileage", minimum=0)

    if form.gearbox not in {g.value for g in Gearbox}:
        raise ListingValidationError(f"Unknown gearbox '{form.gearbox}'", field="gearbox")
    if form.fuel_type not in {f.value for f in FuelType}:
        raise ListingValidationError(f"Unknown fuel type '{form.fuel_type}'", field="fuel_type")

    lat, lng = _parse_location(form.location_lat, form.location_lng)
    description = (form.description or "").strip() or None

    return {
        "brand": brand,
        "model": model,
        "year": int(year),
        "price": float(price),
        "mileage": float(mileage),
        "gearbox": form.gearbox,
        "fuel_type": form.fuel_type,
        "description": description,
        "location_lat": lat,
        "location_lng": lng,
    }


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def get_listing(db: Session, car_id: str) -> Listing:
    try:
        listing = db.get(Listing, car_id)
    except SQLAlchemyError as e:
        raise StoreError(f"Failed to load car: {e}") from e
    if listing is None:
        raise ListingNotFoundError(f"Car {car_id} not found")
    return listing


def get_owned_listing(db: Session, principal: Principal | None, car_id: str) -> Listing:
    if principal is None:
        raise UnauthenticatedError("You must be logged in to change a car")
    listing = get_listing(db, car_id)
    if listing.seller_id != principal.id:
        raise NotListingOwnerError("Only the seller can change this listing")
    return listing


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


def create_listing(db: Session, principal: Principal | None, values: dict[str, Any]) -> Listing:
    """Insert a listing owned by *principal* with a snapshot of their name and phone."""
    if principal is None:
        raise UnauthenticatedError("You must be logged in to save a car")
    listing = Listing(
        **values,
        seller_id=principal.id,
        seller_username=principal.full_name,
        seller_phone=principal.seller_phone,
    )
    try:
        db.add(listing)
        db.commit()
        db.refresh(listing)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Creating a car for seller %s failed", principal.id)
        raise StoreError(f"Failed to save car: {e}") from e
    logger.info("Seller %s created car %s (%s)", principal.id, listing.id, listing.title)
    return listing


def update_listing(
    db: Session, principal: Principal | None, car_id: str, values: dict[str, Any]
) -> Listing:
    """Overwrite the editable columns; the seller snapshot is left alone."""
    listing = get_owned_listing(db, principal, car_id)
    for key, value in values.items():
        setattr(listing, key, value)
    try:
        db.commit()
        db.refresh(listing)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Updating car %s failed", car_id)
        raise StoreError(f"Failed to save car: {e}") from e
    logger.info("Car %s updated", car_id)
    return listing


async def delete_listing(
    db: Session,
    storage: StorageClient,
    principal: Principal | None,
    car_id: str,
) -> None:
    """Delete the row; the store cascades its images and favorites.

    Stored photo objects are removed afterwards. Failing to remove them
    does not bring the listing back, so it is only logged.
    """
    listing = get_owned_listing(db, principal, car_id)
    paths = image_service.list_image_paths(db, car_id)
    try:
        db.delete(listing)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Deleting car %s failed", car_id)
        raise StoreError(f"Failed to delete car: {e}") from e
    logger.info("Car %s deleted", car_id)

    try:
        await storage.remove(paths)
    except StorageError:
        logger.warning("Photos of deleted car %s were not removed", car_id, exc_info=True)


def apply_phone_to_listings(db: Session, principal: Principal | None, phone: str) -> int:
    """Re-apply *phone* to every listing of the seller; returns how many changed."""
    if principal is None:
        raise UnauthenticatedError("You must be logged in to update your listings")
    if not is_valid_e164(phone):
        raise ListingValidationError("Phone must be in E.164 format", field="phone")
    try:
        result = db.execute(
            update(Listing)
            .where(Listing.seller_id == principal.id)
            .values(seller_phone=phone, updated_at=func.now())
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreError(f"Failed to update listings: {e}") from e
    logger.info("Applied phone to %d listing(s) of seller %s", result.rowcount, principal.id)
    return result.rowcount


# ---------------------------------------------------------------------------
# Save flow
# ---------------------------------------------------------------------------


@dataclass
class SaveResult:
    listing: Listing
    created: bool
    images: ImageUploadResult | None = None

    @property
    def image_error(self) -> str | None:
        if self.images is None or self.images.failed is None:
            return None
        failure = self.images.failed
        return f"Image {failure.index + 1} ({failure.filename}) failed: {failure.reason}"


async def save_listing(
    db: Session,
    storage: StorageClient,
    cache: QueryCache,
    principal: Principal | None,
    form: ListingForm,
    images: list[StagedImage] | None = None,
    car_id: str | None = None,
) -> SaveResult:
    """Write the row, then upload staged images, then invalidate cached reads.

    Nothing reaches the store if the form is invalid or nobody is signed in.
    An image failure is reported on the result; the saved row is kept.
    """
    if principal is None:
        raise UnauthenticatedError("You must be logged in to save a car")
    values = parse_listing_form(form)
    if images and car_id is not None:
        image_service.ensure_capacity(db, car_id, len(images))

    if car_id is None:
        listing = create_listing(db, principal, values)
    else:
        listing = update_listing(db, principal, car_id, values)
    result = SaveResult(listing=listing, created=car_id is None)

    if images:
        result.images = await image_service.upload_images(db, storage, listing.id, images)

    cache.invalidate(*LISTING_READS)
    return result
