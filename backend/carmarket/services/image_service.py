"""Staging and uploading listing photos, and reading them back."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from carmarket.config import settings
from carmarket.models.listing_image import ListingImage
from carmarket.utils.exceptions import ImageLimitError, StorageError, StoreError
from carmarket.utils.file_handling import file_extension, validate_image

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from carmarket.services.storage_client import StorageClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StagedImage:
    """A local image selected in the form but not stored yet."""

    filename: str
    content: bytes
    content_type: str | None = None


@dataclass(frozen=True)
class ImageFailure:
    index: int
    filename: str
    reason: str


@dataclass
class ImageUploadResult:
    uploaded: list[str] = field(default_factory=list)
    failed: ImageFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failed is None


def stage_images(
    staged: list[StagedImage],
    new: list[StagedImage],
    max_images: int | None = None,
) -> list[StagedImage]:
    """Add *new* to the staged selection, enforcing the per-listing cap."""
    limit = max_images or settings.max_images_per_listing
    if len(staged) + len(new) > limit:
        raise ImageLimitError(f"You can only upload up to {limit} images")
    for image in new:
        validate_image(image.filename, len(image.content))
    return [*staged, *new]


def build_image_path(car_id: str, timestamp_ms: int, sequence: int, filename: str) -> str:
    """``{car_id}/{timestamp}-{sequence}.{ext}``; unique within a listing even
    for files that share a name."""
    return f"{car_id}/{timestamp_ms}-{sequence}.{file_extension(filename)}"


async def upload_images(
    db: Session,
    storage: StorageClient,
    car_id: str,
    images: list[StagedImage],
    clock: Callable[[], float] = time.time,
) -> ImageUploadResult:
    """Store each image and record it, one (upload, insert) pair at a time.

    Stops at the first failure and reports which image failed. Images stored
    before it stay stored.
    """
    result = ImageUploadResult()
    for index, image in enumerate(images):
        path = build_image_path(car_id, int(clock() * 1000), index, image.filename)
        try:
            await storage.upload(path, image.content, image.content_type)
        except StorageError as e:
            logger.warning("Upload of %s for car %s failed: %s", image.filename, car_id, e)
            result.failed = ImageFailure(index, image.filename, str(e))
            return result

        try:
            db.add(ListingImage(car_id=car_id, path=path))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("Recording image %s for car %s failed", path, car_id)
            result.failed = ImageFailure(index, image.filename, f"Failed to record image: {e}")
            await _remove_orphan(storage, path)
            return result

        result.uploaded.append(path)

    logger.info("Uploaded %d image(s) for car %s", len(result.uploaded), car_id)
    return result


async def _remove_orphan(storage: StorageClient, path: str) -> None:
    try:
        await storage.remove([path])
    except StorageError:
        logger.warning("Could not remove unrecorded object %s", path, exc_info=True)


def list_image_paths(db: Session, car_id: str) -> list[str]:
    try:
        return list(
            db.scalars(
                select(ListingImage.path)
                .where(ListingImage.car_id == car_id)
                .order_by(ListingImage.created_at.asc(), ListingImage.id.asc())
            )
        )
    except SQLAlchemyError as e:
        raise StoreError(f"Failed to load images: {e}") from e


def list_image_urls(db: Session, storage: StorageClient, car_id: str) -> list[str]:
    """Carousel order: oldest first, so the first URL is the thumbnail."""
    return [storage.get_public_url(path) for path in list_image_paths(db, car_id)]


def load_thumbnails(
    db: Session, storage: StorageClient, car_ids: list[str]
) -> dict[str, str]:
    """Public URL of the earliest image of each listing; imageless ids are absent."""
    ids = list(dict.fromkeys(car_ids))
    if not ids:
        return {}
    try:
        rows = db.execute(
            select(ListingImage.car_id, ListingImage.path)
            .where(ListingImage.car_id.in_(ids))
            .order_by(ListingImage.created_at.asc(), ListingImage.id.asc())
        ).all()
    except SQLAlchemyError as e:
        raise StoreError(f"Failed to load thumbnails: {e}") from e

    first_by_car: dict[str, str] = {}
    for car_id, path in rows:
        if car_id not in first_by_car:
            first_by_car[car_id] = storage.get_public_url(path)
    return first_by_car


def ensure_capacity(db: Session, car_id: str, adding: int) -> None:
    """Reject *adding* more images if the listing would exceed the cap."""
    limit = settings.max_images_per_listing
    existing = len(list_image_paths(db, car_id))
    if existing + adding > limit:
        raise ImageLimitError(
            f"This car already has {existing} image(s); you can only upload up to {limit}"
        )
