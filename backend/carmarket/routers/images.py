from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from carmarket.database import get_db
from carmarket.dependencies import get_cache, get_current_user, get_storage
from carmarket.routers.listings import stage_uploads, upload_response
from carmarket.schemas.listing import ImageUploadResponse
from carmarket.services import image_service, listing_service, query_cache
from carmarket.services.query_cache import QueryCache
from carmarket.services.session_service import Principal
from carmarket.services.storage_client import StorageClient

router = APIRouter(prefix="/listings")


@router.post("/{car_id}/images", response_model=ImageUploadResponse)
async def upload_listing_images(
    car_id: str,
    images: list[UploadFile] = File(...),
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
    cache: QueryCache = Depends(get_cache),
    user: Principal = Depends(get_current_user),
) -> ImageUploadResponse:
    """Add photos to an existing listing. Already-stored photos are kept
    even when a later one fails; the response names the failed file."""
    listing_service.get_owned_listing(db, user, car_id)
    staged = await stage_uploads(images)
    image_service.ensure_capacity(db, car_id, len(staged))
    result = await image_service.upload_images(db, storage, car_id, staged)
    cache.invalidate(*listing_service.LISTING_READS)
    return upload_response(car_id, result)


@router.get("/{car_id}/images", response_model=list[str])
async def list_listing_images(
    car_id: str,
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
    cache: QueryCache = Depends(get_cache),
) -> list[str]:
    async def load() -> list[str]:
        listing_service.get_listing(db, car_id)
        return image_service.list_image_urls(db, storage, car_id)

    return await cache.get_or_load(query_cache.LISTING_IMAGES, {"car": car_id}, load)
