from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from sqlalchemy.orm import Session

from carmarket.config import settings
from carmarket.database import get_db
from carmarket.dependencies import (
    get_cache,
    get_current_user,
    get_optional_user,
    get_storage,
)
from carmarket.models.listing import FuelType, Gearbox, Listing
from carmarket.schemas.favorite import FavoritesResponse
from carmarket.schemas.listing import (
    ContactLinks,
    ImageFailureResponse,
    ImageUploadResponse,
    ListingCard,
    ListingDetailResponse,
    ListingForm,
    ListingPageResponse,
    ListingResponse,
    ListingSaveResponse,
    MapLinks,
)
from carmarket.services import (
    contact_service,
    favorite_service,
    image_service,
    listing_query_service,
    listing_service,
    query_cache,
)
from carmarket.services.image_service import ImageUploadResult, StagedImage
from carmarket.services.query_cache import QueryCache
from carmarket.services.session_service import Principal
from carmarket.services.storage_client import StorageClient
from carmarket.utils.exceptions import ListingNotFoundError
from carmarket.utils.file_handling import read_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/listings")


def listing_form(
    brand: str = Form(""),
    model: str = Form(""),
    year: str = Form(""),
    price: str = Form(""),
    mileage: str = Form(""),
    gearbox: str = Form(Gearbox.MANUAL.value),
    fuel_type: str = Form(FuelType.GASOLINE.value),
    description: str | None = Form(None),
    location_lat: str = Form(""),
    location_lng: str = Form(""),
) -> ListingForm:
    return ListingForm(
        brand=brand,
        model=model,
        year=year,
        price=price,
        mileage=mileage,
        gearbox=gearbox,
        fuel_type=fuel_type,
        description=description,
        location_lat=location_lat,
        location_lng=location_lng,
    )


async def stage_uploads(files: list[UploadFile] | None) -> list[StagedImage]:
    """Read the selected files and apply the per-listing cap and type checks."""
    staged = [
        StagedImage(
            filename=file.filename or "image",
            content=await read_upload(file),
            content_type=file.content_type,
        )
        for file in files or []
    ]
    return image_service.stage_images([], staged)


def upload_response(car_id: str, result: ImageUploadResult) -> ImageUploadResponse:
    failed = None
    if result.failed is not None:
        failed = ImageFailureResponse(
            index=result.failed.index,
            filename=result.failed.filename,
            reason=result.failed.reason,
        )
    return ImageUploadResponse(car_id=car_id, uploaded=result.uploaded, failed=failed)


def _card(car: Listing, favorited: set[str], thumbnails: dict[str, str]) -> ListingCard:
    return ListingCard.model_validate(car).model_copy(
        update={"is_favorite": car.id in favorited, "thumbnail_url": thumbnails.get(car.id)}
    )


def is_complete(response: ListingPageResponse | FavoritesResponse) -> bool:
    """Pages missing their thumbnails are served but not cached."""
    return not response.thumbnails_unavailable


def _save_response(result: listing_service.SaveResult) -> ListingSaveResponse:
    images = upload_response(result.listing.id, result.images) if result.images else None
    message = "Car saved successfully!"
    if result.image_error:
        message = f"Car saved, but uploading images failed. {result.image_error}"
    return ListingSaveResponse(
        listing=ListingResponse.model_validate(result.listing),
        created=result.created,
        images=images,
        message=message,
    )


@router.get("", response_model=ListingPageResponse)
async def search_listings(
    brand: str | None = None,
    model: str | None = None,
    year: str | None = None,
    max_mileage: str | None = None,
    page: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
    cache: QueryCache = Depends(get_cache),
    viewer: Principal | None = Depends(get_optional_user),
) -> ListingPageResponse:
    filters = listing_query_service.filters_from_text(brand, model, year, max_mileage)
    viewer_id = viewer.id if viewer else None

    async def load() -> ListingPageResponse:
        result = listing_query_service.compose_listing_page(
            db, storage, filters, page, settings.page_size, viewer_id
        )
        return ListingPageResponse(
            items=[_card(car, result.favorited_ids, result.thumbnails) for car in result.items],
            total_count=result.total_count,
            page=result.page,
            page_size=result.page_size,
            page_count=result.page_count,
            favorited_ids=sorted(result.favorited_ids),
            thumbnails=result.thumbnails,
            thumbnails_unavailable=result.thumbnails_failed,
        )

    params = {**filters.as_params(), "page": page, "viewer": viewer_id}
    return await cache.get_or_load(query_cache.LISTINGS, params, load, is_complete)


@router.get("/mine", response_model=list[ListingCard])
async def my_listings(
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
    cache: QueryCache = Depends(get_cache),
    user: Principal = Depends(get_current_user),
) -> list[ListingCard]:
    """Seller dashboard."""

    async def load() -> list[ListingCard]:
        cars = listing_query_service.list_seller_listings(db, user.id)
        thumbnails = image_service.load_thumbnails(db, storage, [car.id for car in cars])
        return [_card(car, set(), thumbnails) for car in cars]

    return await cache.get_or_load(query_cache.SELLER_LISTINGS, {"seller": user.id}, load)


@router.get("/{car_id}", response_model=ListingDetailResponse)
async def get_listing_detail(
    car_id: str,
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
    cache: QueryCache = Depends(get_cache),
    viewer: Principal | None = Depends(get_optional_user),
) -> ListingDetailResponse:
    viewer_id = viewer.id if viewer else None

    async def load() -> ListingDetailResponse:
        car = listing_service.get_listing(db, car_id)
        map_links = None
        if car.has_location:
            map_links = MapLinks(
                embed_url=contact_service.build_map_embed_url(car.location_lat, car.location_lng),
                external_url=contact_service.build_map_link(car.location_lat, car.location_lng),
                coordinates=contact_service.format_coordinates(car.location_lat, car.location_lng),
            )
        names = listing_query_service.load_seller_names(db, [car.seller_id])
        base = ListingResponse.model_validate(car).model_dump()
        return ListingDetailResponse(
            **base,
            seller_label=names.get(car.seller_id) or car.seller_username or "Seller",
            image_urls=image_service.list_image_urls(db, storage, car.id),
            is_favorite=bool(viewer_id) and favorite_service.is_favorite(db, viewer_id, car.id),
            contact=ContactLinks(
                whatsapp_url=contact_service.build_whatsapp_link(
                    car.seller_phone, car.brand, car.model, car.id
                ),
                call_url=contact_service.build_call_link(car.seller_phone),
            ),
            map=map_links,
        )

    try:
        return await cache.get_or_load(
            query_cache.LISTING_DETAIL, {"car": car_id, "viewer": viewer_id}, load
        )
    except ListingNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.post("", response_model=ListingSaveResponse, status_code=201)
async def create_listing(
    form: ListingForm = Depends(listing_form),
    images: list[UploadFile] | None = File(None),
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
    cache: QueryCache = Depends(get_cache),
    user: Principal = Depends(get_current_user),
) -> ListingSaveResponse:
    staged = await stage_uploads(images)
    result = await listing_service.save_listing(db, storage, cache, user, form, staged)
    return _save_response(result)


@router.put("/{car_id}", response_model=ListingSaveResponse)
async def update_listing(
    car_id: str,
    form: ListingForm = Depends(listing_form),
    images: list[UploadFile] | None = File(None),
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
    cache: QueryCache = Depends(get_cache),
    user: Principal = Depends(get_current_user),
) -> ListingSaveResponse:
    staged = await stage_uploads(images)
    result = await listing_service.save_listing(
        db, storage, cache, user, form, staged, car_id=car_id
    )
    return _save_response(result)


@router.delete("/{car_id}")
async def delete_listing(
    car_id: str,
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
    cache: QueryCache = Depends(get_cache),
    user: Principal = Depends(get_current_user),
) -> dict:
    await listing_service.delete_listing(db, storage, user, car_id)
    cache.invalidate(*listing_service.LISTING_READS, query_cache.FAVORITE_IDS)
    return {"message": "Car deleted!"}
