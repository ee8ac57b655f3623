from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from carmarket.database import get_db
from carmarket.dependencies import get_cache, get_current_user, get_storage
from carmarket.routers.listings import is_complete
from carmarket.schemas.favorite import (
    FavoriteIdsResponse,
    FavoritesResponse,
    FavoriteToggleResponse,
)
from carmarket.schemas.listing import ListingCard
from carmarket.services import favorite_service, query_cache
from carmarket.services.query_cache import QueryCache
from carmarket.services.session_service import Principal
from carmarket.services.storage_client import StorageClient

router = APIRouter(prefix="/favorites")

# Everything that shows a favorite star or the favorites list
FAVORITE_READS = (
    query_cache.FAVORITE_IDS,
    query_cache.FAVORITE_CARS,
    query_cache.LISTINGS,
    query_cache.LISTING_DETAIL,
)


@router.get("", response_model=FavoritesResponse)
async def list_favorites(
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
    cache: QueryCache = Depends(get_cache),
    user: Principal = Depends(get_current_user),
) -> FavoritesResponse:
    async def load() -> FavoritesResponse:
        result = favorite_service.list_favorite_listings(db, storage, user.id)
        items = [
            ListingCard.model_validate(car).model_copy(
                update={
                    "is_favorite": car.id in result.favorite_ids,
                    "thumbnail_url": result.thumbnails.get(car.id),
                }
            )
            for car in result.listings
        ]
        return FavoritesResponse(
            items=items,
            total=len(items),
            thumbnails_unavailable=result.thumbnails_failed,
        )

    return await cache.get_or_load(
        query_cache.FAVORITE_CARS, {"user": user.id}, load, is_complete
    )


@router.get("/ids", response_model=FavoriteIdsResponse)
async def list_favorite_ids(
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_cache),
    user: Principal = Depends(get_current_user),
) -> FavoriteIdsResponse:
    async def load() -> FavoriteIdsResponse:
        ids = favorite_service.list_favorite_ids(db, user.id)
        return FavoriteIdsResponse(car_ids=sorted(ids))

    return await cache.get_or_load(query_cache.FAVORITE_IDS, {"user": user.id}, load)


@router.post("/{car_id}/toggle", response_model=FavoriteToggleResponse)
async def toggle_favorite(
    car_id: str,
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_cache),
    user: Principal = Depends(get_current_user),
) -> FavoriteToggleResponse:
    is_favorite = favorite_service.toggle_favorite(db, user.id, car_id)
    cache.invalidate(*FAVORITE_READS)
    return FavoriteToggleResponse(car_id=car_id, is_favorite=is_favorite)
