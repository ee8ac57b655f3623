from pydantic import BaseModel

from carmarket.schemas.listing import ListingCard


class FavoriteToggleResponse(BaseModel):
    car_id: str
    is_favorite: bool


class FavoriteIdsResponse(BaseModel):
    car_ids: list[str]


class FavoritesResponse(BaseModel):
    items: list[ListingCard]
    total: int
    thumbnails_unavailable: bool = False
