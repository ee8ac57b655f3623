from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from carmarket.models.listing import FuelType, Gearbox


class ListingForm(BaseModel):
    """Raw values of the create/edit form.

    Numeric fields arrive as typed text and are parsed by the listing
    service, which reports problems per field.
    """

    brand: str = ""
    model: str = ""
    year: str | int | None = None
    price: str | float | None = None
    mileage: str | float | None = None
    gearbox: str = Gearbox.MANUAL.value
    fuel_type: str = FuelType.GASOLINE.value
    description: str | None = None
    location_lat: str | float | None = None
    location_lng: str | float | None = None


class ListingResponse(BaseModel):
    id: str
    brand: str
    model: str
    year: int
    price: float
    mileage: float
    gearbox: str
    fuel_type: str
    seller_id: str
    seller_username: str | None = None
    seller_phone: str | None = None
    description: str | None = None
    location_lat: float | None = None
    location_lng: float | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class ListingCard(ListingResponse):
    is_favorite: bool = False
    thumbnail_url: str | None = None


class ListingPageResponse(BaseModel):
    items: list[ListingCard]
    total_count: int
    page: int
    page_size: int
    page_count: int
    favorited_ids: list[str] = Field(default_factory=list)
    thumbnails: dict[str, str] = Field(default_factory=dict)
    thumbnails_unavailable: bool = False


class ContactLinks(BaseModel):
    whatsapp_url: str | None = None
    call_url: str | None = None


class MapLinks(BaseModel):
    embed_url: str
    external_url: str
    coordinates: str


class ListingDetailResponse(ListingResponse):
    seller_label: str
    image_urls: list[str] = Field(default_factory=list)
    is_favorite: bool = False
    contact: ContactLinks
    map: MapLinks | None = None


class ImageFailureResponse(BaseModel):
    index: int
    filename: str
    reason: str


class ImageUploadResponse(BaseModel):
    car_id: str
    uploaded: list[str]
    failed: ImageFailureResponse | None = None


class ListingSaveResponse(BaseModel):
    listing: ListingResponse
    created: bool
    images: ImageUploadResponse | None = None
    message: str
