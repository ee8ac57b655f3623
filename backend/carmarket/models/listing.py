from __future__ import annotations

import uuid
from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, Float, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carmarket.database import Base

if TYPE_CHECKING:
    from carmarket.models.listing_image import ListingImage


class Gearbox(StrEnum):
    MANUAL = "Manual"
    AUTOMATIC = "Automatic"
    SEMI_AUTOMATIC = "Semi-automatic"


class FuelType(StrEnum):
    GASOLINE = "Gasoline"
    DIESEL = "Diesel"
    ELECTRIC = "Electric"
    HYBRID = "Hybrid"


def new_id() -> str:
    return str(uuid.uuid4())


class Listing(Base):
    """A seller's vehicle-for-sale record.

    ``seller_username`` and ``seller_phone`` are copied from the seller's
    profile at write time and are not kept in sync with it afterwards.
    """

    __tablename__ = "cars"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    brand: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    model: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    mileage: Mapped[float] = mapped_column(Float, nullable=False)
    gearbox: Mapped[str] = mapped_column(String(20), default=Gearbox.MANUAL.value)
    fuel_type: Mapped[str] = mapped_column(String(20), default=FuelType.GASOLINE.value)
    seller_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    seller_username: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    seller_phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    location_lat: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    location_lng: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), onupdate=func.now()
    )

    images: Mapped[list["ListingImage"]] = relationship(
        back_populates="listing",
        order_by="ListingImage.created_at",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def title(self) -> str:
        return f"{self.brand} {self.model}"

    @property
    def has_location(self) -> bool:
        return self.location_lat is not None and self.location_lng is not None
