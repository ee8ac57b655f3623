from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from carmarket.database import Base

if TYPE_CHECKING:
    from carmarket.models.listing import Listing


class ListingImage(Base):
    """Metadata row for one stored object. Never updated."""

    __tablename__ = "car_images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    car_id: Mapped[str] = mapped_column(
        ForeignKey("cars.id", ondelete="CASCADE"), nullable=False, index=True
    )
    path: Mapped[str] = mapped_column(String(500), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    listing: Mapped["Listing"] = relationship(back_populates="images")
