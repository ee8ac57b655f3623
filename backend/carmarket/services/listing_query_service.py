"""Search, pagination, favorites and thumbnails for the listing grid."""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy import Select, func, select
from sqlalchemy.exc import SQLAlchemyError

from carmarket.config import settings
from carmarket.models.listing import Listing
from carmarket.models.profile import Profile
from carmarket.services import favorite_service
from carmarket.services.image_service import load_thumbnails
from carmarket.utils.exceptions import ListingValidationError, StoreError

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from carmarket.services.storage_client import StorageClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ListingFilters:
    """Optional search criteria. ``None`` and blank strings mean "not applied"."""

    brand: str | None = None
    model: str | None = None
    year: int | None = None
    max_mileage: float | None = None

    def normalized(self) -> ListingFilters:
        return ListingFilters(
            brand=(self.brand or "").strip() or None,
            model=(self.model or "").strip() or None,
            year=self.year,
            max_mileage=self.max_mileage,
        )

    def as_params(self) -> dict[str, Any]:
        return asdict(self.normalized())


@dataclass
class ListingPage:
    items: list[Listing]
    total_count: int
    page: int
    page_size: int
    favorited_ids: set[str] = field(default_factory=set)
    thumbnails: dict[str, str] = field(default_factory=dict)
    thumbnails_failed: bool = False

    @property
    def page_count(self) -> int:
        return page_count(self.total_count, self.page_size)


def page_count(total: int, page_size: int) -> int:
    if page_size <= 0:
        raise ListingValidationError("page_size must be positive", field="page_size")
    return math.ceil(total / page_size) if total else 0


def _contains(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def build_listing_query(filters: ListingFilters) -> Select:
    """SELECT over cars with one predicate per present filter, newest first."""
    filters = filters.normalized()
    stmt = select(Listing)
    if filters.brand:
        stmt = stmt.where(Listing.brand.ilike(_contains(filters.brand), escape="\\"))
    if filters.model:
        stmt = stmt.where(Listing.model.ilike(_contains(filters.model), escape="\\"))
    if filters.year is not None:
        stmt = stmt.where(Listing.year == filters.year)
    if filters.max_mileage is not None:
        stmt = stmt.where(Listing.mileage <= filters.max_mileage)
    # id only breaks timestamp ties so pages never overlap
    return stmt.order_by(Listing.created_at.desc(), Listing.id.desc())


def compose_listing_page(
    db: Session,
    storage: StorageClient,
    filters: ListingFilters,
    page: int = 0,
    page_size: int | None = None,
    viewer_id: str | None = None,
) -> ListingPage:
    """Run a search and assemble one page of the listing grid.

    ``total_count`` counts every match of *filters*; ``items`` holds at most
    *page_size* of them starting at ``page * page_size``. Pages past the end
    are empty. A failing listing or favorites read fails the whole call,
    while a failing thumbnail read only drops the thumbnails.
    """
    if page_size is None:
        page_size = settings.page_size
    if page < 0:
        raise ListingValidationError("page must be zero or greater", field="page")
    if page_size <= 0:
        raise ListingValidationError("page_size must be positive", field="page_size")

    stmt = build_listing_query(filters)
    try:
        total = db.scalar(
            select(func.count()).select_from(stmt.order_by(None).subquery())
        ) or 0
        items = list(db.scalars(stmt.offset(page * page_size).limit(page_size)))
    except SQLAlchemyError as e:
        logger.exception("Listing search failed for %s", filters)
        raise StoreError(f"Failed to load cars: {e}") from e

    favorited: set[str] = set()
    if viewer_id:
        page_ids = {car.id for car in items}
        favorited = favorite_service.list_favorite_ids(db, viewer_id) & page_ids

    thumbnails_failed = False
    try:
        thumbnails = load_thumbnails(db, storage, [car.id for car in items])
    except StoreError:
        logger.warning("Thumbnails unavailable for page %d", page, exc_info=True)
        thumbnails = {}
        thumbnails_failed = True

    logger.debug(
        "Listing page %d/%d: %d of %d match(es)",
        page, page_count(total, page_size), len(items), total,
    )
    return ListingPage(
        items=items,
        total_count=total,
        page=page,
        page_size=page_size,
        favorited_ids=favorited,
        thumbnails=thumbnails,
        thumbnails_failed=thumbnails_failed,
    )


def load_seller_names(db: Session, seller_ids: list[str]) -> dict[str, str]:
    """Display name per seller id from the public profiles table.

    Sellers without a profile row or without a name are left out.
    """
    unique_ids = [sid for sid in dict.fromkeys(seller_ids) if sid]
    if not unique_ids:
        return {}
    try:
        rows = db.execute(
            select(Profile.id, Profile.full_name).where(Profile.id.in_(unique_ids))
        ).all()
    except SQLAlchemyError as e:
        raise StoreError(f"Failed to load seller names: {e}") from e
    return {row.id: row.full_name for row in rows if row.full_name}


def list_seller_listings(db: Session, seller_id: str) -> list[Listing]:
    """The seller dashboard: every listing owned by *seller_id*, newest first."""
    try:
        return list(
            db.scalars(
                select(Listing)
                .where(Listing.seller_id == seller_id)
                .order_by(Listing.created_at.desc(), Listing.id.desc())
            )
        )
    except SQLAlchemyError as e:
        raise StoreError(f"Failed to load your cars: {e}") from e


def _optional_number(raw: str | None, field: str, *, integer: bool = False) -> float | int | None:
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw.strip()) if integer else float(raw.strip())
    except ValueError as e:
        raise ListingValidationError(f"{field} must be a number", field=field) from e


def filters_from_text(
    brand: str | None = None,
    model: str | None = None,
    year: str | None = None,
    max_mileage: str | None = None,
) -> ListingFilters:
    """Build filters from the search form, where every input is text."""
    mileage = _optional_number(max_mileage, "max_mileage")
    if mileage is not None and mileage < 0:
        raise ListingValidationError("max_mileage must not be negative", field="max_mileage")
    return ListingFilters(
        brand=brand,
        model=model,
        year=_optional_number(year, "year", integer=True),
        max_mileage=mileage,
    ).normalized()
