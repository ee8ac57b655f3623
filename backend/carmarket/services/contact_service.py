"""Outbound links shown on the listing detail page."""

from __future__ import annotations

from urllib.parse import quote

from carmarket.config import settings

MAP_MARGIN_DEGREES = 0.01

WHATSAPP_TEMPLATE = (
    "Hi, I'm interested in the {title} (Listing ID: {car_id}). Is it still available?"
)


def _has_phone(phone: str | None) -> bool:
    return bool(phone and phone.strip())


def build_contact_message(brand: str | None, model: str | None, car_id: str) -> str:
    title = " ".join(part for part in (brand, model) if part) or "Car"
    return WHATSAPP_TEMPLATE.format(title=title, car_id=car_id)


def build_whatsapp_link(
    phone: str | None, brand: str | None, model: str | None, car_id: str
) -> str | None:
    """Prefilled WhatsApp chat with the seller, or None without a phone."""
    if not _has_phone(phone):
        return None
    message = build_contact_message(brand, model, car_id)
    return (
        f"{settings.whatsapp_base_url}/{quote(phone.strip(), safe='')}"
        f"?text={quote(message, safe='')}"
    )


def build_call_link(phone: str | None) -> str | None:
    if not _has_phone(phone):
        return None
    return f"tel:{quote(phone.strip(), safe='')}"


def build_map_embed_url(lat: float | None, lng: float | None) -> str | None:
    """Embedded map framing the car's location with a marker on it."""
    if lat is None or lng is None:
        return None
    bbox = ",".join(
        str(v)
        for v in (
            lng - MAP_MARGIN_DEGREES,
            lat - MAP_MARGIN_DEGREES,
            lng + MAP_MARGIN_DEGREES,
            lat + MAP_MARGIN_DEGREES,
        )
    )
    return (
        f"{settings.map_embed_base_url}?bbox={quote(bbox, safe='')}"
        f"&layer=mapnik&marker={quote(f'{lat},{lng}', safe='')}"
    )


def build_map_link(lat: float | None, lng: float | None) -> str | None:
    if lat is None or lng is None:
        return None
    return f"{settings.map_link_base_url}?q={lat},{lng}"


def format_coordinates(lat: float, lng: float) -> str:
    return f"{lat:.5f}, {lng:.5f}"
