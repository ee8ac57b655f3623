"""E.164 phone helpers used by the profile form."""

from __future__ import annotations

import re

from carmarket.utils.exceptions import PhoneValidationError

COUNTRIES: list[dict[str, str]] = [
    {"label": "United States (+1)", "code": "+1"},
    {"label": "United Kingdom (+44)", "code": "+44"},
    {"label": "Germany (+49)", "code": "+49"},
    {"label": "France (+33)", "code": "+33"},
    {"label": "Italy (+39)", "code": "+39"},
    {"label": "Spain (+34)", "code": "+34"},
    {"label": "Netherlands (+31)", "code": "+31"},
    {"label": "Albania (+355)", "code": "+355"},
    {"label": "Kosovo (+383)", "code": "+383"},
]

DIAL_CODES = [c["code"] for c in COUNTRIES]

E164_PATTERN = re.compile(r"^\+[0-9]{8,15}$")
PARTIAL_E164_PATTERN = re.compile(r"^\+[0-9]{0,15}$")

INVALID_PHONE_MESSAGE = "Please enter a valid phone (E.164), e.g., +38345123456"


def normalize_phone(raw: str) -> str:
    """Drop spaces, dashes and parentheses; rewrite a ``00`` prefix to ``+``."""
    trimmed = re.sub(r"[\s\-()]", "", raw or "")
    if trimmed.startswith("00"):
        return "+" + trimmed[2:]
    return trimmed


def is_valid_e164(phone: str) -> bool:
    return bool(E164_PATTERN.match(phone))


def is_potential_e164(phone: str) -> bool:
    """True while the user may still be typing towards a valid number."""
    return phone == "" or bool(PARTIAL_E164_PATTERN.match(phone))


def build_e164(dial_code: str, subscriber: str) -> str:
    """Join a dial code and the typed subscriber digits.

    Non-digits are dropped and a single leading domestic ``0`` is stripped,
    so ``("+383", "045123456")`` gives ``"+38345123456"``.
    """
    digits = re.sub(r"\D", "", subscriber or "")
    if digits.startswith("0"):
        digits = digits[1:]
    return f"{dial_code}{digits}"


def assemble_phone(dial_code: str, subscriber: str) -> str:
    """Build and validate; raises PhoneValidationError if the result is not E.164."""
    if dial_code not in DIAL_CODES:
        raise PhoneValidationError(f"Unsupported dial code '{dial_code}'")
    combined = build_e164(dial_code, subscriber)
    if not is_valid_e164(combined):
        raise PhoneValidationError(INVALID_PHONE_MESSAGE)
    return combined


def parse_e164_to_parts(phone: str) -> tuple[str, str] | None:
    """Split a stored number back into (dial code, subscriber) for the form.

    The longest matching dial code wins; returns None for numbers that do not
    start with ``+`` or use an unknown dial code.
    """
    normalized = normalize_phone(phone)
    if not normalized.startswith("+"):
        return None
    for code in sorted(DIAL_CODES, key=len, reverse=True):
        if normalized.startswith(code):
            return code, normalized[len(code):]
    return None
