"""Tests for E.164 assembly from a dial code and typed digits."""

import pytest

from carmarket.utils.exceptions import PhoneValidationError
from carmarket.utils.phone import (
    assemble_phone,
    build_e164,
    is_potential_e164,
    is_valid_e164,
    normalize_phone,
    parse_e164_to_parts,
)


def test_leading_zero_is_stripped():
    assert build_e164("+383", "045123456") == "+38345123456"


def test_only_one_zero_is_stripped():
    assert build_e164("+44", "0020") == "+44020"


def test_non_digits_are_dropped():
    assert build_e164("+49", "151 234-567 (8)") == "+491512345678"


@pytest.mark.parametrize(
    ("phone", "valid"),
    [
        ("+38345123456", True),
        ("+12025550123", True),
        ("+1234567", False),
        ("+1234567890123456", False),
        ("38345123456", False),
        ("+383-45-123", False),
    ],
)
def test_is_valid_e164(phone, valid):
    assert is_valid_e164(phone) is valid


def test_is_potential_e164():
    assert is_potential_e164("")
    assert is_potential_e164("+")
    assert is_potential_e164("+3834")
    assert not is_potential_e164("+3834a")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("00383 45 123 456", "+38345123456"), ("+1 (202) 555-0123", "+12025550123")],
)
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


def test_assemble_phone_accepts_valid():
    assert assemble_phone("+383", "045123456") == "+38345123456"


def test_assemble_phone_rejects_short():
    with pytest.raises(PhoneValidationError) as exc_info:
        assemble_phone("+383", "12")
    assert exc_info.value.field == "phone"


def test_assemble_phone_rejects_unknown_dial_code():
    with pytest.raises(PhoneValidationError):
        assemble_phone("+999", "45123456")


def test_parse_prefers_longest_dial_code():
    # +355 must not be read as +3 followed by 55...
    assert parse_e164_to_parts("+35569123456") == ("+355", "69123456")
    assert parse_e164_to_parts("+12025550123") == ("+1", "2025550123")


def test_parse_rejects_unknown():
    assert parse_e164_to_parts("045123456") is None
    assert parse_e164_to_parts("+8613812345678") is None
