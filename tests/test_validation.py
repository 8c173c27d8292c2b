import pytest

from clinic_notifications.utils.validation import (
    clean_contact,
    sanitize_phone,
    validate_email,
    validate_international_phone,
)


@pytest.mark.parametrize("phone", [
    "+5511999990001",
    "+55 (11) 99999-0001",
    "+1.415.555.0100",
])
def test_valid_international_phones(phone):
    assert validate_international_phone(phone)


@pytest.mark.parametrize("phone", ["", None, "11999990001", "+55119", "+55 11 abc", "+1234567890123456"])
def test_invalid_international_phones(phone):
    assert not validate_international_phone(phone)


def test_sanitize_phone_strips_formatting():
    assert sanitize_phone(" +55 (11) 99999-0001 ") == "+5511999990001"


def test_validate_email():
    assert validate_email("maria@example.com")
    assert not validate_email("maria@")
    assert not validate_email("")


def test_clean_contact():
    assert clean_contact("   ") is None
    assert clean_contact(None) is None
    assert clean_contact(" a@b.co ") == "a@b.co"
