"""Tests for the phone normalizer that find_by_phone matches linked contacts with."""

import pytest

from rememberme.domain import LinkedContacts
from rememberme.infrastructure.phone import phone_normalizer


@pytest.mark.parametrize(
    "stored",
    ["+1 (202) 555-1234", "202.555.1234", "  2025551234  ", "+12025551234"],
)
def test_linked_contact_formats_share_one_key(stored):
    contacts = LinkedContacts(phone=stored, email="jordan@example.com")
    assert phone_normalizer("US")(contacts.phone) == "+12025551234"


def test_country_code_wins_over_default_region():
    normalize = phone_normalizer("it")
    assert normalize(LinkedContacts(phone="312 345 6789").phone) == "+393123456789"
    assert normalize(LinkedContacts(phone="+1 202 555 1234").phone) == "+12025551234"


def test_without_region_only_international_numbers_resolve():
    normalize = phone_normalizer()
    assert normalize("+39 312 345 6789") == "+393123456789"
    assert normalize("202 555 1234") is None


@pytest.mark.parametrize("raw", ["", "   ", "abc", "+1", "123"])
def test_unusable_input_has_no_key(raw):
    assert phone_normalizer("US")(raw) is None


def test_blank_linked_phone_is_absent():
    assert LinkedContacts(phone="   ").phone is None
