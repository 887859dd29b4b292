"""Tests for address records and storage-row mapping."""

import pytest
from protean.exceptions import ValidationError
from storefront.addresses.address import address_from_row, address_to_row, content_key, validate_address_fields


def _row(**overrides):
    row = {
        "id": "addr-1",
        "user_id": "user-001",
        "first_name": "Ama",
        "last_name": "Mensah",
        "city": "Accra",
        "state": "Greater Accra",
        "postal_code": "GA-184",
        "country": "GH",
        "phone": "+233 20 000 0000",
        "is_default": True,
    }
    row.update(overrides)
    return row


class TestRowMapping:
    def test_legacy_address_column(self):
        address = address_from_row(_row(address="12 Independence Ave"))
        assert address.address_line1 == "12 Independence Ave"

    def test_current_address_line1_column(self):
        address = address_from_row(_row(address_line1="5 Ring Road"))
        assert address.address_line1 == "5 Ring Road"

    def test_unknown_columns_are_dropped(self):
        address = address_from_row(_row(address="12 Independence Ave", label="home"))
        assert not hasattr(address, "label")
        assert address.is_default is True

    def test_to_row_writes_storage_column(self):
        row = address_to_row({"address_line1": "5 Ring Road", "city": "Accra"})
        assert row == {"address": "5 Ring Road", "city": "Accra"}


class TestValidation:
    def test_missing_required_fields(self):
        with pytest.raises(ValidationError) as exc:
            validate_address_fields({"first_name": "Ama", "city": " "})
        assert set(exc.value.messages) == {"last_name", "address_line1", "city", "state", "postal_code", "phone"}

    def test_partial_only_checks_present_keys(self):
        validate_address_fields({"city": "Kumasi"}, partial=True)

        with pytest.raises(ValidationError) as exc:
            validate_address_fields({"city": ""}, partial=True)
        assert set(exc.value.messages) == {"city"}


class TestContentKey:
    def test_is_case_and_whitespace_insensitive(self):
        first = address_from_row(_row(address="12 Independence Ave"))
        second = address_from_row(_row(id="addr-2", address_line1=" 12 independence ave ", is_default=False))
        assert first.content_key() == second.content_key()

    def test_missing_optional_fields_normalize_to_empty(self):
        assert content_key({"address_line2": None}) == content_key({})
