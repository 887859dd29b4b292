"""Tests for shipping and card form validation."""

from datetime import date

import pytest
from storefront.addresses.address import ShippingAddress
from storefront.checkout.forms import CardDetails, ShippingForm

TODAY = date(2026, 10, 19)


def _make_form(**overrides):
    data = {
        "first_name": "Ama",
        "last_name": "Mensah",
        "email": "ama@example.com",
        "phone": "+233 20 000 0000",
        "address_line1": "12 Independence Ave",
        "city": "Accra",
        "state": "Greater Accra",
        "postal_code": "GA-184",
        "country": "GH",
    }
    data.update(overrides)
    return ShippingForm(**data)


def _make_card(**overrides):
    data = {"card_number": "4242 4242 4242 4242", "name_on_card": "Ama Mensah", "expiry_date": "12/28", "cvv": "123"}
    data.update(overrides)
    return CardDetails(**data)


def _saved_address(**overrides):
    data = {
        "id": "addr-1",
        "user_id": "user-001",
        "first_name": "Ama",
        "last_name": "Mensah",
        "address_line1": "12 Independence Ave",
        "city": "Accra",
        "state": "Greater Accra",
        "postal_code": "GA-184",
        "country": "GH",
        "phone": "+233 20 000 0000",
    }
    data.update(overrides)
    return ShippingAddress(**data)


class TestShippingForm:
    def test_complete_form_is_valid(self):
        assert _make_form().validate() == {}

    def test_empty_form_reports_every_required_field(self):
        errors = ShippingForm().validate()
        assert set(errors) == {
            "first_name",
            "last_name",
            "email",
            "phone",
            "address_line1",
            "city",
            "state",
            "postal_code",
        }

    def test_blank_phone_is_required(self):
        assert _make_form(phone="   ").validate() == {"phone": ["Phone number is required"]}

    def test_malformed_email(self):
        assert _make_form(email="ama@example").validate() == {"email": ["Email is invalid"]}

    def test_fill_from_copies_address(self):
        form = ShippingForm(email="ama@example.com")
        assert form.fill_from(_saved_address()) is True
        assert form.address_line1 == "12 Independence Ave"
        assert form.email == "ama@example.com"
        assert form.save_address is False

    def test_fill_from_same_content_is_noop(self):
        form = _make_form(city="ACCRA ")
        assert form.fill_from(_saved_address()) is False
        assert form.city == "ACCRA "

    def test_address_fields_are_trimmed(self):
        fields = _make_form(first_name=" Ama ", address_line2="").address_fields()
        assert fields["first_name"] == "Ama"
        assert fields["address_line2"] is None


class TestCardDetails:
    def test_valid_card(self):
        assert _make_card().validate(TODAY) == {}

    def test_spaces_are_ignored_in_card_number(self):
        card = _make_card(card_number="3782 822463 10005")
        assert card.validate(TODAY) == {}
        assert card.last4 == "0005"

    def test_short_card_number(self):
        errors = _make_card(card_number="4242 4242 4242").validate(TODAY)
        assert errors == {"card_number": ["Card number is invalid"]}

    def test_missing_name(self):
        assert _make_card(name_on_card=" ").validate(TODAY) == {"name_on_card": ["Name on card is required"]}

    @pytest.mark.parametrize("expiry", ["1228", "12/2028", "ab/cd", "1/28"])
    def test_malformed_expiry(self, expiry):
        assert _make_card(expiry_date=expiry).validate(TODAY) == {"expiry_date": ["Enter expiry as MM/YY"]}

    def test_invalid_month(self):
        assert _make_card(expiry_date="13/28").validate(TODAY) == {"expiry_date": ["Month is invalid"]}

    def test_expired_card(self):
        assert _make_card(expiry_date="09/26").validate(TODAY) == {"expiry_date": ["Card has expired"]}

    def test_card_expiring_this_month_is_accepted(self):
        assert _make_card(expiry_date="10/26").validate(TODAY) == {}

    @pytest.mark.parametrize("cvv", ["12", "12345", "12a"])
    def test_invalid_cvv(self, cvv):
        assert _make_card(cvv=cvv).validate(TODAY) == {"cvv": ["CVV is invalid"]}
