"""In-progress checkout forms and their field validation.

Validation returns Protean-style messages (field -> list of messages) so the
presentation layer can show them next to each input.
"""

import re
from dataclasses import dataclass, fields
from datetime import date

from storefront.addresses.address import ShippingAddress, content_key

_EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")


@dataclass
class ShippingForm:
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    address_line1: str = ""
    address_line2: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = "US"
    save_address: bool = False

    @classmethod
    def field_names(cls) -> set[str]:
        return {f.name for f in fields(cls)}

    def validate(self) -> dict[str, list[str]]:
        errors = {}
        if not self.first_name.strip():
            errors["first_name"] = ["First name is required"]
        if not self.last_name.strip():
            errors["last_name"] = ["Last name is required"]
        if not self.email.strip():
            errors["email"] = ["Email is required"]
        elif not _EMAIL_PATTERN.search(self.email):
            errors["email"] = ["Email is invalid"]
        if not self.phone.strip():
            errors["phone"] = ["Phone number is required"]
        if not self.address_line1.strip():
            errors["address_line1"] = ["Address is required"]
        if not self.city.strip():
            errors["city"] = ["City is required"]
        if not self.state.strip():
            errors["state"] = ["State is required"]
        if not self.postal_code.strip():
            errors["postal_code"] = ["Postal code is required"]
        return errors

    def matches(self, address: ShippingAddress) -> bool:
        return content_key(self.__dict__) == address.content_key()

    def fill_from(self, address: ShippingAddress) -> bool:
        """Copy a saved address into the form.

        Does nothing (and returns False) when the form already holds the same
        address, so re-selecting it does not trigger another update cycle.
        """
        if self.matches(address):
            return False

        self.first_name = address.first_name
        self.last_name = address.last_name
        self.email = address.email or self.email
        self.phone = address.phone
        self.address_line1 = address.address_line1
        self.address_line2 = address.address_line2 or ""
        self.city = address.city
        self.state = address.state
        self.postal_code = address.postal_code
        self.country = address.country
        # Already in the address book
        self.save_address = False
        return True

    def address_fields(self) -> dict:
        return {
            "first_name": self.first_name.strip(),
            "last_name": self.last_name.strip(),
            "email": self.email.strip() or None,
            "phone": self.phone.strip(),
            "address_line1": self.address_line1.strip(),
            "address_line2": self.address_line2.strip() or None,
            "city": self.city.strip(),
            "state": self.state.strip(),
            "postal_code": self.postal_code.strip(),
            "country": self.country.strip(),
        }


@dataclass
class CardDetails:
    card_number: str = ""
    name_on_card: str = ""
    expiry_date: str = ""
    cvv: str = ""

    @property
    def digits(self) -> str:
        return re.sub(r"\s", "", self.card_number)

    @property
    def last4(self) -> str:
        return self.digits[-4:]

    def validate(self, today: date) -> dict[str, list[str]]:
        errors = {}

        digits = self.digits
        if not digits:
            errors["card_number"] = ["Card number is required"]
        elif not digits.isdigit() or len(digits) < 15:
            errors["card_number"] = ["Card number is invalid"]

        if not self.name_on_card.strip():
            errors["name_on_card"] = ["Name on card is required"]

        expiry_error = self._expiry_error(today)
        if expiry_error:
            errors["expiry_date"] = [expiry_error]

        if not self.cvv:
            errors["cvv"] = ["CVV is required"]
        elif not self.cvv.isdigit() or not 3 <= len(self.cvv) <= 4:
            errors["cvv"] = ["CVV is invalid"]

        return errors

    def _expiry_error(self, today: date) -> str | None:
        if not self.expiry_date:
            return "Expiry date is required"

        month, _, year = self.expiry_date.partition("/")
        if len(month) != 2 or len(year) != 2 or not month.isdigit() or not year.isdigit():
            return "Enter expiry as MM/YY"

        month, year = int(month), int(year)
        if not 1 <= month <= 12:
            return "Month is invalid"

        current_year = today.year % 100
        if year < current_year or (year == current_year and month < today.month):
            return "Card has expired"
        return None
