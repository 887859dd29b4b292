"""Shipping address record and the mapping to and from storage rows.

Stored rows come in two shapes: older rows carry the street line under
``address``, newer ones under ``address_line1``. The mapping functions below
are the only place that knows about this; the rest of the core only sees the
canonical ``ShippingAddress``.
"""

from dataclasses import dataclass, fields, replace
from datetime import datetime

from storefront.shared.errors import ValidationError

REQUIRED_FIELDS = {
    "first_name": "First name is required",
    "last_name": "Last name is required",
    "address_line1": "Address is required",
    "city": "City is required",
    "state": "State is required",
    "postal_code": "Postal code is required",
    "phone": "Phone number is required",
}

# Fields compared when deciding whether two addresses are the same place
CONTENT_FIELDS = (
    "first_name",
    "last_name",
    "address_line1",
    "address_line2",
    "city",
    "state",
    "postal_code",
    "country",
    "phone",
)


@dataclass(frozen=True)
class ShippingAddress:
    id: str
    user_id: str
    first_name: str
    last_name: str
    address_line1: str
    city: str
    state: str
    postal_code: str
    country: str
    phone: str
    address_line2: str | None = None
    email: str | None = None
    is_default: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def content_key(self) -> tuple:
        return content_key(self.__dict__)

    def with_default(self, is_default: bool) -> "ShippingAddress":
        return replace(self, is_default=is_default)


_FIELD_NAMES = {f.name for f in fields(ShippingAddress)}


def _normalize(value) -> str:
    return (value or "").strip().lower()


def content_key(data: dict) -> tuple:
    """Normalized tuple of the fields that identify a physical address."""
    return tuple(_normalize(data.get(name)) for name in CONTENT_FIELDS)


def validate_address_fields(data: dict, partial: bool = False) -> None:
    """Raise ``ValidationError`` when required fields are missing or blank.

    With ``partial`` only the keys present in ``data`` are checked (patches).
    """
    errors = {}
    for name, message in REQUIRED_FIELDS.items():
        if partial and name not in data:
            continue
        value = data.get(name)
        if not isinstance(value, str) or not value.strip():
            errors[name] = [message]
    if errors:
        raise ValidationError(errors)


def address_from_row(row: dict) -> ShippingAddress:
    """Build the canonical record from a storage row of either shape."""
    data = {key: value for key, value in row.items() if key in _FIELD_NAMES}
    data["id"] = str(row["id"])
    data["user_id"] = str(row["user_id"])
    data["address_line1"] = row.get("address_line1") or row.get("address") or ""
    data["is_default"] = bool(row.get("is_default", False))
    data.setdefault("country", "")
    return ShippingAddress(**data)


def address_to_row(data: dict) -> dict:
    """Translate canonical fields to the storage column names."""
    row = {key: value for key, value in data.items() if key in _FIELD_NAMES and key != "address_line1"}
    if "address_line1" in data:
        row["address"] = data["address_line1"]
    return row
