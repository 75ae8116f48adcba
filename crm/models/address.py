"""
Address data models.

Addresses belong to exactly one customer and are removed together with it.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator

from crm.errors import BadRequestError
from crm.models.customer import as_utc

DEFAULT_COUNTRY = "USA"


class AddressType(str, Enum):
    """Usage tag for an address."""

    HOME = "home"
    WORK = "work"
    BILLING = "billing"
    SHIPPING = "shipping"
    OTHER = "other"


class Address(BaseModel):
    """Address row as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    customer_id: int
    street: str
    city: str
    state: str
    zip_code: str
    country: str = DEFAULT_COUNTRY
    address_type: str = AddressType.HOME.value
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return as_utc(v)


class AddressWrite(BaseModel):
    """Validated address fields, ready for storage."""

    street: str
    city: str
    state: str
    zip_code: str
    country: str = DEFAULT_COUNTRY
    address_type: AddressType = AddressType.HOME


class AddressPayload(BaseModel):
    """Request body for creating or replacing an address."""

    street: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None
    address_type: str | None = None

    def validated(self) -> AddressWrite:
        """
        Check required fields, apply defaults and enforce the address type set.

        country and address_type fall back to their defaults when absent or
        empty.

        Raises:
            BadRequestError: a required field is missing or address_type is unknown
        """
        street = (self.street or "").strip()
        city = (self.city or "").strip()
        state = (self.state or "").strip()
        zip_code = (self.zip_code or "").strip()

        if not street or not city or not state or not zip_code:
            raise BadRequestError("Street, city, state, and zip code are required")

        country = (self.country or "").strip() or DEFAULT_COUNTRY

        raw_type = (self.address_type or "").strip().lower() or AddressType.HOME.value
        try:
            address_type = AddressType(raw_type)
        except ValueError:
            allowed = ", ".join(t.value for t in AddressType)
            raise BadRequestError(f"Invalid address type. Must be one of: {allowed}") from None

        return AddressWrite(
            street=street,
            city=city,
            state=state,
            zip_code=zip_code,
            country=country,
            address_type=address_type,
        )
