"""
Customer data models.

A customer is a person or account, uniquely identified by email, that owns
zero or more mailing addresses.
"""

import re
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from crm.errors import BadRequestError

EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")


def as_utc(value: datetime) -> datetime:
    """Storage engines hand back naive UTC timestamps; make them explicit."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class Customer(BaseModel):
    """Customer row as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    phone: str | None = None
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return as_utc(v)


class CustomerWrite(BaseModel):
    """Validated customer fields, ready for storage."""

    name: str
    email: str
    phone: str | None = None


class CustomerPayload(BaseModel):
    """
    Request body for creating or replacing a customer.

    Fields are optional at the schema level so that missing values produce
    the service's own 400 messages instead of a generic schema error.
    """

    name: str | None = None
    email: str | None = None
    phone: str | None = None

    def validated(self) -> CustomerWrite:
        """
        Check required fields and email format.

        Raises:
            BadRequestError: name/email missing or email malformed
        """
        name = (self.name or "").strip()
        email = (self.email or "").strip()

        if not name or not email:
            raise BadRequestError("Name and email are required")

        if not EMAIL_PATTERN.fullmatch(email):
            raise BadRequestError("Invalid email format")

        phone = (self.phone or "").strip() or None
        return CustomerWrite(name=name, email=email, phone=phone)


class Pagination(BaseModel):
    """Pagination envelope accompanying list responses."""

    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total: int = Field(..., ge=0)
    pages: int = Field(..., ge=0)


class CustomerPage(BaseModel):
    """One page of customers plus the pagination envelope."""

    customers: list[Customer]
    pagination: Pagination
