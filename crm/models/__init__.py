"""
Pydantic models for request validation and API responses.
"""

from crm.models.address import (
    Address,
    AddressPayload,
    AddressType,
    AddressWrite,
)
from crm.models.customer import (
    Customer,
    CustomerPage,
    CustomerPayload,
    CustomerWrite,
    Pagination,
)

__all__ = [
    "Address",
    "AddressPayload",
    "AddressType",
    "AddressWrite",
    "Customer",
    "CustomerPage",
    "CustomerPayload",
    "CustomerWrite",
    "Pagination",
]
