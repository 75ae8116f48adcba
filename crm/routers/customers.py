"""
Customer API endpoints.

Provides CRUD for customers plus the nested address collection
(/api/customers/{customer_id}/addresses).

Validation always runs before any storage call; a duplicate email surfaces
as 400 "Email already exists".
"""

import math

from fastapi import APIRouter, Depends, Query, status

from crm.errors import BadRequestError, NotFoundError
from crm.models import (
    Address,
    AddressPayload,
    Customer,
    CustomerPage,
    CustomerPayload,
    Pagination,
)
from crm.observability.logging import get_logger
from crm.storage import MAX_ROW_ID, CustomerStore, UniqueConstraintError, get_store

logger = get_logger(__name__)

router = APIRouter(prefix="/api/customers", tags=["Customers"])

CUSTOMER_NOT_FOUND = "Customer not found"
EMAIL_EXISTS = "Email already exists"


@router.get("", response_model=CustomerPage)
async def list_customers(
    search: str | None = Query(default=None, description="Substring of name or email"),
    city: str | None = Query(default=None, description="Substring of any address city"),
    page: int = Query(default=1, ge=1, le=MAX_ROW_ID),
    limit: int = Query(default=10, ge=1, le=100),
    store: CustomerStore = Depends(get_store),
) -> CustomerPage:
    """
    List customers, ordered by name, with optional filters and pagination.

    Both filters are case-insensitive. The total in the pagination envelope
    is counted with the same filters as the page itself.
    """
    offset = (page - 1) * limit
    customers = await store.list_customers(search=search, city=city, limit=limit, offset=offset)
    total = await store.count_customers(search=search, city=city)

    return CustomerPage(
        customers=customers,
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit),
        ),
    )


@router.get("/{customer_id}", response_model=Customer)
async def get_customer(
    customer_id: int,
    store: CustomerStore = Depends(get_store),
) -> Customer:
    customer = await store.get_customer(customer_id)
    if customer is None:
        raise NotFoundError(CUSTOMER_NOT_FOUND)
    return customer


@router.post("", response_model=Customer, status_code=status.HTTP_201_CREATED)
async def create_customer(
    payload: CustomerPayload | None = None,
    store: CustomerStore = Depends(get_store),
) -> Customer:
    """
    Create a customer.

    Raises:
        BadRequestError: missing name/email, malformed email or duplicate email
    """
    data = (payload or CustomerPayload()).validated()

    try:
        customer = await store.create_customer(data)
    except UniqueConstraintError:
        raise BadRequestError(EMAIL_EXISTS) from None

    logger.info("Customer created", customer_id=customer.id, email=customer.email)
    return customer


@router.put("/{customer_id}", response_model=Customer)
async def update_customer(
    customer_id: int,
    payload: CustomerPayload | None = None,
    store: CustomerStore = Depends(get_store),
) -> Customer:
    """Replace name, email and phone of an existing customer."""
    data = (payload or CustomerPayload()).validated()

    try:
        customer = await store.update_customer(customer_id, data)
    except UniqueConstraintError:
        raise BadRequestError(EMAIL_EXISTS) from None

    if customer is None:
        raise NotFoundError(CUSTOMER_NOT_FOUND)

    logger.info("Customer updated", customer_id=customer_id)
    return customer


@router.delete("/{customer_id}")
async def delete_customer(
    customer_id: int,
    store: CustomerStore = Depends(get_store),
) -> dict[str, str]:
    """Delete a customer together with all of its addresses."""
    if not await store.delete_customer(customer_id):
        raise NotFoundError(CUSTOMER_NOT_FOUND)

    logger.info("Customer deleted", customer_id=customer_id)
    return {"message": "Customer deleted successfully"}


# Nested address collection


@router.get("/{customer_id}/addresses", response_model=list[Address])
async def list_customer_addresses(
    customer_id: int,
    store: CustomerStore = Depends(get_store),
) -> list[Address]:
    """All addresses of a customer, most recently created first."""
    if await store.get_customer(customer_id) is None:
        raise NotFoundError(CUSTOMER_NOT_FOUND)
    return await store.list_addresses(customer_id)


@router.post(
    "/{customer_id}/addresses",
    response_model=Address,
    status_code=status.HTTP_201_CREATED,
)
async def create_customer_address(
    customer_id: int,
    payload: AddressPayload | None = None,
    store: CustomerStore = Depends(get_store),
) -> Address:
    """
    Add an address to a customer.

    country defaults to "USA" and address_type to "home" when omitted.
    """
    data = (payload or AddressPayload()).validated()

    if await store.get_customer(customer_id) is None:
        raise NotFoundError(CUSTOMER_NOT_FOUND)

    address = await store.create_address(customer_id, data)
    logger.info("Address created", customer_id=customer_id, address_id=address.id)
    return address
