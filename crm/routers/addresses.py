"""
Address API endpoints addressed by address id.

Creating and listing addresses happens under /api/customers/{customer_id}.
"""

from fastapi import APIRouter, Depends

from crm.errors import NotFoundError
from crm.models import Address, AddressPayload
from crm.observability.logging import get_logger
from crm.storage import CustomerStore, get_store

logger = get_logger(__name__)

router = APIRouter(prefix="/api/addresses", tags=["Addresses"])

ADDRESS_NOT_FOUND = "Address not found"


@router.put("/{address_id}", response_model=Address)
async def update_address(
    address_id: int,
    payload: AddressPayload | None = None,
    store: CustomerStore = Depends(get_store),
) -> Address:
    """
    Replace every field of an address.

    A rejected update leaves the stored row untouched.
    """
    data = (payload or AddressPayload()).validated()

    address = await store.update_address(address_id, data)
    if address is None:
        raise NotFoundError(ADDRESS_NOT_FOUND)

    logger.info("Address updated", address_id=address_id)
    return address


@router.delete("/{address_id}")
async def delete_address(
    address_id: int,
    store: CustomerStore = Depends(get_store),
) -> dict[str, str]:
    if not await store.delete_address(address_id):
        raise NotFoundError(ADDRESS_NOT_FOUND)

    logger.info("Address deleted", address_id=address_id)
    return {"message": "Address deleted successfully"}
