"""
Storage interface shared by every backend.

Handlers only ever talk to a CustomerStore; which engine sits behind it is
decided once at startup from DatabaseConfig.type.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from crm.models import Address, AddressWrite, Customer, CustomerWrite


class StorageError(Exception):
    """Base class for storage-layer failures surfaced to handlers."""


class UniqueConstraintError(StorageError):
    """A write collided with a UNIQUE constraint (customers.email)."""


# Ids are INTEGER/SERIAL columns; anything outside this range names no row.
MAX_ROW_ID = 2_147_483_647


def id_in_range(row_id: int) -> bool:
    return 1 <= row_id <= MAX_ROW_ID


@dataclass(frozen=True)
class InsertResult:
    """Outcome of a write statement: generated id (for INSERT) and affected row count."""

    id: int | None
    changes: int


class CustomerStore(ABC):
    """
    Async customer/address store.

    Invariants every implementation honours:
    - customers.email is unique; violations raise UniqueConstraintError
    - deleting a customer deletes its addresses
    - list_customers orders by name, then id
    - list_addresses orders newest first (created_at DESC, id DESC)
    - writes return the re-fetched row, or None when no row matched
    - search and city are literal case-insensitive substring matches
    - an id outside 1..MAX_ROW_ID is simply not found
    """

    backend: str = "abstract"

    @abstractmethod
    async def initialize(self) -> None:
        """Open connections and create the schema. Idempotent."""

    @abstractmethod
    async def close(self) -> None:
        """Release connections."""

    @abstractmethod
    async def ping(self) -> bool:
        """Return True when the backend answers a trivial query."""

    # Customers

    @abstractmethod
    async def list_customers(
        self,
        search: str | None = None,
        city: str | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> list[Customer]: ...

    @abstractmethod
    async def count_customers(self, search: str | None = None, city: str | None = None) -> int: ...

    @abstractmethod
    async def get_customer(self, customer_id: int) -> Customer | None: ...

    @abstractmethod
    async def create_customer(self, data: CustomerWrite) -> Customer: ...

    @abstractmethod
    async def update_customer(self, customer_id: int, data: CustomerWrite) -> Customer | None: ...

    @abstractmethod
    async def delete_customer(self, customer_id: int) -> bool: ...

    # Addresses

    @abstractmethod
    async def list_addresses(self, customer_id: int) -> list[Address]: ...

    @abstractmethod
    async def get_address(self, address_id: int) -> Address | None: ...

    @abstractmethod
    async def create_address(self, customer_id: int, data: AddressWrite) -> Address: ...

    @abstractmethod
    async def update_address(self, address_id: int, data: AddressWrite) -> Address | None: ...

    @abstractmethod
    async def delete_address(self, address_id: int) -> bool: ...
