"""
In-memory backend.

Demo and test backend: data lives only as long as the store instance. It
follows the same invariants as the SQL backends (unique email, cascade
delete, ordering, filters) but is only safe on a single event loop.
"""

import itertools
from datetime import UTC, datetime

from crm.models import Address, AddressWrite, Customer, CustomerWrite
from crm.observability.logging import OperationContext
from crm.storage.base import CustomerStore, UniqueConstraintError


def _contains(haystack: str | None, needle: str) -> bool:
    return haystack is not None and needle.lower() in haystack.lower()


class MemoryStore(CustomerStore):
    """Customer/address storage in plain dicts, isolated per instance."""

    backend = "memory"

    def __init__(self):
        self._customers: dict[int, Customer] = {}
        self._addresses: dict[int, Address] = {}
        self._customer_ids = itertools.count(1)
        self._address_ids = itertools.count(1)

    def _operation(self, name: str, **context) -> OperationContext:
        return OperationContext(name, backend=self.backend, **context)

    async def initialize(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def ping(self) -> bool:
        return True

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------

    def _matching_customers(self, search: str | None, city: str | None) -> list[Customer]:
        customers = list(self._customers.values())

        if search:
            customers = [
                c for c in customers if _contains(c.name, search) or _contains(c.email, search)
            ]

        if city:
            owners = {a.customer_id for a in self._addresses.values() if _contains(a.city, city)}
            customers = [c for c in customers if c.id in owners]

        return customers

    def _email_taken(self, email: str, exclude_id: int | None = None) -> bool:
        return any(c.email == email and c.id != exclude_id for c in self._customers.values())

    async def list_customers(
        self,
        search: str | None = None,
        city: str | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> list[Customer]:
        with self._operation("list_customers"):
            customers = sorted(self._matching_customers(search, city), key=lambda c: (c.name, c.id))
            return [c.model_copy() for c in customers[offset : offset + limit]]

    async def count_customers(self, search: str | None = None, city: str | None = None) -> int:
        with self._operation("count_customers"):
            return len(self._matching_customers(search, city))

    async def get_customer(self, customer_id: int) -> Customer | None:
        with self._operation("get_customer", customer_id=customer_id):
            customer = self._customers.get(customer_id)
            return customer.model_copy() if customer else None

    async def create_customer(self, data: CustomerWrite) -> Customer:
        with self._operation("create_customer"):
            if self._email_taken(data.email):
                raise UniqueConstraintError(f"UNIQUE constraint failed: customers.email ({data.email})")

            now = datetime.now(UTC)
            customer = Customer(
                id=next(self._customer_ids),
                name=data.name,
                email=data.email,
                phone=data.phone,
                created_at=now,
                updated_at=now,
            )
            self._customers[customer.id] = customer
            return customer.model_copy()

    async def update_customer(self, customer_id: int, data: CustomerWrite) -> Customer | None:
        with self._operation("update_customer", customer_id=customer_id):
            existing = self._customers.get(customer_id)
            if existing is None:
                return None
            if self._email_taken(data.email, exclude_id=customer_id):
                raise UniqueConstraintError(f"UNIQUE constraint failed: customers.email ({data.email})")

            updated = existing.model_copy(
                update={
                    "name": data.name,
                    "email": data.email,
                    "phone": data.phone,
                    "updated_at": datetime.now(UTC),
                }
            )
            self._customers[customer_id] = updated
            return updated.model_copy()

    async def delete_customer(self, customer_id: int) -> bool:
        with self._operation("delete_customer", customer_id=customer_id):
            if self._customers.pop(customer_id, None) is None:
                return False
            for address_id in [a.id for a in self._addresses.values() if a.customer_id == customer_id]:
                del self._addresses[address_id]
            return True

    # ------------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------------

    async def list_addresses(self, customer_id: int) -> list[Address]:
        with self._operation("list_addresses", customer_id=customer_id):
            addresses = [a for a in self._addresses.values() if a.customer_id == customer_id]
            addresses.sort(key=lambda a: (a.created_at, a.id), reverse=True)
            return [a.model_copy() for a in addresses]

    async def get_address(self, address_id: int) -> Address | None:
        with self._operation("get_address", address_id=address_id):
            address = self._addresses.get(address_id)
            return address.model_copy() if address else None

    async def create_address(self, customer_id: int, data: AddressWrite) -> Address:
        with self._operation("create_address", customer_id=customer_id):
            if customer_id not in self._customers:
                raise LookupError(f"FOREIGN KEY constraint failed: customer {customer_id}")

            now = datetime.now(UTC)
            address = Address(
                id=next(self._address_ids),
                customer_id=customer_id,
                street=data.street,
                city=data.city,
                state=data.state,
                zip_code=data.zip_code,
                country=data.country,
                address_type=data.address_type.value,
                created_at=now,
                updated_at=now,
            )
            self._addresses[address.id] = address
            return address.model_copy()

    async def update_address(self, address_id: int, data: AddressWrite) -> Address | None:
        with self._operation("update_address", address_id=address_id):
            existing = self._addresses.get(address_id)
            if existing is None:
                return None

            updated = existing.model_copy(
                update={
                    "street": data.street,
                    "city": data.city,
                    "state": data.state,
                    "zip_code": data.zip_code,
                    "country": data.country,
                    "address_type": data.address_type.value,
                    "updated_at": datetime.now(UTC),
                }
            )
            self._addresses[address_id] = updated
            return updated.model_copy()

    async def delete_address(self, address_id: int) -> bool:
        with self._operation("delete_address", address_id=address_id):
            return self._addresses.pop(address_id, None) is not None
