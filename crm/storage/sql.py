"""
Shared SQL for the relational backends.

Queries are written once with ``?`` placeholders. Each backend supplies the
two primitives below and translates placeholders to its driver's paramstyle:

- run_query(sql, params) -> list[dict]
- run_insert(sql, params) -> InsertResult(id, changes)

Every statement is committed on its own; there are no multi-statement
transactions.
"""

from abc import abstractmethod
from collections.abc import Sequence
from typing import Any

from crm.models import Address, AddressWrite, Customer, CustomerWrite
from crm.observability.logging import OperationContext
from crm.storage.base import CustomerStore, InsertResult, id_in_range

CUSTOMER_COLUMNS = "id, name, email, phone, created_at, updated_at"
ADDRESS_COLUMNS = (
    "id, customer_id, street, city, state, zip_code, country, address_type, "
    "created_at, updated_at"
)


def to_numbered_placeholders(sql: str) -> str:
    """
    Rewrite ``?`` placeholders as ``$1, $2, ...`` (asyncpg paramstyle).

    >>> to_numbered_placeholders("SELECT * FROM t WHERE a = ? AND b = ?")
    'SELECT * FROM t WHERE a = $1 AND b = $2'
    """
    parts = sql.split("?")
    if len(parts) == 1:
        return sql
    out = [parts[0]]
    for index, part in enumerate(parts[1:], start=1):
        out.append(f"${index}")
        out.append(part)
    return "".join(out)


def to_format_placeholders(sql: str) -> str:
    """
    Rewrite ``?`` placeholders as ``%s`` (aiomysql paramstyle).

    Literal percent signs are doubled so the driver's ``%`` interpolation
    leaves them intact.
    """
    return sql.replace("%", "%%").replace("?", "%s")


LIKE_ESCAPE = "!"


def like_pattern(text: str) -> str:
    """
    Wrap ``text`` for a literal substring LIKE match using ``ESCAPE '!'``.

    >>> like_pattern("50%_off!")
    '%50!%!_off!!%'
    """
    escaped = (
        text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


def customer_filters(search: str | None, city: str | None) -> tuple[str, list[Any]]:
    """
    Build the WHERE clause shared by the customer list and count queries.

    Both filters are case-insensitive literal substring matches; ``%`` and
    ``_`` in the input match only themselves. Empty values are ignored.
    """
    clauses: list[str] = []
    params: list[Any] = []

    if search:
        pattern = like_pattern(search)
        clauses.append(
            f"(LOWER(name) LIKE LOWER(?) ESCAPE '{LIKE_ESCAPE}' "
            f"OR LOWER(email) LIKE LOWER(?) ESCAPE '{LIKE_ESCAPE}')"
        )
        params.extend([pattern, pattern])

    if city:
        clauses.append(
            "id IN (SELECT DISTINCT customer_id FROM addresses "
            f"WHERE LOWER(city) LIKE LOWER(?) ESCAPE '{LIKE_ESCAPE}')"
        )
        params.append(like_pattern(city))

    where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
    return where, params


class SQLStore(CustomerStore):
    """CustomerStore implemented on top of run_query/run_insert."""

    @abstractmethod
    async def run_query(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Execute a SELECT and return rows as dicts."""

    @abstractmethod
    async def run_insert(self, sql: str, params: Sequence[Any] = ()) -> InsertResult:
        """
        Execute an INSERT/UPDATE/DELETE.

        Raises:
            UniqueConstraintError: the statement violated a UNIQUE constraint
        """

    def _operation(self, name: str, **context) -> OperationContext:
        return OperationContext(name, backend=self.backend, **context)

    async def ping(self) -> bool:
        with self._operation("ping"):
            rows = await self.run_query("SELECT 1 AS ok")
        return bool(rows)

    # ------------------------------------------------------------------
    # Customers
    # ------------------------------------------------------------------

    async def _select_customer(self, customer_id: int) -> Customer | None:
        rows = await self.run_query(
            f"SELECT {CUSTOMER_COLUMNS} FROM customers WHERE id = ?", (customer_id,)
        )
        if not rows:
            return None
        return Customer.model_validate(rows[0])

    async def list_customers(
        self,
        search: str | None = None,
        city: str | None = None,
        limit: int = 10,
        offset: int = 0,
    ) -> list[Customer]:
        where, params = customer_filters(search, city)
        sql = f"SELECT {CUSTOMER_COLUMNS} FROM customers{where} ORDER BY name, id LIMIT ? OFFSET ?"

        with self._operation("list_customers"):
            rows = await self.run_query(sql, (*params, limit, offset))
        return [Customer.model_validate(row) for row in rows]

    async def count_customers(self, search: str | None = None, city: str | None = None) -> int:
        where, params = customer_filters(search, city)

        with self._operation("count_customers"):
            rows = await self.run_query(f"SELECT COUNT(*) AS total FROM customers{where}", params)
        return int(rows[0]["total"]) if rows else 0

    async def get_customer(self, customer_id: int) -> Customer | None:
        if not id_in_range(customer_id):
            return None
        with self._operation("get_customer", customer_id=customer_id):
            return await self._select_customer(customer_id)

    async def create_customer(self, data: CustomerWrite) -> Customer:
        with self._operation("create_customer"):
            result = await self.run_insert(
                "INSERT INTO customers (name, email, phone) VALUES (?, ?, ?)",
                (data.name, data.email, data.phone),
            )
            customer = await self._select_customer(result.id)
        if customer is None:
            raise LookupError(f"Inserted customer {result.id} could not be re-read")
        return customer

    async def update_customer(self, customer_id: int, data: CustomerWrite) -> Customer | None:
        if not id_in_range(customer_id):
            return None
        with self._operation("update_customer", customer_id=customer_id):
            result = await self.run_insert(
                "UPDATE customers SET name = ?, email = ?, phone = ?, "
                "updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (data.name, data.email, data.phone, customer_id),
            )
            if result.changes == 0:
                return None
            return await self._select_customer(customer_id)

    async def delete_customer(self, customer_id: int) -> bool:
        if not id_in_range(customer_id):
            return False
        with self._operation("delete_customer", customer_id=customer_id):
            result = await self.run_insert("DELETE FROM customers WHERE id = ?", (customer_id,))
        return result.changes > 0

    # ------------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------------

    async def _select_address(self, address_id: int) -> Address | None:
        rows = await self.run_query(
            f"SELECT {ADDRESS_COLUMNS} FROM addresses WHERE id = ?", (address_id,)
        )
        if not rows:
            return None
        return Address.model_validate(rows[0])

    async def list_addresses(self, customer_id: int) -> list[Address]:
        if not id_in_range(customer_id):
            return []
        with self._operation("list_addresses", customer_id=customer_id):
            rows = await self.run_query(
                f"SELECT {ADDRESS_COLUMNS} FROM addresses WHERE customer_id = ? "
                "ORDER BY created_at DESC, id DESC",
                (customer_id,),
            )
        return [Address.model_validate(row) for row in rows]

    async def get_address(self, address_id: int) -> Address | None:
        if not id_in_range(address_id):
            return None
        with self._operation("get_address", address_id=address_id):
            return await self._select_address(address_id)

    async def create_address(self, customer_id: int, data: AddressWrite) -> Address:
        with self._operation("create_address", customer_id=customer_id):
            result = await self.run_insert(
                "INSERT INTO addresses "
                "(customer_id, street, city, state, zip_code, country, address_type) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    customer_id,
                    data.street,
                    data.city,
                    data.state,
                    data.zip_code,
                    data.country,
                    data.address_type.value,
                ),
            )
            address = await self._select_address(result.id)
        if address is None:
            raise LookupError(f"Inserted address {result.id} could not be re-read")
        return address

    async def update_address(self, address_id: int, data: AddressWrite) -> Address | None:
        if not id_in_range(address_id):
            return None
        with self._operation("update_address", address_id=address_id):
            result = await self.run_insert(
                "UPDATE addresses SET street = ?, city = ?, state = ?, zip_code = ?, "
                "country = ?, address_type = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (
                    data.street,
                    data.city,
                    data.state,
                    data.zip_code,
                    data.country,
                    data.address_type.value,
                    address_id,
                ),
            )
            if result.changes == 0:
                return None
            return await self._select_address(address_id)

    async def delete_address(self, address_id: int) -> bool:
        if not id_in_range(address_id):
            return False
        with self._operation("delete_address", address_id=address_id):
            result = await self.run_insert("DELETE FROM addresses WHERE id = ?", (address_id,))
        return result.changes > 0
