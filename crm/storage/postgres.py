"""
PostgreSQL backend on an asyncpg connection pool.
"""

import logging
from collections.abc import Sequence
from typing import Any

import asyncpg

from crm.storage.base import InsertResult, UniqueConstraintError
from crm.storage.sql import SQLStore, to_numbered_placeholders

logger = logging.getLogger(__name__)

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS customers (
        id SERIAL PRIMARY KEY,
        name VARCHAR(255) NOT NULL,
        email VARCHAR(255) NOT NULL UNIQUE,
        phone VARCHAR(50),
        created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS addresses (
        id SERIAL PRIMARY KEY,
        customer_id INTEGER NOT NULL REFERENCES customers(id) ON DELETE CASCADE,
        street VARCHAR(255) NOT NULL,
        city VARCHAR(100) NOT NULL,
        state VARCHAR(100) NOT NULL,
        zip_code VARCHAR(20) NOT NULL,
        country VARCHAR(100) NOT NULL DEFAULT 'USA',
        address_type VARCHAR(20) DEFAULT 'home',
        created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_customers_name ON customers(name)",
    "CREATE INDEX IF NOT EXISTS idx_addresses_customer ON addresses(customer_id)",
    "CREATE INDEX IF NOT EXISTS idx_addresses_city ON addresses(city)",
)


def parse_affected_rows(command_status: str) -> int:
    """
    Extract the row count from an asyncpg command status.

    >>> parse_affected_rows("UPDATE 1")
    1
    >>> parse_affected_rows("INSERT 0 1")
    1
    >>> parse_affected_rows("CREATE TABLE")
    0
    """
    last = command_status.rsplit(" ", 1)[-1]
    return int(last) if last.isdigit() else 0


class PostgresStore(SQLStore):
    """Customer/address storage in PostgreSQL."""

    backend = "postgres"

    def __init__(
        self,
        dsn: str,
        min_size: int = 1,
        max_size: int = 10,
        command_timeout: float = 60.0,
    ):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self._pool: asyncpg.Pool | None = None

    async def initialize(self) -> None:
        """Create the pool and the schema. Idempotent."""
        if self._pool is not None:
            return

        self._pool = await asyncpg.create_pool(
            self.dsn,
            min_size=self.min_size,
            max_size=self.max_size,
            command_timeout=self.command_timeout,
            statement_cache_size=0,  # pgbouncer compatibility
        )

        async with self._pool.acquire() as conn:
            for statement in SCHEMA:
                await conn.execute(statement)

        logger.info("PostgreSQL store initialized")

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
        logger.info("PostgreSQL connections closed")

    def _require_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("PostgresStore.initialize() must be awaited before use")
        return self._pool

    async def run_query(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        async with self._require_pool().acquire() as conn:
            rows = await conn.fetch(to_numbered_placeholders(sql), *params)
        return [dict(row) for row in rows]

    async def run_insert(self, sql: str, params: Sequence[Any] = ()) -> InsertResult:
        statement = to_numbered_placeholders(sql)
        try:
            async with self._require_pool().acquire() as conn:
                if statement.lstrip().upper().startswith("INSERT"):
                    row = await conn.fetchrow(f"{statement} RETURNING id", *params)
                    return InsertResult(id=row["id"] if row else None, changes=1 if row else 0)

                status = await conn.execute(statement, *params)
                return InsertResult(id=None, changes=parse_affected_rows(status))
        except asyncpg.UniqueViolationError as e:
            raise UniqueConstraintError(str(e)) from e
