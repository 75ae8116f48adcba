"""
MySQL backend on an aiomysql connection pool.

Connections run with autocommit and the FOUND_ROWS client flag, so an UPDATE
that rewrites identical values still reports the matched row.
"""

import logging
import ssl
from collections.abc import Sequence
from typing import Any

import aiomysql
from pymysql.constants import CLIENT

from crm.storage.base import InsertResult, UniqueConstraintError
from crm.storage.sql import SQLStore, to_format_placeholders

logger = logging.getLogger(__name__)

ER_DUP_ENTRY = 1062

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS customers (
        id INT AUTO_INCREMENT PRIMARY KEY,
        name VARCHAR(255) NOT NULL,
        email VARCHAR(255) NOT NULL UNIQUE,
        phone VARCHAR(50),
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        INDEX idx_customers_name (name)
    ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4
    """,
    """
    CREATE TABLE IF NOT EXISTS addresses (
        id INT AUTO_INCREMENT PRIMARY KEY,
        customer_id INT NOT NULL,
        street VARCHAR(255) NOT NULL,
        city VARCHAR(100) NOT NULL,
        state VARCHAR(100) NOT NULL,
        zip_code VARCHAR(20) NOT NULL,
        country VARCHAR(100) NOT NULL DEFAULT 'USA',
        address_type VARCHAR(20) DEFAULT 'home',
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        INDEX idx_addresses_customer (customer_id),
        INDEX idx_addresses_city (city),
        FOREIGN KEY (customer_id) REFERENCES customers(id) ON DELETE CASCADE
    ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4
    """,
)


class MySQLStore(SQLStore):
    """Customer/address storage in MySQL (InnoDB)."""

    backend = "mysql"

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        database: str,
        use_ssl: bool = False,
        min_size: int = 1,
        max_size: int = 10,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.database = database
        self.use_ssl = use_ssl
        self.min_size = min_size
        self.max_size = max_size
        self._pool: aiomysql.Pool | None = None

    async def initialize(self) -> None:
        """Create the pool and the schema. Idempotent."""
        if self._pool is not None:
            return

        self._pool = await aiomysql.create_pool(
            host=self.host,
            port=self.port,
            user=self.user,
            password=self.password,
            db=self.database,
            minsize=self.min_size,
            maxsize=self.max_size,
            autocommit=True,
            cursorclass=aiomysql.DictCursor,
            client_flag=CLIENT.FOUND_ROWS,
            # Timestamps are stored and read back as UTC
            init_command="SET time_zone = '+00:00'",
            ssl=ssl.create_default_context() if self.use_ssl else None,
        )

        async with self._pool.acquire() as conn:
            async with conn.cursor() as cursor:
                for statement in SCHEMA:
                    await cursor.execute(statement)

        logger.info(f"MySQL store initialized ({self.host}:{self.port}/{self.database})")

    async def close(self) -> None:
        if self._pool is not None:
            self._pool.close()
            await self._pool.wait_closed()
            self._pool = None
        logger.info("MySQL connections closed")

    def _require_pool(self) -> aiomysql.Pool:
        if self._pool is None:
            raise RuntimeError("MySQLStore.initialize() must be awaited before use")
        return self._pool

    async def run_query(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        async with self._require_pool().acquire() as conn:
            async with conn.cursor() as cursor:
                await cursor.execute(to_format_placeholders(sql), tuple(params))
                rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def run_insert(self, sql: str, params: Sequence[Any] = ()) -> InsertResult:
        try:
            async with self._require_pool().acquire() as conn:
                async with conn.cursor() as cursor:
                    await cursor.execute(to_format_placeholders(sql), tuple(params))
                    return InsertResult(id=cursor.lastrowid, changes=cursor.rowcount)
        except aiomysql.IntegrityError as e:
            if e.args and e.args[0] == ER_DUP_ENTRY:
                raise UniqueConstraintError(str(e)) from e
            raise
