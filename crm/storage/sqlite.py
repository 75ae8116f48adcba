"""
SQLite backend (default, embedded).

Uses the stdlib sqlite3 driver with a single lazily created connection.
Statements are short and run inline on the event loop.
"""

import logging
import sqlite3
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from crm.storage.base import InsertResult, UniqueConstraintError
from crm.storage.sql import SQLStore

logger = logging.getLogger(__name__)

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS customers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE,
        phone TEXT,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS addresses (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        customer_id INTEGER NOT NULL,
        street TEXT NOT NULL,
        city TEXT NOT NULL,
        state TEXT NOT NULL,
        zip_code TEXT NOT NULL,
        country TEXT NOT NULL DEFAULT 'USA',
        address_type TEXT DEFAULT 'home',
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,

        FOREIGN KEY (customer_id) REFERENCES customers(id)
            ON DELETE CASCADE
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_customers_name ON customers(name)",
    "CREATE INDEX IF NOT EXISTS idx_addresses_customer ON addresses(customer_id)",
    "CREATE INDEX IF NOT EXISTS idx_addresses_city ON addresses(city)",
)


def _lower(value):
    return value.lower() if isinstance(value, str) else value


class SQLiteStore(SQLStore):
    """
    Customer/address storage in a local SQLite file.

    Pass ``":memory:"`` as db_path for a throwaway database that lives as
    long as the store.
    """

    backend = "sqlite"

    def __init__(self, db_path: str = "./data/crm.sqlite"):
        self.db_path = db_path

        # Connection will be created lazily
        self._conn: sqlite3.Connection | None = None
        self._initialized = False

    def _get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            # Cascade deletes rely on this; it is off by default per connection
            self._conn.execute("PRAGMA foreign_keys = ON")
            # Built-in LOWER folds ASCII only; match str.lower used elsewhere
            self._conn.create_function("LOWER", 1, _lower, deterministic=True)
        return self._conn

    async def initialize(self) -> None:
        """
        Create tables and indexes.

        Idempotent - safe to call multiple times.
        """
        if self._initialized:
            return

        logger.info(f"Initializing SQLite store at {self.db_path}")
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = self._get_connection()

        if self.db_path != ":memory:":
            conn.execute("PRAGMA journal_mode = WAL")

        for statement in SCHEMA:
            conn.execute(statement)
        conn.commit()

        self._initialized = True
        logger.info("SQLite store initialized")

    async def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        self._initialized = False

    async def run_query(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        cursor = self._get_connection().execute(sql, tuple(params))
        try:
            return [dict(row) for row in cursor.fetchall()]
        finally:
            cursor.close()

    async def run_insert(self, sql: str, params: Sequence[Any] = ()) -> InsertResult:
        conn = self._get_connection()
        try:
            cursor = conn.execute(sql, tuple(params))
            conn.commit()
        except sqlite3.IntegrityError as e:
            conn.rollback()
            if getattr(e, "sqlite_errorname", None) == "SQLITE_CONSTRAINT_UNIQUE":
                raise UniqueConstraintError(str(e)) from e
            raise

        try:
            return InsertResult(id=cursor.lastrowid, changes=cursor.rowcount)
        finally:
            cursor.close()
