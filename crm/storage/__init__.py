"""
Storage layer for customers and addresses.

Backends:
- sqlite: embedded file database (default)
- postgres: asyncpg pool
- mysql: aiomysql pool
- memory: per-process dicts (demo/tests)
"""

from fastapi import Request

from crm.config import DatabaseConfig
from crm.storage.base import (
    MAX_ROW_ID,
    CustomerStore,
    InsertResult,
    StorageError,
    UniqueConstraintError,
)
from crm.storage.memory import MemoryStore
from crm.storage.sqlite import SQLiteStore


def create_store(config: DatabaseConfig) -> CustomerStore:
    """
    Build the store selected by DATABASE_TYPE.

    Driver modules for postgres and mysql are imported only when selected.
    """
    if config.type == "sqlite":
        return SQLiteStore(config.sqlite_path)

    if config.type == "postgres":
        from crm.storage.postgres import PostgresStore

        return PostgresStore(
            dsn=config.postgres_url,
            min_size=config.pool_min_size,
            max_size=config.pool_max_size,
            command_timeout=config.command_timeout_seconds,
        )

    if config.type == "mysql":
        from crm.storage.mysql import MySQLStore

        return MySQLStore(
            host=config.mysql_host,
            port=config.mysql_port,
            user=config.mysql_user,
            password=config.mysql_password,
            database=config.mysql_database,
            use_ssl=config.mysql_ssl,
            min_size=config.pool_min_size,
            max_size=config.pool_max_size,
        )

    if config.type == "memory":
        return MemoryStore()

    raise ValueError(f"Unsupported database type: {config.type}")


def get_store(request: Request) -> CustomerStore:
    """
    FastAPI dependency for the application's store.

    Usage:
        @router.get("/customers")
        async def list_customers(store: CustomerStore = Depends(get_store)):
            ...
    """
    return request.app.state.store


__all__ = [
    "MAX_ROW_ID",
    "CustomerStore",
    "InsertResult",
    "MemoryStore",
    "SQLiteStore",
    "StorageError",
    "UniqueConstraintError",
    "create_store",
    "get_store",
]
