"""
CRM - customer and address management service.

REST API for listing, creating, editing and deleting customers and their
mailing addresses, backed by an interchangeable relational store
(SQLite, Postgres, MySQL) or an in-memory store for demos and tests.

Example:
    >>> from crm import get_settings
    >>> settings = get_settings()
    >>> print(settings.database.type)
"""

from crm.config import get_settings

__all__ = ["get_settings"]
