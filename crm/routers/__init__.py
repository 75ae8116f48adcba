"""
API routers for the CRM service.

Routers:
- customers: Customer CRUD and the nested address collection
- addresses: Address update/delete by address id
- health: Liveness check
"""

from crm.routers.addresses import router as addresses_router
from crm.routers.customers import router as customers_router
from crm.routers.health import router as health_router

__all__ = ["addresses_router", "customers_router", "health_router"]
