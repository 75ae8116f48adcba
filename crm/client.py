"""
Async HTTP client for the CRM API.

Mirrors the browser client's service module so Python callers and tests can
drive the API with the same calls:

    async with CRMClient("http://localhost:8000/api") as crm:
        page = await crm.customers.get_all(search="ada", page=1, limit=10)
        customer = await crm.customers.create({"name": "Ada", "email": "ada@example.com"})
        await crm.addresses.create(customer["id"], {
            "street": "1 Analytical Way",
            "city": "London",
            "state": "LDN",
            "zip_code": "N1",
        })

Non-2xx responses raise CRMClientError carrying the server's error message.
"""

from typing import Any

import httpx

from crm.observability.logging import get_logger

logger = get_logger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again."


class CRMClientError(Exception):
    """
    Failed API call.

    Attributes:
        message: Server-provided error text, or the generic message
        status_code: HTTP status, or None when no response was received
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class CRMClient:
    """
    Client for the customer and address endpoints.

    Args:
        base_url: API root including the /api prefix
        timeout: Request timeout in seconds
        transport: Optional httpx transport (e.g. httpx.ASGITransport for in-process calls)
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000/api",
        timeout: float = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )
        self.customers = CustomerAPI(self)
        self.addresses = AddressAPI(self)

    async def __aenter__(self) -> "CRMClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http.aclose()

    async def request(self, method: str, path: str, **kwargs) -> Any:
        """
        Send a request and return the decoded JSON body.

        Raises:
            CRMClientError: non-2xx status or transport failure
        """
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.TransportError as e:
            logger.error("API request failed", method=method, path=path, error=str(e))
            raise CRMClientError(GENERIC_ERROR_MESSAGE) from e

        if response.is_success:
            return response.json()

        message = GENERIC_ERROR_MESSAGE
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("error"):
            message = str(body["error"])

        logger.error(
            "API error",
            method=method,
            path=path,
            status_code=response.status_code,
            error=message,
        )
        raise CRMClientError(message, status_code=response.status_code)


class CustomerAPI:
    """Customer endpoints."""

    def __init__(self, client: CRMClient):
        self._client = client

    async def get_all(
        self,
        search: str | None = None,
        city: str | None = None,
        page: int | None = None,
        limit: int | None = None,
    ) -> dict[str, Any]:
        params = {
            key: value
            for key, value in {"search": search, "city": city, "page": page, "limit": limit}.items()
            if value is not None
        }
        return await self._client.request("GET", "/customers", params=params)

    async def get_by_id(self, customer_id: int) -> dict[str, Any]:
        return await self._client.request("GET", f"/customers/{customer_id}")

    async def create(self, data: dict[str, Any]) -> dict[str, Any]:
        return await self._client.request("POST", "/customers", json=data)

    async def update(self, customer_id: int, data: dict[str, Any]) -> dict[str, Any]:
        return await self._client.request("PUT", f"/customers/{customer_id}", json=data)

    async def delete(self, customer_id: int) -> dict[str, Any]:
        return await self._client.request("DELETE", f"/customers/{customer_id}")


class AddressAPI:
    """Address endpoints."""

    def __init__(self, client: CRMClient):
        self._client = client

    async def get_by_customer_id(self, customer_id: int) -> list[dict[str, Any]]:
        return await self._client.request("GET", f"/customers/{customer_id}/addresses")

    async def create(self, customer_id: int, data: dict[str, Any]) -> dict[str, Any]:
        return await self._client.request(
            "POST", f"/customers/{customer_id}/addresses", json=data
        )

    async def update(self, address_id: int, data: dict[str, Any]) -> dict[str, Any]:
        return await self._client.request("PUT", f"/addresses/{address_id}", json=data)

    async def delete(self, address_id: int) -> dict[str, Any]:
        return await self._client.request("DELETE", f"/addresses/{address_id}")
