"""
Tests for the async HTTP client, driven in-process through httpx.ASGITransport.
"""

import httpx
import pytest
import pytest_asyncio

from crm.client import GENERIC_ERROR_MESSAGE, CRMClient, CRMClientError
from crm.main import create_app
from crm.storage import MemoryStore


@pytest_asyncio.fixture
async def crm(test_settings):
    # ASGITransport does not run the lifespan; the memory store needs no setup
    app = create_app(settings=test_settings, store=MemoryStore())
    transport = httpx.ASGITransport(app=app)
    async with CRMClient(base_url="http://testserver/api", transport=transport) as client:
        yield client


class TestCustomerAPI:
    @pytest.mark.asyncio
    async def test_crud_round(self, crm: CRMClient):
        created = await crm.customers.create({"name": "Ada", "email": "ada@example.com"})
        fetched = await crm.customers.get_by_id(created["id"])
        updated = await crm.customers.update(
            created["id"], {"name": "Ada L.", "email": "ada@example.com", "phone": "555"}
        )
        deleted = await crm.customers.delete(created["id"])

        assert fetched == created
        assert updated["name"] == "Ada L."
        assert updated["phone"] == "555"
        assert deleted == {"message": "Customer deleted successfully"}

    @pytest.mark.asyncio
    async def test_get_all_passes_filters(self, crm: CRMClient):
        await crm.customers.create({"name": "Ada", "email": "ada@example.com"})
        await crm.customers.create({"name": "Grace", "email": "grace@example.com"})

        everyone = await crm.customers.get_all()
        page = await crm.customers.get_all(search="grace", page=1, limit=5)

        assert everyone["pagination"]["total"] == 2
        assert [c["name"] for c in page["customers"]] == ["Grace"]
        assert page["pagination"] == {"page": 1, "limit": 5, "total": 1, "pages": 1}

    @pytest.mark.asyncio
    async def test_server_error_message_is_surfaced(self, crm: CRMClient):
        with pytest.raises(CRMClientError) as exc_info:
            await crm.customers.get_by_id(404)

        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "Customer not found"

    @pytest.mark.asyncio
    async def test_validation_message_is_surfaced(self, crm: CRMClient):
        with pytest.raises(CRMClientError) as exc_info:
            await crm.customers.create({"name": "Ada", "email": "nope"})

        assert exc_info.value.status_code == 400
        assert str(exc_info.value) == "Invalid email format"


class TestAddressAPI:
    @pytest.mark.asyncio
    async def test_address_round(self, crm: CRMClient):
        customer = await crm.customers.create({"name": "Ada", "email": "ada@example.com"})

        address = await crm.addresses.create(
            customer["id"],
            {"street": "1 Main St", "city": "London", "state": "LDN", "zip_code": "N1"},
        )
        updated = await crm.addresses.update(
            address["id"],
            {"street": "2 Main St", "city": "London", "state": "LDN", "zip_code": "N1",
             "address_type": "work"},
        )
        listed = await crm.addresses.get_by_customer_id(customer["id"])
        deleted = await crm.addresses.delete(address["id"])

        assert address["country"] == "USA"
        assert updated["street"] == "2 Main St"
        assert updated["address_type"] == "work"
        assert listed == [updated]
        assert deleted == {"message": "Address deleted successfully"}

    @pytest.mark.asyncio
    async def test_missing_address(self, crm: CRMClient):
        with pytest.raises(CRMClientError, match="Address not found"):
            await crm.addresses.delete(12345)


class TestClientErrors:
    @pytest.mark.asyncio
    async def test_non_json_error_uses_generic_message(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="Bad gateway")

        async with CRMClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(CRMClientError) as exc_info:
                await client.customers.get_all()

        assert exc_info.value.status_code == 502
        assert exc_info.value.message == GENERIC_ERROR_MESSAGE

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with CRMClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(CRMClientError) as exc_info:
                await client.customers.get_by_id(1)

        assert exc_info.value.status_code is None
        assert exc_info.value.message == GENERIC_ERROR_MESSAGE

    @pytest.mark.asyncio
    async def test_requests_target_api_prefix(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            return httpx.Response(200, json=[])

        async with CRMClient(base_url="http://crm.local/api/", transport=httpx.MockTransport(handler)) as client:
            await client.addresses.get_by_customer_id(7)

        assert seen == ["/api/customers/7/addresses"]
