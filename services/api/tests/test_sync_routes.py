"""Tests for bulk sync and write-through endpoints."""

import pytest
from httpx import AsyncClient

from app.services.errors import PlatformRequestError
from app.services.records import EntityKind
from conftest import shopify_customer, shopify_order, shopify_product


@pytest.mark.asyncio
async def test_sync_products(api_client: AsyncClient, fake_client):
    fake_client.pages[EntityKind.PRODUCT] = [[shopify_product(1), shopify_product(2)]]

    response = await api_client.post("/sync/products")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert (data["synced"], data["errors"], data["total"]) == (2, 0, 2)


@pytest.mark.asyncio
async def test_sync_unknown_kind(api_client: AsyncClient):
    response = await api_client.post("/sync/widgets")
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_sync_fails_when_platform_unreachable(api_client: AsyncClient, fake_client):
    fake_client.page_errors[(EntityKind.CUSTOMER, 0)] = PlatformRequestError("bad token", status_code=401)

    response = await api_client.post("/sync/customers")

    assert response.status_code == 500
    assert "bad token" in response.json()["detail"]


@pytest.mark.asyncio
async def test_sync_all(api_client: AsyncClient, fake_client):
    fake_client.pages[EntityKind.PRODUCT] = [[shopify_product()]]
    fake_client.pages[EntityKind.CUSTOMER] = [[shopify_customer()]]
    fake_client.pages[EntityKind.ORDER] = [[shopify_order()]]

    response = await api_client.post("/sync/all")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["synced"] == 3
    assert set(data["results"]) == {"products", "customers", "orders"}


@pytest.mark.asyncio
async def test_push_create(api_client: AsyncClient, fake_client, store):
    fake_client.create_response = shopify_product(8001, title="Bucket")

    response = await api_client.post("/push/products", json={"title": "Bucket"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["external_id"] == "8001"
    assert (await store.get(EntityKind.PRODUCT, "8001")).name == "Bucket"


@pytest.mark.asyncio
async def test_push_passes_platform_validation_errors_through(api_client: AsyncClient, fake_client, monkeypatch):
    async def reject(kind, fields):
        raise PlatformRequestError("title can't be blank", status_code=422)

    monkeypatch.setattr(fake_client, "create", reject)

    response = await api_client.post("/push/products", json={})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_push_update(api_client: AsyncClient, fake_client, store):
    fake_client.create_response = shopify_customer(9001)

    response = await api_client.put("/push/customers/9001", json={"first_name": "Augusta"})

    assert response.status_code == 200
    assert fake_client.updated == [(EntityKind.CUSTOMER, "9001", {"first_name": "Augusta"})]
    assert (await store.get(EntityKind.CUSTOMER, "9001")).first_name == "Augusta"


@pytest.mark.asyncio
async def test_platform_connection(api_client: AsyncClient):
    response = await api_client.get("/platform/test")
    assert response.json() == {"success": True, "shop": "Fake Shop"}
