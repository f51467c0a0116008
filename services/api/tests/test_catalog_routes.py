"""Tests for the read API over the mirror."""

import pytest
from httpx import AsyncClient

from app.services.records import EntityKind
from app.services.shopify_translator import translate_customer, translate_order, translate_product
from conftest import shopify_customer, shopify_order, shopify_product


def _product(product_id: int, title: str, price: str, stock: int, **overrides) -> dict:
    product = shopify_product(product_id, title=title, **overrides)
    product["variants"][0]["price"] = price
    product["variants"][0]["inventory_quantity"] = stock
    return product


@pytest.fixture
async def catalog(store):
    products = [
        _product(1, "Mop", "14.99", 5),
        _product(2, "Bucket", "9.50", 0, vendor="PailWorks", tags="featured"),
        _product(3, "Squeegee", "22.00", 40, product_type="Windows", created_at="2024-06-01T00:00:00Z"),
        _product(4, "Rag", "2.00", 12, vendor="", product_type=""),
    ]
    for raw in products:
        record = translate_product(raw)
        await store.upsert(EntityKind.PRODUCT, record.external_id, record)
    await store.upsert(EntityKind.CUSTOMER, "9001", translate_customer(shopify_customer()))
    await store.upsert(EntityKind.ORDER, "5001", translate_order(shopify_order()))
    await store.upsert(
        EntityKind.ORDER,
        "5002",
        translate_order(shopify_order(5002, order_number=1002, financial_status="pending", total_price="10.00")),
    )
    return store


@pytest.mark.asyncio
async def test_list_products_default_sort(api_client: AsyncClient, catalog):
    response = await api_client.get("/products")

    assert response.status_code == 200
    data = response.json()
    assert [p["name"] for p in data["data"]] == ["Bucket", "Mop", "Rag", "Squeegee"]
    assert data["pagination"] == {"page": 1, "limit": 20, "total": 4, "pages": 1}
    assert "externalId" in data["data"][0]


@pytest.mark.asyncio
async def test_list_products_filters(api_client: AsyncClient, catalog):
    response = await api_client.get("/products", params={"inStock": "true", "minPrice": 5, "sortBy": "price-desc"})
    assert [p["name"] for p in response.json()["data"]] == ["Squeegee", "Mop"]

    response = await api_client.get("/products", params={"search": "pail"})
    assert [p["name"] for p in response.json()["data"]] == ["Bucket"]

    response = await api_client.get("/products", params={"category": "Windows"})
    assert [p["name"] for p in response.json()["data"]] == ["Squeegee"]

    response = await api_client.get("/products", params={"category": "All"})
    assert response.json()["pagination"]["total"] == 4


@pytest.mark.asyncio
async def test_list_products_pagination(api_client: AsyncClient, catalog):
    response = await api_client.get("/products", params={"limit": 3, "page": 2})

    data = response.json()
    assert [p["name"] for p in data["data"]] == ["Squeegee"]
    assert data["pagination"]["pages"] == 2


@pytest.mark.asyncio
async def test_get_product(api_client: AsyncClient, catalog):
    response = await api_client.get("/products/1")
    assert response.json()["data"]["stockQuantity"] == 5

    response = await api_client.get("/products/999")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_featured_products(api_client: AsyncClient, catalog):
    response = await api_client.get("/products/featured")
    assert [p["name"] for p in response.json()["data"]] == ["Bucket"]


@pytest.mark.asyncio
async def test_categories_and_brands_skip_placeholders(api_client: AsyncClient, catalog):
    categories = (await api_client.get("/categories")).json()["data"]
    brands = (await api_client.get("/brands")).json()["data"]

    assert categories == ["Cleaning Supplies", "Windows"]
    assert brands == ["CleanCo", "PailWorks"]


@pytest.mark.asyncio
async def test_orders_and_customers(api_client: AsyncClient, catalog):
    orders = (await api_client.get("/orders", params={"status": "paid"})).json()
    assert [o["orderNumber"] for o in orders["data"]] == [1001]

    customers = (await api_client.get("/customers")).json()
    assert customers["data"][0]["email"] == "ada@example.com"

    order = (await api_client.get("/orders/5001")).json()["data"]
    assert order["items"][0]["quantity"] == 2
    assert (await api_client.get("/orders/404")).status_code == 404


@pytest.mark.asyncio
async def test_stats(api_client: AsyncClient, catalog):
    response = await api_client.get("/stats")

    stats = response.json()["stats"]
    assert stats["products"] == {"total": 4, "inStock": 3, "lowStock": 1}
    assert stats["customers"]["total"] == 1
    assert stats["orders"]["total"] == 2
    assert stats["revenue"]["total"] == 37.38
