"""Shared fixtures: in-memory SQLite mirror, fake platform client, API client."""

from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  (registers tables on Base.metadata)
from app import dependencies
from app.main import app as fastapi_app
from app.services.errors import PlatformRequestError
from app.services.platform_client import Page, PlatformClient
from app.services.platforms import SHOPIFY, PlatformProfile
from app.services.records import EntityKind
from app.services.signature import WebhookVerifier
from app.services.sync import SyncOrchestrator
from app.services.upsert_store import SqlUpsertStore
from app.settings import Settings
from app.stores.postgres import Base

WEBHOOK_SECRET = "test-webhook-secret"


class FakePlatformClient(PlatformClient):
    """In-memory platform: pages per kind, entities by id, recorded writes."""

    name = "fake"

    def __init__(self) -> None:
        super().__init__(base_url="https://platform.test")
        self.pages: dict[EntityKind, list[list[dict[str, Any]]]] = {kind: [] for kind in EntityKind}
        # (kind, page index) -> error raised when that page is requested
        self.page_errors: dict[tuple[EntityKind, int], PlatformRequestError] = {}
        self.entities: dict[tuple[EntityKind, str], dict[str, Any]] = {}
        self.fetch_error: PlatformRequestError | None = None
        self.created: list[tuple[EntityKind, dict[str, Any]]] = []
        self.updated: list[tuple[EntityKind, str, dict[str, Any]]] = []
        self.create_response: dict[str, Any] | None = None
        self.webhooks: list[dict[str, Any]] = []

    async def fetch_page(self, kind: EntityKind, token: str | None = None) -> Page:
        index = int(token or 0)
        if (kind, index) in self.page_errors:
            raise self.page_errors[(kind, index)]
        pages = self.pages[kind]
        if index >= len(pages):
            return Page(items=[])
        next_token = str(index + 1) if index + 1 < len(pages) else None
        return Page(items=pages[index], next_token=next_token)

    async def get_by_id(self, kind: EntityKind, external_id: str) -> dict[str, Any] | None:
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.entities.get((kind, external_id))

    async def create(self, kind: EntityKind, fields: dict[str, Any]) -> dict[str, Any]:
        self.created.append((kind, fields))
        return self.create_response or fields

    async def update(self, kind: EntityKind, external_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        self.updated.append((kind, external_id, fields))
        return {**(self.create_response or {}), **fields, "id": external_id}

    async def list_webhooks(self) -> list[dict[str, Any]]:
        return list(self.webhooks)

    async def register_webhooks(self, address: str, topics: list[str]) -> list[dict[str, Any]]:
        created = [{"id": i + 1, "topic": t, "address": address} for i, t in enumerate(topics)]
        self.webhooks.extend(created)
        return created

    async def delete_webhook(self, webhook_id: str) -> None:
        self.webhooks = [w for w in self.webhooks if str(w["id"]) != webhook_id]

    async def test_connection(self) -> dict[str, Any]:
        return {"success": True, "shop": "Fake Shop"}


@pytest.fixture
async def session_factory():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def store(session_factory) -> SqlUpsertStore:
    return SqlUpsertStore(session_factory)


@pytest.fixture
def fake_client() -> FakePlatformClient:
    return FakePlatformClient()


@pytest.fixture
def profile() -> PlatformProfile:
    return SHOPIFY


@pytest.fixture
def orchestrator(fake_client, profile, store) -> SyncOrchestrator:
    return SyncOrchestrator(fake_client, profile, store)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        platform="shopify",
        webhook_secret=WEBHOOK_SECRET,
        public_base_url="https://mirror.example.com",
    )


@pytest.fixture
async def api_client(session_factory, fake_client, profile, orchestrator, test_settings):
    """API client with every service dependency overridden."""
    overrides = {
        dependencies.get_session_factory: lambda: session_factory,
        dependencies.get_platform_client: lambda: fake_client,
        dependencies.get_profile: lambda: profile,
        dependencies.get_orchestrator: lambda: orchestrator,
        dependencies.get_verifier: lambda: WebhookVerifier(test_settings.webhook_secrets),
        dependencies.get_app_settings: lambda: test_settings,
    }
    fastapi_app.dependency_overrides.update(overrides)
    async with AsyncClient(
        transport=ASGITransport(app=fastapi_app),
        base_url="http://test",
    ) as ac:
        yield ac
    fastapi_app.dependency_overrides.clear()


# =============================================================================
# Payload builders
# =============================================================================


def shopify_product(product_id: int = 7001, **overrides: Any) -> dict[str, Any]:
    product = {
        "id": product_id,
        "title": "Mop",
        "vendor": "CleanCo",
        "product_type": "Cleaning Supplies",
        "body_html": "<p>Absorbent mop</p>",
        "tags": "new, floor",
        "created_at": "2024-01-05T10:00:00-05:00",
        "updated_at": "2024-02-01T12:00:00Z",
        "images": [{"src": "https://cdn.shopify.test/mop.jpg"}],
        "variants": [
            {
                "id": product_id * 10,
                "title": "Default Title",
                "price": "14.99",
                "compare_at_price": "19.99",
                "sku": "MOP-1",
                "barcode": "0123456789",
                "inventory_quantity": 5,
            }
        ],
    }
    product.update(overrides)
    return product


def shopify_customer(customer_id: int = 9001, **overrides: Any) -> dict[str, Any]:
    customer = {
        "id": customer_id,
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": "Ada@Example.com",
        "phone": "+15550100",
        "orders_count": 3,
        "total_spent": "120.50",
        "tags": "vip",
        "email_marketing_consent": {"state": "subscribed"},
        "default_address": {"address1": "1 Main St", "city": "Springfield", "country": "US", "zip": "12345"},
        "created_at": "2023-12-01T09:00:00Z",
        "updated_at": "2024-01-01T09:00:00Z",
    }
    customer.update(overrides)
    return customer


def shopify_order(order_id: int = 5001, **overrides: Any) -> dict[str, Any]:
    order = {
        "id": order_id,
        "order_number": 1001,
        "email": "Ada@Example.com",
        "customer": {"id": 9001, "first_name": "Ada", "last_name": "Lovelace"},
        "line_items": [
            {"product_id": 7001, "variant_id": 70010, "name": "Mop", "quantity": 2, "price": "14.99", "sku": "MOP-1"}
        ],
        "subtotal_price": "29.98",
        "total_tax": "2.40",
        "total_discounts": "0.00",
        "total_price": "37.38",
        "currency": "USD",
        "financial_status": "paid",
        "fulfillment_status": None,
        "shipping_lines": [{"price": "5.00"}],
        "created_at": "2024-02-02T08:00:00Z",
        "updated_at": "2024-02-02T08:05:00Z",
    }
    order.update(overrides)
    return order
