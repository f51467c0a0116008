import pytest

from app.services.errors import PlatformRequestError
from app.services.platforms import LIGHTSPEED
from app.services.records import EntityKind, OrderStatus
from app.services.sync import EventOutcome, SyncOrchestrator
from conftest import shopify_customer, shopify_order, shopify_product


def _bad_price_product(product_id: int) -> dict:
    product = shopify_product(product_id)
    product["variants"][0]["price"] = "abc"
    return product


# =============================================================================
# Bulk sync
# =============================================================================


@pytest.mark.asyncio
async def test_sync_all_counts_partial_failures(orchestrator, fake_client, store):
    fake_client.pages[EntityKind.PRODUCT] = [
        [shopify_product(1), _bad_price_product(2), shopify_product(3)],
    ]

    result = await orchestrator.sync_all(EntityKind.PRODUCT)

    assert (result.synced, result.errors, result.total) == (2, 1, 3)
    assert result.success is True
    assert await store.get(EntityKind.PRODUCT, "1") is not None
    assert await store.get(EntityKind.PRODUCT, "2") is None
    assert await store.get(EntityKind.PRODUCT, "3") is not None


@pytest.mark.asyncio
async def test_sync_all_walks_every_page(orchestrator, fake_client):
    fake_client.pages[EntityKind.PRODUCT] = [
        [shopify_product(1), shopify_product(2)],
        [shopify_product(3)],
    ]

    result = await orchestrator.sync_all(EntityKind.PRODUCT)

    assert result.synced == 3
    assert result.total == 3


@pytest.mark.asyncio
async def test_sync_all_aborts_on_page_error_keeping_earlier_writes(orchestrator, fake_client, store):
    fake_client.pages[EntityKind.PRODUCT] = [[shopify_product(1)], [shopify_product(2)]]
    fake_client.page_errors[(EntityKind.PRODUCT, 1)] = PlatformRequestError("boom", status_code=502)

    result = await orchestrator.sync_all(EntityKind.PRODUCT)

    assert result.aborted is True
    assert result.synced == 1
    # Something was fetched, so the run still reports success
    assert result.success is True
    assert await store.get(EntityKind.PRODUCT, "1") is not None


@pytest.mark.asyncio
async def test_sync_all_fails_when_nothing_fetched(orchestrator, fake_client):
    fake_client.page_errors[(EntityKind.ORDER, 0)] = PlatformRequestError("unauthorized", status_code=401)

    result = await orchestrator.sync_all(EntityKind.ORDER)

    assert result.success is False
    assert result.total == 0
    assert "unauthorized" in result.error
    assert result.to_dict()["kind"] == "orders"


@pytest.mark.asyncio
async def test_sync_everything_continues_after_abort(orchestrator, fake_client):
    fake_client.page_errors[(EntityKind.PRODUCT, 0)] = PlatformRequestError("down", status_code=503)
    fake_client.pages[EntityKind.CUSTOMER] = [[shopify_customer()]]
    fake_client.pages[EntityKind.ORDER] = [[shopify_order()]]

    results = await orchestrator.sync_everything()

    assert results[EntityKind.PRODUCT].success is False
    assert results[EntityKind.CUSTOMER].synced == 1
    assert results[EntityKind.ORDER].synced == 1


# =============================================================================
# Webhook events
# =============================================================================


@pytest.mark.asyncio
async def test_event_upsert(orchestrator, store):
    outcome = await orchestrator.handle_event("products/update", shopify_product())

    assert outcome == EventOutcome.UPSERTED
    row = await store.get(EntityKind.PRODUCT, "7001")
    assert row.name == "Mop"


@pytest.mark.asyncio
async def test_event_unknown_topic_is_ignored(orchestrator):
    assert await orchestrator.handle_event("app/uninstalled", {"id": 1}) == EventOutcome.IGNORED
    assert await orchestrator.handle_event(None, {"id": 1}) == EventOutcome.IGNORED


@pytest.mark.asyncio
async def test_event_missing_id_fails(orchestrator):
    assert await orchestrator.handle_event("products/update", {"title": "No id"}) == EventOutcome.FAILED


@pytest.mark.asyncio
async def test_event_bad_payload_fails_without_writing(orchestrator, store):
    outcome = await orchestrator.handle_event("products/update", _bad_price_product(7001))

    assert outcome == EventOutcome.FAILED
    assert await store.get(EntityKind.PRODUCT, "7001") is None


@pytest.mark.asyncio
async def test_event_delete(orchestrator, store):
    await orchestrator.handle_event("products/create", shopify_product())

    assert await orchestrator.handle_event("products/delete", {"id": 7001}) == EventOutcome.DELETED
    assert await store.get(EntityKind.PRODUCT, "7001") is None
    # Deleting something never mirrored is not an error
    assert await orchestrator.handle_event("products/delete", {"id": 7001}) == EventOutcome.DELETED


@pytest.mark.asyncio
async def test_event_cancel_existing_order(orchestrator, store):
    await orchestrator.handle_event("orders/create", shopify_order())

    cancelled = shopify_order(cancelled_at="2024-02-03T09:00:00Z", cancel_reason="customer")
    assert await orchestrator.handle_event("orders/cancelled", cancelled) == EventOutcome.CANCELLED

    row = await store.get(EntityKind.ORDER, "5001")
    assert row.status == OrderStatus.CANCELLED
    assert row.cancel_reason == "customer"


@pytest.mark.asyncio
async def test_event_cancel_unknown_order_mirrors_it(orchestrator, store):
    cancelled = shopify_order(cancelled_at="2024-02-03T09:00:00Z", cancel_reason="fraud")

    assert await orchestrator.handle_event("orders/cancelled", cancelled) == EventOutcome.CANCELLED

    row = await store.get(EntityKind.ORDER, "5001")
    assert row.status == OrderStatus.CANCELLED
    assert row.order_number == 1001


@pytest.fixture
def lightspeed_orchestrator(fake_client, store) -> SyncOrchestrator:
    return SyncOrchestrator(fake_client, LIGHTSPEED, store)


def _lightspeed_item() -> dict:
    return {
        "itemID": "42",
        "description": "Glass Cleaner",
        "Prices": {"ItemPrice": {"amount": "6.50", "useType": "Default"}},
        "ItemShops": {"ItemShop": {"shopID": "0", "qoh": "3"}},
    }


@pytest.mark.asyncio
async def test_lightspeed_event_refetches_entity(lightspeed_orchestrator, fake_client, store):
    fake_client.entities[(EntityKind.PRODUCT, "42")] = _lightspeed_item()

    outcome = await lightspeed_orchestrator.handle_event("item.update", {"itemID": "42"})

    assert outcome == EventOutcome.UPSERTED
    row = await store.get(EntityKind.PRODUCT, "42")
    assert row.price == 6.5
    assert row.stock_quantity == 3


@pytest.mark.asyncio
async def test_lightspeed_event_entity_gone(lightspeed_orchestrator):
    assert await lightspeed_orchestrator.handle_event("item.update", {"itemID": "42"}) == EventOutcome.FAILED


@pytest.mark.asyncio
async def test_lightspeed_event_refetch_error(lightspeed_orchestrator, fake_client, store):
    fake_client.fetch_error = PlatformRequestError("timeout", status_code=504)

    assert await lightspeed_orchestrator.handle_event("item.update", {"itemID": "42"}) == EventOutcome.FAILED
    assert await store.get(EntityKind.PRODUCT, "42") is None


@pytest.mark.asyncio
async def test_lightspeed_delete_does_not_refetch(lightspeed_orchestrator, fake_client):
    fake_client.fetch_error = PlatformRequestError("should not be called")

    assert await lightspeed_orchestrator.handle_event("item.delete", {"itemID": "42"}) == EventOutcome.DELETED


# =============================================================================
# Write-through
# =============================================================================


@pytest.mark.asyncio
async def test_push_create_mirrors_platform_copy(orchestrator, fake_client, store):
    fake_client.create_response = shopify_product(8001, title="Bucket")

    record = await orchestrator.push(EntityKind.PRODUCT, {"title": "Bucket"})

    assert record.external_id == "8001"
    assert fake_client.created == [(EntityKind.PRODUCT, {"title": "Bucket"})]
    row = await store.get(EntityKind.PRODUCT, "8001")
    assert row.name == "Bucket"


@pytest.mark.asyncio
async def test_push_update(orchestrator, fake_client, store):
    fake_client.create_response = shopify_product(7001)

    record = await orchestrator.push(EntityKind.PRODUCT, {"title": "Spin Mop"}, external_id="7001")

    assert record.name == "Spin Mop"
    assert fake_client.updated[0][1] == "7001"
    assert (await store.get(EntityKind.PRODUCT, "7001")).name == "Spin Mop"
