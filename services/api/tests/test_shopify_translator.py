from datetime import datetime, timezone

import pytest

from app.services.errors import TranslationError
from app.services.records import FulfillmentStatus, OrderStatus
from app.services.shopify_translator import (
    map_financial_status,
    translate_customer,
    translate_order,
    translate_product,
)
from app.services.translation import PLACEHOLDER_IMAGE_URL, UNCATEGORIZED, UNKNOWN_BRAND

from conftest import shopify_customer, shopify_order, shopify_product


def test_translate_product_maps_main_variant_and_catalog_fields():
    record = translate_product(shopify_product())
    assert record.external_id == "7001"
    assert record.name == "Mop"
    assert record.brand == "CleanCo"
    assert record.category == "Cleaning Supplies"
    assert record.price == 14.99
    assert record.compare_at_price == 19.99
    assert record.stock_quantity == 5
    assert record.in_stock is True
    assert record.sku == "MOP-1"
    assert record.barcode == "0123456789"
    assert record.image_url == "https://cdn.shopify.test/mop.jpg"
    assert record.tags == {"new", "floor"}
    assert record.is_new is True
    assert record.is_featured is False
    assert record.variants[0].external_id == "70010"
    assert record.platform_updated_at == datetime(2024, 2, 1, 12, 0, tzinfo=timezone.utc)


def test_translate_product_defaults_for_missing_structures():
    record = translate_product({"id": 1, "title": "Bare"})
    assert record.brand == UNKNOWN_BRAND
    assert record.category == UNCATEGORIZED
    assert record.image_url == PLACEHOLDER_IMAGE_URL
    assert record.images == []
    assert record.variants == []
    assert record.tags == set()
    assert record.price == 0.0
    assert record.stock_quantity == 0
    assert record.in_stock is False


def test_translate_product_clamps_negative_inventory():
    product = shopify_product()
    product["variants"][0]["inventory_quantity"] = -4
    record = translate_product(product)
    assert record.stock_quantity == 0
    assert record.in_stock is False


def test_translate_product_rejects_unparsable_price():
    product = shopify_product()
    product["variants"][0]["price"] = "abc"
    with pytest.raises(TranslationError):
        translate_product(product)


def test_translate_product_requires_id():
    with pytest.raises(TranslationError):
        translate_product({"title": "No id"})


def test_translate_customer_maps_contact_and_consent():
    record = translate_customer(shopify_customer())
    assert record.external_id == "9001"
    assert record.email == "Ada@Example.com"
    assert record.accepts_marketing is True
    assert record.orders_count == 3
    assert record.total_spent == 120.5
    assert record.address is not None
    assert record.address.city == "Springfield"
    assert record.tags == {"vip"}


def test_translate_customer_falls_back_to_legacy_marketing_flag():
    customer = shopify_customer(accepts_marketing=True)
    del customer["email_marketing_consent"]
    assert translate_customer(customer).accepts_marketing is True


def test_translate_order_maps_totals_items_and_status():
    record = translate_order(shopify_order())
    assert record.external_id == "5001"
    assert record.order_number == 1001
    assert record.customer_external_id == "9001"
    assert record.customer_name == "Ada Lovelace"
    assert record.customer_email == "ada@example.com"
    assert record.status == OrderStatus.PAID
    assert record.fulfillment_status is None
    assert record.shipping == 5.0
    assert record.total == 37.38
    assert len(record.items) == 1
    assert record.items[0].quantity == 2
    assert record.items[0].line_total == 29.98


def test_translate_guest_order():
    order = shopify_order(customer=None, email=None)
    record = translate_order(order)
    assert record.customer_external_id is None
    assert record.customer_name == "Guest"
    assert record.customer_email is None


def test_translate_order_with_cancelled_at_is_cancelled():
    order = shopify_order(cancelled_at="2024-02-03T10:00:00Z", cancel_reason="customer")
    record = translate_order(order)
    assert record.status == OrderStatus.CANCELLED
    assert record.cancel_reason == "customer"
    assert record.cancelled_at is not None


def test_translate_order_rejects_zero_quantity_line_item():
    order = shopify_order()
    order["line_items"][0]["quantity"] = 0
    with pytest.raises(TranslationError):
        translate_order(order)


def test_translate_order_fulfillment_status():
    record = translate_order(shopify_order(fulfillment_status="partial"))
    assert record.fulfillment_status == FulfillmentStatus.PARTIAL


@pytest.mark.parametrize(
    "value,expected",
    [
        ("partially_refunded", OrderStatus.REFUNDED),
        ("authorized", OrderStatus.AUTHORIZED),
        ("something_new", OrderStatus.PENDING),
        (None, OrderStatus.PENDING),
    ],
)
def test_map_financial_status(value, expected):
    assert map_financial_status(value) == expected
