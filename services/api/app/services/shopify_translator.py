"""Shopify Admin REST payload -> canonical records.

Webhook bodies and REST list/detail responses share the same entity shape, so
both paths go through these functions.
"""

from __future__ import annotations

from typing import Any

from app.services.errors import TranslationError
from app.services.records import (
    CustomerRecord,
    FulfillmentStatus,
    LineItemRecord,
    OrderRecord,
    OrderStatus,
    ProductRecord,
    VariantRecord,
)
from app.services.translation import (
    PLACEHOLDER_IMAGE_URL,
    UNCATEGORIZED,
    UNKNOWN_BRAND,
    as_list,
    dig,
    external_id,
    has_tag,
    non_negative,
    optional_id,
    optional_str,
    parse_bool,
    parse_datetime,
    parse_int,
    parse_money,
    parse_required_price,
    split_tags,
    translate_address,
)

_FINANCIAL_STATUS_MAP = {
    "pending": OrderStatus.PENDING,
    "authorized": OrderStatus.AUTHORIZED,
    "partially_paid": OrderStatus.PARTIALLY_PAID,
    "paid": OrderStatus.PAID,
    # No partial-refund state locally; any refund marks the order refunded.
    "partially_refunded": OrderStatus.REFUNDED,
    "refunded": OrderStatus.REFUNDED,
    "voided": OrderStatus.VOIDED,
}

_FULFILLMENT_STATUS_MAP = {
    "fulfilled": FulfillmentStatus.FULFILLED,
    "partial": FulfillmentStatus.PARTIAL,
    "unfulfilled": FulfillmentStatus.UNFULFILLED,
}


def translate_product(product: dict[str, Any]) -> ProductRecord:
    """Convert a Shopify product into a ProductRecord.

    The first variant is the "main" variant and supplies price, stock and
    identifiers for the product as a whole.
    """
    if not isinstance(product, dict):
        raise TranslationError("Product payload is not an object")

    variants_raw = [v for v in as_list(product.get("variants")) if isinstance(v, dict)]
    main_variant = variants_raw[0] if variants_raw else {}

    images = [img.get("src") for img in as_list(product.get("images")) if isinstance(img, dict) and img.get("src")]
    image_url = images[0] if images else (dig(product, "image", "src") or PLACEHOLDER_IMAGE_URL)

    tags = split_tags(product.get("tags"))
    stock_quantity = max(0, parse_int(main_variant.get("inventory_quantity")))

    variants = [
        VariantRecord(
            external_id=optional_id(v.get("id")),
            title=v.get("title") or "",
            price=non_negative(parse_required_price(v.get("price"), "variant price")),
            sku=optional_str(v.get("sku")),
            quantity=parse_int(v.get("inventory_quantity")),
        )
        for v in variants_raw
    ]

    return ProductRecord(
        external_id=external_id(product.get("id")),
        name=product.get("title") or "",
        brand=product.get("vendor") or UNKNOWN_BRAND,
        category=product.get("product_type") or UNCATEGORIZED,
        price=non_negative(parse_required_price(main_variant.get("price"))),
        compare_at_price=non_negative(parse_money(main_variant.get("compare_at_price"))),
        description=product.get("body_html") or "",
        image_url=image_url,
        images=images,
        stock_quantity=stock_quantity,
        sku=optional_str(main_variant.get("sku")),
        barcode=optional_str(main_variant.get("barcode")),
        tags=tags,
        variants=variants,
        is_new=has_tag(tags, "new"),
        is_featured=has_tag(tags, "featured"),
        date_added=parse_datetime(product.get("created_at")),
        platform_updated_at=parse_datetime(product.get("updated_at")),
    )


def translate_customer(customer: dict[str, Any]) -> CustomerRecord:
    """Convert a Shopify customer into a CustomerRecord."""
    if not isinstance(customer, dict):
        raise TranslationError("Customer payload is not an object")

    consent_state = dig(customer, "email_marketing_consent", "state")
    if consent_state is not None:
        accepts_marketing = consent_state == "subscribed"
    else:
        accepts_marketing = parse_bool(customer.get("accepts_marketing"))

    address = translate_address(customer.get("default_address"))

    return CustomerRecord(
        external_id=external_id(customer.get("id")),
        first_name=customer.get("first_name") or "",
        last_name=customer.get("last_name") or "",
        email=optional_str(customer.get("email")),
        phone=customer.get("phone") or "",
        company=address.company if address else None,
        address=address,
        orders_count=max(0, parse_int(customer.get("orders_count"))),
        total_spent=non_negative(parse_money(customer.get("total_spent"))),
        tags=split_tags(customer.get("tags")),
        accepts_marketing=accepts_marketing,
        date_added=parse_datetime(customer.get("created_at")),
        platform_updated_at=parse_datetime(customer.get("updated_at")),
    )


def translate_line_item(item: dict[str, Any]) -> LineItemRecord:
    quantity = parse_int(item.get("quantity"))
    if quantity < 1:
        raise TranslationError(f"Invalid line item quantity: {item.get('quantity')!r}")
    unit_price = non_negative(parse_required_price(item.get("price"), "line item price"))
    return LineItemRecord(
        product_external_id=optional_id(item.get("product_id")),
        variant_external_id=optional_id(item.get("variant_id")),
        name=item.get("name") or item.get("title") or "",
        quantity=quantity,
        unit_price=unit_price,
        line_total=round(unit_price * quantity, 2),
        sku=optional_str(item.get("sku")),
    )


def _shipping_total(order: dict[str, Any]) -> float:
    amount = dig(order, "total_shipping_price_set", "shop_money", "amount")
    if amount is not None:
        return parse_money(amount)
    return sum(parse_money(line.get("price")) for line in as_list(order.get("shipping_lines")) if isinstance(line, dict))


def map_financial_status(value: str | None) -> OrderStatus:
    if not value:
        return OrderStatus.PENDING
    return _FINANCIAL_STATUS_MAP.get(value.lower(), OrderStatus.PENDING)


def map_fulfillment_status(value: str | None) -> FulfillmentStatus | None:
    if not value:
        return None
    return _FULFILLMENT_STATUS_MAP.get(value.lower())


def translate_order(order: dict[str, Any]) -> OrderRecord:
    """Convert a Shopify order into an OrderRecord.

    An order carrying `cancelled_at` is cancelled regardless of its financial
    status, so a later orders/updated delivery keeps the cancellation.
    """
    if not isinstance(order, dict):
        raise TranslationError("Order payload is not an object")

    order_number = parse_int(order.get("order_number") or order.get("number"))
    if order_number <= 0:
        raise TranslationError(f"Missing order number for order {order.get('id')}")

    customer = order.get("customer") if isinstance(order.get("customer"), dict) else {}
    customer_name = f"{customer.get('first_name') or ''} {customer.get('last_name') or ''}".strip()

    cancelled_at = parse_datetime(order.get("cancelled_at"))
    status = OrderStatus.CANCELLED if cancelled_at else map_financial_status(order.get("financial_status"))

    email = optional_str(order.get("email") or order.get("contact_email") or customer.get("email"))

    return OrderRecord(
        external_id=external_id(order.get("id")),
        order_number=order_number,
        customer_external_id=optional_id(customer.get("id")),
        customer_name=customer_name or "Guest",
        customer_email=email.lower() if email else None,
        items=[translate_line_item(item) for item in as_list(order.get("line_items")) if isinstance(item, dict)],
        subtotal=non_negative(parse_money(order.get("subtotal_price"))),
        tax=non_negative(parse_money(order.get("total_tax"))),
        shipping=non_negative(_shipping_total(order)),
        discount=non_negative(parse_money(order.get("total_discounts"))),
        total=non_negative(parse_money(order.get("total_price"))),
        currency=order.get("currency") or "USD",
        status=status,
        fulfillment_status=map_fulfillment_status(order.get("fulfillment_status")),
        shipping_address=translate_address(order.get("shipping_address")),
        billing_address=translate_address(order.get("billing_address")),
        cancelled_at=cancelled_at,
        cancel_reason=optional_str(order.get("cancel_reason")) if cancelled_at else None,
        date_created=parse_datetime(order.get("created_at")),
        platform_updated_at=parse_datetime(order.get("updated_at")),
    )
