"""Lightspeed Retail (R-Series) payload -> canonical records.

The R-Series JSON API is generated from XML: numbers and booleans arrive as
strings and a relation holding a single element is an object rather than a
one-element list (e.g. `Images.Image`). Everything goes through `as_list`.
"""

from __future__ import annotations

from typing import Any

from app.services.errors import TranslationError
from app.services.records import (
    AddressRecord,
    CustomerRecord,
    LineItemRecord,
    OrderRecord,
    OrderStatus,
    ProductRecord,
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
)


def _item_price(item: dict[str, Any], use_type: str) -> Any:
    prices = [p for p in as_list(dig(item, "Prices", "ItemPrice")) if isinstance(p, dict)]
    for price in prices:
        if price.get("useType") == use_type:
            return price.get("amount")
    if use_type == "Default" and prices:
        return prices[0].get("amount")
    return None


def _item_stock(item: dict[str, Any]) -> int:
    shops = [s for s in as_list(dig(item, "ItemShops", "ItemShop")) if isinstance(s, dict)]
    if not shops:
        return 0
    # shopID 0 holds the account-wide total
    for shop in shops:
        if str(shop.get("shopID")) == "0":
            return parse_int(shop.get("qoh"))
    return parse_int(shops[0].get("qoh"))


def _tags(entity: dict[str, Any]) -> set[str]:
    return split_tags(dig(entity, "Tags", "tag"))


def translate_product(item: dict[str, Any]) -> ProductRecord:
    """Convert a Lightspeed Item into a ProductRecord."""
    if not isinstance(item, dict):
        raise TranslationError("Item payload is not an object")

    images = [
        img.get("baseImageURL")
        for img in as_list(dig(item, "Images", "Image"))
        if isinstance(img, dict) and img.get("baseImageURL")
    ]
    tags = _tags(item)

    return ProductRecord(
        external_id=external_id(item.get("itemID"), "itemID"),
        name=item.get("description") or item.get("customSku") or "",
        brand=dig(item, "Manufacturer", "name") or item.get("manufacturerName") or UNKNOWN_BRAND,
        category=dig(item, "Category", "name") or UNCATEGORIZED,
        price=non_negative(parse_required_price(_item_price(item, "Default"))),
        compare_at_price=non_negative(parse_money(_item_price(item, "MSRP"))),
        description=dig(item, "ItemECommerce", "longDescription")
        or item.get("longDescription")
        or item.get("description")
        or "",
        image_url=images[0] if images else PLACEHOLDER_IMAGE_URL,
        images=images,
        stock_quantity=max(0, _item_stock(item)),
        sku=optional_str(item.get("customSku") or item.get("systemSku")),
        barcode=optional_str(item.get("upc") or item.get("ean")),
        tags=tags,
        variants=[],
        is_new=has_tag(tags, "new"),
        is_featured=has_tag(tags, "featured"),
        date_added=parse_datetime(item.get("createTime")),
        platform_updated_at=parse_datetime(item.get("timeStamp")),
    )


def _primary_contact_value(contact: Any, collection: str, element: str, key: str) -> str | None:
    entries = [e for e in as_list(dig(contact, collection, element)) if isinstance(e, dict)]
    for entry in entries:
        if entry.get("useType") == "Primary" and entry.get(key):
            return str(entry[key])
    for entry in entries:
        if entry.get(key):
            return str(entry[key])
    return None


def _contact_address(contact: Any) -> AddressRecord | None:
    addresses = [a for a in as_list(dig(contact, "Addresses", "ContactAddress")) if isinstance(a, dict)]
    if not addresses:
        return None
    a = addresses[0]
    return AddressRecord(
        address1=optional_str(a.get("address1")),
        address2=optional_str(a.get("address2")),
        city=optional_str(a.get("city")),
        province=optional_str(a.get("state")),
        country=optional_str(a.get("country")),
        zip=optional_str(a.get("zip")),
    )


def translate_customer(customer: dict[str, Any]) -> CustomerRecord:
    """Convert a Lightspeed Customer (with Contact relation) into a CustomerRecord."""
    if not isinstance(customer, dict):
        raise TranslationError("Customer payload is not an object")

    contact = customer.get("Contact") if isinstance(customer.get("Contact"), dict) else {}
    email = _primary_contact_value(contact, "Emails", "ContactEmail", "address")
    phone = _primary_contact_value(contact, "Phones", "ContactPhone", "number")

    return CustomerRecord(
        external_id=external_id(customer.get("customerID"), "customerID"),
        first_name=customer.get("firstName") or "",
        last_name=customer.get("lastName") or "",
        email=optional_str(email),
        phone=phone or "",
        company=optional_str(customer.get("company")),
        address=_contact_address(contact),
        tags=_tags(customer),
        # Lightspeed only exposes an opt-out flag
        accepts_marketing=contact.get("noEmail") is not None and not parse_bool(contact.get("noEmail")),
        date_added=parse_datetime(customer.get("createTime")),
        platform_updated_at=parse_datetime(customer.get("timeStamp")),
    )


def translate_sale_line(line: dict[str, Any]) -> LineItemRecord:
    quantity = parse_int(line.get("unitQuantity"))
    if quantity < 1:
        raise TranslationError(f"Invalid sale line quantity: {line.get('unitQuantity')!r}")
    unit_price = non_negative(parse_required_price(line.get("unitPrice"), "sale line price"))
    line_total = line.get("calcTotal")
    item = line.get("Item") if isinstance(line.get("Item"), dict) else {}
    return LineItemRecord(
        product_external_id=optional_id(line.get("itemID")),
        variant_external_id=None,
        name=item.get("description") or "",
        quantity=quantity,
        unit_price=unit_price,
        line_total=non_negative(parse_money(line_total)) if line_total is not None else round(unit_price * quantity, 2),
        sku=optional_str(item.get("customSku")),
    )


def translate_order(sale: dict[str, Any]) -> OrderRecord:
    """Convert a Lightspeed Sale into an OrderRecord.

    Sales have no separate display number; the numeric saleID doubles as the
    order number.
    """
    if not isinstance(sale, dict):
        raise TranslationError("Sale payload is not an object")

    sale_id = external_id(sale.get("saleID"), "saleID")
    order_number = parse_int(sale_id)
    if order_number <= 0:
        raise TranslationError(f"Non-numeric saleID: {sale_id!r}")

    customer = sale.get("Customer") if isinstance(sale.get("Customer"), dict) else {}
    customer_name = f"{customer.get('firstName') or ''} {customer.get('lastName') or ''}".strip()
    email = _primary_contact_value(customer.get("Contact"), "Emails", "ContactEmail", "address")

    if parse_bool(sale.get("voided")):
        status = OrderStatus.VOIDED
    elif parse_bool(sale.get("completed")):
        status = OrderStatus.PAID
    else:
        status = OrderStatus.PENDING

    return OrderRecord(
        external_id=sale_id,
        order_number=order_number,
        customer_external_id=optional_id(sale.get("customerID")),
        customer_name=customer_name or "Guest",
        customer_email=email.lower() if email else None,
        items=[
            translate_sale_line(line)
            for line in as_list(dig(sale, "SaleLines", "SaleLine"))
            if isinstance(line, dict)
        ],
        subtotal=non_negative(parse_money(sale.get("calcSubtotal"))),
        tax=non_negative(parse_money(sale.get("calcTax1")) + parse_money(sale.get("calcTax2"))),
        shipping=0.0,
        discount=non_negative(parse_money(sale.get("calcDiscount"))),
        total=non_negative(parse_money(sale.get("calcTotal"))),
        currency="USD",
        status=status,
        fulfillment_status=None,
        date_created=parse_datetime(sale.get("createTime")),
        platform_updated_at=parse_datetime(sale.get("timeStamp")),
    )
