"""Canonical record shapes.

Translators turn platform JSON into these records; the upsert store writes them
to the local database. A record carries every platform-owned field of the
entity, so writing it replaces the stored row wholesale.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class EntityKind(str, Enum):
    """Entity kinds mirrored from the platform."""

    PRODUCT = "products"
    CUSTOMER = "customers"
    ORDER = "orders"


class OrderStatus(str, Enum):
    """Financial status of an order."""

    PENDING = "pending"
    AUTHORIZED = "authorized"
    PAID = "paid"
    PARTIALLY_PAID = "partially_paid"
    REFUNDED = "refunded"
    VOIDED = "voided"
    CANCELLED = "cancelled"


class FulfillmentStatus(str, Enum):
    """Fulfillment status of an order (None when unset)."""

    FULFILLED = "fulfilled"
    PARTIAL = "partial"
    UNFULFILLED = "unfulfilled"


@dataclass
class VariantRecord:
    external_id: str | None
    title: str
    price: float
    sku: str | None = None
    quantity: int = 0


@dataclass
class ProductRecord:
    """Canonical product."""

    external_id: str
    name: str
    brand: str
    category: str
    price: float
    compare_at_price: float = 0.0
    description: str = ""
    image_url: str = ""
    images: list[str] = field(default_factory=list)
    stock_quantity: int = 0
    sku: str | None = None
    barcode: str | None = None
    tags: set[str] = field(default_factory=set)
    variants: list[VariantRecord] = field(default_factory=list)
    is_new: bool = False
    is_featured: bool = False
    date_added: datetime | None = None
    platform_updated_at: datetime | None = None

    @property
    def in_stock(self) -> bool:
        return self.stock_quantity > 0


@dataclass
class AddressRecord:
    first_name: str | None = None
    last_name: str | None = None
    company: str | None = None
    address1: str | None = None
    address2: str | None = None
    city: str | None = None
    province: str | None = None
    country: str | None = None
    zip: str | None = None
    phone: str | None = None


@dataclass
class CustomerRecord:
    """Canonical customer."""

    external_id: str
    first_name: str = ""
    last_name: str = ""
    email: str | None = None
    phone: str = ""
    company: str | None = None
    address: AddressRecord | None = None
    orders_count: int = 0
    total_spent: float = 0.0
    tags: set[str] = field(default_factory=set)
    accepts_marketing: bool = False
    date_added: datetime | None = None
    platform_updated_at: datetime | None = None


@dataclass
class LineItemRecord:
    product_external_id: str | None
    variant_external_id: str | None
    name: str
    quantity: int
    unit_price: float
    line_total: float
    sku: str | None = None


@dataclass
class OrderRecord:
    """Canonical order.

    `total` is the platform's figure and is not recomputed from line items.
    """

    external_id: str
    order_number: int
    customer_external_id: str | None = None
    customer_name: str = "Guest"
    customer_email: str | None = None
    items: list[LineItemRecord] = field(default_factory=list)
    subtotal: float = 0.0
    tax: float = 0.0
    shipping: float = 0.0
    discount: float = 0.0
    total: float = 0.0
    currency: str = "USD"
    status: OrderStatus = OrderStatus.PENDING
    fulfillment_status: FulfillmentStatus | None = None
    shipping_address: AddressRecord | None = None
    billing_address: AddressRecord | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None
    date_created: datetime | None = None
    platform_updated_at: datetime | None = None


CanonicalRecord = ProductRecord | CustomerRecord | OrderRecord
