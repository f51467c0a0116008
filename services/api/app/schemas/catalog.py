"""Schemas for the read API (mirrored products, customers, orders)."""

from datetime import datetime

from pydantic import BaseModel, Field


class Variant(BaseModel):
    external_id: str | None = Field(alias="externalId", default=None)
    title: str
    price: float
    sku: str | None = None
    quantity: int = 0

    model_config = {"populate_by_name": True}


class ProductOut(BaseModel):
    """A mirrored product."""

    external_id: str = Field(alias="externalId")
    name: str
    brand: str
    category: str
    price: float
    compare_at_price: float = Field(alias="compareAtPrice", default=0)
    description: str = ""
    image_url: str = Field(alias="imageUrl")
    images: list[str] = Field(default_factory=list)
    in_stock: bool = Field(alias="inStock")
    stock_quantity: int = Field(alias="stockQuantity", ge=0)
    sku: str | None = None
    barcode: str | None = None
    tags: list[str] = Field(default_factory=list)
    variants: list[Variant] = Field(default_factory=list)
    is_new: bool = Field(alias="isNew", default=False)
    is_featured: bool = Field(alias="isFeatured", default=False)
    popularity: int = 0
    date_added: datetime | None = Field(alias="dateAdded", default=None)
    updated_at: datetime | None = Field(alias="updatedAt", default=None)

    model_config = {"populate_by_name": True}


class Address(BaseModel):
    first_name: str | None = Field(alias="firstName", default=None)
    last_name: str | None = Field(alias="lastName", default=None)
    company: str | None = None
    address1: str | None = None
    address2: str | None = None
    city: str | None = None
    province: str | None = None
    country: str | None = None
    zip: str | None = None
    phone: str | None = None

    model_config = {"populate_by_name": True}


class CustomerOut(BaseModel):
    external_id: str = Field(alias="externalId")
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    email: str | None = None
    phone: str = ""
    company: str | None = None
    address: Address | None = None
    orders_count: int = Field(alias="ordersCount", default=0)
    total_spent: float = Field(alias="totalSpent", default=0)
    tags: list[str] = Field(default_factory=list)
    accepts_marketing: bool = Field(alias="acceptsMarketing", default=False)
    date_added: datetime | None = Field(alias="dateAdded", default=None)

    model_config = {"populate_by_name": True}


class LineItem(BaseModel):
    product_external_id: str | None = Field(alias="productExternalId", default=None)
    variant_external_id: str | None = Field(alias="variantExternalId", default=None)
    name: str
    quantity: int = Field(ge=1)
    unit_price: float = Field(alias="unitPrice", ge=0)
    line_total: float = Field(alias="lineTotal")
    sku: str | None = None

    model_config = {"populate_by_name": True}


class OrderOut(BaseModel):
    external_id: str = Field(alias="externalId")
    order_number: int = Field(alias="orderNumber")
    customer_external_id: str | None = Field(alias="customerExternalId", default=None)
    customer_name: str = Field(alias="customerName")
    customer_email: str | None = Field(alias="customerEmail", default=None)
    items: list[LineItem] = Field(default_factory=list)
    subtotal: float
    tax: float
    shipping: float
    discount: float
    total: float
    currency: str
    status: str
    fulfillment_status: str | None = Field(alias="fulfillmentStatus", default=None)
    shipping_address: Address | None = Field(alias="shippingAddress", default=None)
    billing_address: Address | None = Field(alias="billingAddress", default=None)
    cancelled_at: datetime | None = Field(alias="cancelledAt", default=None)
    cancel_reason: str | None = Field(alias="cancelReason", default=None)
    date_created: datetime | None = Field(alias="dateCreated", default=None)

    model_config = {"populate_by_name": True}


class Pagination(BaseModel):
    page: int = Field(ge=1)
    limit: int = Field(ge=1)
    total: int = Field(ge=0)
    pages: int = Field(ge=0)


class ProductListResponse(BaseModel):
    success: bool = True
    data: list[ProductOut]
    pagination: Pagination


class CustomerListResponse(BaseModel):
    success: bool = True
    data: list[CustomerOut]
    pagination: Pagination


class OrderListResponse(BaseModel):
    success: bool = True
    data: list[OrderOut]
    pagination: Pagination


class ProductStats(BaseModel):
    total: int
    in_stock: int = Field(alias="inStock")
    low_stock: int = Field(alias="lowStock")

    model_config = {"populate_by_name": True}


class CountStats(BaseModel):
    total: int


class RevenueStats(BaseModel):
    total: float


class StoreStats(BaseModel):
    products: ProductStats
    customers: CountStats
    orders: CountStats
    revenue: RevenueStats


class StatsResponse(BaseModel):
    success: bool = True
    stats: StoreStats
