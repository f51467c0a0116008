"""Read queries over the local mirror.

Backs the read API: product listing with filters/sorting/pagination,
distinct categories and brands, customers, orders and store stats.
"""

import json
import math
from typing import Any

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models import Customer, Order, Product
from app.schemas import Address, CustomerOut, LineItem, OrderOut, Pagination, ProductOut, StoreStats, Variant
from app.services.records import OrderStatus
from app.services.translation import UNCATEGORIZED, UNKNOWN_BRAND
from app.stores.postgres import session_scope

LOW_STOCK_THRESHOLD = 10

# sortBy value -> ORDER BY
_PRODUCT_SORTS = {
    "name": (Product.name.asc(),),
    "price-asc": (Product.price.asc(),),
    "price-desc": (Product.price.desc(),),
    "newest": (Product.date_added.desc(),),
    "popular": (Product.popularity.desc(),),
}


def _loads(value: str | None, default: Any) -> Any:
    if not value:
        return default
    try:
        return json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return default


def _address(value: str | None) -> Address | None:
    data = _loads(value, None)
    return Address(**data) if isinstance(data, dict) else None


def product_out(product: Product) -> ProductOut:
    return ProductOut(
        external_id=product.external_id,
        name=product.name,
        brand=product.brand,
        category=product.category,
        price=product.price,
        compare_at_price=product.compare_at_price,
        description=product.description,
        image_url=product.image_url,
        images=_loads(product.images_json, []),
        in_stock=product.in_stock,
        stock_quantity=product.stock_quantity,
        sku=product.sku,
        barcode=product.barcode,
        tags=_loads(product.tags_json, []),
        variants=[Variant(**v) for v in _loads(product.variants_json, []) if isinstance(v, dict)],
        is_new=product.is_new,
        is_featured=product.is_featured,
        popularity=product.popularity,
        date_added=product.date_added,
        updated_at=product.updated_at,
    )


def customer_out(customer: Customer) -> CustomerOut:
    return CustomerOut(
        external_id=customer.external_id,
        first_name=customer.first_name,
        last_name=customer.last_name,
        email=customer.email,
        phone=customer.phone,
        company=customer.company,
        address=_address(customer.address_json),
        orders_count=customer.orders_count,
        total_spent=customer.total_spent,
        tags=_loads(customer.tags_json, []),
        accepts_marketing=customer.accepts_marketing,
        date_added=customer.date_added,
    )


def order_out(order: Order) -> OrderOut:
    return OrderOut(
        external_id=order.external_id,
        order_number=order.order_number,
        customer_external_id=order.customer_external_id,
        customer_name=order.customer_name,
        customer_email=order.customer_email,
        items=[LineItem(**item) for item in _loads(order.items_json, []) if isinstance(item, dict)],
        subtotal=order.subtotal,
        tax=order.tax,
        shipping=order.shipping,
        discount=order.discount,
        total=order.total,
        currency=order.currency,
        status=order.status.value,
        fulfillment_status=order.fulfillment_status.value if order.fulfillment_status else None,
        shipping_address=_address(order.shipping_address_json),
        billing_address=_address(order.billing_address_json),
        cancelled_at=order.cancelled_at,
        cancel_reason=order.cancel_reason,
        date_created=order.date_created,
    )


def pagination(page: int, limit: int, total: int) -> Pagination:
    return Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit) if limit else 0)


async def _count(session: AsyncSession, query: Select) -> int:
    result = await session.execute(select(func.count()).select_from(query.order_by(None).subquery()))
    return int(result.scalar_one())


# =============================================================================
# Products
# =============================================================================


async def list_products(
    session_factory: async_sessionmaker[AsyncSession],
    search: str | None = None,
    category: str | None = None,
    brand: str | None = None,
    min_price: float | None = None,
    max_price: float | None = None,
    in_stock: bool | None = None,
    sort_by: str = "name",
    page: int = 1,
    limit: int = 20,
) -> tuple[list[ProductOut], int]:
    """Filter, sort and page mirrored products.

    Returns:
        (products on this page, total matching count)
    """
    query = select(Product)
    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(
                Product.name.ilike(pattern),
                Product.brand.ilike(pattern),
                Product.sku.ilike(pattern),
                Product.tags_json.ilike(pattern),
            )
        )
    if category and category != "All":
        query = query.where(Product.category == category)
    if brand:
        query = query.where(Product.brand == brand)
    if min_price is not None:
        query = query.where(Product.price >= min_price)
    if max_price is not None:
        query = query.where(Product.price <= max_price)
    if in_stock is not None:
        query = query.where(Product.in_stock == in_stock)

    ordering = _PRODUCT_SORTS.get(sort_by, _PRODUCT_SORTS["name"])

    async with session_scope(session_factory) as session:
        total = await _count(session, query)
        result = await session.execute(
            query.order_by(*ordering, Product.id.asc()).offset((page - 1) * limit).limit(limit)
        )
        return [product_out(p) for p in result.scalars().all()], total


async def get_product(session_factory: async_sessionmaker[AsyncSession], external_id: str) -> ProductOut | None:
    async with session_scope(session_factory) as session:
        result = await session.execute(select(Product).where(Product.external_id == external_id))
        product = result.scalar_one_or_none()
        return product_out(product) if product else None


async def list_featured(session_factory: async_sessionmaker[AsyncSession], limit: int = 10) -> list[ProductOut]:
    async with session_scope(session_factory) as session:
        result = await session.execute(
            select(Product)
            .where(Product.is_featured.is_(True))
            .order_by(Product.popularity.desc(), Product.id.asc())
            .limit(limit)
        )
        return [product_out(p) for p in result.scalars().all()]


async def list_categories(session_factory: async_sessionmaker[AsyncSession]) -> list[str]:
    """Distinct categories, placeholder category excluded."""
    async with session_scope(session_factory) as session:
        result = await session.execute(select(Product.category).distinct())
        return sorted(c for c in result.scalars().all() if c and c != UNCATEGORIZED)


async def list_brands(session_factory: async_sessionmaker[AsyncSession]) -> list[str]:
    """Distinct brands, placeholder brand excluded."""
    async with session_scope(session_factory) as session:
        result = await session.execute(select(Product.brand).distinct())
        return sorted(b for b in result.scalars().all() if b and b != UNKNOWN_BRAND)


# =============================================================================
# Customers & orders
# =============================================================================


async def list_customers(
    session_factory: async_sessionmaker[AsyncSession],
    page: int = 1,
    limit: int = 50,
) -> tuple[list[CustomerOut], int]:
    query = select(Customer)
    async with session_scope(session_factory) as session:
        total = await _count(session, query)
        result = await session.execute(
            query.order_by(Customer.date_added.desc(), Customer.id.desc()).offset((page - 1) * limit).limit(limit)
        )
        return [customer_out(c) for c in result.scalars().all()], total


async def list_orders(
    session_factory: async_sessionmaker[AsyncSession],
    status: OrderStatus | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[OrderOut], int]:
    query = select(Order)
    if status is not None:
        query = query.where(Order.status == status)
    async with session_scope(session_factory) as session:
        total = await _count(session, query)
        result = await session.execute(
            query.order_by(Order.date_created.desc(), Order.id.desc()).offset((page - 1) * limit).limit(limit)
        )
        return [order_out(o) for o in result.scalars().all()], total


async def get_order(session_factory: async_sessionmaker[AsyncSession], external_id: str) -> OrderOut | None:
    async with session_scope(session_factory) as session:
        result = await session.execute(select(Order).where(Order.external_id == external_id))
        order = result.scalar_one_or_none()
        return order_out(order) if order else None


async def get_stats(session_factory: async_sessionmaker[AsyncSession]) -> StoreStats:
    """Store-wide counts; revenue sums paid orders only."""
    async with session_scope(session_factory) as session:
        products_total = (await session.execute(select(func.count(Product.id)))).scalar_one()
        in_stock = (await session.execute(select(func.count(Product.id)).where(Product.in_stock.is_(True)))).scalar_one()
        low_stock = (
            await session.execute(
                select(func.count(Product.id)).where(
                    Product.stock_quantity > 0,
                    Product.stock_quantity < LOW_STOCK_THRESHOLD,
                )
            )
        ).scalar_one()
        customers_total = (await session.execute(select(func.count(Customer.id)))).scalar_one()
        orders_total = (await session.execute(select(func.count(Order.id)))).scalar_one()
        revenue = (
            await session.execute(select(func.coalesce(func.sum(Order.total), 0)).where(Order.status == OrderStatus.PAID))
        ).scalar_one()

    return StoreStats.model_validate(
        {
            "products": {"total": products_total, "inStock": in_stock, "lowStock": low_stock},
            "customers": {"total": customers_total},
            "orders": {"total": orders_total},
            "revenue": {"total": round(float(revenue or 0), 2)},
        }
    )
