"""Read API over the local mirror.

GET /products                 - Filter/sort/paginate products
GET /products/featured        - Featured products by popularity
GET /products/{external_id}   - One product
GET /categories, /brands      - Distinct values
GET /customers                - Paginated customers
GET /orders                   - Paginated orders (optional status filter)
GET /orders/{external_id}     - One order
GET /stats                    - Store-wide counts and paid revenue

Routers are thin: queries live in app.services.catalog.
"""

from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.dependencies import get_session_factory
from app.schemas import CustomerListResponse, OrderListResponse, ProductListResponse, StatsResponse
from app.services import catalog
from app.services.records import OrderStatus

router = APIRouter()

SortBy = Literal["name", "price-asc", "price-desc", "newest", "popular"]


@router.get("/products", response_model=ProductListResponse)
async def list_products(
    search: str | None = Query(default=None, description="Matches name, brand, sku or tags"),
    category: str | None = Query(default=None, examples=["Cleaning Supplies", "All"]),
    brand: str | None = None,
    min_price: float | None = Query(default=None, alias="minPrice", ge=0),
    max_price: float | None = Query(default=None, alias="maxPrice", ge=0),
    in_stock: bool | None = Query(default=None, alias="inStock"),
    sort_by: SortBy = Query(default="name", alias="sortBy"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=250),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> ProductListResponse:
    products, total = await catalog.list_products(
        session_factory,
        search=search,
        category=category,
        brand=brand,
        min_price=min_price,
        max_price=max_price,
        in_stock=in_stock,
        sort_by=sort_by,
        page=page,
        limit=limit,
    )
    return ProductListResponse(data=products, pagination=catalog.pagination(page, limit, total))


@router.get("/products/featured")
async def list_featured_products(
    limit: int = Query(default=10, ge=1, le=50),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> dict[str, Any]:
    products = await catalog.list_featured(session_factory, limit=limit)
    return {"success": True, "data": [p.model_dump(by_alias=True, mode="json") for p in products]}


@router.get("/products/{external_id}")
async def get_product(
    external_id: str,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> dict[str, Any]:
    product = await catalog.get_product(session_factory, external_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"success": True, "data": product.model_dump(by_alias=True, mode="json")}


@router.get("/categories")
async def list_categories(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> dict[str, Any]:
    return {"success": True, "data": await catalog.list_categories(session_factory)}


@router.get("/brands")
async def list_brands(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> dict[str, Any]:
    return {"success": True, "data": await catalog.list_brands(session_factory)}


@router.get("/customers", response_model=CustomerListResponse)
async def list_customers(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=250),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> CustomerListResponse:
    customers, total = await catalog.list_customers(session_factory, page=page, limit=limit)
    return CustomerListResponse(data=customers, pagination=catalog.pagination(page, limit, total))


@router.get("/orders", response_model=OrderListResponse)
async def list_orders(
    status: OrderStatus | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=250),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> OrderListResponse:
    orders, total = await catalog.list_orders(session_factory, status=status, page=page, limit=limit)
    return OrderListResponse(data=orders, pagination=catalog.pagination(page, limit, total))


@router.get("/orders/{external_id}")
async def get_order(
    external_id: str,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> dict[str, Any]:
    order = await catalog.get_order(session_factory, external_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return {"success": True, "data": order.model_dump(by_alias=True, mode="json")}


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> StatsResponse:
    return StatsResponse(stats=await catalog.get_stats(session_factory))
