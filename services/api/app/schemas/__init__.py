"""Pydantic schemas for API request/response validation."""

from app.schemas.catalog import (
    Address,
    CustomerListResponse,
    CustomerOut,
    LineItem,
    OrderListResponse,
    OrderOut,
    Pagination,
    ProductListResponse,
    ProductOut,
    StatsResponse,
    StoreStats,
    Variant,
)
from app.schemas.common import ErrorCode, ErrorDetail, ErrorResponse

__all__ = [
    "Address",
    "CustomerListResponse",
    "CustomerOut",
    "ErrorCode",
    "ErrorDetail",
    "ErrorResponse",
    "LineItem",
    "OrderListResponse",
    "OrderOut",
    "Pagination",
    "ProductListResponse",
    "ProductOut",
    "StatsResponse",
    "StoreStats",
    "Variant",
]
