"""Idempotent writes of canonical records into the local mirror.

Every call runs in its own session/transaction; nothing spans a bulk run, so a
failure on one record never rolls back its neighbours. Writing a record
replaces every platform-owned column of the row (last write wins). Local-only
columns (`Product.popularity`, `created_at`) are never touched by an update.
"""

import json
import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models import Customer, Order, Product
from app.services.errors import UpsertError
from app.services.records import (
    AddressRecord,
    CanonicalRecord,
    CustomerRecord,
    EntityKind,
    OrderRecord,
    OrderStatus,
    ProductRecord,
)
from app.stores.postgres import session_scope

logger = logging.getLogger("uvicorn.error")

_MODELS: dict[EntityKind, type[Product] | type[Customer] | type[Order]] = {
    EntityKind.PRODUCT: Product,
    EntityKind.CUSTOMER: Customer,
    EntityKind.ORDER: Order,
}


# =============================================================================
# Record -> column mapping
# =============================================================================


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _address_json(address: AddressRecord | None) -> str | None:
    if address is None:
        return None
    return _dumps(asdict(address))


def product_columns(record: ProductRecord) -> dict[str, Any]:
    stock = max(0, record.stock_quantity)
    return {
        "name": record.name,
        "brand": record.brand,
        "category": record.category,
        "description": record.description,
        "sku": record.sku,
        "barcode": record.barcode,
        "price": record.price,
        "compare_at_price": record.compare_at_price,
        "stock_quantity": stock,
        # Derived here, never taken from the record.
        "in_stock": stock > 0,
        "image_url": record.image_url,
        "images_json": _dumps(record.images),
        "tags_json": _dumps(sorted(record.tags)),
        "variants_json": _dumps([asdict(v) for v in record.variants]),
        "is_new": record.is_new,
        "is_featured": record.is_featured,
        "date_added": record.date_added,
        "platform_updated_at": record.platform_updated_at,
    }


def normalize_email(email: str | None) -> str | None:
    if email is None:
        return None
    email = email.strip().lower()
    return email or None


def customer_columns(record: CustomerRecord) -> dict[str, Any]:
    return {
        "first_name": record.first_name,
        "last_name": record.last_name,
        "email": normalize_email(record.email),
        "phone": record.phone,
        "company": record.company,
        "address_json": _address_json(record.address),
        "orders_count": max(0, record.orders_count),
        "total_spent": max(0.0, record.total_spent),
        "tags_json": _dumps(sorted(record.tags)),
        "accepts_marketing": record.accepts_marketing,
        "date_added": record.date_added,
        "platform_updated_at": record.platform_updated_at,
    }


def order_columns(record: OrderRecord) -> dict[str, Any]:
    return {
        "order_number": record.order_number,
        "customer_external_id": record.customer_external_id,
        "customer_name": record.customer_name or "Guest",
        "customer_email": normalize_email(record.customer_email),
        "items_json": _dumps([asdict(item) for item in record.items]),
        "subtotal": max(0.0, record.subtotal),
        "tax": max(0.0, record.tax),
        "shipping": max(0.0, record.shipping),
        "discount": max(0.0, record.discount),
        "total": max(0.0, record.total),
        "currency": record.currency or "USD",
        "status": record.status,
        "fulfillment_status": record.fulfillment_status,
        "shipping_address_json": _address_json(record.shipping_address),
        "billing_address_json": _address_json(record.billing_address),
        "cancelled_at": record.cancelled_at,
        "cancel_reason": record.cancel_reason,
        "date_created": record.date_created,
        "platform_updated_at": record.platform_updated_at,
    }


def _columns_for(kind: EntityKind, record: CanonicalRecord) -> dict[str, Any]:
    if kind == EntityKind.PRODUCT and isinstance(record, ProductRecord):
        return product_columns(record)
    if kind == EntityKind.CUSTOMER and isinstance(record, CustomerRecord):
        return customer_columns(record)
    if kind == EntityKind.ORDER and isinstance(record, OrderRecord):
        return order_columns(record)
    raise UpsertError(f"Record type {type(record).__name__} does not match kind {kind.value}")


# =============================================================================
# Store
# =============================================================================


class SqlUpsertStore:
    """Upsert/delete mirrored entities keyed by external id."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def upsert(self, kind: EntityKind, external_id: str, record: CanonicalRecord) -> bool:
        """Create or wholly replace the row for `external_id`.

        Returns:
            True if a new row was created, False if an existing one was updated.

        Raises:
            UpsertError: the row violates a local constraint or storage failed.
        """
        if record.external_id != external_id:
            raise UpsertError(f"external_id mismatch: {external_id!r} != {record.external_id!r}")
        columns = _columns_for(kind, record)

        # A concurrent insert of the same new id loses the unique race; retry as update.
        for attempt in range(2):
            try:
                return await self._write(kind, external_id, columns)
            except IntegrityError as e:
                if attempt == 0 and await self._exists(kind, external_id):
                    logger.info(f"Upsert race on {kind.value}/{external_id}, retrying as update")
                    continue
                raise UpsertError(f"Constraint violation for {kind.value}/{external_id}: {e.orig}") from e
            except SQLAlchemyError as e:
                raise UpsertError(f"Failed to write {kind.value}/{external_id}: {e}") from e
        raise UpsertError(f"Failed to write {kind.value}/{external_id}")

    async def _write(self, kind: EntityKind, external_id: str, columns: dict[str, Any]) -> bool:
        model = _MODELS[kind]
        async with session_scope(self.session_factory) as session:
            if kind == EntityKind.CUSTOMER and columns.get("email"):
                await self._check_email_free(session, columns["email"], external_id)

            res = await session.execute(select(model).where(model.external_id == external_id))
            existing = res.scalar_one_or_none()
            if existing is not None:
                for name, value in columns.items():
                    setattr(existing, name, value)
                existing.updated_at = datetime.now(timezone.utc)
                await session.flush()
                return False

            session.add(model(external_id=external_id, **columns))
            await session.flush()
            return True

    async def _check_email_free(self, session: AsyncSession, email: str, external_id: str) -> None:
        res = await session.execute(
            select(Customer.external_id).where(
                Customer.email == email,
                Customer.external_id != external_id,
            )
        )
        owner = res.scalar_one_or_none()
        if owner is not None:
            raise UpsertError(f"Email {email} already belongs to customer {owner}")

    async def _exists(self, kind: EntityKind, external_id: str) -> bool:
        model = _MODELS[kind]
        async with session_scope(self.session_factory) as session:
            res = await session.execute(select(model.id).where(model.external_id == external_id))
            return res.scalar_one_or_none() is not None

    async def delete(self, kind: EntityKind, external_id: str) -> bool:
        """Delete the row for `external_id`. Returns False if it was absent."""
        model = _MODELS[kind]
        try:
            async with session_scope(self.session_factory) as session:
                res = await session.execute(select(model).where(model.external_id == external_id))
                existing = res.scalar_one_or_none()
                if existing is None:
                    return False
                await session.delete(existing)
                return True
        except SQLAlchemyError as e:
            raise UpsertError(f"Failed to delete {kind.value}/{external_id}: {e}") from e

    async def mark_cancelled(
        self,
        external_id: str,
        cancelled_at: datetime | None,
        reason: str | None,
    ) -> bool:
        """Stamp cancellation on an order without touching its other fields.

        Returns False if the order is not mirrored.
        """
        try:
            async with session_scope(self.session_factory) as session:
                res = await session.execute(select(Order).where(Order.external_id == external_id))
                order = res.scalar_one_or_none()
                if order is None:
                    return False
                order.status = OrderStatus.CANCELLED
                order.cancelled_at = cancelled_at or datetime.now(timezone.utc)
                order.cancel_reason = reason
                order.updated_at = datetime.now(timezone.utc)
                return True
        except SQLAlchemyError as e:
            raise UpsertError(f"Failed to cancel order {external_id}: {e}") from e

    async def get(self, kind: EntityKind, external_id: str) -> Product | Customer | Order | None:
        model = _MODELS[kind]
        async with session_scope(self.session_factory) as session:
            res = await session.execute(select(model).where(model.external_id == external_id))
            return res.scalar_one_or_none()
