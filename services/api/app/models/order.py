"""Order model.

Line items and addresses are denormalized into JSON columns; an order is
always written as a whole.
"""

from datetime import datetime

from sqlalchemy import DateTime, Enum, Float, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.services.records import FulfillmentStatus, OrderStatus
from app.stores.postgres import Base


class Order(Base):
    """Mirrored order."""

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    order_number: Mapped[int] = mapped_column(Integer, unique=True, index=True)

    # Customer (NULL external id for guest checkouts)
    customer_external_id: Mapped[str | None] = mapped_column(String(100), index=True)
    customer_name: Mapped[str] = mapped_column(String(400), default="Guest")
    customer_email: Mapped[str | None] = mapped_column(String(320))

    # JSON list of line items
    items_json: Mapped[str] = mapped_column(Text, default="[]")

    # Money
    subtotal: Mapped[float] = mapped_column(Float, default=0)
    tax: Mapped[float] = mapped_column(Float, default=0)
    shipping: Mapped[float] = mapped_column(Float, default=0)
    discount: Mapped[float] = mapped_column(Float, default=0)
    total: Mapped[float] = mapped_column(Float, default=0)
    currency: Mapped[str] = mapped_column(String(3), default="USD")

    # Status
    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e]),
        index=True,
        default=OrderStatus.PENDING,
    )
    fulfillment_status: Mapped[FulfillmentStatus | None] = mapped_column(
        Enum(FulfillmentStatus, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e]),
    )

    shipping_address_json: Mapped[str | None] = mapped_column(Text)
    billing_address_json: Mapped[str | None] = mapped_column(Text)

    # Cancellation
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancel_reason: Mapped[str | None] = mapped_column(String(200))

    date_created: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), index=True)
    platform_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Order #{self.order_number} {self.status.value} ${self.total:.2f}>"
