"""Customer model."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.stores.postgres import Base


class Customer(Base):
    """Mirrored customer."""

    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[str] = mapped_column(String(100), unique=True, index=True)

    first_name: Mapped[str] = mapped_column(String(200), default="")
    last_name: Mapped[str] = mapped_column(String(200), default="")
    # Lowercased; NULL when the platform has none
    email: Mapped[str | None] = mapped_column(String(320), unique=True, index=True)
    phone: Mapped[str] = mapped_column(String(50), default="")
    company: Mapped[str | None] = mapped_column(String(200))

    # JSON object {address1, address2, city, province, country, zip} or NULL
    address_json: Mapped[str | None] = mapped_column(Text)

    orders_count: Mapped[int] = mapped_column(Integer, default=0)
    total_spent: Mapped[float] = mapped_column(Float, default=0)
    tags_json: Mapped[str] = mapped_column(Text, default="[]")
    accepts_marketing: Mapped[bool] = mapped_column(Boolean, default=False)

    date_added: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
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
        return f"<Customer {self.external_id} {self.email}>"
