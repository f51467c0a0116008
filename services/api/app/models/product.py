"""Product model.

Mirror of a platform product, keyed by the platform's external id.
List/set fields are stored as JSON text to keep migrations simple.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.stores.postgres import Base


class Product(Base):
    """Mirrored catalog product."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(primary_key=True)

    # Platform identity
    external_id: Mapped[str] = mapped_column(String(100), unique=True, index=True)

    # Catalog
    name: Mapped[str] = mapped_column(String(500), default="")
    brand: Mapped[str] = mapped_column(String(200), index=True, default="Unknown")
    category: Mapped[str] = mapped_column(String(200), index=True, default="Uncategorized")
    description: Mapped[str] = mapped_column(Text, default="")
    sku: Mapped[str | None] = mapped_column(String(200))
    barcode: Mapped[str | None] = mapped_column(String(200))

    # Pricing
    price: Mapped[float] = mapped_column(Float, index=True, default=0)
    compare_at_price: Mapped[float] = mapped_column(Float, default=0)

    # Inventory (in_stock is always stock_quantity > 0)
    stock_quantity: Mapped[int] = mapped_column(Integer, default=0)
    in_stock: Mapped[bool] = mapped_column(Boolean, index=True, default=False)

    # Media
    image_url: Mapped[str] = mapped_column(Text, default="")
    images_json: Mapped[str] = mapped_column(Text, default="[]")

    # JSON: sorted list of tags / list of variant objects
    tags_json: Mapped[str] = mapped_column(Text, default="[]")
    variants_json: Mapped[str] = mapped_column(Text, default="[]")

    # Flags
    is_new: Mapped[bool] = mapped_column(Boolean, default=False)
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False)

    # Local-only ranking score; sync never writes it
    popularity: Mapped[int] = mapped_column(Integer, default=0)

    # Platform timestamps
    date_added: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    platform_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Local timestamps
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
        return f"<Product {self.external_id} {self.name!r} ${self.price:.2f}>"
