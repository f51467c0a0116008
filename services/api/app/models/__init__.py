"""SQLAlchemy ORM models.

Models represent database tables:
- products: Mirrored catalog (keyed by platform external id)
- customers: Mirrored customers
- orders: Mirrored orders with denormalized line items
"""

from app.models.customer import Customer
from app.models.order import Order
from app.models.product import Product

__all__ = ["Customer", "Order", "Product"]
