"""
Domain: Product (a listing).

Contract excerpts implemented here:
- A Product is listed ``active`` by its owner.
- ``active -> sold`` when a payment for one of its orders is recorded (or the
  owner marks it sold); a sold Product cannot be purchased again.
- ``sold -> active`` only when the order that sold it is cancelled.
- Free listings carry a price of zero; prices are never negative.

This module contains only pure domain entities: no I/O, no database.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from .errors import ProductUnavailable
from .time import require_utc_timestamp


class ProductStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SOLD = "sold"


@dataclass(frozen=True, slots=True)
class Product:
    """
    Immutable snapshot of a listing.

    Status changes return a new instance; the persisted document is the source
    of truth and is re-read before every transition.
    """

    product_id: str
    owner_id: str
    title: str
    price: Decimal
    is_free: bool
    status: ProductStatus
    created_at: datetime
    updated_at: Optional[datetime] = None
    sold_by_order_id: Optional[str] = None  # order whose payment marked it sold

    def __post_init__(self) -> None:
        if not self.owner_id:
            raise ValueError("owner_id must be non-empty")
        if self.price < 0:
            raise ValueError("price must not be negative")
        if self.is_free and self.price != 0:
            raise ValueError("free products must have a price of 0")
        require_utc_timestamp("created_at", self.created_at)
        if self.updated_at is not None:
            require_utc_timestamp("updated_at", self.updated_at)

    @property
    def is_available(self) -> bool:
        return self.status is ProductStatus.ACTIVE

    def sold(self, *, at: datetime, order_id: Optional[str] = None) -> "Product":
        """Return a sold copy; only an active product can be sold."""

        require_utc_timestamp("at", at)
        if not self.is_available:
            raise ProductUnavailable(f"Product {self.product_id} is no longer available (status: {self.status.value})")
        return replace(self, status=ProductStatus.SOLD, sold_by_order_id=order_id, updated_at=at)

    def was_sold_by(self, order_id: str) -> bool:
        return self.status is ProductStatus.SOLD and self.sold_by_order_id == order_id

    def reactivated(self, *, at: datetime) -> "Product":
        require_utc_timestamp("at", at)
        if self.status is not ProductStatus.SOLD:
            raise ValueError(f"Only sold products can be reactivated (status: {self.status.value})")
        return replace(self, status=ProductStatus.ACTIVE, sold_by_order_id=None, updated_at=at)
