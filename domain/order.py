"""
Domain: Order.

Contract excerpts implemented here:
- buyer_id != seller_id.
- amount is the product price times quantity, snapshotted at creation.
- delivery_status and payment_status move only along the ledger's
  transition tables (see ``domain.transitions``); this module only models the
  entity and its field-level invariants.
- An Order is never deleted, only terminal-stated.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from .time import require_utc_timestamp


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class ShippingAddress:
    full_name: str
    phone_number: str
    street: str
    city: str
    state: str
    country: str
    postal_code: Optional[str] = None

    def __post_init__(self) -> None:
        for name in ("full_name", "phone_number", "street", "city", "state", "country"):
            if not getattr(self, name):
                raise ValueError(f"shipping address {name} must be non-empty")


@dataclass(frozen=True, slots=True)
class TrackingInfo:
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.estimated_delivery is not None:
            require_utc_timestamp("estimated_delivery", self.estimated_delivery)


@dataclass(frozen=True, slots=True)
class Order:
    """
    Immutable snapshot of a buyer's commitment to purchase one listing.

    Carries two independent sub-states: payment (pending/paid/failed) and
    delivery (pending/shipped/delivered/completed/cancelled).
    """

    order_id: str
    buyer_id: str
    seller_id: str
    product_id: str
    product_title: str
    quantity: int
    amount: Decimal
    payment_status: PaymentStatus
    delivery_status: DeliveryStatus
    shipping_address: ShippingAddress
    order_date: datetime
    payment_reference: Optional[str] = None
    tracking_info: Optional[TrackingInfo] = None
    payout_id: Optional[str] = None  # payout that claimed this order's proceeds
    notes: Optional[str] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not self.buyer_id or not self.seller_id:
            raise ValueError("buyer_id and seller_id must be non-empty")
        if self.buyer_id == self.seller_id:
            raise ValueError("buyer_id and seller_id must differ")
        if self.quantity < 1:
            raise ValueError("quantity must be at least 1")
        if self.amount < 0:
            raise ValueError("amount must not be negative")
        require_utc_timestamp("order_date", self.order_date)
        if self.updated_at is not None:
            require_utc_timestamp("updated_at", self.updated_at)

    @property
    def is_payout_eligible(self) -> bool:
        """Completed, paid, non-zero and not yet claimed by a payout."""

        return (
            self.delivery_status is DeliveryStatus.COMPLETED
            and self.payment_status is PaymentStatus.PAID
            and self.amount > 0
            and self.payout_id is None
        )
