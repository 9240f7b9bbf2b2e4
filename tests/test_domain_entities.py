"""
Tests for the domain entities (`domain/product.py`, `domain/order.py`,
`domain/payout.py`, `domain/user.py`, `domain/actor.py`).

Covers contract rules:
- Timestamps are required to be UTC.
- Entities are immutable (frozen).
- Field-level invariants (prices, quantities, parties) hold at construction.
"""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from domain.actor import Actor
from domain.errors import ProductUnavailable
from domain.order import DeliveryStatus, Order, PaymentStatus, ShippingAddress, TrackingInfo
from domain.payout import BankDetails, Payout, PayoutStatus
from domain.product import Product, ProductStatus
from domain.user import UserProfile

NOW = datetime(2025, 1, 1, 0, 0, 0, tzinfo=timezone.utc)


def _product(**overrides) -> Product:
    fields = dict(
        product_id="p-1",
        owner_id="seller-1",
        title="Used bicycle",
        price=Decimal("85000"),
        is_free=False,
        status=ProductStatus.ACTIVE,
        created_at=NOW,
    )
    fields.update(overrides)
    return Product(**fields)


def _order(address: ShippingAddress, **overrides) -> Order:
    fields = dict(
        order_id="o-1",
        buyer_id="buyer-1",
        seller_id="seller-1",
        product_id="p-1",
        product_title="Used bicycle",
        quantity=1,
        amount=Decimal("85000"),
        payment_status=PaymentStatus.PAID,
        delivery_status=DeliveryStatus.PENDING,
        shipping_address=address,
        order_date=NOW,
    )
    fields.update(overrides)
    return Order(**fields)


def test_product_created_at_must_be_utc() -> None:
    """Verify created_at enforces a UTC timezone-aware timestamp."""

    with pytest.raises(ValueError):
        _product(created_at=datetime(2025, 1, 1, 0, 0, 0))

    with pytest.raises(ValueError):
        _product(created_at=datetime(2025, 1, 1, 0, 0, 0, tzinfo=timezone(timedelta(hours=1))))


def test_product_price_rules() -> None:
    """Verify prices are never negative and free listings cost nothing."""

    with pytest.raises(ValueError):
        _product(price=Decimal("-1"))

    with pytest.raises(ValueError):
        _product(is_free=True, price=Decimal("10"))

    assert _product(is_free=True, price=Decimal("0")).is_free


def test_product_sold_and_reactivated() -> None:
    """Verify the sold/reactivated copies and the order that sold the product."""

    product = _product()
    sold = product.sold(at=NOW, order_id="o-1")

    assert product.status is ProductStatus.ACTIVE
    assert sold.status is ProductStatus.SOLD
    assert sold.was_sold_by("o-1")
    assert not sold.was_sold_by("o-2")

    reactivated = sold.reactivated(at=NOW)
    assert reactivated.status is ProductStatus.ACTIVE
    assert reactivated.sold_by_order_id is None


def test_sold_product_cannot_be_sold_again() -> None:
    sold = _product().sold(at=NOW, order_id="o-1")

    with pytest.raises(ProductUnavailable):
        sold.sold(at=NOW, order_id="o-2")


def test_only_sold_products_can_be_reactivated() -> None:
    with pytest.raises(ValueError):
        _product().reactivated(at=NOW)


def test_product_is_immutable() -> None:
    """Verify Product cannot be mutated after creation (frozen entity)."""

    product = _product()

    with pytest.raises(FrozenInstanceError):
        product.status = ProductStatus.SOLD  # type: ignore[misc]


def test_shipping_address_requires_fields() -> None:
    with pytest.raises(ValueError):
        ShippingAddress(full_name="", phone_number="1", street="s", city="c", state="st", country="NG")

    address = ShippingAddress(full_name="A", phone_number="1", street="s", city="c", state="st", country="NG")
    assert address.postal_code is None


def test_order_invariants(address: ShippingAddress) -> None:
    """Verify buyer != seller, quantity >= 1 and non-negative amount."""

    with pytest.raises(ValueError):
        _order(address, seller_id="buyer-1")

    with pytest.raises(ValueError):
        _order(address, quantity=0)

    with pytest.raises(ValueError):
        _order(address, amount=Decimal("-5"))

    with pytest.raises(ValueError):
        _order(address, order_date=datetime(2025, 1, 1))


def test_order_payout_eligibility(address: ShippingAddress) -> None:
    """Verify only completed, paid, non-zero and unclaimed orders are payout-eligible."""

    assert _order(address, delivery_status=DeliveryStatus.COMPLETED).is_payout_eligible
    assert not _order(address, delivery_status=DeliveryStatus.SHIPPED).is_payout_eligible
    assert not _order(
        address, delivery_status=DeliveryStatus.COMPLETED, payment_status=PaymentStatus.PENDING
    ).is_payout_eligible
    assert not _order(address, delivery_status=DeliveryStatus.COMPLETED, payout_id="po-1").is_payout_eligible
    assert not _order(address, delivery_status=DeliveryStatus.COMPLETED, amount=Decimal("0")).is_payout_eligible


def test_tracking_info_estimated_delivery_must_be_utc() -> None:
    with pytest.raises(ValueError):
        TrackingInfo(carrier="GIG", tracking_number="1", estimated_delivery=datetime(2025, 1, 5))

    assert TrackingInfo(carrier="GIG").estimated_delivery is None


def test_payout_invariants(bank_details: BankDetails) -> None:
    """Verify payouts carry a positive amount and a recipient code."""

    def make(**overrides) -> Payout:
        fields = dict(
            payout_id="po-1",
            seller_id="seller-1",
            amount=Decimal("100"),
            status=PayoutStatus.PENDING,
            bank_details=bank_details,
            recipient_code="RCP_1",
            request_date=NOW,
        )
        fields.update(overrides)
        return Payout(**fields)

    with pytest.raises(ValueError):
        make(amount=Decimal("0"))
    with pytest.raises(ValueError):
        make(recipient_code="")


def test_bank_details_require_account_and_bank_code() -> None:
    with pytest.raises(ValueError):
        BankDetails(account_name="A", account_number="", bank_name="B", bank_code="058")


def test_user_profile_payout_readiness(bank_details: BankDetails) -> None:
    assert not UserProfile(uid="u", email="u@example.com", user_type="seller").can_receive_payouts()
    assert UserProfile(
        uid="u", email="u@example.com", user_type="seller", bank_details=bank_details, recipient_code="RCP_1"
    ).can_receive_payouts()


def test_actor_roles() -> None:
    assert Actor.system().is_system
    assert not Actor(uid="buyer-1").is_system

    with pytest.raises(ValueError):
        Actor(uid="")
