"""
Tests for the gateway-driven services (`services/payment_service.py`,
`services/bank_account_service.py`, `services/payout_transfer_service.py`).

The Paystack client is replaced by an in-process fake that returns the same
payload shapes as the real API.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from domain.actor import Actor
from domain.errors import (
    GatewayError,
    InvalidRequest,
    InvalidTransition,
    NoEligibleOrders,
    ProductUnavailable,
    Unauthorized,
)
from domain.order import PaymentStatus
from domain.payout import PayoutStatus
from domain.product import ProductStatus
from repositories.user_repository import get_user_profile
from services.bank_account_service import BankAccountService
from services.payment_service import PaymentService
from services.payout_transfer_service import PayoutTransferService, transfer_reference_for


@pytest.fixture
def payments(ledger, gateway) -> PaymentService:
    return PaymentService(ledger, gateway)


@pytest.fixture
def transfers(ledger, gateway) -> PayoutTransferService:
    return PayoutTransferService(ledger, gateway, transfer_reason="SwapNaira payout")


# ----------------------------------------------------------------------------
# PaymentService
# ----------------------------------------------------------------------------


def test_place_order_with_verified_payment(payments, gateway, ledger, product, buyer, address) -> None:
    gateway.paid("ref-1", 8500000)

    order = payments.place_order(buyer, product.product_id, 1, address, "ref-1")

    assert order.payment_status is PaymentStatus.PAID
    assert ledger.get_product(product.product_id).status is ProductStatus.SOLD


def test_place_order_rejects_unsuccessful_or_short_payments(payments, gateway, ledger, product, buyer, address) -> None:
    gateway.paid("ref-abandoned", 8500000, status="abandoned")
    gateway.paid("ref-short", 100)

    with pytest.raises(InvalidRequest):
        payments.place_order(buyer, product.product_id, 1, address, "ref-abandoned")
    with pytest.raises(InvalidRequest):
        payments.place_order(buyer, product.product_id, 1, address, "ref-short")
    with pytest.raises(GatewayError):
        payments.place_order(buyer, product.product_id, 1, address, "ref-unknown")

    assert ledger.get_product(product.product_id).status is ProductStatus.ACTIVE
    assert ledger.list_orders(buyer, "buyer") == []


def test_place_order_on_sold_product_is_unavailable(payments, gateway, product, buyer, other_buyer, address) -> None:
    gateway.paid("ref-1", 8500000)
    gateway.paid("ref-2", 8500000)
    payments.place_order(buyer, product.product_id, 1, address, "ref-1")

    with pytest.raises(ProductUnavailable):
        payments.place_order(other_buyer, product.product_id, 1, address, "ref-2")


def test_confirm_payment_success(payments, gateway, ledger, product, buyer, address) -> None:
    order = ledger.create_order(buyer, product.product_id, 1, address)
    gateway.paid("ref-1", 8500000)

    paid = payments.confirm_payment(buyer, order.order_id, "ref-1")

    assert paid.payment_status is PaymentStatus.PAID
    assert ledger.get_product(product.product_id).sold_by_order_id == order.order_id


def test_confirm_payment_failure_and_in_flight(payments, gateway, ledger, product, buyer, address) -> None:
    order = ledger.create_order(buyer, product.product_id, 1, address)
    gateway.paid("ref-pending", 8500000, status="ongoing")
    gateway.paid("ref-failed", 8500000, status="failed")

    with pytest.raises(InvalidRequest):
        payments.confirm_payment(buyer, order.order_id, "ref-pending")
    assert ledger.get_order(buyer, order.order_id).payment_status is PaymentStatus.PENDING

    failed = payments.confirm_payment(buyer, order.order_id, "ref-failed")
    assert failed.payment_status is PaymentStatus.FAILED
    assert failed.notes == "Payment failed"


def test_only_buyer_confirms_payment(payments, gateway, ledger, product, seller, buyer, address) -> None:
    order = ledger.create_order(buyer, product.product_id, 1, address)
    gateway.paid("ref-1", 8500000)

    with pytest.raises(Unauthorized):
        payments.confirm_payment(seller, order.order_id, "ref-1")


# ----------------------------------------------------------------------------
# BankAccountService
# ----------------------------------------------------------------------------


def test_register_bank_account_creates_profile(store, gateway, clock, seller) -> None:
    accounts = BankAccountService(store, gateway, clock=clock)

    registered = accounts.register_bank_account(seller, "0123456789", "058")

    assert registered.recipient_code == "RCP_1"
    assert registered.bank_details.account_name == "TUNDE SELLER"
    assert registered.bank_details.bank_name == "Guaranty Trust Bank"
    assert gateway.recipients == [{"name": "TUNDE SELLER", "account_number": "0123456789", "bank_code": "058"}]

    profile = get_user_profile(store, seller.uid)
    assert profile.recipient_code == "RCP_1"
    assert profile.bank_details == registered.bank_details


def test_register_bank_account_updates_existing_profile(store, gateway, clock, seller, seller_profile) -> None:
    accounts = BankAccountService(store, gateway, clock=clock)

    accounts.register_bank_account(seller, "1111111111", "999")

    profile = get_user_profile(store, seller.uid)
    assert profile.email == seller_profile.email
    assert profile.recipient_code == "RCP_1"
    assert profile.bank_details.account_number == "1111111111"
    assert profile.bank_details.bank_name == ""


# ----------------------------------------------------------------------------
# PayoutTransferService
# ----------------------------------------------------------------------------


def test_initiate_transfer_marks_processing(transfers, gateway, ledger, seller_profile, completed_order, seller) -> None:
    completed_order()
    payout = ledger.request_payout(seller)
    reference = transfer_reference_for(payout.payout_id)

    processing = transfers.initiate(payout.payout_id)

    assert processing.status is PayoutStatus.PROCESSING
    assert processing.transfer_reference == reference
    assert processing.transfer_code == "TRF_1"
    assert gateway.transfers == [
        {"amount": Decimal("85000"), "recipient": "RCP_seller1", "reason": "SwapNaira payout", "reference": reference}
    ]

    with pytest.raises(InvalidTransition):
        transfers.initiate(payout.payout_id)
    assert len(gateway.transfers) == 1


def test_seller_cannot_cancel_while_transfer_is_sent(
    transfers, gateway, ledger, seller_profile, completed_order, seller
) -> None:
    """Verify a cancellation racing the gateway call cannot free the orders for a second payout."""

    completed_order()
    payout = ledger.request_payout(seller)
    cancel_errors = []

    def cancel_during_transfer() -> None:
        try:
            ledger.cancel_payout(seller, payout.payout_id)
        except InvalidTransition as e:
            cancel_errors.append(e)

    gateway.after_transfer = cancel_during_transfer

    processing = transfers.initiate(payout.payout_id)

    assert len(cancel_errors) == 1
    assert processing.status is PayoutStatus.PROCESSING
    with pytest.raises(NoEligibleOrders):
        ledger.request_payout(seller)
    assert len(gateway.transfers) == 1


def test_cancelled_payout_is_never_sent(transfers, gateway, ledger, seller_profile, completed_order, seller) -> None:
    completed_order()
    payout = ledger.request_payout(seller)
    ledger.cancel_payout(seller, payout.payout_id)

    with pytest.raises(InvalidTransition):
        transfers.initiate(payout.payout_id)
    assert gateway.transfers == []


def test_unreachable_gateway_keeps_payout_pending_under_same_reference(
    transfers, gateway, ledger, seller_profile, completed_order, seller
) -> None:
    """Verify transient failures leave the payout pending and resends reuse the reference."""

    completed_order()
    payout = ledger.request_payout(seller)
    gateway.fail_transfers_for = "RCP_seller1"

    with pytest.raises(GatewayError):
        transfers.initiate(payout.payout_id)

    pending = ledger.get_payout(seller, payout.payout_id)
    assert pending.status is PayoutStatus.PENDING
    assert pending.transfer_reference == transfer_reference_for(payout.payout_id)
    with pytest.raises(InvalidTransition):
        ledger.cancel_payout(seller, payout.payout_id)

    gateway.fail_transfers_for = None
    processing = transfers.initiate(payout.payout_id)

    assert processing.status is PayoutStatus.PROCESSING
    assert [t["reference"] for t in gateway.transfers] == [transfer_reference_for(payout.payout_id)]


def test_rejected_transfer_fails_payout(transfers, gateway, ledger, seller_profile, completed_order, seller) -> None:
    """Verify a 4xx rejection fails the payout and returns its orders to the balance."""

    order = completed_order()
    payout = ledger.request_payout(seller)
    gateway.fail_transfers_for = "RCP_seller1"
    gateway.transfer_failure = ("Invalid recipient", 400)

    with pytest.raises(GatewayError):
        transfers.initiate(payout.payout_id)

    failed = ledger.get_payout(seller, payout.payout_id)
    assert failed.status is PayoutStatus.FAILED
    assert failed.notes == "Transfer rejected: Invalid recipient"
    assert ledger.get_order(seller, order.order_id).payout_id is None
    assert ledger.payout_balance(seller) == order.amount
    assert gateway.transfers == []


def test_rejected_resend_stays_pending(transfers, gateway, ledger, seller_profile, completed_order, seller) -> None:
    """Verify a rejection of a resent reference does not release orders that may already be paid out."""

    completed_order()
    payout = ledger.request_payout(seller)
    gateway.fail_transfers_for = "RCP_seller1"

    with pytest.raises(GatewayError):
        transfers.initiate(payout.payout_id)

    gateway.transfer_failure = ("Duplicate transfer reference", 400)
    with pytest.raises(GatewayError):
        transfers.initiate(payout.payout_id)

    assert ledger.get_payout(seller, payout.payout_id).status is PayoutStatus.PENDING


def test_settle_outcomes(transfers, ledger, seller_profile, completed_order, seller) -> None:
    order = completed_order()
    payout = ledger.request_payout(seller)
    transfers.initiate(payout.payout_id)

    failed = transfers.settle(payout.payout_id, succeeded=False, reason="Account closed")

    assert failed.status is PayoutStatus.FAILED
    assert ledger.get_order(seller, order.order_id).payout_id is None

    retry = ledger.request_payout(seller)
    transfers.initiate(retry.payout_id)
    assert transfers.settle(retry.payout_id, succeeded=True).status is PayoutStatus.COMPLETED


def test_process_pending_collects_failures(
    transfers, gateway, store, ledger, seller_profile, completed_order, seller, buyer, address
) -> None:
    from domain.user import UserProfile
    from repositories.user_repository import insert_user_profile

    completed_order()
    first = ledger.request_payout(seller)

    second_seller = Actor(uid="seller-2")
    store.run_transaction(
        lambda txn: insert_user_profile(
            txn,
            UserProfile(
                uid=second_seller.uid,
                email="two@example.com",
                user_type="seller",
                bank_details=seller_profile.bank_details,
                recipient_code="RCP_broken",
            ),
        )
    )
    listing = ledger.list_product(second_seller, title="Desk", price=Decimal("20000"))
    order = ledger.create_order(buyer, listing.product_id, 1, address, payment_reference="ref-desk")
    ledger.update_order_status(second_seller, order.order_id, "shipped")
    ledger.confirm_delivery(buyer, order.order_id)
    second = ledger.request_payout(second_seller)

    gateway.fail_transfers_for = "RCP_broken"
    result = transfers.process_pending()

    assert [p.payout_id for p in result.processed] == [first.payout_id]
    assert result.failures == {second.payout_id: "Transfer service unavailable"}
    assert ledger.get_payout(second_seller, second.payout_id).status is PayoutStatus.PENDING
