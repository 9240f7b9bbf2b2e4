"""
Payment service: gateway-verified order payments.

Checkout happens in the browser through Paystack's inline widget; the buyer
then hands us the transaction reference. Nothing is recorded as paid until
the gateway confirms the reference succeeded for exactly the order amount.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from domain.actor import Actor
from domain.errors import InvalidRequest, Unauthorized
from domain.order import Order, ShippingAddress
from services.ledger_service import MarketplaceLedger
from services.payment_gateway import (
    PaystackClient,
    VerifiedTransaction,
    parse_verified_transaction,
    to_minor_units,
)

logger = logging.getLogger(__name__)

# Paystack transaction statuses that will never turn into a successful payment.
FAILED_STATUSES = frozenset({"failed", "abandoned", "reversed"})


class PaymentService:
    def __init__(self, ledger: MarketplaceLedger, gateway: PaystackClient) -> None:
        self._ledger = ledger
        self._gateway = gateway

    def verify_reference(self, reference: str) -> VerifiedTransaction:
        return parse_verified_transaction(self._gateway.verify_transaction(reference))

    def place_order(
        self,
        buyer: Actor,
        product_id: str,
        quantity: int,
        shipping_address: ShippingAddress,
        reference: str,
    ) -> Order:
        """Verify a checkout reference against price x quantity, then create the order paid."""

        product = self._ledger.get_product(product_id)
        transaction = self.verify_reference(reference)
        if not transaction.succeeded:
            raise InvalidRequest(f"Payment {reference} was not successful (status: {transaction.status})")
        self._require_amount(transaction, product.price * quantity)

        return self._ledger.create_order(
            buyer, product_id, quantity, shipping_address, payment_reference=reference
        )

    def confirm_payment(self, actor: Actor, order_id: str, reference: str) -> Order:
        """
        Settle a pending order's payment from its gateway reference.

        Successful payments are recorded (marking the product sold); failed,
        abandoned or reversed ones mark the order's payment failed. Any other
        gateway status is still in flight and is rejected for a later retry.
        """

        order = self._ledger.get_order(actor, order_id)
        if actor.uid != order.buyer_id and not actor.is_system:
            raise Unauthorized("Only the buyer may confirm payment for this order")

        transaction = self.verify_reference(reference)
        system = Actor.system()

        if transaction.succeeded:
            self._require_amount(transaction, order.amount)
            return self._ledger.record_payment(system, order_id, reference)

        if transaction.status in FAILED_STATUSES:
            return self._ledger.record_payment_failure(system, order_id, reason=f"Payment {transaction.status}")

        raise InvalidRequest(f"Payment {reference} is still {transaction.status}")

    @staticmethod
    def _require_amount(transaction: VerifiedTransaction, expected: Decimal) -> None:
        expected_minor = to_minor_units(expected)
        if transaction.amount_minor != expected_minor:
            logger.warning(
                "Payment amount mismatch",
                extra={
                    "payment_reference": transaction.reference,
                    "paid_minor": transaction.amount_minor,
                    "expected_minor": expected_minor,
                },
            )
            raise InvalidRequest(
                f"Paid amount {transaction.amount_minor} kobo does not match order amount {expected_minor} kobo"
            )


__all__ = ["PaymentService", "FAILED_STATUSES"]
