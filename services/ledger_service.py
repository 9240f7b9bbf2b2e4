"""
Order/payout ledger.

Owns the lifecycle of Products, Orders and Payouts:
- validates the actor's party (buyer, seller, owner, system) and the requested
  edge against the transition tables in ``domain.transitions``;
- applies the entity update and every side effect the edge carries (product
  reservation/release, payout order claims) inside one store transaction;
- re-reads current state in every operation and never caches entities.

Every rejected operation raises a typed ``LedgerError`` and writes nothing.
Transient persistence errors propagate to the caller unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, List, Optional, Set, TypeVar, Union

from domain.actor import Actor
from domain.errors import (
    InvalidActor,
    InvalidRequest,
    InvalidTransition,
    LedgerError,
    MissingRecipientCode,
    NoEligibleOrders,
    NotFound,
    ProductUnavailable,
    Unauthorized,
)
from domain.order import DeliveryStatus, Order, PaymentStatus, ShippingAddress, TrackingInfo
from domain.payout import BankDetails, Payout, PayoutStatus
from domain.product import Product, ProductStatus
from domain.time import utc_now
from domain.transitions import (
    ORDER_DELIVERY,
    ORDER_PAYMENT,
    PAYOUT_STATUS,
    PRODUCT_STATUS,
    Effect,
    Party,
)
from repositories.document_store import DocumentStore, Transaction, new_document_id
from repositories.order_repository import (
    get_order,
    insert_order,
    list_orders,
    list_payout_eligible_orders,
    save_order,
)
from repositories.payout_repository import get_payout, insert_payout, list_payouts, save_payout
from repositories.product_repository import get_product, insert_product, list_products_by_owner, save_product_status
from repositories.user_repository import get_user_profile

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _order_parties(actor: Actor, order: Order) -> Set[Party]:
    parties: Set[Party] = set()
    if actor.uid == order.buyer_id:
        parties.add(Party.BUYER)
    if actor.uid == order.seller_id:
        parties.add(Party.SELLER)
    if actor.is_system:
        parties.add(Party.SYSTEM)
    return parties


def _payout_parties(actor: Actor, payout: Payout) -> Set[Party]:
    parties: Set[Party] = set()
    if actor.uid == payout.seller_id:
        parties.add(Party.SELLER)
    if actor.is_system:
        parties.add(Party.SYSTEM)
    return parties


def _coerce(enum_type, value, *, name: str):
    try:
        return enum_type(value)
    except ValueError as e:
        raise InvalidRequest(f"Unknown {name}: {value!r}") from e


class MarketplaceLedger:
    """
    Transactional state machine over the ``products``, ``orders``,
    ``payouts`` and ``users`` collections.

    Collaborators are injected: the document store, a UTC clock and an id
    factory. The ledger holds no entity state between calls.
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = new_document_id,
    ) -> None:
        self._store = store
        self._clock = clock
        self._id_factory = id_factory

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def list_product(self, owner: Actor, *, title: str, price: Decimal, is_free: bool = False) -> Product:
        """Create an ``active`` listing owned by ``owner``."""

        price = Decimal(price)
        if price < 0:
            raise InvalidRequest("Price must not be negative")
        if is_free and price != 0:
            raise InvalidRequest("Free listings must have a price of 0")
        PRODUCT_STATUS.resolve(None, ProductStatus.ACTIVE, {Party.OWNER})

        product = Product(
            product_id=self._id_factory(),
            owner_id=owner.uid,
            title=title,
            price=price,
            is_free=is_free,
            status=ProductStatus.ACTIVE,
            created_at=self._clock(),
        )
        self._store.run_transaction(lambda txn: insert_product(txn, product))

        logger.info("Product listed", extra={"product_id": product.product_id, "owner_id": owner.uid})
        return product

    def get_product(self, product_id: str) -> Product:
        product = get_product(self._store, product_id)
        if product is None:
            raise NotFound(f"Product not found: {product_id}")
        return product

    def list_products(
        self,
        owner_id: str,
        *,
        status: Optional[ProductStatus] = None,
        limit: Optional[int] = None,
    ) -> List[Product]:
        """An owner's listings, newest first."""

        return list_products_by_owner(self._store, owner_id, status=status, limit=limit)

    def mark_product_sold(self, owner: Actor, product_id: str) -> Product:
        """Owner marks an active listing sold outside the order flow."""

        def apply(txn: Transaction) -> Product:
            product = self._require_product(txn, product_id)
            parties = {Party.OWNER} if product.owner_id == owner.uid else set()
            if not parties:
                raise Unauthorized("You don't have permission to update this product")
            PRODUCT_STATUS.resolve(product.status, ProductStatus.SOLD, parties)

            updated = product.sold(at=self._clock())
            save_product_status(txn, updated)
            return updated

        return self._run("mark_product_sold", apply, product_id=product_id, actor_id=owner.uid)

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def create_order(
        self,
        buyer: Actor,
        product_id: str,
        quantity: int,
        shipping_address: ShippingAddress,
        payment_reference: Optional[str] = None,
    ) -> Order:
        """
        Create an order for an active product.

        The price is snapshotted: amount = price x quantity. With a payment
        reference the order is created paid and the product is marked sold by
        it in the same transaction; without one the product stays active
        until ``record_payment``.
        """

        if quantity < 1:
            raise InvalidRequest("Quantity must be at least 1")

        def apply(txn: Transaction) -> Order:
            product = self._require_product(txn, product_id)
            if product.owner_id == buyer.uid:
                raise InvalidActor("You cannot order your own listing")
            if not product.is_available:
                raise ProductUnavailable("Product is no longer available")

            payment_status = PaymentStatus.PAID if payment_reference else PaymentStatus.PENDING
            delivery_edge = ORDER_DELIVERY.resolve(None, DeliveryStatus.PENDING, {Party.BUYER})
            payment_edge = ORDER_PAYMENT.resolve(None, payment_status, {Party.BUYER})

            now = self._clock()
            order = Order(
                order_id=self._id_factory(),
                buyer_id=buyer.uid,
                seller_id=product.owner_id,
                product_id=product.product_id,
                product_title=product.title,
                quantity=quantity,
                amount=product.price * quantity,
                payment_status=payment_status,
                delivery_status=DeliveryStatus.PENDING,
                shipping_address=shipping_address,
                order_date=now,
                payment_reference=payment_reference,
            )
            product_update = self._product_effects(order, product, delivery_edge.effects + payment_edge.effects, now)

            insert_order(txn, order)
            if product_update is not None:
                save_product_status(txn, product_update)
            return order

        order = self._run("create_order", apply, product_id=product_id, actor_id=buyer.uid)
        logger.info(
            "Order created",
            extra={
                "order_id": order.order_id,
                "product_id": product_id,
                "buyer_id": buyer.uid,
                "payment_status": order.payment_status.value,
            },
        )
        return order

    def update_order_status(
        self,
        actor: Actor,
        order_id: str,
        target_status: Union[DeliveryStatus, str],
        tracking_info: Optional[TrackingInfo] = None,
    ) -> Order:
        """Move an order's delivery status along one edge of the delivery table."""

        target = _coerce(DeliveryStatus, target_status, name="delivery status")

        def apply(txn: Transaction) -> Order:
            order = self._require_order(txn, order_id)
            parties = _order_parties(actor, order)
            if not parties:
                raise Unauthorized("You don't have permission to update this order")
            edge = ORDER_DELIVERY.resolve(order.delivery_status, target, parties)

            product = None
            if Effect.RELEASE_PRODUCT in edge.effects:
                product = get_product(txn, order.product_id)

            now = self._clock()
            updated = replace(
                order,
                delivery_status=target,
                tracking_info=tracking_info if tracking_info is not None else order.tracking_info,
                updated_at=now,
            )
            product_update = self._product_effects(updated, product, edge.effects, now)

            save_order(txn, updated)
            if product_update is not None:
                save_product_status(txn, product_update)
            return updated

        order = self._run("update_order_status", apply, order_id=order_id, actor_id=actor.uid, to_status=target.value)
        logger.info(
            "Order delivery status updated",
            extra={"order_id": order_id, "actor_id": actor.uid, "to_status": target.value},
        )
        return order

    def cancel_order(self, buyer: Actor, order_id: str) -> Order:
        """Buyer cancels a pending order; the product is released if this order sold it."""

        return self.update_order_status(buyer, order_id, DeliveryStatus.CANCELLED)

    def confirm_delivery(self, buyer: Actor, order_id: str) -> Order:
        """Buyer confirms a shipped or delivered order, unlocking payout eligibility."""

        return self.update_order_status(buyer, order_id, DeliveryStatus.COMPLETED)

    def record_payment(self, actor: Actor, order_id: str, reference: str) -> Order:
        """
        Record a gateway-verified payment for a pending order.

        The product must still be active; it is marked sold by this order in
        the same transaction.
        """

        if not reference:
            raise InvalidRequest("Payment reference is required")

        def apply(txn: Transaction) -> Order:
            order = self._require_order(txn, order_id)
            parties = _order_parties(actor, order)
            if not parties:
                raise Unauthorized("You don't have permission to update this order")
            edge = ORDER_PAYMENT.resolve(order.payment_status, PaymentStatus.PAID, parties)
            if order.delivery_status is DeliveryStatus.CANCELLED:
                raise InvalidTransition("Cannot record payment for a cancelled order")
            product = self._require_product(txn, order.product_id)

            now = self._clock()
            updated = replace(order, payment_status=PaymentStatus.PAID, payment_reference=reference, updated_at=now)
            product_update = self._product_effects(updated, product, edge.effects, now)

            save_order(txn, updated)
            if product_update is not None:
                save_product_status(txn, product_update)
            return updated

        order = self._run("record_payment", apply, order_id=order_id, actor_id=actor.uid)
        logger.info("Order payment recorded", extra={"order_id": order_id, "payment_reference": reference})
        return order

    def record_payment_failure(self, actor: Actor, order_id: str, reason: Optional[str] = None) -> Order:
        def apply(txn: Transaction) -> Order:
            order = self._require_order(txn, order_id)
            parties = _order_parties(actor, order)
            if not parties:
                raise Unauthorized("You don't have permission to update this order")
            ORDER_PAYMENT.resolve(order.payment_status, PaymentStatus.FAILED, parties)

            updated = replace(
                order,
                payment_status=PaymentStatus.FAILED,
                notes=reason or order.notes,
                updated_at=self._clock(),
            )
            save_order(txn, updated)
            return updated

        order = self._run("record_payment_failure", apply, order_id=order_id, actor_id=actor.uid)
        logger.info("Order payment failed", extra={"order_id": order_id, "reason": reason})
        return order

    def get_order(self, actor: Actor, order_id: str) -> Order:
        order = get_order(self._store, order_id)
        if order is None:
            raise NotFound(f"Order not found: {order_id}")
        if not _order_parties(actor, order):
            raise Unauthorized("You don't have permission to view this order")
        return order

    def list_orders(
        self,
        actor: Actor,
        role: Union[Party, str],
        *,
        delivery_status: Optional[DeliveryStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        limit: Optional[int] = None,
    ) -> List[Order]:
        """List the actor's orders as buyer or seller, newest first."""

        role = _coerce(Party, role, name="role")
        if role is Party.BUYER:
            return list_orders(
                self._store,
                buyer_id=actor.uid,
                delivery_status=delivery_status,
                payment_status=payment_status,
                limit=limit,
            )
        if role is Party.SELLER:
            return list_orders(
                self._store,
                seller_id=actor.uid,
                delivery_status=delivery_status,
                payment_status=payment_status,
                limit=limit,
            )
        raise InvalidRequest(f"Orders can only be listed as buyer or seller, not {role.value}")

    # ------------------------------------------------------------------
    # Payouts
    # ------------------------------------------------------------------

    def payout_balance(self, seller: Actor) -> Decimal:
        """Sum of the seller's completed, paid orders not yet claimed by a payout."""

        return sum((o.amount for o in list_payout_eligible_orders(self._store, seller.uid)), Decimal("0"))

    def request_payout(
        self,
        seller: Actor,
        amount: Optional[Decimal] = None,
        bank_details: Optional[BankDetails] = None,
    ) -> Payout:
        """
        Create a pending payout claiming every eligible order of the seller.

        ``amount`` defaults to the claimed orders' total and may not exceed
        it; ``bank_details`` default to the details stored on the profile.
        """

        if amount is not None and Decimal(amount) <= 0:
            raise InvalidRequest("Payout amount must be positive")

        def apply(txn: Transaction) -> Payout:
            profile = get_user_profile(txn, seller.uid)
            if profile is None or not profile.can_receive_payouts():
                raise MissingRecipientCode("You need to set up your bank details and get a recipient code first")

            eligible = list_payout_eligible_orders(txn, seller.uid)
            if not eligible:
                raise NoEligibleOrders("You don't have any completed orders to request a payout for")
            edge = PAYOUT_STATUS.resolve(None, PayoutStatus.PENDING, {Party.SELLER})

            available = sum((o.amount for o in eligible), Decimal("0"))
            requested = available if amount is None else Decimal(amount)
            if requested > available:
                raise InvalidRequest(f"Requested payout {requested} exceeds available balance {available}")

            details = bank_details or profile.bank_details
            if details is None:
                raise InvalidRequest("Bank details are required to request a payout")

            now = self._clock()
            payout = Payout(
                payout_id=self._id_factory(),
                seller_id=seller.uid,
                amount=requested,
                status=PayoutStatus.PENDING,
                bank_details=details,
                recipient_code=profile.recipient_code,
                request_date=now,
                order_ids=tuple(o.order_id for o in eligible),
            )

            insert_payout(txn, payout)
            if Effect.CLAIM_ORDERS in edge.effects:
                self._set_payout_claims(txn, eligible, payout.payout_id, now)
            return payout

        payout = self._run("request_payout", apply, actor_id=seller.uid)
        logger.info(
            "Payout requested",
            extra={
                "payout_id": payout.payout_id,
                "seller_id": seller.uid,
                "amount": str(payout.amount),
                "order_count": len(payout.order_ids),
            },
        )
        return payout

    def cancel_payout(self, seller: Actor, payout_id: str) -> Payout:
        """
        Seller cancels a payout that is still pending and has no transfer in
        flight; its orders become eligible again.
        """

        return self._transition_payout(
            seller,
            payout_id,
            PayoutStatus.FAILED,
            notes="Cancelled by seller",
            require_source=PayoutStatus.PENDING,
            require_no_transfer=True,
        )

    def begin_payout_transfer(self, actor: Actor, payout_id: str, transfer_reference: str) -> Payout:
        """
        Record the reference of a transfer about to be sent for a pending payout.

        From then on the seller can no longer cancel the payout. Recording
        the same reference again is a no-op so an interrupted transfer can be
        resent under the reference the gateway already knows.
        """

        if not transfer_reference:
            raise InvalidRequest("Transfer reference is required")

        def apply(txn: Transaction) -> Payout:
            payout = self._require_payout(txn, payout_id)
            parties = _payout_parties(actor, payout)
            if not parties:
                raise Unauthorized("You don't have permission to update this payout")
            if Party.SYSTEM not in parties:
                raise Unauthorized("Payout transfers can only be started by the system")
            if payout.status is not PayoutStatus.PENDING:
                raise InvalidTransition(f"Payout {payout_id} is {payout.status.value}, expected pending")
            if payout.transfer_reference == transfer_reference:
                return payout
            if payout.transfer_reference is not None:
                raise InvalidTransition(
                    f"Payout {payout_id} already has transfer {payout.transfer_reference} in flight"
                )

            updated = replace(payout, transfer_reference=transfer_reference, updated_at=self._clock())
            save_payout(txn, updated)
            return updated

        payout = self._run("begin_payout_transfer", apply, payout_id=payout_id, actor_id=actor.uid)
        logger.info(
            "Payout transfer started",
            extra={"payout_id": payout_id, "transfer_reference": transfer_reference},
        )
        return payout

    def mark_payout_processing(
        self,
        actor: Actor,
        payout_id: str,
        transfer_reference: str,
        transfer_code: Optional[str] = None,
    ) -> Payout:
        """Gateway accepted the transfer for a pending payout."""

        if not transfer_reference:
            raise InvalidRequest("Transfer reference is required")
        return self._transition_payout(
            actor,
            payout_id,
            PayoutStatus.PROCESSING,
            transfer_reference=transfer_reference,
            transfer_code=transfer_code,
        )

    def complete_payout(self, actor: Actor, payout_id: str) -> Payout:
        """Gateway confirmed the transfer settled."""

        return self._transition_payout(actor, payout_id, PayoutStatus.COMPLETED, processed=True)

    def fail_payout(self, actor: Actor, payout_id: str, reason: Optional[str] = None) -> Payout:
        """Gateway reported the transfer failed; claimed orders are released."""

        return self._transition_payout(
            actor, payout_id, PayoutStatus.FAILED, notes=reason or "Transfer failed", processed=True
        )

    def get_payout(self, actor: Actor, payout_id: str) -> Payout:
        payout = get_payout(self._store, payout_id)
        if payout is None:
            raise NotFound(f"Payout not found: {payout_id}")
        if not _payout_parties(actor, payout):
            raise Unauthorized("You don't have permission to view this payout")
        return payout

    def list_payouts(
        self,
        seller: Actor,
        *,
        status: Optional[PayoutStatus] = None,
        limit: Optional[int] = None,
    ) -> List[Payout]:
        return list_payouts(self._store, seller_id=seller.uid, status=status, limit=limit)

    def list_pending_payouts(self, actor: Actor, *, limit: Optional[int] = None) -> List[Payout]:
        """Pending payouts across all sellers, oldest first (system only)."""

        if not actor.is_system:
            raise Unauthorized("Only the system may list all pending payouts")
        return list_payouts(self._store, status=PayoutStatus.PENDING, newest_first=False, limit=limit)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition_payout(
        self,
        actor: Actor,
        payout_id: str,
        target: PayoutStatus,
        *,
        notes: Optional[str] = None,
        transfer_reference: Optional[str] = None,
        transfer_code: Optional[str] = None,
        processed: bool = False,
        require_source: Optional[PayoutStatus] = None,
        require_no_transfer: bool = False,
    ) -> Payout:
        def apply(txn: Transaction) -> Payout:
            payout = self._require_payout(txn, payout_id)
            parties = _payout_parties(actor, payout)
            if not parties:
                raise Unauthorized("You don't have permission to update this payout")
            if require_source is not None and payout.status is not require_source:
                raise InvalidTransition(
                    f"Payout {payout_id} is {payout.status.value}, expected {require_source.value}"
                )
            if require_no_transfer and payout.transfer_reference is not None:
                raise InvalidTransition(
                    f"Payout {payout_id} already has transfer {payout.transfer_reference} in flight"
                )
            edge = PAYOUT_STATUS.resolve(payout.status, target, parties)

            claimed: List[Order] = []
            if Effect.RELEASE_ORDERS in edge.effects:
                for order_id in payout.order_ids:
                    order = get_order(txn, order_id)
                    if order is not None and order.payout_id == payout.payout_id:
                        claimed.append(order)

            now = self._clock()
            updated = replace(
                payout,
                status=target,
                notes=notes if notes is not None else payout.notes,
                transfer_reference=transfer_reference or payout.transfer_reference,
                transfer_code=transfer_code or payout.transfer_code,
                processed_date=now if processed else payout.processed_date,
                updated_at=now,
            )

            save_payout(txn, updated)
            self._set_payout_claims(txn, claimed, None, now)
            return updated

        payout = self._run(
            "transition_payout", apply, payout_id=payout_id, actor_id=actor.uid, to_status=target.value
        )
        logger.info(
            "Payout status updated",
            extra={"payout_id": payout_id, "actor_id": actor.uid, "to_status": target.value},
        )
        return payout

    def _product_effects(
        self,
        order: Order,
        product: Optional[Product],
        effects: Iterable[Effect],
        now: datetime,
    ) -> Optional[Product]:
        """Compute the product update an order edge implies (``None`` if none)."""

        for effect in effects:
            if effect is Effect.RESERVE_PRODUCT and product is not None:
                sold = product.sold(at=now, order_id=order.order_id)
                PRODUCT_STATUS.resolve(product.status, ProductStatus.SOLD, {Party.SYSTEM})
                return sold
            if effect is Effect.RELEASE_PRODUCT and product is not None and product.was_sold_by(order.order_id):
                PRODUCT_STATUS.resolve(product.status, ProductStatus.ACTIVE, {Party.SYSTEM})
                return product.reactivated(at=now)
        return None

    @staticmethod
    def _set_payout_claims(txn: Transaction, orders: Iterable[Order], payout_id: Optional[str], now: datetime) -> None:
        for order in orders:
            save_order(txn, replace(order, payout_id=payout_id, updated_at=now))

    @staticmethod
    def _require_product(txn: Transaction, product_id: str) -> Product:
        product = get_product(txn, product_id)
        if product is None:
            raise NotFound(f"Product not found: {product_id}")
        return product

    @staticmethod
    def _require_order(txn: Transaction, order_id: str) -> Order:
        order = get_order(txn, order_id)
        if order is None:
            raise NotFound(f"Order not found: {order_id}")
        return order

    @staticmethod
    def _require_payout(txn: Transaction, payout_id: str) -> Payout:
        payout = get_payout(txn, payout_id)
        if payout is None:
            raise NotFound(f"Payout not found: {payout_id}")
        return payout

    def _run(self, operation: str, apply: Callable[[Transaction], T], **context: str) -> T:
        try:
            return self._store.run_transaction(apply)
        except LedgerError as e:
            logger.warning(
                f"Ledger operation rejected: {operation}",
                extra={"operation": operation, "error_code": e.code, "error_message": e.message, **context},
            )
            raise


__all__ = ["MarketplaceLedger"]
