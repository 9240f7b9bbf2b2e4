"""
Orders API Endpoints.

Endpoints for placing orders and moving them through payment and delivery.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.deps import get_actor, get_ledger, get_payment_service
from api.models import (
    CheckoutRequest,
    ErrorResponse,
    OrderCreateRequest,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdateRequest,
    PaymentConfirmationRequest,
)
from domain.actor import Actor
from domain.order import DeliveryStatus, PaymentStatus
from services.ledger_service import MarketplaceLedger
from services.payment_service import PaymentService

router = APIRouter()

_ERRORS = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


@router.post(
    "/orders/checkout",
    response_model=OrderResponse,
    status_code=201,
    summary="Place Paid Order",
    responses={**_ERRORS, 502: {"model": ErrorResponse}},
)
def checkout(
    request: CheckoutRequest,
    actor: Actor = Depends(get_actor),
    payments: PaymentService = Depends(get_payment_service),
):
    """
    Place an order after the buyer paid through the checkout widget.

    **Process:**
    1. Verifies the payment reference with the gateway
    2. Checks the paid amount equals price x quantity
    3. Creates the order as ``paid`` and marks the product sold in one transaction

    If another buyer's order sold the product first, the request fails with
    409 ``PRODUCT_UNAVAILABLE``.
    """
    order = payments.place_order(
        actor,
        request.product_id,
        request.quantity,
        request.shipping_address.to_domain(),
        request.payment_reference,
    )
    return OrderResponse.from_domain(order)


@router.post(
    "/orders",
    response_model=OrderResponse,
    status_code=201,
    summary="Place Unpaid Order",
    responses=_ERRORS,
)
def create_order(
    request: OrderCreateRequest,
    actor: Actor = Depends(get_actor),
    ledger: MarketplaceLedger = Depends(get_ledger),
):
    """
    Place an order to be paid later.

    The product stays ``active`` until the payment is confirmed through
    ``POST /orders/{order_id}/payment``.
    """
    order = ledger.create_order(
        actor, request.product_id, request.quantity, request.shipping_address.to_domain()
    )
    return OrderResponse.from_domain(order)


@router.get(
    "/orders",
    response_model=OrderListResponse,
    summary="List Orders",
)
def list_orders(
    role: str = Query("buyer", description="List as 'buyer' or 'seller'"),
    status: Optional[DeliveryStatus] = Query(None, description="Filter by delivery status"),
    payment_status: Optional[PaymentStatus] = Query(None, description="Filter by payment status"),
    limit: int = Query(100, ge=1, le=500),
    actor: Actor = Depends(get_actor),
    ledger: MarketplaceLedger = Depends(get_ledger),
):
    """List the caller's orders as buyer or seller, newest first."""
    orders = ledger.list_orders(
        actor, role, delivery_status=status, payment_status=payment_status, limit=limit
    )
    return OrderListResponse(items=[OrderResponse.from_domain(o) for o in orders], total_count=len(orders))


@router.get(
    "/orders/{order_id}",
    response_model=OrderResponse,
    summary="Get Order",
    responses=_ERRORS,
)
def read_order(
    order_id: str,
    actor: Actor = Depends(get_actor),
    ledger: MarketplaceLedger = Depends(get_ledger),
):
    return OrderResponse.from_domain(ledger.get_order(actor, order_id))


@router.post(
    "/orders/{order_id}/status",
    response_model=OrderResponse,
    summary="Update Delivery Status",
    responses=_ERRORS,
)
def update_order_status(
    order_id: str,
    request: OrderStatusUpdateRequest,
    actor: Actor = Depends(get_actor),
    ledger: MarketplaceLedger = Depends(get_ledger),
):
    """
    Move an order along the delivery lifecycle.

    **Allowed moves:**
    - seller: pending -> shipped, shipped -> delivered
    - buyer: shipped/delivered -> completed, pending -> cancelled
    """
    tracking = request.tracking_info.to_domain() if request.tracking_info else None
    order = ledger.update_order_status(actor, order_id, request.status, tracking_info=tracking)
    return OrderResponse.from_domain(order)


@router.post(
    "/orders/{order_id}/cancel",
    response_model=OrderResponse,
    summary="Cancel Order",
    responses=_ERRORS,
)
def cancel_order(
    order_id: str,
    actor: Actor = Depends(get_actor),
    ledger: MarketplaceLedger = Depends(get_ledger),
):
    return OrderResponse.from_domain(ledger.cancel_order(actor, order_id))


@router.post(
    "/orders/{order_id}/confirm-delivery",
    response_model=OrderResponse,
    summary="Confirm Delivery",
    responses=_ERRORS,
)
def confirm_delivery(
    order_id: str,
    actor: Actor = Depends(get_actor),
    ledger: MarketplaceLedger = Depends(get_ledger),
):
    """Buyer confirms receipt; the order becomes eligible for the seller's payout."""
    return OrderResponse.from_domain(ledger.confirm_delivery(actor, order_id))


@router.post(
    "/orders/{order_id}/payment",
    response_model=OrderResponse,
    summary="Confirm Payment",
    responses={**_ERRORS, 502: {"model": ErrorResponse}},
)
def confirm_payment(
    order_id: str,
    request: PaymentConfirmationRequest,
    actor: Actor = Depends(get_actor),
    payments: PaymentService = Depends(get_payment_service),
):
    """
    Settle a pending order's payment from its gateway reference.

    A successful transaction marks the order ``paid`` and the product sold;
    a failed or abandoned one marks the payment ``failed``.
    """
    return OrderResponse.from_domain(payments.confirm_payment(actor, order_id, request.reference))
