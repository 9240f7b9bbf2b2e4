"""
Order repository (persistence).

Persistence operations for the Order domain entity over the ``orders``
collection: parse-and-validate on read, full snapshots on insert, and updates
of the mutable lifecycle fields. Transition legality lives in the ledger.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from domain.order import DeliveryStatus, Order, PaymentStatus, ShippingAddress, TrackingInfo
from repositories.document_store import CorruptDocumentError, Document, DocumentReader, Transaction
from repositories.serialization import (
    optional_iso_utc,
    optional_str,
    parse_decimal,
    parse_optional_datetime,
    parse_utc_datetime,
    require_mapping,
    require_str,
    to_iso_utc,
)

ORDERS: str = "orders"


def _parse_address(data: Mapping[str, Any]) -> ShippingAddress:
    return ShippingAddress(
        full_name=require_str(data, "fullName"),
        phone_number=require_str(data, "phoneNumber"),
        street=require_str(data, "street"),
        city=require_str(data, "city"),
        state=require_str(data, "state"),
        country=require_str(data, "country"),
        postal_code=optional_str(data, "postalCode"),
    )


def _parse_tracking(data: Optional[Mapping[str, Any]]) -> Optional[TrackingInfo]:
    if data is None:
        return None
    if not isinstance(data, Mapping):
        raise CorruptDocumentError(f"trackingInfo must be an object, got {data!r}")
    return TrackingInfo(
        carrier=optional_str(data, "carrier"),
        tracking_number=optional_str(data, "trackingNumber"),
        estimated_delivery=parse_optional_datetime(data.get("estimatedDelivery")),
    )


def _document_to_order(document: Document) -> Order:
    data = document.data
    quantity = data.get("quantity")
    if not isinstance(quantity, int) or isinstance(quantity, bool):
        raise CorruptDocumentError(f"quantity must be an integer, got {quantity!r}")

    try:
        return Order(
            order_id=document.doc_id,
            buyer_id=require_str(data, "buyerId"),
            seller_id=require_str(data, "sellerId"),
            product_id=require_str(data, "productId"),
            product_title=str(data.get("productTitle") or ""),
            quantity=quantity,
            amount=parse_decimal(data.get("amount"), name="amount"),
            payment_status=PaymentStatus(data.get("paymentStatus")),
            delivery_status=DeliveryStatus(data.get("deliveryStatus")),
            shipping_address=_parse_address(require_mapping(data, "shippingAddress")),
            order_date=parse_utc_datetime(data.get("orderDate")),
            payment_reference=optional_str(data, "paymentReference"),
            tracking_info=_parse_tracking(data.get("trackingInfo")),
            payout_id=optional_str(data, "payoutId"),
            notes=optional_str(data, "notes"),
            updated_at=parse_optional_datetime(data.get("updatedAt")),
        )
    except CorruptDocumentError:
        raise
    except ValueError as e:
        raise CorruptDocumentError(f"Invalid order document {document.doc_id}: {e}") from e


def _address_to_document(address: ShippingAddress) -> Dict[str, Any]:
    return {
        "fullName": address.full_name,
        "phoneNumber": address.phone_number,
        "street": address.street,
        "city": address.city,
        "state": address.state,
        "postalCode": address.postal_code,
        "country": address.country,
    }


def _tracking_to_document(tracking: Optional[TrackingInfo]) -> Optional[Dict[str, Any]]:
    if tracking is None:
        return None
    return {
        "carrier": tracking.carrier,
        "trackingNumber": tracking.tracking_number,
        "estimatedDelivery": optional_iso_utc(tracking.estimated_delivery, name="estimated_delivery"),
    }


def _mutable_fields(order: Order) -> Dict[str, Any]:
    return {
        "paymentStatus": order.payment_status.value,
        "deliveryStatus": order.delivery_status.value,
        "paymentReference": order.payment_reference,
        "trackingInfo": _tracking_to_document(order.tracking_info),
        "payoutId": order.payout_id,
        "notes": order.notes,
        "updatedAt": optional_iso_utc(order.updated_at, name="updated_at"),
    }


def order_to_document(order: Order) -> Dict[str, Any]:
    document: Dict[str, Any] = {
        "buyerId": order.buyer_id,
        "sellerId": order.seller_id,
        "productId": order.product_id,
        "productTitle": order.product_title,
        "quantity": order.quantity,
        "amount": str(order.amount),
        "shippingAddress": _address_to_document(order.shipping_address),
        "orderDate": to_iso_utc(order.order_date, name="order_date"),
    }
    document.update(_mutable_fields(order))
    return document


def get_order(reader: DocumentReader, order_id: str) -> Optional[Order]:
    document = reader.get(ORDERS, order_id)
    return _document_to_order(document) if document is not None else None


def list_orders(
    reader: DocumentReader,
    *,
    buyer_id: Optional[str] = None,
    seller_id: Optional[str] = None,
    delivery_status: Optional[DeliveryStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
    limit: Optional[int] = None,
) -> List[Order]:
    """List orders newest first, filtered by party and status."""

    filters: Dict[str, Any] = {}
    if buyer_id is not None:
        filters["buyerId"] = buyer_id
    if seller_id is not None:
        filters["sellerId"] = seller_id
    if delivery_status is not None:
        filters["deliveryStatus"] = delivery_status.value
    if payment_status is not None:
        filters["paymentStatus"] = payment_status.value

    documents = reader.query(ORDERS, filters=filters, order_by="orderDate", descending=True, limit=limit)
    return [_document_to_order(d) for d in documents]


def list_payout_eligible_orders(reader: DocumentReader, seller_id: str) -> List[Order]:
    """Completed, paid, non-zero orders for ``seller_id`` not yet claimed by a payout, oldest first."""

    documents = reader.query(
        ORDERS,
        filters={
            "sellerId": seller_id,
            "deliveryStatus": DeliveryStatus.COMPLETED.value,
            "paymentStatus": PaymentStatus.PAID.value,
            "payoutId": None,
        },
        order_by="orderDate",
    )
    orders = [_document_to_order(d) for d in documents]
    return [o for o in orders if o.is_payout_eligible]


def insert_order(txn: Transaction, order: Order) -> None:
    txn.create(ORDERS, order_to_document(order), doc_id=order.order_id)


def save_order(txn: Transaction, order: Order) -> None:
    """Persist the lifecycle fields of an order already read in ``txn``."""

    txn.update(ORDERS, order.order_id, _mutable_fields(order))


__all__ = [
    "ORDERS",
    "get_order",
    "list_orders",
    "list_payout_eligible_orders",
    "insert_order",
    "save_order",
    "order_to_document",
]
