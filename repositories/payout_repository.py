"""
Payout repository (persistence).

Persistence operations for the Payout domain entity over the ``payouts``
collection.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from domain.payout import BankDetails, Payout, PayoutStatus
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

PAYOUTS: str = "payouts"


def parse_bank_details(data: Mapping[str, Any]) -> BankDetails:
    return BankDetails(
        account_name=str(data.get("accountName") or ""),
        account_number=require_str(data, "accountNumber"),
        bank_name=str(data.get("bankName") or ""),
        bank_code=require_str(data, "bankCode"),
    )


def bank_details_to_document(details: BankDetails) -> Dict[str, Any]:
    return {
        "accountName": details.account_name,
        "accountNumber": details.account_number,
        "bankName": details.bank_name,
        "bankCode": details.bank_code,
    }


def _document_to_payout(document: Document) -> Payout:
    data = document.data
    order_ids = data.get("orderIds") or []
    if not isinstance(order_ids, list) or not all(isinstance(i, str) for i in order_ids):
        raise CorruptDocumentError(f"orderIds must be a list of strings, got {order_ids!r}")

    try:
        return Payout(
            payout_id=document.doc_id,
            seller_id=require_str(data, "sellerId"),
            amount=parse_decimal(data.get("amount"), name="amount"),
            status=PayoutStatus(data.get("status")),
            bank_details=parse_bank_details(require_mapping(data, "bankDetails")),
            recipient_code=require_str(data, "recipientCode"),
            request_date=parse_utc_datetime(data.get("requestDate")),
            order_ids=tuple(order_ids),
            processed_date=parse_optional_datetime(data.get("processedDate")),
            transfer_reference=optional_str(data, "transferReference"),
            transfer_code=optional_str(data, "transferCode"),
            notes=optional_str(data, "notes"),
            updated_at=parse_optional_datetime(data.get("updatedAt")),
        )
    except CorruptDocumentError:
        raise
    except ValueError as e:
        raise CorruptDocumentError(f"Invalid payout document {document.doc_id}: {e}") from e


def _mutable_fields(payout: Payout) -> Dict[str, Any]:
    return {
        "status": payout.status.value,
        "processedDate": optional_iso_utc(payout.processed_date, name="processed_date"),
        "transferReference": payout.transfer_reference,
        "transferCode": payout.transfer_code,
        "notes": payout.notes,
        "updatedAt": optional_iso_utc(payout.updated_at, name="updated_at"),
    }


def payout_to_document(payout: Payout) -> Dict[str, Any]:
    document: Dict[str, Any] = {
        "sellerId": payout.seller_id,
        "amount": str(payout.amount),
        "bankDetails": bank_details_to_document(payout.bank_details),
        "recipientCode": payout.recipient_code,
        "requestDate": to_iso_utc(payout.request_date, name="request_date"),
        "orderIds": list(payout.order_ids),
    }
    document.update(_mutable_fields(payout))
    return document


def get_payout(reader: DocumentReader, payout_id: str) -> Optional[Payout]:
    document = reader.get(PAYOUTS, payout_id)
    return _document_to_payout(document) if document is not None else None


def list_payouts(
    reader: DocumentReader,
    *,
    seller_id: Optional[str] = None,
    status: Optional[PayoutStatus] = None,
    newest_first: bool = True,
    limit: Optional[int] = None,
) -> List[Payout]:
    filters: Dict[str, Any] = {}
    if seller_id is not None:
        filters["sellerId"] = seller_id
    if status is not None:
        filters["status"] = status.value

    documents = reader.query(
        PAYOUTS, filters=filters, order_by="requestDate", descending=newest_first, limit=limit
    )
    return [_document_to_payout(d) for d in documents]


def insert_payout(txn: Transaction, payout: Payout) -> None:
    txn.create(PAYOUTS, payout_to_document(payout), doc_id=payout.payout_id)


def save_payout(txn: Transaction, payout: Payout) -> None:
    txn.update(PAYOUTS, payout.payout_id, _mutable_fields(payout))


__all__ = [
    "PAYOUTS",
    "get_payout",
    "list_payouts",
    "insert_payout",
    "save_payout",
    "payout_to_document",
    "parse_bank_details",
    "bank_details_to_document",
]
