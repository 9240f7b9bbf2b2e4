"""
Product repository (persistence).

Persistence operations for the Product domain entity over the ``products``
collection. It does not enforce listing rules; the ledger decides which
status changes are legal.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from domain.product import Product, ProductStatus
from repositories.document_store import CorruptDocumentError, Document, DocumentReader, Transaction
from repositories.serialization import (
    optional_iso_utc,
    optional_str,
    parse_decimal,
    parse_optional_datetime,
    parse_utc_datetime,
    require_str,
    to_iso_utc,
)

PRODUCTS: str = "products"


def _document_to_product(document: Document) -> Product:
    data = document.data
    try:
        return Product(
            product_id=document.doc_id,
            owner_id=require_str(data, "ownerId"),
            title=str(data.get("title") or ""),
            price=parse_decimal(data.get("price"), name="price"),
            is_free=bool(data.get("isFree", False)),
            status=ProductStatus(data.get("status")),
            created_at=parse_utc_datetime(data.get("createdAt")),
            updated_at=parse_optional_datetime(data.get("updatedAt")),
            sold_by_order_id=optional_str(data, "soldByOrderId"),
        )
    except CorruptDocumentError:
        raise
    except ValueError as e:
        raise CorruptDocumentError(f"Invalid product document {document.doc_id}: {e}") from e


def product_to_document(product: Product) -> Dict[str, Any]:
    return {
        "ownerId": product.owner_id,
        "title": product.title,
        "price": str(product.price),
        "isFree": product.is_free,
        "status": product.status.value,
        "soldByOrderId": product.sold_by_order_id,
        "createdAt": to_iso_utc(product.created_at, name="created_at"),
        "updatedAt": optional_iso_utc(product.updated_at, name="updated_at"),
    }


def get_product(reader: DocumentReader, product_id: str) -> Optional[Product]:
    document = reader.get(PRODUCTS, product_id)
    return _document_to_product(document) if document is not None else None


def list_products_by_owner(
    reader: DocumentReader,
    owner_id: str,
    status: Optional[ProductStatus] = None,
    limit: Optional[int] = None,
) -> List[Product]:
    filters: Dict[str, Any] = {"ownerId": owner_id}
    if status is not None:
        filters["status"] = status.value
    documents = reader.query(PRODUCTS, filters=filters, order_by="createdAt", descending=True, limit=limit)
    return [_document_to_product(d) for d in documents]


def insert_product(txn: Transaction, product: Product) -> None:
    txn.create(PRODUCTS, product_to_document(product), doc_id=product.product_id)


def save_product_status(txn: Transaction, product: Product) -> None:
    """Persist the mutable status fields of a product already read in ``txn``."""

    txn.update(
        PRODUCTS,
        product.product_id,
        {
            "status": product.status.value,
            "soldByOrderId": product.sold_by_order_id,
            "updatedAt": optional_iso_utc(product.updated_at, name="updated_at"),
        },
    )


__all__ = [
    "PRODUCTS",
    "get_product",
    "list_products_by_owner",
    "insert_product",
    "save_product_status",
    "product_to_document",
]
