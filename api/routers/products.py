"""
Products API Endpoints.

Endpoints for listing products and marking them sold outside the order flow.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.deps import get_actor, get_ledger
from api.models import ErrorResponse, ProductCreateRequest, ProductListResponse, ProductResponse
from domain.actor import Actor
from domain.product import ProductStatus
from services.ledger_service import MarketplaceLedger

router = APIRouter()


@router.post(
    "/products",
    response_model=ProductResponse,
    status_code=201,
    summary="List Product",
    responses={400: {"model": ErrorResponse}},
)
def create_product(
    request: ProductCreateRequest,
    actor: Actor = Depends(get_actor),
    ledger: MarketplaceLedger = Depends(get_ledger),
):
    """
    Create an ``active`` listing owned by the caller.

    Free listings must carry a price of 0.
    """
    product = ledger.list_product(actor, title=request.title, price=request.price, is_free=request.is_free)
    return ProductResponse.from_domain(product)


@router.get(
    "/products",
    response_model=ProductListResponse,
    summary="List Products",
)
def list_products(
    owner: str = Query(..., min_length=1, description="Owner user id"),
    status: Optional[ProductStatus] = Query(None, description="Filter by listing status"),
    limit: int = Query(100, ge=1, le=500),
    ledger: MarketplaceLedger = Depends(get_ledger),
):
    """An owner's listings, newest first."""
    products = ledger.list_products(owner, status=status, limit=limit)
    return ProductListResponse(
        items=[ProductResponse.from_domain(p) for p in products],
        total_count=len(products),
    )


@router.get(
    "/products/{product_id}",
    response_model=ProductResponse,
    summary="Get Product",
    responses={404: {"model": ErrorResponse}},
)
def read_product(product_id: str, ledger: MarketplaceLedger = Depends(get_ledger)):
    return ProductResponse.from_domain(ledger.get_product(product_id))


@router.post(
    "/products/{product_id}/mark-sold",
    response_model=ProductResponse,
    summary="Mark Product Sold",
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def mark_product_sold(
    product_id: str,
    actor: Actor = Depends(get_actor),
    ledger: MarketplaceLedger = Depends(get_ledger),
):
    """Owner marks an active listing sold (e.g. sold offline)."""
    return ProductResponse.from_domain(ledger.mark_product_sold(actor, product_id))
