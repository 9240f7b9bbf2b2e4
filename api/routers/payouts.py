"""
Payouts API Endpoints.

Seller endpoints for requesting and tracking payouts, plus system endpoints
that drive gateway transfers.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.deps import get_actor, get_ledger, get_payout_transfer_service, require_system
from api.models import (
    ErrorResponse,
    PayoutBalanceResponse,
    PayoutBatchResponse,
    PayoutCreateRequest,
    PayoutListResponse,
    PayoutResponse,
    PayoutSettlementRequest,
)
from domain.actor import Actor
from domain.payout import PayoutStatus
from services.ledger_service import MarketplaceLedger
from services.payout_transfer_service import PayoutTransferService

router = APIRouter()

_ERRORS = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


@router.post(
    "/payouts",
    response_model=PayoutResponse,
    status_code=201,
    summary="Request Payout",
    responses={**_ERRORS, 422: {"model": ErrorResponse}},
)
def request_payout(
    request: PayoutCreateRequest,
    actor: Actor = Depends(get_actor),
    ledger: MarketplaceLedger = Depends(get_ledger),
):
    """
    Request a payout of completed order proceeds.

    **Requirements:**
    - a registered bank account (422 ``MISSING_RECIPIENT_CODE`` otherwise)
    - at least one completed, paid order not yet paid out (422 ``NO_ELIGIBLE_ORDERS`` otherwise)

    The payout claims every eligible order, so the same proceeds cannot be
    requested twice.
    """
    bank_details = request.bank_details.to_domain() if request.bank_details else None
    payout = ledger.request_payout(actor, amount=request.amount, bank_details=bank_details)
    return PayoutResponse.from_domain(payout)


@router.get(
    "/payouts",
    response_model=PayoutListResponse,
    summary="List Payouts",
)
def list_payouts(
    status: Optional[PayoutStatus] = Query(None, description="Filter by payout status"),
    limit: int = Query(100, ge=1, le=500),
    actor: Actor = Depends(get_actor),
    ledger: MarketplaceLedger = Depends(get_ledger),
):
    payouts = ledger.list_payouts(actor, status=status, limit=limit)
    return PayoutListResponse(items=[PayoutResponse.from_domain(p) for p in payouts], total_count=len(payouts))


@router.get(
    "/payouts/balance",
    response_model=PayoutBalanceResponse,
    summary="Available Payout Balance",
)
def payout_balance(
    actor: Actor = Depends(get_actor),
    ledger: MarketplaceLedger = Depends(get_ledger),
):
    return PayoutBalanceResponse(available=ledger.payout_balance(actor))


@router.post(
    "/payouts/process-pending",
    response_model=PayoutBatchResponse,
    summary="Initiate Pending Transfers",
    responses={403: {"model": ErrorResponse}},
)
def process_pending_payouts(
    limit: Optional[int] = Query(None, ge=1),
    actor: Actor = Depends(require_system),
    transfers: PayoutTransferService = Depends(get_payout_transfer_service),
):
    """Initiate a gateway transfer for every pending payout, oldest first (system only)."""
    result = transfers.process_pending(limit=limit)
    return PayoutBatchResponse(
        processed=[PayoutResponse.from_domain(p) for p in result.processed],
        failures=result.failures,
    )


@router.get(
    "/payouts/{payout_id}",
    response_model=PayoutResponse,
    summary="Get Payout",
    responses=_ERRORS,
)
def read_payout(
    payout_id: str,
    actor: Actor = Depends(get_actor),
    ledger: MarketplaceLedger = Depends(get_ledger),
):
    return PayoutResponse.from_domain(ledger.get_payout(actor, payout_id))


@router.post(
    "/payouts/{payout_id}/cancel",
    response_model=PayoutResponse,
    summary="Cancel Payout",
    responses=_ERRORS,
)
def cancel_payout(
    payout_id: str,
    actor: Actor = Depends(get_actor),
    ledger: MarketplaceLedger = Depends(get_ledger),
):
    """Seller cancels a pending payout; its orders become available again."""
    return PayoutResponse.from_domain(ledger.cancel_payout(actor, payout_id))


@router.post(
    "/payouts/{payout_id}/transfer",
    response_model=PayoutResponse,
    summary="Initiate Transfer",
    responses={**_ERRORS, 502: {"model": ErrorResponse}},
)
def initiate_transfer(
    payout_id: str,
    actor: Actor = Depends(require_system),
    transfers: PayoutTransferService = Depends(get_payout_transfer_service),
):
    """Send the transfer for a pending payout and mark it ``processing`` (system only)."""
    return PayoutResponse.from_domain(transfers.initiate(payout_id))


@router.post(
    "/payouts/{payout_id}/settlement",
    response_model=PayoutResponse,
    summary="Record Transfer Outcome",
    responses=_ERRORS,
)
def settle_payout(
    payout_id: str,
    request: PayoutSettlementRequest,
    actor: Actor = Depends(require_system),
    transfers: PayoutTransferService = Depends(get_payout_transfer_service),
):
    """Record the gateway's final transfer outcome for a processing payout (system only)."""
    return PayoutResponse.from_domain(transfers.settle(payout_id, request.succeeded, request.reason))
