"""
Bank Accounts API Endpoints.

Endpoints for listing supported banks and registering a seller's payout account.
"""

from typing import List

from fastapi import APIRouter, Depends

from api.deps import get_actor, get_bank_account_service
from api.models import BankAccountRequest, BankAccountResponse, BankResponse, ErrorResponse
from domain.actor import Actor
from services.bank_account_service import BankAccountService

router = APIRouter()


@router.get(
    "/banks",
    response_model=List[BankResponse],
    summary="List Banks",
    responses={502: {"model": ErrorResponse}},
)
def list_banks(accounts: BankAccountService = Depends(get_bank_account_service)):
    return [BankResponse.from_domain(b) for b in accounts.list_banks()]


@router.post(
    "/bank-accounts",
    response_model=BankAccountResponse,
    status_code=201,
    summary="Register Bank Account",
    responses={502: {"model": ErrorResponse}},
)
def register_bank_account(
    request: BankAccountRequest,
    actor: Actor = Depends(get_actor),
    accounts: BankAccountService = Depends(get_bank_account_service),
):
    """
    Verify the account with the gateway and store it on the caller's profile.

    **Process:**
    1. Resolves the account number to the account holder's name
    2. Creates a transfer recipient for the account
    3. Saves bank details and recipient code; the seller can now request payouts
    """
    account = accounts.register_bank_account(actor, request.account_number, request.bank_code)
    return BankAccountResponse.from_domain(account)
