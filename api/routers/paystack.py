"""
Paystack proxy endpoints.

Browser components call the gateway through this proxy so the secret key
never leaves the server. Responses are the gateway's JSON bodies, unchanged;
failures use a flat ``{"error": message}`` envelope.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse

from api.deps import get_optional_actor, get_optional_gateway, get_settings
from domain.actor import Actor
from domain.errors import GatewayError
from services.payment_gateway import PaystackClient
from settings import Settings

logger = logging.getLogger(__name__)

router = APIRouter()

GENERIC_ERROR = "An error occurred processing your request"


def _required(payload: Dict[str, Any], field: str) -> str:
    value = payload.get(field)
    if value is None or str(value).strip() == "":
        raise ValueError(f"Missing required field: {field}")
    return str(value)


def _amount(payload: Dict[str, Any]) -> Decimal:
    try:
        amount = Decimal(str(payload.get("amount")))
    except InvalidOperation as e:
        raise ValueError("amount must be a number") from e
    if not amount.is_finite() or amount <= 0:
        raise ValueError("amount must be positive")
    return amount


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _dispatch(
    action: str,
    handler: Callable[[], Dict[str, Any]],
) -> JSONResponse:
    try:
        return JSONResponse(content=handler())
    except (GatewayError, ValueError) as e:
        logger.error("Paystack proxy call failed", extra={"action": action, "error_message": str(e)})
        return _error(str(e) or GENERIC_ERROR, 500)


@router.post("/api/paystack", summary="Paystack Proxy")
def paystack_action(
    payload: Dict[str, Any] = Body(...),
    actor: Optional[Actor] = Depends(get_optional_actor),
    gateway: Optional[PaystackClient] = Depends(get_optional_gateway),
    settings: Settings = Depends(get_settings),
):
    """
    Forward one gateway action.

    **Actions:**
    - ``verify-payment``: ``reference``
    - ``create-recipient``: ``name``, ``accountNumber``, ``bankCode``
    - ``initiate-transfer``: ``amount`` (naira), ``recipientCode``, ``reason``, optional ``reference``; system role only
    - ``verify-account``: ``accountNumber``, ``bankCode``
    """
    action = payload.get("action")
    handlers = {
        "verify-payment": lambda: gateway.verify_transaction(_required(payload, "reference")),
        "create-recipient": lambda: gateway.create_transfer_recipient(
            _required(payload, "name"),
            _required(payload, "accountNumber"),
            _required(payload, "bankCode"),
        ),
        "initiate-transfer": lambda: gateway.initiate_transfer(
            _amount(payload),
            _required(payload, "recipientCode"),
            payload.get("reason") or settings.payout_transfer_reason,
            payload.get("reference"),
        ),
        "verify-account": lambda: gateway.resolve_account(
            _required(payload, "accountNumber"),
            _required(payload, "bankCode"),
        ),
    }

    if action not in handlers:
        return _error("Invalid action", 400)
    if action == "initiate-transfer" and (actor is None or not actor.is_system):
        return _error("Transfers can only be initiated by the system", 403)
    if gateway is None:
        return _error("Payment gateway is not configured", 500)
    return _dispatch(action, handlers[action])


@router.get("/api/paystack", summary="Paystack Proxy (read)")
def paystack_query(
    action: Optional[str] = Query(None),
    gateway: Optional[PaystackClient] = Depends(get_optional_gateway),
):
    """Supported action: ``get-banks``."""
    if action != "get-banks":
        return _error("Invalid action", 400)
    if gateway is None:
        return _error("Payment gateway is not configured", 500)
    return _dispatch(action, gateway.list_banks)
