"""
Paystack payment gateway client.

Thin wrapper over the Paystack REST API:
- GET  /transaction/verify/{reference}
- POST /transferrecipient
- POST /transfer
- GET  /bank/resolve?account_number=&bank_code=
- GET  /bank

Every call carries the bearer secret key. Methods return the upstream JSON
body unchanged (the proxy route forwards it verbatim); ``parse_*`` helpers
extract the fields the services rely on. Any non-2xx response, transport
failure or unparseable body raises ``GatewayError`` with the upstream message.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Mapping, Optional

import httpx

from domain.errors import GatewayError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.paystack.co"
DEFAULT_CURRENCY = "NGN"
SUCCESS_STATUS = "success"


def to_minor_units(amount: Decimal) -> int:
    """Naira to kobo (100 kobo = 1 naira)."""

    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True, slots=True)
class VerifiedTransaction:
    reference: str
    status: str
    amount_minor: int
    paid_at: Optional[datetime]

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCESS_STATUS


@dataclass(frozen=True, slots=True)
class TransferInitiation:
    reference: str
    transfer_code: str


@dataclass(frozen=True, slots=True)
class Bank:
    id: int
    name: str
    code: str
    country: str


def _data(payload: Mapping[str, Any]) -> Any:
    if not isinstance(payload, Mapping) or "data" not in payload:
        raise GatewayError("Malformed gateway response: missing data")
    return payload["data"]


def parse_verified_transaction(payload: Mapping[str, Any]) -> VerifiedTransaction:
    data = _data(payload)
    try:
        paid_at = data.get("paidAt") or data.get("paid_at")
        return VerifiedTransaction(
            reference=str(data["reference"]),
            status=str(data["status"]),
            amount_minor=int(data["amount"]),
            paid_at=datetime.fromisoformat(paid_at.replace("Z", "+00:00")) if paid_at else None,
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise GatewayError(f"Malformed transaction verification response: {e}") from e


def parse_recipient_code(payload: Mapping[str, Any]) -> str:
    data = _data(payload)
    code = data.get("recipient_code") if isinstance(data, Mapping) else None
    if not code:
        raise GatewayError("Malformed transfer recipient response: missing recipient_code")
    return str(code)


def parse_transfer(payload: Mapping[str, Any]) -> TransferInitiation:
    data = _data(payload)
    try:
        return TransferInitiation(reference=str(data["reference"]), transfer_code=str(data["transfer_code"]))
    except (KeyError, TypeError) as e:
        raise GatewayError(f"Malformed transfer response: {e}") from e


def parse_account_name(payload: Mapping[str, Any]) -> str:
    data = _data(payload)
    name = data.get("account_name") if isinstance(data, Mapping) else None
    if not name:
        raise GatewayError("Malformed account resolution response: missing account_name")
    return str(name)


def parse_banks(payload: Mapping[str, Any]) -> List[Bank]:
    data = _data(payload)
    if not isinstance(data, list):
        raise GatewayError("Malformed bank list response")
    try:
        return [
            Bank(id=int(b["id"]), name=str(b["name"]), code=str(b["code"]), country=str(b.get("country") or ""))
            for b in data
        ]
    except (KeyError, TypeError, ValueError) as e:
        raise GatewayError(f"Malformed bank list response: {e}") from e


class PaystackClient:
    def __init__(
        self,
        secret_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 20.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        if not secret_key:
            raise RuntimeError(
                "Missing environment variable: PAYSTACK_SECRET_KEY. "
                "Set PAYSTACK_SECRET_KEY to your Paystack secret key."
            )
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout_s,
            transport=transport,
            headers={
                "Authorization": f"Bearer {secret_key}",
                "Content-Type": "application/json",
            },
        )

    def close(self) -> None:
        self._client.close()

    def verify_transaction(self, reference: str) -> Dict[str, Any]:
        return self._request("GET", f"/transaction/verify/{reference}", default_error="Failed to verify payment")

    def create_transfer_recipient(
        self,
        name: str,
        account_number: str,
        bank_code: str,
        currency: str = DEFAULT_CURRENCY,
    ) -> Dict[str, Any]:
        return self._request(
            "POST",
            "/transferrecipient",
            json_body={
                "type": "nuban",
                "name": name,
                "account_number": account_number,
                "bank_code": bank_code,
                "currency": currency,
            },
            default_error="Failed to create recipient",
        )

    def initiate_transfer(
        self,
        amount: Decimal,
        recipient_code: str,
        reason: str,
        reference: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send money to a transfer recipient.

        Paystack treats ``reference`` as the transfer's idempotency key: a
        repeated reference never produces a second transfer.
        """

        body: Dict[str, Any] = {
            "source": "balance",
            "amount": to_minor_units(amount),
            "recipient": recipient_code,
            "reason": reason,
        }
        if reference:
            body["reference"] = reference
        return self._request(
            "POST",
            "/transfer",
            json_body=body,
            default_error="Failed to initiate transfer",
        )

    def resolve_account(self, account_number: str, bank_code: str) -> Dict[str, Any]:
        return self._request(
            "GET",
            "/bank/resolve",
            params={"account_number": account_number, "bank_code": bank_code},
            default_error="Failed to verify account",
        )

    def list_banks(self) -> Dict[str, Any]:
        return self._request("GET", "/bank", default_error="Failed to get banks")

    def _request(
        self,
        method: str,
        path: str,
        *,
        default_error: str,
        json_body: Optional[Mapping[str, Any]] = None,
        params: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, Any]:
        try:
            response = self._client.request(method, path, json=json_body, params=params)
        except httpx.HTTPError as e:
            logger.warning(
                "Paystack request failed",
                extra={"method": method, "path": path, "error_message": str(e)},
            )
            raise GatewayError(f"{default_error}: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if not response.is_success:
            message = payload.get("message") if isinstance(payload, dict) else None
            logger.warning(
                "Paystack returned an error",
                extra={"method": method, "path": path, "status_code": response.status_code, "error_message": message},
            )
            raise GatewayError(message or default_error, status_code=response.status_code)

        if not isinstance(payload, dict):
            raise GatewayError(f"{default_error}: response was not a JSON object", status_code=response.status_code)
        return payload


__all__ = [
    "PaystackClient",
    "VerifiedTransaction",
    "TransferInitiation",
    "Bank",
    "to_minor_units",
    "parse_verified_transaction",
    "parse_recipient_code",
    "parse_transfer",
    "parse_account_name",
    "parse_banks",
]
