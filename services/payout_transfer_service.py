"""
Payout transfer service.

Moves payouts through the gateway-driven part of their lifecycle:
- ``initiate``: send a transfer for a pending payout; once the gateway
  accepts it the payout moves to ``processing``. A first-attempt rejection
  fails the payout; anything else leaves it ``pending`` under the same
  transfer reference.
- ``settle``: record the gateway's final word (``completed`` or ``failed``).
- ``process_pending``: initiate every pending payout, oldest first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from domain.actor import Actor
from domain.errors import GatewayError, InvalidTransition, LedgerError
from domain.payout import Payout, PayoutStatus
from services.ledger_service import MarketplaceLedger
from services.payment_gateway import PaystackClient, parse_transfer

logger = logging.getLogger(__name__)

DEFAULT_TRANSFER_REASON = "Marketplace payout"
TRANSFER_REFERENCE_PREFIX = "payout-"


def transfer_reference_for(payout_id: str) -> str:
    """Gateway transfer reference for a payout; stable across resends."""

    return f"{TRANSFER_REFERENCE_PREFIX}{payout_id}"


@dataclass
class PayoutBatchResult:
    """
    Result of a ``process_pending`` run.

    processed: payouts now ``processing``
    failures: payout_id -> error message for payouts left untouched
    """

    processed: List[Payout] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)


class PayoutTransferService:
    def __init__(
        self,
        ledger: MarketplaceLedger,
        gateway: PaystackClient,
        *,
        transfer_reason: str = DEFAULT_TRANSFER_REASON,
    ) -> None:
        self._ledger = ledger
        self._gateway = gateway
        self._transfer_reason = transfer_reason
        self._system = Actor.system()

    def initiate(self, payout_id: str) -> Payout:
        """
        Send the transfer for a pending payout and move it to ``processing``.

        The transfer reference is recorded on the payout before the gateway is
        called, which blocks seller cancellation while money may be moving.
        A gateway rejection (4xx) on the first attempt fails the payout and
        releases its orders. Transport errors, 5xx responses and any failure
        on a resend leave it pending for the next run.
        """

        payout = self._ledger.get_payout(self._system, payout_id)
        if payout.status is not PayoutStatus.PENDING:
            raise InvalidTransition(
                f"Only pending payouts can be transferred (payout {payout_id} is {payout.status.value})"
            )
        resend = payout.transfer_reference is not None
        payout = self._ledger.begin_payout_transfer(self._system, payout_id, transfer_reference_for(payout_id))

        try:
            response = self._gateway.initiate_transfer(
                payout.amount, payout.recipient_code, self._transfer_reason, reference=payout.transfer_reference
            )
        except GatewayError as e:
            if e.is_rejection and not resend:
                self._ledger.fail_payout(self._system, payout_id, reason=f"Transfer rejected: {e.message}")
            else:
                logger.warning(
                    "Payout transfer left pending for retry",
                    extra={
                        "payout_id": payout_id,
                        "transfer_reference": payout.transfer_reference,
                        "error_message": e.message,
                    },
                )
            raise

        transfer = parse_transfer(response)
        try:
            return self._ledger.mark_payout_processing(
                self._system, payout_id, transfer.reference, transfer.transfer_code
            )
        except LedgerError:
            # The gateway already holds a live transfer for this payout.
            logger.error(
                "Transfer initiated but payout could not be marked processing",
                extra={"payout_id": payout_id, "transfer_reference": transfer.reference},
            )
            raise

    def settle(self, payout_id: str, succeeded: bool, reason: Optional[str] = None) -> Payout:
        if succeeded:
            return self._ledger.complete_payout(self._system, payout_id)
        return self._ledger.fail_payout(self._system, payout_id, reason)

    def process_pending(self, limit: Optional[int] = None) -> PayoutBatchResult:
        result = PayoutBatchResult()

        for payout in self._ledger.list_pending_payouts(self._system, limit=limit):
            try:
                result.processed.append(self.initiate(payout.payout_id))
            except LedgerError as e:
                result.failures[payout.payout_id] = e.message
                logger.warning(
                    "Payout transfer not initiated",
                    extra={"payout_id": payout.payout_id, "error_code": e.code, "error_message": e.message},
                )

        logger.info(
            "Pending payouts processed",
            extra={"processed": len(result.processed), "failed": len(result.failures)},
        )
        return result


__all__ = ["PayoutTransferService", "PayoutBatchResult", "DEFAULT_TRANSFER_REASON", "transfer_reference_for"]
