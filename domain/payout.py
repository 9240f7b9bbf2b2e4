"""
Domain: Payout (a seller's withdrawal request).

Contract excerpts implemented here:
- A Payout always carries the gateway recipient code and a snapshot of the
  bank details it pays into.
- A Payout records the orders whose proceeds it claims, so the same order
  cannot fund two payouts.
- ``completed`` and ``failed`` are terminal.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from .time import require_utc_timestamp


class PayoutStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class BankDetails:
    account_name: str
    account_number: str
    bank_name: str
    bank_code: str

    def __post_init__(self) -> None:
        if not self.account_number or not self.bank_code:
            raise ValueError("account_number and bank_code must be non-empty")


@dataclass(frozen=True, slots=True)
class Payout:
    payout_id: str
    seller_id: str
    amount: Decimal
    status: PayoutStatus
    bank_details: BankDetails
    recipient_code: str
    request_date: datetime
    order_ids: Tuple[str, ...] = ()
    processed_date: Optional[datetime] = None
    transfer_reference: Optional[str] = None
    transfer_code: Optional[str] = None
    notes: Optional[str] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValueError("payout amount must be positive")
        if not self.recipient_code:
            raise ValueError("recipient_code must be non-empty")
        require_utc_timestamp("request_date", self.request_date)
        if self.processed_date is not None:
            require_utc_timestamp("processed_date", self.processed_date)
        if self.updated_at is not None:
            require_utc_timestamp("updated_at", self.updated_at)
