"""
Domain: UserProfile.

Marketplace account as stored in the ``users`` collection. Authentication
itself lives with the identity provider; this profile only carries what the
ledger needs: the seller's verified bank account and the gateway recipient
code issued for it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .payout import BankDetails
from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class UserProfile:
    uid: str
    email: str
    user_type: str  # buyer, seller, both

    display_name: Optional[str] = None
    bank_details: Optional[BankDetails] = None
    recipient_code: Optional[str] = None  # Paystack transfer recipient code

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        """Validate timestamps are UTC-aware."""
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)
        if self.updated_at is not None:
            require_utc_timestamp("updated_at", self.updated_at)

    def can_receive_payouts(self) -> bool:
        """Check if a verified bank account is registered with the gateway."""
        return bool(self.recipient_code)
