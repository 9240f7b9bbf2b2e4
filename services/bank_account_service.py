"""
Bank account service.

Registers a seller's payout account:
1. resolve the account number with the gateway (returns the account name),
2. look up the bank name from the gateway's bank list,
3. create a transfer recipient (returns the recipient code),
4. store bank details + recipient code on the seller's profile.

A recipient code on the profile is what makes the seller eligible to request
payouts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List

from domain.actor import Actor
from domain.payout import BankDetails
from domain.time import utc_now
from domain.user import UserProfile
from repositories.document_store import DocumentStore, Transaction
from repositories.user_repository import get_user_profile, insert_user_profile, save_bank_account
from services.payment_gateway import (
    Bank,
    PaystackClient,
    parse_account_name,
    parse_banks,
    parse_recipient_code,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RegisteredBankAccount:
    bank_details: BankDetails
    recipient_code: str


class BankAccountService:
    def __init__(
        self,
        store: DocumentStore,
        gateway: PaystackClient,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._clock = clock

    def list_banks(self) -> List[Bank]:
        return parse_banks(self._gateway.list_banks())

    def resolve_account_name(self, account_number: str, bank_code: str) -> str:
        return parse_account_name(self._gateway.resolve_account(account_number, bank_code))

    def register_bank_account(self, actor: Actor, account_number: str, bank_code: str) -> RegisteredBankAccount:
        account_name = self.resolve_account_name(account_number, bank_code)
        bank_name = next((b.name for b in self.list_banks() if b.code == bank_code), "")
        recipient_code = parse_recipient_code(
            self._gateway.create_transfer_recipient(account_name, account_number, bank_code)
        )

        details = BankDetails(
            account_name=account_name,
            account_number=account_number,
            bank_name=bank_name,
            bank_code=bank_code,
        )
        now = self._clock()

        def apply(txn: Transaction) -> None:
            profile = get_user_profile(txn, actor.uid)
            if profile is None:
                insert_user_profile(
                    txn,
                    UserProfile(
                        uid=actor.uid,
                        email="",
                        user_type="seller",
                        bank_details=details,
                        recipient_code=recipient_code,
                        created_at=now,
                        updated_at=now,
                    ),
                )
            else:
                save_bank_account(txn, actor.uid, details, recipient_code, now)

        self._store.run_transaction(apply)

        logger.info(
            "Bank account registered",
            extra={"uid": actor.uid, "bank_code": bank_code, "account_suffix": account_number[-4:]},
        )
        return RegisteredBankAccount(bank_details=details, recipient_code=recipient_code)


__all__ = ["BankAccountService", "RegisteredBankAccount"]
