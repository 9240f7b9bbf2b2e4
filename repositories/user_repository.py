"""
User profile repository.

Reads and writes the ``users`` collection (document id = uid). Only the
fields the ledger relies on are parsed; the identity provider owns the rest.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from domain.payout import BankDetails
from domain.user import UserProfile
from repositories.document_store import CorruptDocumentError, Document, DocumentReader, Transaction
from repositories.payout_repository import bank_details_to_document, parse_bank_details
from repositories.serialization import (
    optional_iso_utc,
    optional_str,
    parse_optional_datetime,
    to_iso_utc,
)

USERS: str = "users"


def _document_to_profile(document: Document) -> UserProfile:
    data = document.data
    bank = data.get("bankDetails")

    try:
        return UserProfile(
            uid=document.doc_id,
            email=str(data.get("email") or ""),
            user_type=str(data.get("userType") or "buyer"),
            display_name=optional_str(data, "displayName"),
            bank_details=parse_bank_details(bank) if isinstance(bank, dict) and bank.get("accountNumber") else None,
            recipient_code=optional_str(data, "paystackRecipientCode"),
            created_at=parse_optional_datetime(data.get("createdAt")),
            updated_at=parse_optional_datetime(data.get("updatedAt")),
        )
    except CorruptDocumentError:
        raise
    except ValueError as e:
        raise CorruptDocumentError(f"Invalid user document {document.doc_id}: {e}") from e


def profile_to_document(profile: UserProfile) -> Dict[str, Any]:
    return {
        "email": profile.email,
        "userType": profile.user_type,
        "displayName": profile.display_name,
        "bankDetails": bank_details_to_document(profile.bank_details) if profile.bank_details else None,
        "paystackRecipientCode": profile.recipient_code,
        "createdAt": optional_iso_utc(profile.created_at, name="created_at"),
        "updatedAt": optional_iso_utc(profile.updated_at, name="updated_at"),
    }


def get_user_profile(reader: DocumentReader, uid: str) -> Optional[UserProfile]:
    document = reader.get(USERS, uid)
    return _document_to_profile(document) if document is not None else None


def insert_user_profile(txn: Transaction, profile: UserProfile) -> None:
    txn.create(USERS, profile_to_document(profile), doc_id=profile.uid)


def save_bank_account(
    txn: Transaction,
    uid: str,
    bank_details: BankDetails,
    recipient_code: str,
    updated_at: datetime,
) -> None:
    """Store verified bank details and the gateway recipient code on a profile read in ``txn``."""

    txn.update(
        USERS,
        uid,
        {
            "bankDetails": bank_details_to_document(bank_details),
            "paystackRecipientCode": recipient_code,
            "updatedAt": to_iso_utc(updated_at, name="updated_at"),
        },
    )


__all__ = [
    "USERS",
    "get_user_profile",
    "insert_user_profile",
    "save_bank_account",
]
