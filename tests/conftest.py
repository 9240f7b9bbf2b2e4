"""
Pytest configuration and shared fixtures.

Adds the project root to the Python path so tests can import domain,
repositories, services and api, and provides an in-memory ledger with a
deterministic clock and id factory.
"""

import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import pytest

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.actor import Actor  # noqa: E402
from domain.errors import GatewayError  # noqa: E402
from domain.order import ShippingAddress  # noqa: E402
from domain.payout import BankDetails  # noqa: E402
from domain.user import UserProfile  # noqa: E402
from repositories.document_store import InMemoryDocumentStore  # noqa: E402
from repositories.user_repository import insert_user_profile  # noqa: E402
from services.ledger_service import MarketplaceLedger  # noqa: E402

START = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class SteppingClock:
    """UTC clock that advances one second per reading."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        self.now = self.now + timedelta(seconds=1)
        return self.now


class SequentialIds:
    def __init__(self) -> None:
        self.counter = 0

    def __call__(self) -> str:
        self.counter += 1
        return f"doc-{self.counter:04d}"


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock()


@pytest.fixture
def ledger(store: InMemoryDocumentStore, clock: SteppingClock) -> MarketplaceLedger:
    return MarketplaceLedger(store, clock=clock, id_factory=SequentialIds())


@pytest.fixture
def seller() -> Actor:
    return Actor(uid="seller-1")


@pytest.fixture
def buyer() -> Actor:
    return Actor(uid="buyer-1")


@pytest.fixture
def other_buyer() -> Actor:
    return Actor(uid="buyer-2")


@pytest.fixture
def stranger() -> Actor:
    return Actor(uid="stranger-1")


@pytest.fixture
def system() -> Actor:
    return Actor.system()


@pytest.fixture
def address() -> ShippingAddress:
    return ShippingAddress(
        full_name="Ada Obi",
        phone_number="+2348012345678",
        street="12 Allen Avenue",
        city="Ikeja",
        state="Lagos",
        country="Nigeria",
        postal_code="100271",
    )


@pytest.fixture
def bank_details() -> BankDetails:
    return BankDetails(
        account_name="TUNDE SELLER",
        account_number="0123456789",
        bank_name="Guaranty Trust Bank",
        bank_code="058",
    )


@pytest.fixture
def product(ledger: MarketplaceLedger, seller: Actor):
    return ledger.list_product(seller, title="Used bicycle", price=Decimal("85000"))


@pytest.fixture
def seller_profile(store: InMemoryDocumentStore, seller: Actor, bank_details: BankDetails) -> UserProfile:
    profile = UserProfile(
        uid=seller.uid,
        email="seller@example.com",
        user_type="seller",
        bank_details=bank_details,
        recipient_code="RCP_seller1",
        created_at=START,
    )
    store.run_transaction(lambda txn: insert_user_profile(txn, profile))
    return profile


@pytest.fixture
def completed_order(ledger, buyer, seller, address):
    """Factory: a paid order for a fresh listing, shipped and confirmed."""

    def make(price: Decimal = Decimal("85000"), reference: str = "ref-completed"):
        listing = ledger.list_product(seller, title="Listing", price=price)
        order = ledger.create_order(buyer, listing.product_id, 1, address, payment_reference=reference)
        ledger.update_order_status(seller, order.order_id, "shipped")
        return ledger.confirm_delivery(buyer, order.order_id)

    return make


class FakePaystack:
    """In-process stand-in for PaystackClient returning Paystack-shaped payloads."""

    def __init__(self) -> None:
        self.transactions: Dict[str, dict] = {}
        self.transfers: List[dict] = []
        self.recipients: List[dict] = []
        self.fail_transfers_for: Optional[str] = None
        self.transfer_failure: Tuple[str, Optional[int]] = ("Transfer service unavailable", 503)
        self.after_transfer: Optional[Callable[[], None]] = None

    def paid(self, reference: str, amount_minor: int, status: str = "success") -> None:
        self.transactions[reference] = {"reference": reference, "status": status, "amount": amount_minor}

    def verify_transaction(self, reference: str) -> dict:
        if reference not in self.transactions:
            raise GatewayError("Transaction reference not found", status_code=404)
        return {"status": True, "data": self.transactions[reference]}

    def initiate_transfer(
        self, amount: Decimal, recipient_code: str, reason: str, reference: Optional[str] = None
    ) -> dict:
        if recipient_code == self.fail_transfers_for:
            message, status_code = self.transfer_failure
            raise GatewayError(message, status_code=status_code)
        self.transfers.append({"amount": amount, "recipient": recipient_code, "reason": reason, "reference": reference})
        n = len(self.transfers)
        if self.after_transfer is not None:
            self.after_transfer()
        return {"status": True, "data": {"reference": reference or f"TRF_ref_{n}", "transfer_code": f"TRF_{n}"}}

    def resolve_account(self, account_number: str, bank_code: str) -> dict:
        return {"status": True, "data": {"account_name": "TUNDE SELLER"}}

    def list_banks(self) -> dict:
        return {"status": True, "data": [{"id": 9, "name": "Guaranty Trust Bank", "code": "058", "country": "Nigeria"}]}

    def create_transfer_recipient(self, name: str, account_number: str, bank_code: str, currency: str = "NGN") -> dict:
        self.recipients.append({"name": name, "account_number": account_number, "bank_code": bank_code})
        return {"status": True, "data": {"recipient_code": f"RCP_{len(self.recipients)}"}}


@pytest.fixture
def gateway() -> FakePaystack:
    return FakePaystack()
