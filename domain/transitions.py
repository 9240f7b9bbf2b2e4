"""
Domain: lifecycle transition tables.

Each table lists every legal edge as data: source state (``None`` for
creation), target state, the party allowed to take it, and the cross-entity
effects the ledger must apply in the same transaction. Adding a transition is
a table edit.

Lookup rules:
- An edge absent from the table raises ``InvalidTransition``.
- An edge present but reserved for another party raises ``Unauthorized``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import AbstractSet, Optional, Tuple

from .errors import InvalidTransition, Unauthorized
from .order import DeliveryStatus, PaymentStatus
from .payout import PayoutStatus
from .product import ProductStatus


class Party(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"
    OWNER = "owner"
    SYSTEM = "system"


class Effect(str, Enum):
    RESERVE_PRODUCT = "reserve_product"  # product active -> sold by this order
    RELEASE_PRODUCT = "release_product"  # product sold -> active if this order sold it
    CLAIM_ORDERS = "claim_orders"  # payout claims eligible orders
    RELEASE_ORDERS = "release_orders"  # failed payout returns its orders to eligibility


@dataclass(frozen=True, slots=True)
class Transition:
    source: Optional[str]
    target: str
    party: Party
    effects: Tuple[Effect, ...] = ()


@dataclass(frozen=True, slots=True)
class TransitionTable:
    name: str
    transitions: Tuple[Transition, ...]

    def resolve(self, source: Optional[str], target: str, parties: AbstractSet[Party]) -> Transition:
        """
        Return the edge ``source -> target`` the given parties may take.

        Raises:
            InvalidTransition: no such edge exists.
            Unauthorized: the edge exists but none of ``parties`` may take it.
        """

        candidates = [t for t in self.transitions if t.source == source and t.target == target]
        if not candidates:
            raise InvalidTransition(
                f"Illegal {self.name} transition: {_label(source)} -> {_label(target)}"
            )
        for transition in candidates:
            if transition.party in parties:
                return transition
        allowed = ", ".join(sorted(t.party.value for t in candidates))
        raise Unauthorized(
            f"{self.name} transition {_label(source)} -> {_label(target)} is reserved for: {allowed}"
        )


def _label(state: Optional[str]) -> str:
    if state is None:
        return "(none)"
    return state.value if isinstance(state, Enum) else str(state)


ORDER_DELIVERY = TransitionTable(
    name="order delivery",
    transitions=(
        Transition(None, DeliveryStatus.PENDING, Party.BUYER),
        Transition(DeliveryStatus.PENDING, DeliveryStatus.SHIPPED, Party.SELLER),
        Transition(DeliveryStatus.SHIPPED, DeliveryStatus.DELIVERED, Party.SELLER),
        Transition(DeliveryStatus.SHIPPED, DeliveryStatus.COMPLETED, Party.BUYER),
        Transition(DeliveryStatus.DELIVERED, DeliveryStatus.COMPLETED, Party.BUYER),
        Transition(DeliveryStatus.PENDING, DeliveryStatus.CANCELLED, Party.BUYER, (Effect.RELEASE_PRODUCT,)),
    ),
)

ORDER_PAYMENT = TransitionTable(
    name="order payment",
    transitions=(
        Transition(None, PaymentStatus.PENDING, Party.BUYER),
        Transition(None, PaymentStatus.PAID, Party.BUYER, (Effect.RESERVE_PRODUCT,)),
        Transition(PaymentStatus.PENDING, PaymentStatus.PAID, Party.SYSTEM, (Effect.RESERVE_PRODUCT,)),
        Transition(PaymentStatus.PENDING, PaymentStatus.FAILED, Party.SYSTEM),
    ),
)

PRODUCT_STATUS = TransitionTable(
    name="product",
    transitions=(
        Transition(None, ProductStatus.ACTIVE, Party.OWNER),
        Transition(ProductStatus.ACTIVE, ProductStatus.SOLD, Party.SYSTEM),
        Transition(ProductStatus.ACTIVE, ProductStatus.SOLD, Party.OWNER),
        Transition(ProductStatus.SOLD, ProductStatus.ACTIVE, Party.SYSTEM),
    ),
)

PAYOUT_STATUS = TransitionTable(
    name="payout",
    transitions=(
        Transition(None, PayoutStatus.PENDING, Party.SELLER, (Effect.CLAIM_ORDERS,)),
        Transition(PayoutStatus.PENDING, PayoutStatus.PROCESSING, Party.SYSTEM),
        Transition(PayoutStatus.PROCESSING, PayoutStatus.COMPLETED, Party.SYSTEM),
        Transition(PayoutStatus.PROCESSING, PayoutStatus.FAILED, Party.SYSTEM, (Effect.RELEASE_ORDERS,)),
        Transition(PayoutStatus.PENDING, PayoutStatus.FAILED, Party.SELLER, (Effect.RELEASE_ORDERS,)),
        Transition(PayoutStatus.PENDING, PayoutStatus.FAILED, Party.SYSTEM, (Effect.RELEASE_ORDERS,)),
    ),
)


__all__ = [
    "Party",
    "Effect",
    "Transition",
    "TransitionTable",
    "ORDER_DELIVERY",
    "ORDER_PAYMENT",
    "PRODUCT_STATUS",
    "PAYOUT_STATUS",
]
