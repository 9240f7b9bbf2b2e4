"""
Domain: the authenticated caller of a ledger operation.

The identity provider has already verified the uid and role flags; the ledger
trusts them as given.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet

SYSTEM_ROLE = "system"
SYSTEM_UID = "system"


@dataclass(frozen=True, slots=True)
class Actor:
    uid: str
    roles: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if not self.uid:
            raise ValueError("Actor uid must be non-empty")

    @property
    def is_system(self) -> bool:
        """System actors drive gateway-confirmed transitions (payments, transfers)."""
        return SYSTEM_ROLE in self.roles

    @staticmethod
    def system() -> "Actor":
        return Actor(uid=SYSTEM_UID, roles=frozenset({SYSTEM_ROLE}))
