"""
Domain: typed ledger failures.

Every rejected ledger operation raises one of these. Callers discriminate on
the class (or the stable ``code``), never on the message text.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all ledger failures."""

    code: str = "LEDGER_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(LedgerError):
    """An entity id did not resolve to a stored document."""

    code = "NOT_FOUND"


class Unauthorized(LedgerError):
    """The actor does not hold the role required for the requested operation."""

    code = "UNAUTHORIZED"


class InvalidTransition(LedgerError):
    """The requested edge is not defined from the entity's current state."""

    code = "INVALID_TRANSITION"


class ProductUnavailable(LedgerError):
    """The product is not active and cannot be ordered or sold."""

    code = "PRODUCT_UNAVAILABLE"


class InvalidActor(LedgerError):
    """The actor may not take part in this operation at all (e.g. buying their own listing)."""

    code = "INVALID_ACTOR"


class InvalidRequest(LedgerError):
    """Request values are out of range (quantity, amount, price)."""

    code = "INVALID_REQUEST"


class MissingRecipientCode(LedgerError):
    """The seller has no verified bank account registered with the gateway."""

    code = "MISSING_RECIPIENT_CODE"


class NoEligibleOrders(LedgerError):
    """The seller has no completed, paid and unclaimed orders."""

    code = "NO_ELIGIBLE_ORDERS"


class GatewayError(LedgerError):
    """The payment gateway rejected a call or could not be reached."""

    code = "GATEWAY_ERROR"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_rejection(self) -> bool:
        """The gateway refused the request (4xx); retrying the same call will not succeed."""

        return self.status_code is not None and 400 <= self.status_code < 500


__all__ = [
    "LedgerError",
    "NotFound",
    "Unauthorized",
    "InvalidTransition",
    "ProductUnavailable",
    "InvalidActor",
    "InvalidRequest",
    "MissingRecipientCode",
    "NoEligibleOrders",
    "GatewayError",
]
