"""
Error translation for the API.

Ledger failures are typed; each class maps to one HTTP status and the
standard ``ErrorResponse`` body.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from domain.errors import (
    GatewayError,
    InvalidActor,
    InvalidRequest,
    InvalidTransition,
    LedgerError,
    MissingRecipientCode,
    NoEligibleOrders,
    NotFound,
    ProductUnavailable,
    Unauthorized,
)
from repositories.document_store import ConcurrentModificationError

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = {
    NotFound: 404,
    Unauthorized: 403,
    InvalidTransition: 409,
    ProductUnavailable: 409,
    InvalidActor: 400,
    InvalidRequest: 400,
    MissingRecipientCode: 422,
    NoEligibleOrders: 422,
    GatewayError: 502,
}


def status_for(exc: LedgerError) -> int:
    for error_type, status in STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return status
    return 400


def _error_body(error: str, detail: str, status_code: int) -> dict:
    return {"error": error, "detail": detail, "status_code": status_code}


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    status_code = status_for(exc)
    return JSONResponse(status_code=status_code, content=_error_body(exc.code, exc.message, status_code))


async def conflict_handler(request: Request, exc: ConcurrentModificationError) -> JSONResponse:
    logger.warning("Transaction retries exhausted", extra={"path": request.url.path, "error_message": str(exc)})
    return JSONResponse(
        status_code=409,
        content=_error_body("CONFLICT", "The resource was modified concurrently. Please retry.", 409),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LedgerError, ledger_error_handler)
    app.add_exception_handler(ConcurrentModificationError, conflict_handler)
