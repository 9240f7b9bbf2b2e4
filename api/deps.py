"""
FastAPI dependency wiring.

Collaborators are built from settings once per process (store, gateway) and
injected into per-request services. Tests replace any of them through
``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException

from domain.actor import Actor
from repositories.client import create_supabase_client
from repositories.document_store import DocumentStore, InMemoryDocumentStore
from repositories.supabase_store import SupabaseDocumentStore
from services.bank_account_service import BankAccountService
from services.ledger_service import MarketplaceLedger
from services.payment_gateway import PaystackClient
from services.payment_service import PaymentService
from services.payout_transfer_service import PayoutTransferService
from settings import Settings, load_settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


@lru_cache(maxsize=4)
def build_store(settings: Settings) -> DocumentStore:
    if settings.store_backend == "supabase":
        client = create_supabase_client(settings.supabase_url, settings.supabase_key)
        return SupabaseDocumentStore(client)
    return InMemoryDocumentStore()


@lru_cache(maxsize=4)
def build_gateway(settings: Settings) -> PaystackClient:
    return PaystackClient(
        settings.paystack_secret_key or "",
        base_url=settings.paystack_base_url,
        timeout_s=settings.paystack_timeout_seconds,
    )


def get_store(settings: Settings = Depends(get_settings)) -> DocumentStore:
    return build_store(settings)


def get_optional_gateway(settings: Settings = Depends(get_settings)) -> Optional[PaystackClient]:
    if not settings.paystack_secret_key:
        return None
    return build_gateway(settings)


def get_gateway(gateway: Optional[PaystackClient] = Depends(get_optional_gateway)) -> PaystackClient:
    if gateway is None:
        raise HTTPException(status_code=503, detail="Payment gateway is not configured")
    return gateway


def get_ledger(store: DocumentStore = Depends(get_store)) -> MarketplaceLedger:
    return MarketplaceLedger(store)


def get_payment_service(
    ledger: MarketplaceLedger = Depends(get_ledger),
    gateway: PaystackClient = Depends(get_gateway),
) -> PaymentService:
    return PaymentService(ledger, gateway)


def get_bank_account_service(
    store: DocumentStore = Depends(get_store),
    gateway: PaystackClient = Depends(get_gateway),
) -> BankAccountService:
    return BankAccountService(store, gateway)


def get_payout_transfer_service(
    ledger: MarketplaceLedger = Depends(get_ledger),
    gateway: PaystackClient = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
) -> PayoutTransferService:
    return PayoutTransferService(ledger, gateway, transfer_reason=settings.payout_transfer_reason)


def _parse_actor(uid: Optional[str], roles: Optional[str]) -> Optional[Actor]:
    if not uid or not uid.strip():
        return None
    role_set = frozenset(r.strip().lower() for r in (roles or "").split(",") if r.strip())
    return Actor(uid=uid.strip(), roles=role_set)


def get_optional_actor(
    x_user_id: Optional[str] = Header(default=None),
    x_user_roles: Optional[str] = Header(default=None),
) -> Optional[Actor]:
    return _parse_actor(x_user_id, x_user_roles)


def get_actor(actor: Optional[Actor] = Depends(get_optional_actor)) -> Actor:
    """
    Authenticated caller, as asserted by the upstream identity proxy.

    The proxy verifies the session and forwards ``X-User-Id`` and
    comma-separated ``X-User-Roles``.
    """

    if actor is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return actor


def require_system(actor: Actor = Depends(get_actor)) -> Actor:
    if not actor.is_system:
        raise HTTPException(status_code=403, detail="System role required")
    return actor
