#!/usr/bin/env python3
"""
Payout Transfer Script

Initiates gateway transfers for pending seller payouts, oldest first:
- each accepted transfer moves its payout to ``processing``
- payouts the gateway rejects stay ``pending`` for the next run
- summary of processed and failed payouts

Usage:
    python scripts/process_payouts.py
    python scripts/process_payouts.py --limit 20 --dry-run
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Add parent directory to path to import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.actor import Actor
from domain.payout import Payout
from repositories.client import create_supabase_client
from repositories.document_store import DocumentStore, InMemoryDocumentStore
from repositories.supabase_store import SupabaseDocumentStore
from services.ledger_service import MarketplaceLedger
from services.payment_gateway import PaystackClient
from services.payout_transfer_service import PayoutBatchResult, PayoutTransferService
from settings import Settings, load_settings

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> DocumentStore:
    if settings.store_backend == "supabase":
        return SupabaseDocumentStore(create_supabase_client(settings.supabase_url, settings.supabase_key))
    return InMemoryDocumentStore()


def print_pending(payouts: List[Payout]) -> None:
    print("=" * 60)
    print("PENDING PAYOUTS (dry run)")
    print("=" * 60)
    for payout in payouts:
        print(
            f"{payout.payout_id}  seller={payout.seller_id}  amount={payout.amount}  "
            f"orders={len(payout.order_ids)}  requested={payout.request_date.isoformat()}"
        )
    print(f"Total: {len(payouts)}")
    print("=" * 60)


def print_summary(result: PayoutBatchResult) -> None:
    print("=" * 60)
    print("PAYOUT TRANSFER SUMMARY")
    print("=" * 60)
    print(f"Transfers initiated: {len(result.processed)}")
    print(f"Failed:              {len(result.failures)}")

    if result.failures:
        print()
        for payout_id, message in result.failures.items():
            print(f"  - {payout_id}: {message}")

    print("=" * 60)


def run(
    ledger: MarketplaceLedger,
    transfers: Optional[PayoutTransferService],
    *,
    limit: Optional[int] = None,
    dry_run: bool = False,
) -> int:
    """Process pending payouts; returns the CLI exit code."""
    if dry_run:
        print_pending(ledger.list_pending_payouts(Actor.system(), limit=limit))
        return 0

    if transfers is None:
        raise RuntimeError("A payout transfer service is required unless --dry-run is set")

    result = transfers.process_pending(limit=limit)
    print_summary(result)
    return 1 if result.failures else 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Initiate gateway transfers for pending seller payouts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Transfer every pending payout
  python scripts/process_payouts.py

  # List what would be transferred
  python scripts/process_payouts.py --dry-run

  # Transfer at most 20 payouts
  python scripts/process_payouts.py --limit 20
        """
    )

    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum number of payouts to process (default: all pending)"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List pending payouts without contacting the gateway"
    )

    args = parser.parse_args(argv)
    if args.limit is not None and args.limit < 1:
        parser.error("--limit must be at least 1")

    gateway = None
    try:
        settings = load_settings()
        logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

        ledger = MarketplaceLedger(build_store(settings))
        transfers = None
        if not args.dry_run:
            gateway = PaystackClient(
                settings.paystack_secret_key or "",
                base_url=settings.paystack_base_url,
                timeout_s=settings.paystack_timeout_seconds,
            )
            transfers = PayoutTransferService(ledger, gateway, transfer_reason=settings.payout_transfer_reason)

        return run(ledger, transfers, limit=args.limit, dry_run=args.dry_run)

    except KeyboardInterrupt:
        print("\n\nPayout processing interrupted by user")
        return 130

    except Exception as e:
        print(f"\nFATAL ERROR: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1

    finally:
        if gateway is not None:
            gateway.close()


if __name__ == "__main__":
    sys.exit(main())
