"""
Supabase client construction.

This module contains *only* the database connection setup. The client is
built from explicit settings and handed to ``SupabaseDocumentStore``; there is
no module-level client instance.
"""

from __future__ import annotations

# The dependency is `supabase` (supabase-py). If your editor can't resolve it,
# install it in your environment: `pip install supabase`.
from supabase import Client, create_client  # type: ignore[import-not-found]


def create_supabase_client(url: str | None, key: str | None) -> Client:
    """
    Create a Supabase client.

    Args:
        url: Supabase project URL (SUPABASE_URL)
        key: Server-side Supabase API key (SUPABASE_KEY)

    Raises:
        RuntimeError: if either value is missing
    """

    if not url:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_URL. "
            "Set SUPABASE_URL to your Supabase project URL."
        )

    if not key:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_KEY. "
            "Set SUPABASE_KEY to your Supabase API key."
        )

    return create_client(url, key)


__all__ = ["create_supabase_client"]
