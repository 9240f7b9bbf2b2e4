"""
Application settings.

Values come from the environment, optionally seeded from a ``.env`` file next
to this module:
- STORE_BACKEND: ``memory`` (default) or ``supabase``
- SUPABASE_URL / SUPABASE_KEY: required when STORE_BACKEND=supabase
- PAYSTACK_SECRET_KEY: required for any gateway call
- PAYSTACK_BASE_URL: default https://api.paystack.co
- PAYSTACK_TIMEOUT_SECONDS: default 20
- PAYOUT_TRANSFER_REASON: narration on seller transfers
- LOG_LEVEL: default INFO
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

STORE_BACKENDS = ("memory", "supabase")


@dataclass(frozen=True, slots=True)
class Settings:
    store_backend: str = "memory"
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    paystack_secret_key: Optional[str] = None
    paystack_base_url: str = "https://api.paystack.co"
    paystack_timeout_seconds: float = 20.0
    payout_transfer_reason: str = "Marketplace payout"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.store_backend not in STORE_BACKENDS:
            raise RuntimeError(
                f"Invalid STORE_BACKEND: {self.store_backend!r}. Expected one of: {', '.join(STORE_BACKENDS)}."
            )
        if self.paystack_timeout_seconds <= 0:
            raise RuntimeError("PAYSTACK_TIMEOUT_SECONDS must be positive")


def settings_from_env(env: Mapping[str, str]) -> Settings:
    timeout_raw = env.get("PAYSTACK_TIMEOUT_SECONDS", "20")
    try:
        timeout = float(timeout_raw)
    except ValueError as e:
        raise RuntimeError(f"PAYSTACK_TIMEOUT_SECONDS must be a number, got {timeout_raw!r}") from e

    return Settings(
        store_backend=env.get("STORE_BACKEND", "memory").strip().lower(),
        supabase_url=env.get("SUPABASE_URL") or None,
        supabase_key=env.get("SUPABASE_KEY") or None,
        paystack_secret_key=env.get("PAYSTACK_SECRET_KEY") or None,
        paystack_base_url=env.get("PAYSTACK_BASE_URL") or "https://api.paystack.co",
        paystack_timeout_seconds=timeout,
        payout_transfer_reason=env.get("PAYOUT_TRANSFER_REASON") or "Marketplace payout",
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """Load ``.env`` (without overriding real environment variables) and build Settings."""

    load_dotenv(dotenv_path=env_file or Path(__file__).parent / ".env")
    return settings_from_env(os.environ)


__all__ = ["Settings", "load_settings", "settings_from_env"]
