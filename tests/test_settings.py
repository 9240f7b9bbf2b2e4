"""
Tests for `settings.py`.
"""

from __future__ import annotations

import os

import pytest

from settings import Settings, load_settings, settings_from_env


def test_defaults() -> None:
    settings = settings_from_env({})

    assert settings.store_backend == "memory"
    assert settings.paystack_base_url == "https://api.paystack.co"
    assert settings.paystack_timeout_seconds == 20.0
    assert settings.payout_transfer_reason == "Marketplace payout"
    assert settings.log_level == "INFO"
    assert settings.paystack_secret_key is None


def test_values_from_env() -> None:
    settings = settings_from_env(
        {
            "STORE_BACKEND": " Supabase ",
            "SUPABASE_URL": "https://example.supabase.co",
            "SUPABASE_KEY": "service-key",
            "PAYSTACK_SECRET_KEY": "sk_test_1",
            "PAYSTACK_TIMEOUT_SECONDS": "5",
            "LOG_LEVEL": "debug",
        }
    )

    assert settings.store_backend == "supabase"
    assert settings.supabase_url == "https://example.supabase.co"
    assert settings.paystack_secret_key == "sk_test_1"
    assert settings.paystack_timeout_seconds == 5.0
    assert settings.log_level == "DEBUG"


def test_invalid_values_raise() -> None:
    with pytest.raises(RuntimeError):
        settings_from_env({"STORE_BACKEND": "firestore"})
    with pytest.raises(RuntimeError):
        settings_from_env({"PAYSTACK_TIMEOUT_SECONDS": "soon"})
    with pytest.raises(RuntimeError):
        Settings(paystack_timeout_seconds=0)


def test_load_settings_reads_env_file(tmp_path, monkeypatch) -> None:
    """Verify .env values are loaded without overriding real environment variables."""

    # Isolated environment; load_dotenv writes into it.
    monkeypatch.setattr(os, "environ", {"LOG_LEVEL": "WARNING"})
    env_file = tmp_path / ".env"
    env_file.write_text("PAYSTACK_SECRET_KEY=sk_from_file\nLOG_LEVEL=DEBUG\n", encoding="utf-8")

    settings = load_settings(env_file)

    assert settings.paystack_secret_key == "sk_from_file"
    assert settings.log_level == "WARNING"
