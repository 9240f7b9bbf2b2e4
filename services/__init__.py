"""Ledger, payment gateway client and gateway-driven services."""
