"""
Tests for `services/payment_gateway.py`.

Uses httpx.MockTransport in place of the Paystack API.
"""

from __future__ import annotations

import json
from decimal import Decimal

import httpx
import pytest

from domain.errors import GatewayError
from services.payment_gateway import (
    PaystackClient,
    parse_account_name,
    parse_banks,
    parse_recipient_code,
    parse_transfer,
    parse_verified_transaction,
    to_minor_units,
)


def _client(handler) -> PaystackClient:
    return PaystackClient("sk_test_secret", transport=httpx.MockTransport(handler))


def test_missing_secret_key_is_a_configuration_error() -> None:
    with pytest.raises(RuntimeError):
        PaystackClient("")


def test_to_minor_units() -> None:
    assert to_minor_units(Decimal("85000")) == 8500000
    assert to_minor_units(Decimal("10.005")) == 1001
    assert to_minor_units(Decimal("0.1")) == 10


def test_verify_transaction_uses_bearer_key_and_get() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(
            200,
            json={
                "status": True,
                "data": {"reference": "ref-1", "status": "success", "amount": 8500000, "paidAt": "2025-01-01T12:00:00.000Z"},
            },
        )

    payload = _client(handler).verify_transaction("ref-1")

    assert seen == {"method": "GET", "path": "/transaction/verify/ref-1", "auth": "Bearer sk_test_secret"}
    transaction = parse_verified_transaction(payload)
    assert transaction.succeeded
    assert transaction.amount_minor == 8500000
    assert transaction.paid_at.year == 2025


def test_create_recipient_and_transfer_bodies() -> None:
    bodies = {}

    def handler(request: httpx.Request) -> httpx.Response:
        bodies[request.url.path] = json.loads(request.content)
        if request.url.path == "/transferrecipient":
            return httpx.Response(201, json={"status": True, "data": {"recipient_code": "RCP_1"}})
        return httpx.Response(200, json={"status": True, "data": {"reference": "TRF_ref", "transfer_code": "TRF_1"}})

    client = _client(handler)
    recipient = parse_recipient_code(client.create_transfer_recipient("TUNDE", "0123456789", "058"))
    transfer = parse_transfer(
        client.initiate_transfer(Decimal("85000"), "RCP_1", "Marketplace payout", reference="payout-po-1")
    )

    assert recipient == "RCP_1"
    assert transfer.reference == "TRF_ref"
    assert transfer.transfer_code == "TRF_1"
    assert bodies["/transferrecipient"] == {
        "type": "nuban",
        "name": "TUNDE",
        "account_number": "0123456789",
        "bank_code": "058",
        "currency": "NGN",
    }
    assert bodies["/transfer"] == {
        "source": "balance",
        "amount": 8500000,
        "recipient": "RCP_1",
        "reason": "Marketplace payout",
        "reference": "payout-po-1",
    }


def test_resolve_account_and_list_banks() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/bank/resolve":
            assert request.url.params["account_number"] == "0123456789"
            assert request.url.params["bank_code"] == "058"
            return httpx.Response(200, json={"status": True, "data": {"account_name": "TUNDE SELLER"}})
        return httpx.Response(
            200,
            json={"status": True, "data": [{"id": 9, "name": "Guaranty Trust Bank", "code": "058", "country": "Nigeria"}]},
        )

    client = _client(handler)

    assert parse_account_name(client.resolve_account("0123456789", "058")) == "TUNDE SELLER"
    banks = parse_banks(client.list_banks())
    assert banks[0].code == "058"
    assert banks[0].name == "Guaranty Trust Bank"


def test_upstream_error_message_is_surfaced() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"status": False, "message": "Transaction reference not found"})

    with pytest.raises(GatewayError) as excinfo:
        _client(handler).verify_transaction("nope")

    assert excinfo.value.message == "Transaction reference not found"
    assert excinfo.value.status_code == 400


def test_error_without_message_uses_default() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="Bad Gateway")

    with pytest.raises(GatewayError) as excinfo:
        _client(handler).list_banks()

    assert excinfo.value.message == "Failed to get banks"


def test_transport_failure_is_a_gateway_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(GatewayError):
        _client(handler).list_banks()


def test_malformed_payloads_are_rejected() -> None:
    with pytest.raises(GatewayError):
        parse_verified_transaction({"status": True})
    with pytest.raises(GatewayError):
        parse_verified_transaction({"data": {"reference": "r", "status": "success", "amount": "lots"}})
    with pytest.raises(GatewayError):
        parse_recipient_code({"data": {}})
    with pytest.raises(GatewayError):
        parse_transfer({"data": {"reference": "r"}})
    with pytest.raises(GatewayError):
        parse_banks({"data": {"id": 1}})
