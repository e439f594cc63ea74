from __future__ import annotations

import json

from httpx import MockTransport, Response
import pytest

from app.integrations.paymob_client import FakePaymobClient, PaymobClient, PaymobError


def _client(handler, integration_id: int | None = 4242) -> PaymobClient:
    return PaymobClient(
        api_key="pk_test",
        integration_id=integration_id,
        iframe_url="https://accept.paymob.com/api/acceptance/iframes/99",
        base_url="https://accept.paymob.com/api/",
        transport=MockTransport(handler),
    )


def test_checkout_flow_sends_expected_requests():
    seen: list[tuple[str, dict, str | None]] = []

    def handler(request):
        body = json.loads(request.content)
        seen.append((request.url.path, body, request.headers.get("Authorization")))
        if request.url.path.endswith("/auth/tokens"):
            return Response(201, json={"token": "auth-1"})
        if request.url.path.endswith("/ecommerce/orders"):
            return Response(201, json={"id": 555})
        return Response(201, json={"token": "pay-key"})

    client = _client(handler)
    token = client.get_auth_token()
    order_id = client.create_order(
        token, amount_cents=30000, currency="EGP", merchant_order_id="PAY-1-1700000000000"
    )
    payment_key = client.get_payment_key(token, order_id=order_id, amount_cents=30000, currency="EGP")

    assert token == "auth-1"
    assert order_id == "555"
    assert client.checkout_url(payment_key) == (
        "https://accept.paymob.com/api/acceptance/iframes/99?payment_token=pay-key"
    )
    assert seen[0] == ("/api/auth/tokens", {"api_key": "pk_test"}, None)
    order_body = seen[1][1]
    assert order_body["merchant_order_id"] == "PAY-1-1700000000000"
    assert order_body["amount_cents"] == 30000
    assert seen[1][2] == "Bearer auth-1"
    key_body = seen[2][1]
    assert key_body["integration_id"] == 4242
    assert key_body["order_id"] == "555"
    assert key_body["billing_data"]["email"]


def test_http_error_carries_status_and_body():
    def handler(request):
        return Response(401, json={"detail": "bad key"})

    with pytest.raises(PaymobError) as exc_info:
        _client(handler).get_auth_token()

    assert exc_info.value.status_code == 401
    assert exc_info.value.error_body == {"detail": "bad key"}


def test_missing_token_is_an_error():
    def handler(request):
        return Response(201, json={"profile": {}})

    with pytest.raises(PaymobError) as exc_info:
        _client(handler).get_auth_token()
    assert exc_info.value.operation == "auth"


def test_malformed_json_is_an_error():
    def handler(request):
        return Response(200, content=b"<html>")

    with pytest.raises(PaymobError):
        _client(handler).get_auth_token()


def test_payment_key_requires_integration_id():
    def handler(request):  # pragma: no cover - never called
        raise AssertionError("no request expected")

    with pytest.raises(PaymobError):
        _client(handler, integration_id=None).get_payment_key(
            "auth", order_id="1", amount_cents=100, currency="EGP"
        )


def test_refund_posts_transaction():
    captured: dict = {}

    def handler(request):
        captured.update(json.loads(request.content))
        return Response(200, json={"id": 123, "success": True})

    response = _client(handler).refund("auth-1", transaction_id="9001", amount_cents=30000)

    assert response["success"] is True
    assert captured["transaction_id"] == "9001"
    assert captured["amount_cents"] == 30000


def test_api_key_is_required():
    with pytest.raises(ValueError):
        PaymobClient(api_key="", integration_id=1, iframe_url="https://x")


def test_fake_client_records_orders_and_refunds():
    fake = FakePaymobClient(iframe_url="https://pay.test/iframes/1")
    token = fake.get_auth_token()
    order_id = fake.create_order(token, amount_cents=500, currency="EGP", merchant_order_id="PAY-3-1")
    fake.refund(token, transaction_id="t-1", amount_cents=500)

    assert fake.orders[order_id]["merchant_order_id"] == "PAY-3-1"
    assert fake.refunds[0]["transaction_id"] == "t-1"
    assert fake.checkout_url(fake.get_payment_key(token, order_id=order_id, amount_cents=500, currency="EGP")).endswith(
        "payment_token=fake-payment-key-1"
    )
