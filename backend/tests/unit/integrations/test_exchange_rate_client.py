from __future__ import annotations

from httpx import MockTransport, Response
import pytest

from app.integrations.exchange_rate_client import ExchangeRateClient, ExchangeRateError


def _client(handler, api_key: str = "xr_test") -> ExchangeRateClient:
    return ExchangeRateClient(
        base_url="https://v6.exchangerate-api.com/v6/",
        api_key=api_key,
        transport=MockTransport(handler),
    )


def test_latest_returns_upper_cased_rates():
    captured: dict[str, str] = {}

    def handler(request):
        captured["path"] = request.url.path
        return Response(
            200, json={"result": "success", "conversion_rates": {"usd": 0.02, "EGP": 1}}
        )

    rates = _client(handler).latest("EGP")

    assert captured["path"] == "/v6/xr_test/latest/EGP"
    assert rates == {"USD": 0.02, "EGP": 1.0}


def test_api_failure_result():
    def handler(request):
        return Response(200, json={"result": "error", "error-type": "invalid-key"})

    with pytest.raises(ExchangeRateError, match="invalid-key"):
        _client(handler).latest("EGP")


def test_http_error():
    def handler(request):
        return Response(503, text="unavailable")

    with pytest.raises(ExchangeRateError):
        _client(handler).latest("EGP")


def test_missing_api_key_fails_fast():
    def handler(request):  # pragma: no cover - never called
        raise AssertionError("no request expected")

    with pytest.raises(ExchangeRateError):
        _client(handler, api_key="").latest("EGP")


@pytest.mark.parametrize("bad_rate", ["n/a", None, 0, -1.5, "nan", True])
def test_unusable_rate_is_rejected(bad_rate):
    def handler(request):
        return Response(
            200, json={"result": "success", "conversion_rates": {"EGP": 1, "USD": bad_rate}}
        )

    with pytest.raises(ExchangeRateError, match="USD"):
        _client(handler).latest("EGP")


@pytest.mark.parametrize("body", [["success"], "success", 42])
def test_non_object_body_is_rejected(body):
    def handler(request):
        return Response(200, json=body)

    with pytest.raises(ExchangeRateError, match="not a JSON object"):
        _client(handler).latest("EGP")


def test_undecodable_body_is_rejected():
    def handler(request):
        return Response(200, content=b"<html>maintenance</html>")

    with pytest.raises(ExchangeRateError, match="malformed JSON"):
        _client(handler).latest("EGP")
