"""Tests for settlement currency conversion and its rate cache."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from app.integrations.exchange_rate_client import ExchangeRateError
from app.services.currency_service import CurrencyConversionError, CurrencyService


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(rates_client, clock):
    return CurrencyService(
        rates_client,
        settlement_currency="egp",
        supported_currencies=("usd", "AED", "SAR"),
        ttl_seconds=60,
        clock=clock,
    )


def test_settlement_amount_is_rounded_only(service, rates_client):
    assert service.convert_to_settlement(Decimal("12.345"), "EGP") == Decimal("12.35")
    rates_client.latest.assert_not_called()


def test_rates_are_inverted(service):
    assert service.convert_to_settlement(Decimal("10"), "usd") == Decimal("500.00")
    assert service.convert_to_settlement(Decimal("7.5"), "AED") == Decimal("100.00")


def test_rates_are_cached_until_ttl(service, rates_client, clock):
    service.convert_to_settlement(Decimal("1"), "USD")
    clock.now += 59
    service.convert_to_settlement(Decimal("1"), "SAR")
    assert rates_client.latest.call_count == 1

    clock.now += 1
    service.convert_to_settlement(Decimal("1"), "USD")
    assert rates_client.latest.call_count == 2
    rates_client.latest.assert_called_with("EGP")


def test_invalidate_forces_refetch(service, rates_client):
    service.convert_to_settlement(Decimal("1"), "USD")
    service.invalidate()
    service.convert_to_settlement(Decimal("1"), "USD")
    assert rates_client.latest.call_count == 2


def test_unsupported_currency(service):
    with pytest.raises(CurrencyConversionError):
        service.convert_to_settlement(Decimal("1"), "GBP")


def test_fetch_failure_is_conversion_error(clock):
    client = MagicMock()
    client.latest.side_effect = ExchangeRateError("timeout")
    service = CurrencyService(client, ttl_seconds=60, clock=clock)
    with pytest.raises(CurrencyConversionError):
        service.convert_to_settlement(Decimal("1"), "USD")


def test_missing_rate_in_response(clock):
    client = MagicMock()
    client.latest.return_value = {"USD": 0.02, "AED": 0}
    service = CurrencyService(client, ttl_seconds=60, clock=clock)
    assert service.convert_to_settlement(Decimal("1"), "USD") == Decimal("50.00")
    with pytest.raises(CurrencyConversionError):
        service.convert_to_settlement(Decimal("1"), "AED")


def test_invalid_amount(service):
    with pytest.raises(CurrencyConversionError):
        service.convert_to_settlement("ten", "USD")


@pytest.mark.parametrize("rate", ["abc", float("inf")])
def test_unparseable_rate_is_conversion_error(clock, rate):
    client = MagicMock()
    client.latest.return_value = {"USD": rate}
    service = CurrencyService(client, supported_currencies=("USD",), ttl_seconds=60, clock=clock)
    with pytest.raises(CurrencyConversionError, match="USD"):
        service.convert_to_settlement(Decimal("1"), "USD")
