"""Tests for price resolution."""

from decimal import Decimal

import pytest

from app.core.exceptions import PricingUnavailableException
from app.services.pricing_service import currency_for_country


@pytest.mark.parametrize(
    "country,expected",
    [
        ("Egypt", "EGP"),
        ("  EGYPT ", "EGP"),
        ("Saudi Arabia", "SAR"),
        ("uae", "AED"),
        ("Germany", "USD"),
        (None, "USD"),
        ("", "USD"),
    ],
)
def test_currency_for_country(country, expected):
    assert currency_for_country(country) == expected


class TestResolve:
    def test_settlement_currency_needs_no_conversion(self, pricing_service, doctor, rates_client):
        price = pricing_service.resolve(doctor.id, "chat", "Egypt")

        assert price.amount == Decimal("300.00")
        assert price.currency == "EGP"
        assert price.original_currency == "EGP"
        assert price.amount_cents == 30000
        rates_client.latest.assert_not_called()

    def test_foreign_price_is_converted(self, pricing_service, doctor):
        price = pricing_service.resolve(doctor.id, "CHAT", "Brazil")

        assert price.original_amount == Decimal("10.00")
        assert price.original_currency == "USD"
        assert price.amount == Decimal("500.00")
        assert price.currency == "EGP"

    def test_missing_price_row(self, pricing_service, doctor):
        with pytest.raises(PricingUnavailableException) as exc_info:
            pricing_service.resolve(doctor.id, "VOICE", "Egypt")
        assert exc_info.value.details["currency"] == "EGP"

    def test_unsupported_patient_currency(self, unit_db, pricing_service, doctor):
        from app.models.doctor import DoctorPricing

        unit_db.add(DoctorPricing(doctor_id=doctor.id, service="VOICE", currency="USD", price=Decimal("5")))
        unit_db.commit()
        pricing_service.currency_service.supported_currencies = frozenset({"SAR"})

        with pytest.raises(PricingUnavailableException):
            pricing_service.resolve(doctor.id, "VOICE", "USA")
