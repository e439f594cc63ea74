# backend/app/services/pricing_service.py
"""
Pricing resolver for appointment reservations.

A patient's country selects the currency a doctor's price is read in;
the amount is then normalized into the settlement currency before it is
sent to the gateway.
"""

from dataclasses import dataclass
from decimal import Decimal
import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.config import COUNTRY_CURRENCY_MAP, DEFAULT_PATIENT_CURRENCY
from ..core.exceptions import PricingUnavailableException
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .currency_service import CurrencyConversionError, CurrencyService

logger = logging.getLogger(__name__)


def currency_for_country(country: Optional[str]) -> str:
    """Case-insensitive, whitespace-tolerant country -> currency lookup."""
    key = (country or "").strip().lower()
    return COUNTRY_CURRENCY_MAP.get(key, DEFAULT_PATIENT_CURRENCY)


@dataclass(frozen=True)
class ResolvedPrice:
    """Price in the patient's currency and its settlement equivalent."""

    service_type: str
    original_amount: Decimal
    original_currency: str
    amount: Decimal
    currency: str

    @property
    def amount_cents(self) -> int:
        return int((self.amount * 100).to_integral_value())


class PricingService(BaseService):
    """Resolves what a patient pays for a doctor's service."""

    def __init__(self, db: Session, currency_service: CurrencyService):
        super().__init__(db)
        self.currency_service = currency_service
        self.pricing_repository = RepositoryFactory.create_pricing_repository(db)

    def lookup(self, doctor_id: int, service_type: str, patient_country: Optional[str]):
        """Return (amount, currency) from the doctor's price list, without conversion."""
        service = str(getattr(service_type, "value", service_type)).upper()
        currency = currency_for_country(patient_country)
        row = self.pricing_repository.get_price(doctor_id, service, currency)
        if row is None:
            raise PricingUnavailableException(
                f"Doctor does not offer {service} in {currency}",
                details={"doctor_id": doctor_id, "service_type": service, "currency": currency},
            )
        return Decimal(row.price), currency

    @BaseService.measure_operation("resolve_price")
    def resolve(
        self, doctor_id: int, service_type: str, patient_country: Optional[str]
    ) -> ResolvedPrice:
        """
        Resolve the price for a reservation.

        Raises:
            PricingUnavailableException: No price row, or conversion failed
        """
        service = str(getattr(service_type, "value", service_type)).upper()
        original_amount, original_currency = self.lookup(doctor_id, service, patient_country)

        try:
            amount = self.currency_service.convert_to_settlement(original_amount, original_currency)
        except CurrencyConversionError as exc:
            self.logger.warning(
                "Price conversion failed for doctor %s (%s %s): %s",
                doctor_id,
                original_amount,
                original_currency,
                exc,
            )
            raise PricingUnavailableException(
                f"Unable to convert {original_currency} price",
                details={
                    "doctor_id": doctor_id,
                    "service_type": service,
                    "currency": original_currency,
                },
            ) from exc

        return ResolvedPrice(
            service_type=service,
            original_amount=original_amount,
            original_currency=original_currency,
            amount=amount,
            currency=self.currency_service.settlement_currency,
        )
