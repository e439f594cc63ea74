# backend/app/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from functools import lru_cache
import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.config import settings
from ...integrations import FakePaymobClient, PaymobClient
from ...services.cancellation_service import CancellationService
from ...services.currency_service import CurrencyService
from ...services.history_service import HistoryService
from ...services.notification_service import NotificationService
from ...services.payment_callback_service import PaymentCallbackService
from ...services.pricing_service import PricingService
from ...services.reservation_service import ReservationService
from ...services.slot_service import SlotService
from .database import get_db

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_currency_service() -> CurrencyService:
    """Process-wide currency service so the rate cache is shared."""
    return CurrencyService.from_settings()


@lru_cache(maxsize=1)
def get_payment_gateway() -> PaymobClient:
    """Paymob client; falls back to the in-memory fake outside production."""
    try:
        client = PaymobClient.from_settings(settings)
    except ValueError as exc:  # Missing API key
        if settings.environment == "production":
            raise
        logger.warning(
            "Falling back to FakePaymobClient due to configuration error",
            extra={"error": str(exc), "environment": settings.environment},
        )
        return FakePaymobClient(iframe_url=settings.paymob_iframe_url)
    return client


def get_notification_service(db: Session = Depends(get_db)) -> NotificationService:
    return NotificationService(db)


def get_slot_service(db: Session = Depends(get_db)) -> SlotService:
    return SlotService(db)


def get_pricing_service(
    db: Session = Depends(get_db),
    currency_service: CurrencyService = Depends(get_currency_service),
) -> PricingService:
    return PricingService(db, currency_service)


def get_reservation_service(
    db: Session = Depends(get_db),
    pricing_service: PricingService = Depends(get_pricing_service),
    gateway: PaymobClient = Depends(get_payment_gateway),
) -> ReservationService:
    """Get ReservationService instance with pricing and gateway injected."""
    return ReservationService(db, pricing_service, gateway)


def get_cancellation_service(
    db: Session = Depends(get_db),
    gateway: PaymobClient = Depends(get_payment_gateway),
    notification_service: NotificationService = Depends(get_notification_service),
) -> CancellationService:
    return CancellationService(db, gateway, notification_service)


def get_payment_callback_service(
    db: Session = Depends(get_db),
    notification_service: NotificationService = Depends(get_notification_service),
) -> PaymentCallbackService:
    return PaymentCallbackService(db, notification_service=notification_service)


def get_history_service(db: Session = Depends(get_db)) -> HistoryService:
    return HistoryService(db)
