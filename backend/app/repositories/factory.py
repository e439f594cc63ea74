# backend/app/repositories/factory.py
"""
Repository Factory for the Medtik platform

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .appointment_repository import AppointmentRepository
    from .notification_repository import NotificationRepository
    from .payment_repository import PaymentRepository
    from .pricing_repository import PricingRepository
    from .slot_repository import SlotRepository
    from .webhook_event_repository import WebhookEventRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_slot_repository(db: Session) -> "SlotRepository":
        """Create repository for slot queries and reservations."""
        from .slot_repository import SlotRepository

        return SlotRepository(db)

    @staticmethod
    def create_appointment_repository(db: Session) -> "AppointmentRepository":
        """Create repository for appointment operations."""
        from .appointment_repository import AppointmentRepository

        return AppointmentRepository(db)

    @staticmethod
    def create_payment_repository(db: Session) -> "PaymentRepository":
        """Create repository for payments and refund attempts."""
        from .payment_repository import PaymentRepository

        return PaymentRepository(db)

    @staticmethod
    def create_pricing_repository(db: Session) -> "PricingRepository":
        from .pricing_repository import PricingRepository

        return PricingRepository(db)

    @staticmethod
    def create_notification_repository(db: Session) -> "NotificationRepository":
        from .notification_repository import NotificationRepository

        return NotificationRepository(db)

    @staticmethod
    def create_webhook_event_repository(db: Session) -> "WebhookEventRepository":
        from .webhook_event_repository import WebhookEventRepository

        return WebhookEventRepository(db)
