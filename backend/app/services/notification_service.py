# backend/app/services/notification_service.py
"""
In-app notifications for booking events.

Notifications are best effort: they are written after the business
transaction has committed and a failure here is logged, never raised.
Delivery over socket, email or push reads these rows elsewhere.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import (
    NOTIFICATION_APPOINTMENT_BOOKED,
    NOTIFICATION_APPOINTMENT_CANCELLED,
    NOTIFICATION_APPOINTMENT_CONFIRMED,
    NOTIFICATION_PAYMENT_REFUNDED,
)
from ..models.appointment import Appointment
from ..models.notification import Notification
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


def _format_start(appointment: Appointment) -> str:
    start = appointment.start_time
    if start is None:
        return "an unscheduled time"
    return start.strftime("%Y-%m-%d %H:%M UTC")


class NotificationService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.repository = RepositoryFactory.create_notification_repository(db)

    @BaseService.measure_operation("notify")
    def notify(
        self,
        user_id: int,
        type: str,
        title: str,
        message: str,
        redirect_url: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        email: Optional[str] = None,
    ) -> Optional[Notification]:
        """Persist a notification; returns None when it could not be stored."""
        try:
            notification = self.repository.create_notification(
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                redirect_url=redirect_url,
                metadata=metadata,
                email=email,
            )
            self.db.commit()
        except Exception as exc:
            self.db.rollback()
            self.logger.error(
                "Failed to store %s notification for user %s: %s",
                type,
                user_id,
                exc,
                extra={"notification_type": type, "user_id": user_id},
            )
            return None

        self.logger.info(
            "Notification queued",
            extra={"notification_type": type, "user_id": user_id, "notification_id": notification.id},
        )
        return notification

    def appointment_confirmed(self, appointment: Appointment) -> None:
        """Tell both sides that a paid appointment is on the calendar."""
        when = _format_start(appointment)
        kind = (appointment.appointment_type or "").lower()
        metadata = {"appointment_id": appointment.id, "appointment_type": appointment.appointment_type}
        url = settings.appointment_url(appointment.id)
        patient = appointment.patient
        doctor = appointment.doctor
        if patient is not None:
            self.notify(
                user_id=patient.user_id,
                type=NOTIFICATION_APPOINTMENT_CONFIRMED,
                title="Appointment confirmed",
                message=f"Your {kind} appointment on {when} is confirmed.",
                redirect_url=url,
                metadata=metadata,
                email=patient.email,
            )
        if doctor is not None:
            self.notify(
                user_id=doctor.user_id,
                type=NOTIFICATION_APPOINTMENT_BOOKED,
                title="New appointment booked",
                message=f"A patient booked a {kind} appointment on {when}.",
                redirect_url=url,
                metadata=metadata,
                email=doctor.email,
            )

    def appointment_cancelled(self, appointment: Appointment) -> None:
        doctor = appointment.doctor
        if doctor is None:
            self.logger.warning(
                "No doctor to notify about cancelled appointment %s", appointment.id
            )
            return
        when = _format_start(appointment)
        self.notify(
            user_id=doctor.user_id,
            type=NOTIFICATION_APPOINTMENT_CANCELLED,
            title="Appointment cancelled",
            message=f"The appointment on {when} was cancelled by the patient.",
            redirect_url=settings.appointment_url(appointment.id),
            metadata={"appointment_id": appointment.id},
            email=doctor.email,
        )

    def payment_refunded(
        self, patient_user_id: int, payment_id: int, amount: Any, currency: str, email=None
    ) -> None:
        self.notify(
            user_id=patient_user_id,
            type=NOTIFICATION_PAYMENT_REFUNDED,
            title="Payment refunded",
            message=f"Your payment of {amount} {currency} has been refunded.",
            metadata={"payment_id": payment_id},
            email=email,
        )
