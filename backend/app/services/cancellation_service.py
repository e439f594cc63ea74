# backend/app/services/cancellation_service.py
"""
Patient cancellations and the refunds they may trigger.

A confirmed appointment is refunded only when it is cancelled at least
``refund_policy_hours`` before it starts (the doctor's setting, falling
back to ``settings.default_refund_policy_hours``). Refund calls are
recorded as RefundAttempt rows keyed ``refund-<paymentId>`` so the
reconcile sweep can finish a refund whose local update was lost. A
failed refund never undoes the cancellation.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    RefundFailedException,
)
from ..core.timezone_utils import ensure_utc
from ..domain.booking_state import transition
from ..integrations.paymob_client import PaymobClient, PaymobError
from ..models.appointment import Appointment, AppointmentStatus
from ..models.payment import Payment, PaymentStatus, RefundAttemptStatus
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

REFUND_NOT_APPLICABLE = "not_applicable"
REFUND_NOT_ELIGIBLE = "not_eligible"
REFUND_SUCCEEDED = "refunded"
REFUND_FAILED = "failed"


def refund_idempotency_key(payment_id: int) -> str:
    return f"refund-{payment_id}"


@dataclass
class CancellationResult:
    appointment: Appointment
    refund_status: str


class CancellationService(BaseService):
    def __init__(
        self,
        db: Session,
        gateway: PaymobClient,
        notification_service: Optional[NotificationService] = None,
    ):
        super().__init__(db)
        self.gateway = gateway
        self.notification_service = notification_service or NotificationService(db)
        self.appointment_repository = RepositoryFactory.create_appointment_repository(db)
        self.payment_repository = RepositoryFactory.create_payment_repository(db)
        self.slot_repository = RepositoryFactory.create_slot_repository(db)

    @BaseService.measure_operation("cancel_appointment")
    def cancel_appointment(
        self, patient_id: int, appointment_id: int, reason: Optional[str] = None
    ) -> CancellationResult:
        """
        Cancel a patient's appointment and release its slot.

        Raises:
            NotFoundException: Unknown appointment
            ForbiddenException: Appointment belongs to someone else
            InvalidTransitionException: Appointment is not pending or confirmed
        """
        appointment = self.appointment_repository.get_by_id(appointment_id)
        if appointment is None:
            raise NotFoundException("Appointment not found", code="APPOINTMENT_NOT_FOUND")
        if appointment.patient_id != patient_id:
            raise ForbiddenException(
                "You can only cancel your own appointments", code="APPOINTMENT_NOT_OWNED"
            )

        current = appointment.status
        transition("appointment", current, AppointmentStatus.CANCELLED)
        payment: Optional[Payment] = appointment.payment

        if current == AppointmentStatus.PENDING_PAYMENT.value:
            self._cancel_pending(appointment, payment, reason)
            return CancellationResult(appointment, REFUND_NOT_APPLICABLE)

        self._cancel_confirmed(appointment, reason)
        self.notification_service.appointment_cancelled(appointment)

        if payment is None or payment.status != PaymentStatus.PAID.value:
            return CancellationResult(appointment, REFUND_NOT_APPLICABLE)
        if not self.is_refund_eligible(appointment):
            self.logger.info(
                "Appointment %s cancelled inside the refund window; no refund",
                appointment.id,
            )
            return CancellationResult(appointment, REFUND_NOT_ELIGIBLE)
        return CancellationResult(appointment, self.refund_payment(payment))

    def _cancel_pending(
        self, appointment: Appointment, payment: Optional[Payment], reason: Optional[str]
    ) -> None:
        now = datetime.now(timezone.utc)
        with self.transaction():
            if not self.appointment_repository.update_status_if(
                appointment.id,
                AppointmentStatus.PENDING_PAYMENT,
                AppointmentStatus.CANCELLED,
                cancelled_at=now,
                cancellation_reason=reason,
            ):
                raise InvalidTransitionException(
                    "appointment", appointment.status, AppointmentStatus.CANCELLED.value
                )
            if payment is not None:
                self.payment_repository.update_status_if(
                    payment.id, PaymentStatus.UNPAID, PaymentStatus.FAILED
                )
            self.slot_repository.release_for_appointment(appointment)
        self.log_operation("cancel_pending", appointment_id=appointment.id)

    def _cancel_confirmed(self, appointment: Appointment, reason: Optional[str]) -> None:
        now = datetime.now(timezone.utc)
        with self.transaction():
            if not self.appointment_repository.update_status_if(
                appointment.id,
                AppointmentStatus.CONFIRMED,
                AppointmentStatus.CANCELLED,
                cancelled_at=now,
                cancellation_reason=reason,
            ):
                raise InvalidTransitionException(
                    "appointment", appointment.status, AppointmentStatus.CANCELLED.value
                )
            self.slot_repository.release_for_appointment(appointment)
        self.log_operation("cancel_confirmed", appointment_id=appointment.id)

    def is_refund_eligible(self, appointment: Appointment, now: Optional[datetime] = None) -> bool:
        doctor = appointment.doctor
        hours = (
            doctor.refund_policy_hours
            if doctor is not None and doctor.refund_policy_hours is not None
            else settings.default_refund_policy_hours
        )
        moment = now or datetime.now(timezone.utc)
        return ensure_utc(appointment.start_time) - moment >= timedelta(hours=hours)

    @BaseService.measure_operation("refund_payment")
    def refund_payment(self, payment: Payment) -> str:
        """
        Refund a PAID payment through the gateway.

        Returns REFUND_SUCCEEDED or REFUND_FAILED; gateway failures are
        logged and recorded on the attempt rather than raised.
        """
        key = refund_idempotency_key(payment.id)
        attempt = self.payment_repository.get_refund_attempt(key)
        if attempt is not None and attempt.status in (
            RefundAttemptStatus.SUCCEEDED.value,
            RefundAttemptStatus.APPLIED.value,
        ):
            return REFUND_SUCCEEDED
        if attempt is None:
            with self.transaction():
                attempt = self.payment_repository.create_refund_attempt(
                    payment.id, key, payment.amount_cents
                )

        try:
            if not payment.gateway_transaction_id:
                raise RefundFailedException(payment.id, "payment has no gateway transaction")
            try:
                auth_token = self.gateway.get_auth_token()
                response = self.gateway.refund(
                    auth_token,
                    transaction_id=payment.gateway_transaction_id,
                    amount_cents=attempt.amount_cents,
                )
            except PaymobError as exc:
                raise RefundFailedException(payment.id, str(exc)) from exc
            if response.get("success") is False:
                raise RefundFailedException(
                    payment.id, str(response.get("data", {}).get("message") or "declined")
                )
        except RefundFailedException as exc:
            self.logger.error(
                exc.message, extra={"evt": "refund_failed", "payment_id": payment.id}
            )
            with self.transaction():
                attempt.status = RefundAttemptStatus.FAILED.value
                attempt.error = exc.message
            return REFUND_FAILED

        with self.transaction():
            attempt.status = RefundAttemptStatus.SUCCEEDED.value
            attempt.gateway_reference = str(response.get("id") or "") or None

        self.apply_refund(payment.id, attempt)
        return REFUND_SUCCEEDED

    def apply_refund(self, payment_id: int, attempt) -> bool:
        """Mark the payment REFUNDED once the gateway has accepted the refund."""
        with self.transaction():
            moved = self.payment_repository.update_status_if(
                payment_id,
                PaymentStatus.PAID,
                PaymentStatus.REFUNDED,
                refunded_at=datetime.now(timezone.utc),
            )
            attempt.status = RefundAttemptStatus.APPLIED.value

        payment = self.payment_repository.get_by_id(payment_id, load_relationships=False)
        if moved and payment is not None:
            patient = RepositoryFactory.create_pricing_repository(self.db).get_patient(
                payment.patient_id
            )
            if patient is not None:
                self.notification_service.payment_refunded(
                    patient.user_id,
                    payment.id,
                    payment.amount,
                    payment.currency,
                    email=patient.email,
                )
        return moved
