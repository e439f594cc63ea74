# backend/app/services/payment_callback_service.py
"""
Paymob transaction callback handling.

The gateway posts the transaction object plus an ``hmac`` query
parameter. Nothing is read or written before the signature checks out.
After that every payload is acknowledged: duplicates, malformed order ids
and unknown payments are recorded in the webhook ledger and ignored so
the gateway stops retrying.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
import hashlib
import hmac
import logging
import time
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import PAYMOB_WEBHOOK_SOURCE
from ..core.exceptions import SignatureInvalidException
from ..domain.booking_state import BookingState, is_terminal_payment, transition
from ..models.appointment import Appointment, AppointmentStatus
from ..models.payment import Payment, PaymentStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .notification_service import NotificationService
from .reservation_service import parse_merchant_order_id
from .webhook_ledger_service import WebhookLedgerService

logger = logging.getLogger(__name__)

# Order is fixed by the gateway; dotted names are nested lookups.
HMAC_FIELDS = (
    "amount_cents",
    "created_at",
    "currency",
    "error_occured",
    "has_parent_transaction",
    "id",
    "integration_id",
    "is_3d_secure",
    "is_auth",
    "is_capture",
    "is_refunded",
    "is_standalone_payment",
    "is_voided",
    "order.id",
    "owner",
    "pending",
    "source_data.pan",
    "source_data.sub_type",
    "source_data.type",
    "success",
)

OUTCOME_CONFIRMED = "confirmed"
OUTCOME_FAILED = "payment_failed"
OUTCOME_REFUNDED = "refunded"
OUTCOME_PAID_UNBOOKED = "paid_unbooked"
OUTCOME_DUPLICATE = "duplicate"
OUTCOME_IGNORED = "ignored"


def _lookup(obj: Mapping[str, Any], dotted: str) -> Any:
    value: Any = obj
    for part in dotted.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


def _render(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def hmac_message(obj: Mapping[str, Any]) -> str:
    return "".join(_render(_lookup(obj, field)) for field in HMAC_FIELDS)


def compute_signature(obj: Mapping[str, Any], secret: str) -> str:
    """Hex HMAC-SHA512 of the concatenated callback fields."""
    return hmac.new(
        secret.encode("utf-8"), hmac_message(obj).encode("utf-8"), hashlib.sha512
    ).hexdigest()


def verify_signature(obj: Mapping[str, Any], signature: Optional[str], secret: str) -> bool:
    if not signature or not secret:
        return False
    expected = compute_signature(obj, secret)
    return hmac.compare_digest(expected.encode("utf-8"), signature.strip().lower().encode("utf-8"))


def _flag(value: Any) -> bool:
    return value is True or (isinstance(value, str) and value.strip().lower() == "true")


def _ledger_status(outcome: str) -> str:
    if outcome in (OUTCOME_DUPLICATE, OUTCOME_IGNORED):
        return outcome
    return "processed"


@dataclass(frozen=True)
class CallbackOutcome:
    outcome: str
    payment_id: Optional[int] = None
    appointment_id: Optional[int] = None
    transaction_id: Optional[str] = None


class PaymentCallbackService(BaseService):
    """Applies verified gateway callbacks to payments and appointments."""

    def __init__(
        self,
        db: Session,
        notification_service: Optional[NotificationService] = None,
        ledger: Optional[WebhookLedgerService] = None,
        hmac_secret: Optional[str] = None,
    ):
        super().__init__(db)
        self.notification_service = notification_service or NotificationService(db)
        self.ledger = ledger or WebhookLedgerService(db)
        self.hmac_secret = hmac_secret if hmac_secret is not None else settings.paymob_hmac_key
        self.payment_repository = RepositoryFactory.create_payment_repository(db)
        self.appointment_repository = RepositoryFactory.create_appointment_repository(db)
        self.slot_repository = RepositoryFactory.create_slot_repository(db)

    def verify(self, obj: Mapping[str, Any], signature: Optional[str]) -> None:
        if not self.hmac_secret:
            self.logger.error("Paymob HMAC secret is not configured; rejecting callback")
        if not verify_signature(obj, signature, self.hmac_secret):
            prometheus_metrics.record_payment_callback("rejected")
            self.logger.warning(
                "Rejected callback with invalid signature",
                extra={"evt": "paymob_signature_invalid", "transaction_id": _lookup(obj, "id")},
            )
            raise SignatureInvalidException()

    @BaseService.measure_operation("handle_callback")
    def handle_callback(self, payload: Mapping[str, Any], signature: Optional[str]) -> CallbackOutcome:
        """
        Verify and apply one transaction callback.

        Raises:
            SignatureInvalidException: Signature missing or wrong; nothing was recorded
        """
        obj = payload.get("obj") if isinstance(payload.get("obj"), Mapping) else payload
        self.verify(obj, signature)

        started = time.monotonic()
        transaction_id = _render(_lookup(obj, "id")) or None
        event = self.ledger.log_received(
            source=PAYMOB_WEBHOOK_SOURCE,
            event_type=str(payload.get("type") or "TRANSACTION"),
            payload=dict(obj),
            event_id=transaction_id,
        )
        self.db.commit()

        try:
            outcome = self._apply(obj, transaction_id)
        except Exception as exc:
            self.db.rollback()
            self.ledger.mark_failed(event, error=str(exc), duration_ms=self.ledger.elapsed_ms(started))
            self.db.commit()
            prometheus_metrics.record_payment_callback("error")
            raise

        self.ledger.mark_processed(
            event,
            related_entity_type="payment" if outcome.payment_id else None,
            related_entity_id=str(outcome.payment_id) if outcome.payment_id else None,
            duration_ms=self.ledger.elapsed_ms(started),
            status=_ledger_status(outcome.outcome),
        )
        self.db.commit()
        prometheus_metrics.record_payment_callback(outcome.outcome)
        self.logger.info(
            "Callback handled: %s",
            outcome.outcome,
            extra={
                "evt": "paymob_callback",
                "payment_id": outcome.payment_id,
                "transaction_id": transaction_id,
            },
        )
        return outcome

    def _apply(self, obj: Mapping[str, Any], transaction_id: Optional[str]) -> CallbackOutcome:
        payment_id = parse_merchant_order_id(_lookup(obj, "order.merchant_order_id"))
        if payment_id is None:
            self.logger.warning("Callback with unparseable merchant_order_id ignored")
            return CallbackOutcome(OUTCOME_IGNORED, transaction_id=transaction_id)

        payment = self.payment_repository.get_by_id(payment_id, load_relationships=False)
        if payment is None:
            log = self.logger.error if _flag(obj.get("success")) else self.logger.warning
            log(
                "Callback for unknown payment %s (transaction %s)",
                payment_id,
                transaction_id,
                extra={"evt": "paymob_unknown_payment"},
            )
            return CallbackOutcome(OUTCOME_IGNORED, payment_id=payment_id, transaction_id=transaction_id)

        if _flag(obj.get("is_refunded")):
            return self._apply_refund(payment, transaction_id)
        if is_terminal_payment(payment.status):
            if payment.status == PaymentStatus.FAILED.value and _flag(obj.get("success")):
                # Charged after the hold was given up; needs a manual refund
                self.logger.error(
                    "Successful transaction %s for payment %s that is already FAILED",
                    transaction_id,
                    payment.id,
                    extra={"evt": "paymob_late_success"},
                )
            return self._duplicate(payment, transaction_id)
        if _flag(obj.get("success")):
            return self._apply_success(payment, transaction_id)
        return self._apply_failure(payment, transaction_id)

    def _apply_success(self, payment: Payment, transaction_id: Optional[str]) -> CallbackOutcome:
        now = datetime.now(timezone.utc)
        appointment: Optional[Appointment] = payment.appointment
        awaiting = (
            appointment is not None
            and appointment.status == AppointmentStatus.PENDING_PAYMENT.value
        )
        if awaiting:
            BookingState(
                appointment=appointment.status, payment=payment.status
            ).on_payment_succeeded()
        else:
            # The charge is recorded whatever happened to the booking
            transition("payment", payment.status, PaymentStatus.PAID)

        confirmed = False
        with self.transaction():
            moved = self.payment_repository.update_status_if(
                payment.id,
                PaymentStatus.UNPAID,
                PaymentStatus.PAID,
                gateway_transaction_id=transaction_id,
                paid_at=now,
            )
            if not moved:
                return self._duplicate(payment, transaction_id)
            if awaiting:
                confirmed = self.appointment_repository.update_status_if(
                    appointment.id,
                    AppointmentStatus.PENDING_PAYMENT,
                    AppointmentStatus.CONFIRMED,
                    confirmed_at=now,
                )

        if not confirmed:
            # Charged but nothing to confirm; needs a manual refund
            self.logger.error(
                "Payment %s captured (transaction %s) but appointment %s is not awaiting payment",
                payment.id,
                transaction_id,
                payment.appointment_id,
                extra={"evt": "paymob_paid_without_booking", "payment_id": payment.id},
            )
            return CallbackOutcome(
                OUTCOME_PAID_UNBOOKED,
                payment_id=payment.id,
                appointment_id=payment.appointment_id,
                transaction_id=transaction_id,
            )

        self.db.refresh(appointment)
        self.notification_service.appointment_confirmed(appointment)
        return CallbackOutcome(
            OUTCOME_CONFIRMED,
            payment_id=payment.id,
            appointment_id=appointment.id,
            transaction_id=transaction_id,
        )

    def _apply_failure(self, payment: Payment, transaction_id: Optional[str]) -> CallbackOutcome:
        appointment: Optional[Appointment] = payment.appointment
        appointment_id = appointment.id if appointment is not None else None
        BookingState(
            appointment=appointment.status if appointment is not None else None,
            payment=payment.status,
        ).on_payment_failed()

        with self.transaction():
            moved = self.payment_repository.update_status_if(
                payment.id,
                PaymentStatus.UNPAID,
                PaymentStatus.FAILED,
                gateway_transaction_id=transaction_id,
            )
            if not moved:
                return self._duplicate(payment, transaction_id)
            if appointment is not None:
                self.slot_repository.release_for_appointment(appointment)
                self.appointment_repository.delete_if_pending(appointment.id)

        self.logger.info(
            "Payment %s failed; appointment %s removed and slot released",
            payment.id,
            appointment_id,
        )
        return CallbackOutcome(
            OUTCOME_FAILED,
            payment_id=payment.id,
            appointment_id=appointment_id,
            transaction_id=transaction_id,
        )

    def _apply_refund(self, payment: Payment, transaction_id: Optional[str]) -> CallbackOutcome:
        if payment.status != PaymentStatus.PAID.value:
            return self._duplicate(payment, transaction_id)
        BookingState(appointment=None, payment=payment.status).on_refunded()

        with self.transaction():
            moved = self.payment_repository.update_status_if(
                payment.id,
                PaymentStatus.PAID,
                PaymentStatus.REFUNDED,
                refunded_at=datetime.now(timezone.utc),
            )
            if not moved:
                return self._duplicate(payment, transaction_id)

        patient = RepositoryFactory.create_pricing_repository(self.db).get_patient(payment.patient_id)
        if patient is not None:
            self.notification_service.payment_refunded(
                patient.user_id, payment.id, payment.amount, payment.currency, email=patient.email
            )
        return CallbackOutcome(
            OUTCOME_REFUNDED,
            payment_id=payment.id,
            appointment_id=payment.appointment_id,
            transaction_id=transaction_id,
        )

    def _duplicate(self, payment: Payment, transaction_id: Optional[str]) -> CallbackOutcome:
        return CallbackOutcome(
            OUTCOME_DUPLICATE,
            payment_id=payment.id,
            appointment_id=payment.appointment_id,
            transaction_id=transaction_id,
        )

