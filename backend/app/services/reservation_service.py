# backend/app/services/reservation_service.py
"""
Reservation Service for the Medtik platform

Turns a patient's slot choice into a held appointment and a hosted
checkout.

Flow:
1. One transaction: load slot, check status and channel, resolve the
   price, flip the slot AVAILABLE -> RESERVED (conditional update) and
   create the PENDING_PAYMENT appointment. Any failure rolls all of it
   back.
2. After commit: create the UNPAID payment while the appointment is
   still PENDING_PAYMENT, talk to the gateway and persist the checkout
   URL. A failure here leaves the reservation for the stale-reservation
   sweep and surfaces as a retryable 502.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import NoReturn, Optional

from sqlalchemy.orm import Session

from ..core.constants import MERCHANT_ORDER_PREFIX
from ..core.exceptions import (
    ConflictException,
    GatewayException,
    NotFoundException,
    PricingUnavailableException,
    RepositoryException,
    ServiceException,
    SlotUnavailableException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc, utc_now
from ..integrations.paymob_client import PaymobClient, PaymobError
from ..models.appointment import Appointment, AppointmentStatus
from ..models.doctor import ServiceType
from ..models.payment import Payment, PaymentStatus
from ..models.slot import SlotStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .pricing_service import PricingService, ResolvedPrice

logger = logging.getLogger(__name__)


@dataclass
class ReservationResult:
    appointment: Appointment
    payment: Payment
    checkout_url: Optional[str]


def build_merchant_order_id(payment_id: int, now: Optional[datetime] = None) -> str:
    """``PAY-<paymentId>-<epochMillis>``; the suffix keeps retried orders unique at the gateway."""
    moment = now or datetime.now(timezone.utc)
    return f"{MERCHANT_ORDER_PREFIX}-{payment_id}-{int(moment.timestamp() * 1000)}"


def parse_merchant_order_id(value: object) -> Optional[int]:
    """Payment id embedded in a merchant order id, or None when malformed."""
    if not isinstance(value, str):
        return None
    parts = value.strip().split("-")
    if len(parts) < 3 or parts[0] != MERCHANT_ORDER_PREFIX:
        return None
    if not parts[1].isdigit():
        return None
    return int(parts[1])


def normalize_service_type(service_type: object) -> str:
    value = str(getattr(service_type, "value", service_type) or "").strip().upper()
    if value not in {s.value for s in ServiceType}:
        raise ValidationException(
            f"Unknown service type: {service_type}",
            code="INVALID_SERVICE_TYPE",
        )
    return value


class ReservationService(BaseService):
    """Reserves slots and starts the payment for them."""

    def __init__(self, db: Session, pricing_service: PricingService, gateway: PaymobClient):
        super().__init__(db)
        self.pricing_service = pricing_service
        self.gateway = gateway
        self.slot_repository = RepositoryFactory.create_slot_repository(db)
        self.appointment_repository = RepositoryFactory.create_appointment_repository(db)
        self.payment_repository = RepositoryFactory.create_payment_repository(db)
        self.pricing_repository = RepositoryFactory.create_pricing_repository(db)

    @BaseService.measure_operation("reserve_slot")
    def reserve_slot(
        self,
        patient_id: int,
        slot_id: int,
        service_type: str,
        patient_country: Optional[str] = None,
    ) -> ReservationResult:
        """
        Reserve a slot and return the appointment with its checkout URL.

        Args:
            patient_id: Patient profile id
            slot_id: Slot to reserve
            service_type: CHAT, VOICE or VIDEO
            patient_country: Overrides the country stored on the patient profile

        Raises:
            NotFoundException: Unknown slot or patient
            SlotUnavailableException: Slot taken, already started or lost to a concurrent request
            PricingUnavailableException: Channel not offered or no usable price
            GatewayException: Payment could not be started; the hold stays until the sweep
            ConflictException: Appointment was cancelled before its payment could start
        """
        service = normalize_service_type(service_type)
        patient = self.pricing_repository.get_patient(patient_id)
        if patient is None:
            raise NotFoundException("Patient not found", code="PATIENT_NOT_FOUND")
        country = patient_country if patient_country is not None else patient.country

        try:
            appointment, price = self._hold_slot(patient_id, slot_id, service, country)
        except SlotUnavailableException:
            prometheus_metrics.record_reservation("slot_unavailable")
            raise
        except PricingUnavailableException:
            prometheus_metrics.record_reservation("pricing_unavailable")
            raise
        except NotFoundException:
            prometheus_metrics.record_reservation("not_found")
            raise

        self.log_operation(
            "slot_reserved",
            slot_id=slot_id,
            appointment_id=appointment.id,
            patient_id=patient_id,
        )

        payment = self._start_payment(appointment, price)
        prometheus_metrics.record_reservation("reserved")
        return ReservationResult(
            appointment=appointment,
            payment=payment,
            checkout_url=payment.checkout_url,
        )

    def _hold_slot(
        self, patient_id: int, slot_id: int, service: str, country: Optional[str]
    ) -> tuple[Appointment, ResolvedPrice]:
        with self.transaction():
            slot = self.slot_repository.get_by_id(slot_id, load_relationships=False)
            if slot is None:
                raise NotFoundException("Slot not found", code="SLOT_NOT_FOUND")
            if slot.status != SlotStatus.AVAILABLE.value:
                raise SlotUnavailableException(slot_id)
            if ensure_utc(slot.start_time) <= utc_now():
                raise SlotUnavailableException(slot_id, "This slot has already started")
            if not slot.offers(service):
                raise PricingUnavailableException(
                    f"{service} is not offered on this slot",
                    details={"slot_id": slot_id, "service_type": service},
                )

            price = self.pricing_service.resolve(slot.doctor_id, service, country)

            if not self.slot_repository.reserve(slot_id):
                self.logger.info("Lost reservation race for slot %s", slot_id)
                raise SlotUnavailableException(slot_id)

            appointment = self.appointment_repository.create(
                doctor_id=slot.doctor_id,
                patient_id=patient_id,
                slot_id=slot.id,
                appointment_type=service,
                date=slot.date,
                start_time=slot.start_time,
                end_time=slot.end_time,
                status=AppointmentStatus.PENDING_PAYMENT.value,
                notes=f"Reserved via slot {slot_id}",
            )
        return appointment, price

    def _start_payment(self, appointment: Appointment, price: ResolvedPrice) -> Payment:
        context = {"appointment_id": appointment.id}
        try:
            with self.transaction():
                payment = self.payment_repository.create(
                    appointment_id=appointment.id,
                    doctor_id=appointment.doctor_id,
                    patient_id=appointment.patient_id,
                    amount=price.amount,
                    currency=price.currency,
                    original_amount=price.original_amount,
                    original_currency=price.original_currency,
                    status=PaymentStatus.UNPAID.value,
                )
                # The hold committed earlier; a cancel may have landed since
                current = self.appointment_repository.get_status(appointment.id)
                if current != AppointmentStatus.PENDING_PAYMENT.value:
                    raise ConflictException(
                        "Appointment is no longer awaiting payment",
                        code="APPOINTMENT_NOT_PENDING",
                        details={**context, "status": current},
                    )
        except ConflictException:
            self.logger.info(
                "Appointment %s left PENDING_PAYMENT before checkout; no payment started",
                appointment.id,
            )
            prometheus_metrics.record_reservation("appointment_not_pending")
            raise
        except (ServiceException, RepositoryException) as exc:
            self._gateway_failed("payment record could not be created", exc, context)

        context["payment_id"] = payment.id
        merchant_order_id = build_merchant_order_id(payment.id)
        try:
            auth_token = self.gateway.get_auth_token()
            order_id = self.gateway.create_order(
                auth_token,
                amount_cents=price.amount_cents,
                currency=price.currency,
                merchant_order_id=merchant_order_id,
            )
            payment_token = self.gateway.get_payment_key(
                auth_token,
                order_id=order_id,
                amount_cents=price.amount_cents,
                currency=price.currency,
            )
        except PaymobError as exc:
            self._gateway_failed("gateway rejected the checkout", exc, context)

        try:
            with self.transaction():
                payment.merchant_order_id = merchant_order_id
                payment.gateway_order_id = str(order_id)
                payment.checkout_url = self.gateway.checkout_url(payment_token)
        except (ServiceException, RepositoryException) as exc:
            self._gateway_failed("checkout could not be saved", exc, context)

        self.log_operation("checkout_created", **context, merchant_order_id=merchant_order_id)
        return payment

    def _gateway_failed(self, reason: str, exc: Exception, context: dict) -> NoReturn:
        self.logger.error(
            "Payment start failed (%s): %s", reason, exc, extra={"evt": "gateway_error", **context}
        )
        prometheus_metrics.record_reservation("gateway_error")
        raise GatewayException(
            "Payment could not be started, please try again",
            details={**context, "reason": reason},
        ) from exc

    @BaseService.measure_operation("get_checkout")
    def get_checkout(self, patient_id: int, appointment_id: int) -> ReservationResult:
        """Return the checkout URL persisted for the patient's appointment."""
        appointment = self.appointment_repository.get_for_patient(appointment_id, patient_id)
        if appointment is None:
            raise NotFoundException("Appointment not found", code="APPOINTMENT_NOT_FOUND")
        payment = appointment.payment
        if payment is None or not payment.checkout_url:
            raise NotFoundException("Checkout not available", code="CHECKOUT_NOT_FOUND")
        return ReservationResult(
            appointment=appointment,
            payment=payment,
            checkout_url=payment.checkout_url,
        )
