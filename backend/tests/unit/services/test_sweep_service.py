"""Tests for the reconciliation sweeps."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from app.models.appointment import Appointment, AppointmentStatus
from app.models.payment import Payment, PaymentStatus, RefundAttempt, RefundAttemptStatus
from app.models.slot import DoctorSlot, SlotStatus
from app.services.payment_callback_service import PaymentCallbackService, compute_signature
from app.services.sweep_service import SweepService


def _later(minutes=60):
    return datetime.now(timezone.utc) + timedelta(minutes=minutes)


@pytest.fixture
def sweeper(unit_db):
    return SweepService(unit_db)


def _pay(unit_db, payment, success=True):
    obj = {
        "id": 7000 + payment.id,
        "success": success,
        "is_refunded": False,
        "order": {"merchant_order_id": payment.merchant_order_id},
    }
    PaymentCallbackService(unit_db, hmac_secret="s").handle_callback(
        obj, compute_signature(obj, "s")
    )


class TestStaleReservations:
    def test_abandoned_checkout_is_reclaimed(self, sweeper, reservation_service, patient, slot, unit_db):
        held = reservation_service.reserve_slot(patient.id, slot.id, "CHAT")

        report = sweeper.sweep_stale_reservations(now=_later())

        assert report.reclaimed == 1
        assert report.failed == 0
        unit_db.expire_all()
        assert unit_db.get(Payment, held.payment.id) is None
        assert unit_db.get(Appointment, held.appointment.id) is None
        assert unit_db.get(DoctorSlot, slot.id).status == SlotStatus.AVAILABLE.value

    def test_fresh_reservation_is_left_alone(self, sweeper, reservation_service, patient, slot, unit_db):
        reservation_service.reserve_slot(patient.id, slot.id, "CHAT")

        report = sweeper.sweep_stale_reservations()

        assert report.examined == 0
        assert unit_db.query(Payment).count() == 1

    def test_paid_booking_is_untouched(self, sweeper, reservation_service, patient, slot, unit_db):
        held = reservation_service.reserve_slot(patient.id, slot.id, "CHAT")
        _pay(unit_db, held.payment)

        report = sweeper.sweep_stale_reservations(now=_later())

        assert report.examined == 0
        unit_db.expire_all()
        assert unit_db.get(Payment, held.payment.id).status == PaymentStatus.PAID.value
        assert unit_db.get(Appointment, held.appointment.id).status == AppointmentStatus.CONFIRMED.value
        assert unit_db.get(DoctorSlot, slot.id).status == SlotStatus.RESERVED.value

    def test_zero_grace_reclaims_immediately(self, sweeper, reservation_service, patient, slot):
        reservation_service.reserve_slot(patient.id, slot.id, "CHAT")
        report = sweeper.sweep_stale_reservations(grace_minutes=0, now=_later(1))
        assert report.reclaimed == 1

    def test_one_failure_does_not_stop_the_batch(
        self, sweeper, reservation_service, patient, other_patient, make_slot
    ):
        first = make_slot(hour=9)
        second = make_slot(hour=11)
        reservation_service.reserve_slot(patient.id, first.id, "CHAT")
        reservation_service.reserve_slot(other_patient.id, second.id, "CHAT")

        with patch.object(
            sweeper, "_reclaim_payment", side_effect=[RuntimeError("lock timeout"), True]
        ):
            report = sweeper.sweep_stale_reservations(now=_later())

        assert report.examined == 2
        assert report.failed == 1
        assert report.reclaimed == 1

    def test_appointment_without_payment_is_reclaimed(self, sweeper, make_slot, patient, unit_db):
        held = make_slot(status=SlotStatus.RESERVED.value)
        orphan = Appointment(
            doctor_id=held.doctor_id,
            patient_id=patient.id,
            slot_id=held.id,
            appointment_type="CHAT",
            date=held.date,
            start_time=held.start_time,
            end_time=held.end_time,
            status=AppointmentStatus.PENDING_PAYMENT.value,
        )
        unit_db.add(orphan)
        unit_db.commit()

        report = sweeper.sweep_stale_reservations(now=_later())

        assert report.reclaimed == 1
        unit_db.expire_all()
        assert unit_db.get(Appointment, orphan.id) is None
        assert unit_db.get(DoctorSlot, held.id).status == SlotStatus.AVAILABLE.value

    def test_report_serializes(self, sweeper):
        report = sweeper.sweep_stale_reservations()
        assert report.to_dict() == {
            "sweep": "stale_reservations",
            "examined": 0,
            "reclaimed": 0,
            "skipped": 0,
            "failed": 0,
        }


class TestExpiredSlots:
    def test_deletes_past_free_slots_only(self, sweeper, make_slot, unit_db):
        past_free = make_slot(days_ahead=-2)
        past_reserved = make_slot(days_ahead=-2, hour=12, status=SlotStatus.RESERVED.value)
        future = make_slot(days_ahead=3)

        report = sweeper.sweep_expired_slots()

        assert report.reclaimed == 1
        unit_db.expire_all()
        assert unit_db.get(DoctorSlot, past_free.id) is None
        assert unit_db.get(DoctorSlot, past_reserved.id) is not None
        assert unit_db.get(DoctorSlot, future.id) is not None

    def test_delete_failure_is_counted(self, sweeper, make_slot):
        make_slot(days_ahead=-2)
        with patch.object(
            sweeper.slot_repository, "delete_unreserved", side_effect=RuntimeError("boom")
        ):
            report = sweeper.sweep_expired_slots()
        assert report.failed == 1

    def test_measured_operations_show_up_in_service_metrics(self, sweeper):
        sweeper.sweep_expired_slots()

        metrics = sweeper.get_metrics()["sweep_expired_slots"]
        assert metrics["count"] >= 1
        assert metrics["min_time"] <= metrics["max_time"]


class TestRefundReconciliation:
    @pytest.fixture
    def paid(self, reservation_service, patient, slot, unit_db):
        held = reservation_service.reserve_slot(patient.id, slot.id, "CHAT")
        _pay(unit_db, held.payment)
        unit_db.expire_all()
        return unit_db.get(Payment, held.payment.id)

    def _attempt(self, unit_db, payment, status, created_at=None):
        attempt = RefundAttempt(
            payment_id=payment.id,
            idempotency_key=f"refund-{payment.id}",
            amount_cents=payment.amount_cents,
            status=status,
        )
        if created_at is not None:
            attempt.created_at = created_at
        unit_db.add(attempt)
        unit_db.commit()
        return attempt

    def test_succeeded_attempt_is_applied(self, sweeper, paid, unit_db):
        attempt = self._attempt(unit_db, paid, RefundAttemptStatus.SUCCEEDED.value)

        report = sweeper.reconcile_refund_attempts()

        assert report.reclaimed == 1
        unit_db.expire_all()
        assert unit_db.get(Payment, paid.id).status == PaymentStatus.REFUNDED.value
        assert unit_db.get(RefundAttempt, attempt.id).status == RefundAttemptStatus.APPLIED.value

    def test_recent_requested_attempt_waits(self, sweeper, paid, unit_db):
        self._attempt(unit_db, paid, RefundAttemptStatus.REQUESTED.value)
        report = sweeper.reconcile_refund_attempts()
        assert report.skipped == 1

    def test_stale_requested_attempt_is_failed(self, sweeper, paid, unit_db):
        attempt = self._attempt(
            unit_db,
            paid,
            RefundAttemptStatus.REQUESTED.value,
            created_at=datetime.now(timezone.utc) - timedelta(hours=2),
        )

        report = sweeper.reconcile_refund_attempts()

        assert report.reclaimed == 1
        unit_db.expire_all()
        stored = unit_db.get(RefundAttempt, attempt.id)
        assert stored.status == RefundAttemptStatus.FAILED.value
        assert "gateway" in stored.error
        assert unit_db.get(Payment, paid.id).status == PaymentStatus.PAID.value
