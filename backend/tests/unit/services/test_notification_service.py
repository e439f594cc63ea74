"""Tests for best-effort booking notifications."""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import patch

from app.core.exceptions import RepositoryException
from app.models.notification import Notification
from app.repositories.notification_repository import NotificationRepository
from app.services.notification_service import NotificationService


def test_confirmation_reaches_patient_and_doctor(unit_db, reservation_service, patient, doctor, slot):
    held = reservation_service.reserve_slot(patient.id, slot.id, "VIDEO")
    service = NotificationService(unit_db)

    service.appointment_confirmed(held.appointment)

    repository = NotificationRepository(unit_db)
    patient_inbox = repository.list_for_user(patient.user_id)
    assert len(patient_inbox) == 1
    assert patient_inbox[0].type == "APPOINTMENT_CONFIRMED"
    assert "video appointment" in patient_inbox[0].message
    assert patient_inbox[0].redirect_url.endswith(f"/appointments/{held.appointment.id}")
    assert patient_inbox[0].metadata_json["appointment_id"] == held.appointment.id
    assert repository.count_by_type(doctor.user_id, "APPOINTMENT_BOOKED") == 1


def test_refund_notice(unit_db, patient):
    NotificationService(unit_db).payment_refunded(
        patient.user_id, 7, Decimal("300.00"), "EGP", email=patient.email
    )
    (notice,) = NotificationRepository(unit_db).list_for_user(patient.user_id)
    assert notice.message == "Your payment of 300.00 EGP has been refunded."
    assert notice.email == "omar@example.com"


def test_storage_failure_is_swallowed(unit_db, patient):
    service = NotificationService(unit_db)
    with patch.object(
        service.repository, "create_notification", side_effect=RepositoryException("disk full")
    ):
        result = service.notify(patient.user_id, "PAYMENT_REFUNDED", "t", "m")

    assert result is None
    assert NotificationRepository(unit_db).count_by_type(patient.user_id, "PAYMENT_REFUNDED") == 0


def test_cancellation_without_doctor_is_skipped(unit_db):
    orphan = SimpleNamespace(id=77, doctor=None, start_time=None)

    NotificationService(unit_db).appointment_cancelled(orphan)

    assert unit_db.query(Notification).count() == 0


def test_cancellation_without_start_time_still_notifies(unit_db, doctor):
    appointment = SimpleNamespace(id=78, doctor=doctor, start_time=None)

    NotificationService(unit_db).appointment_cancelled(appointment)

    (notice,) = NotificationRepository(unit_db).list_for_user(doctor.user_id)
    assert notice.type == "APPOINTMENT_CANCELLED"
    assert "an unscheduled time" in notice.message
