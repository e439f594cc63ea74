"""API tests for reservation, checkout and cancellation endpoints."""

from unittest.mock import patch

from app.integrations.paymob_client import PaymobError
from app.models.slot import DoctorSlot, SlotStatus


def _reserve(client, headers, slot_id, service_type="chat"):
    return client.post(
        "/api/v1/appointments/reserve",
        json={"slot_id": slot_id, "service_type": service_type},
        headers=headers,
    )


def test_reserve_returns_checkout(client, patient_headers, slot):
    response = _reserve(client, patient_headers, slot.id)

    assert response.status_code == 201
    body = response.json()
    assert body["appointment"]["status"] == "PENDING_PAYMENT"
    assert body["appointment"]["appointment_type"] == "CHAT"
    assert body["payment"]["currency"] == "EGP"
    assert body["payment"]["status"] == "UNPAID"
    assert body["checkout_url"] == "https://pay.test/iframes/42?payment_token=fake-payment-key-1"


def test_reserve_requires_authentication(client, slot):
    response = client.post("/api/v1/appointments/reserve", json={"slot_id": slot.id, "service_type": "CHAT"})
    assert response.status_code == 401


def test_doctors_cannot_reserve(client, doctor_headers, slot):
    assert _reserve(client, doctor_headers, slot.id).status_code == 403


def test_reserve_taken_slot_conflicts(client, patient_headers, slot):
    _reserve(client, patient_headers, slot.id)
    response = _reserve(client, patient_headers, slot.id)
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "SLOT_UNAVAILABLE"


def test_reserve_unknown_service_type(client, patient_headers, slot):
    assert _reserve(client, patient_headers, slot.id, "fax").status_code == 400


def test_reserve_rejects_extra_fields(client, patient_headers, slot):
    response = client.post(
        "/api/v1/appointments/reserve",
        json={"slot_id": slot.id, "service_type": "CHAT", "price": 1},
        headers=patient_headers,
    )
    assert response.status_code == 422


def test_gateway_outage_is_502(client, patient_headers, slot, gateway, unit_db):
    with patch.object(gateway, "get_auth_token", side_effect=PaymobError("down")):
        response = _reserve(client, patient_headers, slot.id)

    assert response.status_code == 502
    assert response.json()["detail"]["details"]["retryable"] is True
    unit_db.expire_all()
    assert unit_db.get(DoctorSlot, slot.id).status == SlotStatus.RESERVED.value


def test_checkout_and_cancel(client, patient_headers, slot):
    reserved = _reserve(client, patient_headers, slot.id).json()
    appointment_id = reserved["appointment"]["id"]

    checkout = client.get(f"/api/v1/appointments/{appointment_id}/checkout", headers=patient_headers)
    assert checkout.status_code == 200
    assert checkout.json()["checkout_url"] == reserved["checkout_url"]

    cancelled = client.post(
        f"/api/v1/appointments/{appointment_id}/cancel",
        json={"reason": "schedule clash"},
        headers=patient_headers,
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["appointment"]["status"] == "CANCELLED"
    assert cancelled.json()["refund_status"] == "not_applicable"

    again = client.post(f"/api/v1/appointments/{appointment_id}/cancel", headers=patient_headers)
    assert again.status_code == 422


def test_cancel_someone_elses_appointment(client, patient_headers, other_patient, slot):
    appointment_id = _reserve(client, patient_headers, slot.id).json()["appointment"]["id"]
    response = client.post(
        f"/api/v1/appointments/{appointment_id}/cancel",
        headers={"X-User-Id": str(other_patient.user_id), "X-User-Role": "patient"},
    )
    assert response.status_code == 403
