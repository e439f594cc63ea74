"""API tests for the appointment and payment history endpoints."""

from decimal import Decimal

import pytest


@pytest.fixture
def booked(client, patient_headers, make_slot):
    ids = []
    for days_ahead in (2, 6):
        response = client.post(
            "/api/v1/appointments/reserve",
            json={"slot_id": make_slot(days_ahead=days_ahead).id, "service_type": "CHAT"},
            headers=patient_headers,
        )
        assert response.status_code == 201
        ids.append(response.json()["appointment"]["id"])
    return ids


@pytest.fixture
def other_patient_headers(other_patient):
    return {"X-User-Id": str(other_patient.user_id), "X-User-Role": "patient"}


def test_my_appointments_lists_latest_first(client, patient_headers, booked):
    response = client.get("/api/v1/appointments/me", headers=patient_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert [a["id"] for a in body["appointments"]] == list(reversed(booked))
    first = body["appointments"][0]
    assert first["doctor"]["full_name"] == "Dr. Salma Nabil"
    assert first["payment"]["status"] == "UNPAID"
    assert Decimal(first["payment"]["amount"]) == Decimal("300.00")


def test_my_appointments_status_filter(client, patient_headers, booked):
    response = client.get(
        "/api/v1/appointments/me", params={"status": "confirmed"}, headers=patient_headers
    )
    assert response.status_code == 200
    assert response.json() == {"appointments": [], "total": 0}

    bad = client.get("/api/v1/appointments/me", params={"status": "lost"}, headers=patient_headers)
    assert bad.status_code == 400


def test_my_appointments_are_private(client, other_patient_headers, booked):
    response = client.get("/api/v1/appointments/me", headers=other_patient_headers)
    assert response.json()["total"] == 0


def test_my_appointments_requires_patient(client, doctor_headers):
    assert client.get("/api/v1/appointments/me", headers=doctor_headers).status_code == 403
    assert client.get("/api/v1/appointments/me").status_code == 401


def test_payment_history_for_patient_and_doctor(
    client, patient_headers, doctor_headers, other_patient_headers, booked
):
    mine = client.get("/api/v1/payments/me", headers=patient_headers).json()
    theirs = client.get("/api/v1/payments/me", headers=doctor_headers).json()
    stranger = client.get("/api/v1/payments/me", headers=other_patient_headers).json()

    assert mine["total"] == 2
    assert {p["appointment_id"] for p in mine["payments"]} == set(booked)
    assert {p["id"] for p in theirs["payments"]} == {p["id"] for p in mine["payments"]}
    assert stranger["total"] == 0


def test_payment_history_rejects_other_roles(client):
    response = client.get(
        "/api/v1/payments/me", headers={"X-User-Id": "1", "X-User-Role": "admin"}
    )
    assert response.status_code == 403
