"""API tests for slot listing and doctor calendar endpoints."""

from datetime import datetime, timedelta, timezone


def _window(days=5):
    start = (datetime.now(timezone.utc) + timedelta(days=days)).replace(
        hour=14, minute=0, second=0, microsecond=0
    )
    return start, start + timedelta(minutes=45)


def test_list_slots_masks_unpriced_channels(client, doctor, make_slot):
    make_slot(chat=True, voice=True, video=False)

    response = client.get(f"/api/v1/doctors/{doctor.id}/slots")

    assert response.status_code == 200
    body = response.json()
    assert body["doctor_id"] == doctor.id
    assert len(body["slots"]) == 1
    assert body["slots"][0]["services"] == ["CHAT"]
    assert body["slots"][0]["voice"] is False


def test_list_slots_inverted_range(client, doctor):
    now = datetime.now(timezone.utc)
    response = client.get(
        f"/api/v1/doctors/{doctor.id}/slots",
        params={"start": now.isoformat(), "end": (now - timedelta(hours=1)).isoformat()},
    )
    assert response.status_code == 400


def test_create_and_delete_slot(client, doctor_headers):
    start, end = _window()
    created = client.post(
        "/api/v1/doctors/me/slots",
        json={
            "date": start.date().isoformat(),
            "start_time": start.isoformat(),
            "end_time": end.isoformat(),
            "video": True,
        },
        headers=doctor_headers,
    )
    assert created.status_code == 201
    assert created.json()["status"] == "AVAILABLE"

    slot_id = created.json()["id"]
    deleted = client.delete(f"/api/v1/doctors/me/slots/{slot_id}", headers=doctor_headers)
    assert deleted.status_code == 204


def test_overlapping_slot_conflicts(client, doctor_headers, slot):
    response = client.post(
        "/api/v1/doctors/me/slots",
        json={
            "date": slot.date.isoformat(),
            "start_time": slot.start_time.isoformat(),
            "end_time": slot.end_time.isoformat(),
            "chat": True,
        },
        headers=doctor_headers,
    )
    assert response.status_code == 409


def test_slot_without_service_is_invalid(client, doctor_headers):
    start, end = _window()
    response = client.post(
        "/api/v1/doctors/me/slots",
        json={
            "date": start.date().isoformat(),
            "start_time": start.isoformat(),
            "end_time": end.isoformat(),
        },
        headers=doctor_headers,
    )
    assert response.status_code == 422


def test_reserved_slot_cannot_be_deleted(client, doctor_headers, make_slot):
    taken = make_slot(status="RESERVED")
    response = client.delete(f"/api/v1/doctors/me/slots/{taken.id}", headers=doctor_headers)
    assert response.status_code == 409


def test_patients_cannot_manage_slots(client, patient_headers, slot):
    response = client.delete(f"/api/v1/doctors/me/slots/{slot.id}", headers=patient_headers)
    assert response.status_code == 403
