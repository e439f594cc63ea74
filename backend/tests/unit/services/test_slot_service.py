"""Tests for doctor calendar management and slot discovery."""

from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import (
    AvailabilityOverlapException,
    ConflictException,
    NotFoundException,
    ValidationException,
)
from app.models.slot import DoctorSlot, SlotStatus
from app.services.slot_service import SlotService


@pytest.fixture
def slots(unit_db):
    return SlotService(unit_db)


def _window(days=4, hour=9, minutes=30):
    start = (datetime.now(timezone.utc) + timedelta(days=days)).replace(
        hour=hour, minute=0, second=0, microsecond=0
    )
    return start, start + timedelta(minutes=minutes)


class TestCreateSlot:
    def test_creates_available_slot(self, slots, doctor, unit_db):
        start, end = _window()
        slot = slots.create_slot(doctor.id, start.date(), start, end, chat=True, notes="Follow-ups")

        assert slot.id is not None
        assert slot.status == SlotStatus.AVAILABLE.value
        assert unit_db.query(DoctorSlot).count() == 1

    def test_overlap_is_rejected(self, slots, doctor):
        start, end = _window()
        slots.create_slot(doctor.id, start.date(), start, end, chat=True)

        with pytest.raises(AvailabilityOverlapException) as exc_info:
            slots.create_slot(
                doctor.id,
                start.date(),
                start + timedelta(minutes=15),
                end + timedelta(minutes=15),
                video=True,
            )
        assert exc_info.value.status_code == 409

    def test_back_to_back_slots_are_allowed(self, slots, doctor):
        start, end = _window()
        slots.create_slot(doctor.id, start.date(), start, end, chat=True)
        slots.create_slot(doctor.id, start.date(), end, end + timedelta(minutes=30), chat=True)

    def test_reserved_slot_still_blocks_overlap(self, slots, doctor, make_slot):
        taken = make_slot(days_ahead=4, hour=9, status=SlotStatus.RESERVED.value)
        with pytest.raises(AvailabilityOverlapException):
            slots.create_slot(doctor.id, taken.date, taken.start_time, taken.end_time, chat=True)

    def test_past_slot_is_rejected(self, slots, doctor):
        start, end = _window(days=-1)
        with pytest.raises(ValidationException) as exc_info:
            slots.create_slot(doctor.id, start.date(), start, end, chat=True)
        assert exc_info.value.code == "SLOT_IN_PAST"

    def test_inverted_range_is_rejected(self, slots, doctor):
        start, end = _window()
        with pytest.raises(ValidationException):
            slots.create_slot(doctor.id, start.date(), end, start, chat=True)


class TestListBookable:
    def test_channels_are_masked_by_pricing(self, slots, doctor, make_slot):
        # Doctor prices CHAT and VIDEO only
        make_slot(days_ahead=2, chat=True, voice=True, video=False)
        voice_only = make_slot(days_ahead=3, chat=False, voice=True, video=False)
        now = datetime.now(timezone.utc)

        listed = slots.list_bookable(doctor.id, now, now + timedelta(days=7))

        assert [s.services for s in listed] == [["CHAT"]]
        assert voice_only.id not in {s.id for s in listed}

    def test_reserved_and_out_of_range_slots_are_hidden(self, slots, doctor, make_slot):
        make_slot(days_ahead=2, status=SlotStatus.RESERVED.value)
        make_slot(days_ahead=20)
        visible = make_slot(days_ahead=3)
        now = datetime.now(timezone.utc)

        listed = slots.list_bookable(doctor.id, now, now + timedelta(days=7))

        assert [s.id for s in listed] == [visible.id]
        assert listed[0].start_time.tzinfo is not None

    def test_started_slots_are_hidden(self, slots, doctor, make_slot):
        now = datetime.now(timezone.utc)
        make_slot(start=now - timedelta(hours=1), minutes=120)
        make_slot(start=now - timedelta(days=1))
        upcoming = make_slot(days_ahead=3)

        listed = slots.list_bookable(doctor.id, now - timedelta(days=2), now + timedelta(days=7))

        assert [s.id for s in listed] == [upcoming.id]

    def test_empty_range_is_invalid(self, slots, doctor):
        now = datetime.now(timezone.utc)
        with pytest.raises(ValidationException):
            slots.find_available(doctor.id, now, now)


class TestDeleteSlot:
    def test_deletes_free_slot(self, slots, doctor, slot, unit_db):
        slots.delete_slot(doctor.id, slot.id)
        assert unit_db.get(DoctorSlot, slot.id) is None

    def test_reserved_slot_cannot_be_deleted(self, slots, doctor, make_slot):
        taken = make_slot(status=SlotStatus.RESERVED.value)
        with pytest.raises(ConflictException) as exc_info:
            slots.delete_slot(doctor.id, taken.id)
        assert exc_info.value.code == "SLOT_RESERVED"

    def test_other_doctors_slot_is_not_found(self, slots, slot):
        with pytest.raises(NotFoundException):
            slots.delete_slot(slot.doctor_id + 1, slot.id)
