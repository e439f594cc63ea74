"""Tests for conditional slot updates."""

from datetime import datetime, timedelta, timezone

from app.models.slot import DoctorSlot, SlotStatus
from app.repositories.factory import RepositoryFactory


def _status(session_factory, slot_id):
    with session_factory() as fresh:
        return fresh.get(DoctorSlot, slot_id).status


class TestReserve:
    def test_reserve_flips_available_slot(self, unit_db, session_factory, slot):
        repo = RepositoryFactory.create_slot_repository(unit_db)
        assert repo.reserve(slot.id) is True
        unit_db.commit()
        assert _status(session_factory, slot.id) == SlotStatus.RESERVED.value

    def test_second_reserve_loses(self, unit_db, session_factory, slot):
        first = RepositoryFactory.create_slot_repository(unit_db)
        other_session = session_factory()
        try:
            second = RepositoryFactory.create_slot_repository(other_session)
            assert first.reserve(slot.id) is True
            unit_db.commit()
            assert second.reserve(slot.id) is False
        finally:
            other_session.close()

    def test_reserve_unknown_slot(self, unit_db):
        assert RepositoryFactory.create_slot_repository(unit_db).reserve(9999) is False


class TestRelease:
    def test_release_by_id(self, unit_db, make_slot):
        slot = make_slot(status=SlotStatus.RESERVED.value)
        repo = RepositoryFactory.create_slot_repository(unit_db)
        assert repo.release_by_id(slot.id) is True
        assert repo.release_by_id(slot.id) is False

    def test_release_by_window_matches_exact_window(self, unit_db, doctor, make_slot):
        slot = make_slot(status=SlotStatus.RESERVED.value)
        repo = RepositoryFactory.create_slot_repository(unit_db)
        assert (
            repo.release_by_window(doctor.id, slot.start_time, slot.end_time + timedelta(minutes=1))
            is False
        )
        assert repo.release_by_window(doctor.id, slot.start_time, slot.end_time) is True


class TestQueries:
    def test_find_available_excludes_reserved_and_out_of_range(self, unit_db, doctor, make_slot):
        free = make_slot(days_ahead=1)
        make_slot(days_ahead=2, status=SlotStatus.RESERVED.value)
        make_slot(days_ahead=20)
        repo = RepositoryFactory.create_slot_repository(unit_db)
        now = datetime.now(timezone.utc)
        found = repo.find_available(doctor.id, now, now + timedelta(days=7))
        assert [s.id for s in found] == [free.id]

    def test_find_available_can_skip_started_slots(self, unit_db, doctor, make_slot):
        now = datetime.now(timezone.utc)
        running = make_slot(start=now - timedelta(minutes=10), minutes=60)
        upcoming = make_slot(days_ahead=1)
        repo = RepositoryFactory.create_slot_repository(unit_db)

        window = (doctor.id, now - timedelta(hours=1), now + timedelta(days=7))
        assert [s.id for s in repo.find_available(*window)] == [running.id, upcoming.id]
        assert [s.id for s in repo.find_available(*window, starts_after=now)] == [upcoming.id]

    def test_find_overlap(self, unit_db, doctor, slot):
        repo = RepositoryFactory.create_slot_repository(unit_db)
        inside = slot.start_time + timedelta(minutes=10)
        assert repo.find_overlap(doctor.id, inside, inside + timedelta(hours=1)).id == slot.id
        assert repo.find_overlap(doctor.id, slot.end_time, slot.end_time + timedelta(hours=1)) is None
        assert repo.find_overlap(doctor.id, inside, inside + timedelta(hours=1), exclude_slot_id=slot.id) is None

    def test_delete_unreserved_refuses_reserved(self, unit_db, make_slot):
        reserved = make_slot(status=SlotStatus.RESERVED.value)
        free = make_slot(days_ahead=3)
        repo = RepositoryFactory.create_slot_repository(unit_db)
        assert repo.delete_unreserved(reserved.id) is False
        assert repo.delete_unreserved(free.id) is True
