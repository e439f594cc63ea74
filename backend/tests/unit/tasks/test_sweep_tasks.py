"""Tests for the Celery sweep tasks and their beat schedule."""

from contextlib import contextmanager
from datetime import timedelta
from unittest.mock import patch

import pytest

from app.models.slot import DoctorSlot
from app.tasks import sweep_tasks
from app.tasks.beat_schedule import get_beat_schedule
from app.tasks.celery_app import health_check


@pytest.fixture
def task_session(unit_db):
    @contextmanager
    def _session():
        yield unit_db

    with patch.object(sweep_tasks, "get_db_session", _session):
        yield unit_db


def test_expired_slot_task_returns_report(task_session, make_slot):
    expired = make_slot(days_ahead=-3)

    result = sweep_tasks.sweep_expired_slots.apply().get()

    assert result["sweep"] == "expired_slots"
    assert result["reclaimed"] == 1
    task_session.expire_all()
    assert task_session.get(DoctorSlot, expired.id) is None


def test_stale_reservation_task_runs_with_nothing_to_do(task_session):
    result = sweep_tasks.sweep_stale_reservations.apply().get()
    assert result == {"sweep": "stale_reservations", "examined": 0, "reclaimed": 0, "skipped": 0, "failed": 0}


def test_refund_task_runs(task_session):
    assert sweep_tasks.reconcile_refund_attempts.apply().get()["examined"] == 0


def test_beat_schedule_registers_every_sweep():
    schedule = get_beat_schedule("production")

    assert schedule["sweep-stale-reservations"]["task"] == sweep_tasks.sweep_stale_reservations.name
    assert schedule["sweep-expired-slots"]["task"] == sweep_tasks.sweep_expired_slots.name
    assert schedule["reconcile-refund-attempts"]["task"] == sweep_tasks.reconcile_refund_attempts.name
    assert schedule["sweep-stale-reservations"]["schedule"] == timedelta(minutes=16)


def test_test_schedule_speeds_up_reservation_sweep():
    schedule = get_beat_schedule("test")
    assert schedule["sweep-stale-reservations"]["schedule"] == timedelta(seconds=30)
    assert "sweep-expired-slots" in schedule


def test_health_check_task_reports_healthy():
    result = health_check.apply().get()
    assert result["status"] == "healthy"
    assert "timestamp" in result
