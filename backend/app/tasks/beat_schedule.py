# backend/app/tasks/beat_schedule.py
"""
Celery Beat schedule configuration for Medtik.

Reservation sweeps run on a fixed interval slightly longer than the grace
period; slot cleanup runs once a day.
"""

from datetime import timedelta
from typing import Any

from celery.schedules import crontab

from app.core.config import settings

# Main beat schedule configuration
CELERYBEAT_SCHEDULE: dict[str, dict[str, Any]] = {
    "sweep-stale-reservations": {
        "task": "app.tasks.sweep_tasks.sweep_stale_reservations",
        "schedule": timedelta(minutes=settings.reservation_sweep_interval_minutes),
        "options": {"queue": "maintenance", "priority": 8},
    },
    "sweep-expired-slots": {
        "task": "app.tasks.sweep_tasks.sweep_expired_slots",
        "schedule": crontab(hour=0, minute=5),  # Daily just after midnight UTC
        "options": {"queue": "maintenance", "priority": 3},
    },
    "reconcile-refund-attempts": {
        "task": "app.tasks.sweep_tasks.reconcile_refund_attempts",
        "schedule": timedelta(minutes=settings.refund_reconcile_interval_minutes),
        "options": {"queue": "maintenance", "priority": 5},
    },
}

# Schedule configuration for different environments
SCHEDULE_CONFIG: dict[str, dict[str, dict[str, Any]]] = {
    "production": {},
    "test": {
        # Fast cadence for exercising the sweeps against a live worker
        "sweep-stale-reservations": {
            "task": "app.tasks.sweep_tasks.sweep_stale_reservations",
            "schedule": timedelta(seconds=30),
            "options": {"queue": "maintenance"},
        },
    },
}


def get_beat_schedule(environment: str = "production") -> dict[str, dict[str, Any]]:
    """
    Get the beat schedule for the specified environment.

    Args:
        environment: The environment name (production, development, test)

    Returns:
        Mapping of task name to Celery beat configuration dict
    """
    base: dict[str, dict[str, Any]] = dict(CELERYBEAT_SCHEDULE)
    overrides = SCHEDULE_CONFIG.get(environment)
    if overrides:
        base.update(overrides)
    return base
