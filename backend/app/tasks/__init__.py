# backend/app/tasks/__init__.py
"""
Celery tasks package for Medtik.

This package contains the periodic reservation, slot and refund sweeps.
"""

from app.tasks.celery_app import BaseTask, celery_app
from app.tasks.sweep_tasks import (
    reconcile_refund_attempts,
    sweep_expired_slots,
    sweep_stale_reservations,
)

__all__ = [
    "celery_app",
    "BaseTask",
    "sweep_stale_reservations",
    "sweep_expired_slots",
    "reconcile_refund_attempts",
]
