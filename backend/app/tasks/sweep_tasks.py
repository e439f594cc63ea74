# backend/app/tasks/sweep_tasks.py
"""
Celery tasks for reservation lifecycle maintenance.

Each task opens its own short-lived session. The sweeps isolate failures
per item, so a task only fails when the batch query itself fails.
"""

import logging
from typing import Any, Callable, Dict, TypeVar, cast

from app.database import get_db_session
from app.services.sweep_service import SweepService
from app.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)

_TaskFunc = TypeVar("_TaskFunc", bound=Callable[..., Any])


def _typed_task(*args: Any, **kwargs: Any) -> Callable[[_TaskFunc], _TaskFunc]:
    """Typed wrapper for the Celery task decorator."""
    return cast(Callable[[_TaskFunc], _TaskFunc], celery_app.task(*args, **kwargs))


@_typed_task(name="app.tasks.sweep_tasks.sweep_stale_reservations")
def sweep_stale_reservations() -> Dict[str, Any]:
    """Release slots held by reservations whose payment never completed."""
    with get_db_session() as db:
        report = SweepService(db).sweep_stale_reservations()
    logger.info("Stale reservation sweep finished", extra={"evt": "sweep", **report.to_dict()})
    return report.to_dict()


@_typed_task(name="app.tasks.sweep_tasks.sweep_expired_slots")
def sweep_expired_slots() -> Dict[str, Any]:
    """Delete slots that have already ended and were never reserved."""
    with get_db_session() as db:
        report = SweepService(db).sweep_expired_slots()
    logger.info("Expired slot sweep finished", extra={"evt": "sweep", **report.to_dict()})
    return report.to_dict()


@_typed_task(name="app.tasks.sweep_tasks.reconcile_refund_attempts")
def reconcile_refund_attempts() -> Dict[str, Any]:
    """Finish refunds whose local bookkeeping did not complete."""
    with get_db_session() as db:
        report = SweepService(db).reconcile_refund_attempts()
    logger.info("Refund reconciliation finished", extra={"evt": "sweep", **report.to_dict()})
    return report.to_dict()
