# backend/app/services/sweep_service.py
"""
Periodic reconciliation sweeps.

Each item is handled in its own transaction. A failing item is logged
and counted and the sweep moves on; one bad row never blocks the batch.
All writes are conditional, so a sweep racing a payment callback on the
same reservation is a no-op for whichever side loses.
"""

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import SWEEP_BATCH_LIMIT
from ..core.timezone_utils import ensure_utc
from ..models.payment import PaymentStatus, RefundAttempt, RefundAttemptStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

SWEEP_STALE_RESERVATIONS = "stale_reservations"
SWEEP_EXPIRED_SLOTS = "expired_slots"
SWEEP_REFUND_ATTEMPTS = "refund_attempts"


@dataclass
class SweepReport:
    sweep: str
    examined: int = 0
    reclaimed: int = 0
    skipped: int = 0
    failed: int = 0

    def count(self, outcome: str) -> None:
        setattr(self, outcome, getattr(self, outcome) + 1)
        prometheus_metrics.record_sweep_item(self.sweep, outcome)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class SweepService(BaseService):
    """Reclaims abandoned reservations, expired slots and unfinished refunds."""

    def __init__(self, db: Session, batch_limit: int = SWEEP_BATCH_LIMIT):
        super().__init__(db)
        self.batch_limit = batch_limit
        self.slot_repository = RepositoryFactory.create_slot_repository(db)
        self.appointment_repository = RepositoryFactory.create_appointment_repository(db)
        self.payment_repository = RepositoryFactory.create_payment_repository(db)

    @BaseService.measure_operation("sweep_stale_reservations")
    def sweep_stale_reservations(
        self, grace_minutes: Optional[int] = None, now: Optional[datetime] = None
    ) -> SweepReport:
        """
        Reclaim reservations whose payment never completed.

        For every UNPAID payment older than the grace period: delete the
        payment, delete its appointment while still PENDING_PAYMENT and
        release the slot. Appointments that never got a payment row are
        reclaimed the same way.
        """
        grace = settings.reservation_grace_minutes if grace_minutes is None else grace_minutes
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(minutes=grace)
        report = SweepReport(sweep=SWEEP_STALE_RESERVATIONS)

        for payment_id in self.payment_repository.find_stale_unpaid_ids(cutoff, self.batch_limit):
            report.examined += 1
            try:
                reclaimed = self._reclaim_payment(payment_id)
            except Exception as exc:
                self.logger.error(
                    "Failed to reclaim reservation for payment %s: %s",
                    payment_id,
                    exc,
                    extra={"evt": "sweep_item_failed", "sweep": report.sweep},
                )
                report.count("failed")
                continue
            report.count("reclaimed" if reclaimed else "skipped")

        for appointment_id in self.appointment_repository.find_orphaned_pending_ids(
            cutoff, self.batch_limit
        ):
            report.examined += 1
            try:
                reclaimed = self._reclaim_orphan(appointment_id)
            except Exception as exc:
                self.logger.error(
                    "Failed to reclaim orphaned appointment %s: %s",
                    appointment_id,
                    exc,
                    extra={"evt": "sweep_item_failed", "sweep": report.sweep},
                )
                report.count("failed")
                continue
            report.count("reclaimed" if reclaimed else "skipped")

        self.log_operation("sweep_stale_reservations", **report.to_dict())
        return report

    def _reclaim_payment(self, payment_id: int) -> bool:
        with self.transaction():
            payment = self.payment_repository.get_by_id(payment_id, load_relationships=False)
            if payment is None or payment.status != PaymentStatus.UNPAID.value:
                return False
            appointment_id = payment.appointment_id
            # Claim the payment first; a callback that settled it wins
            if not self.payment_repository.delete_if_unpaid(payment_id):
                return False
            if appointment_id is None:
                return True
            appointment = self.appointment_repository.get_by_id(
                appointment_id, load_relationships=False
            )
            if appointment is not None and self.appointment_repository.delete_if_pending(
                appointment_id
            ):
                self.slot_repository.release_for_appointment(appointment)
        self.logger.info("Reclaimed stale reservation for payment %s", payment_id)
        return True

    def _reclaim_orphan(self, appointment_id: int) -> bool:
        with self.transaction():
            appointment = self.appointment_repository.get_by_id(
                appointment_id, load_relationships=False
            )
            if appointment is None:
                return False
            if not self.appointment_repository.delete_if_pending(appointment_id):
                return False
            self.slot_repository.release_for_appointment(appointment)
        self.logger.info("Reclaimed appointment %s that never got a payment", appointment_id)
        return True

    @BaseService.measure_operation("sweep_expired_slots")
    def sweep_expired_slots(self, now: Optional[datetime] = None) -> SweepReport:
        """Delete slots that have ended and are not RESERVED."""
        moment = now or datetime.now(timezone.utc)
        report = SweepReport(sweep=SWEEP_EXPIRED_SLOTS)

        for slot_id in self.slot_repository.find_expired_unreserved_ids(moment, self.batch_limit):
            report.examined += 1
            try:
                with self.transaction():
                    deleted = self.slot_repository.delete_unreserved(slot_id)
            except Exception as exc:
                self.logger.error(
                    "Failed to delete expired slot %s: %s",
                    slot_id,
                    exc,
                    extra={"evt": "sweep_item_failed", "sweep": report.sweep},
                )
                report.count("failed")
                continue
            report.count("reclaimed" if deleted else "skipped")

        self.log_operation("sweep_expired_slots", **report.to_dict())
        return report

    @BaseService.measure_operation("reconcile_refund_attempts")
    def reconcile_refund_attempts(
        self, grace_minutes: Optional[int] = None, now: Optional[datetime] = None
    ) -> SweepReport:
        """
        Finish refunds whose local bookkeeping was interrupted.

        SUCCEEDED attempts are applied to their still-PAID payment.
        REQUESTED attempts older than the grace period never got a gateway
        answer and are marked FAILED for operator review.
        """
        grace = settings.reservation_grace_minutes if grace_minutes is None else grace_minutes
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(minutes=grace)
        report = SweepReport(sweep=SWEEP_REFUND_ATTEMPTS)

        for attempt in self.payment_repository.list_unsettled_refund_attempts(self.batch_limit):
            report.examined += 1
            try:
                changed = self._reconcile_attempt(attempt, cutoff)
            except Exception as exc:
                self.logger.error(
                    "Failed to reconcile refund attempt %s: %s",
                    attempt.idempotency_key,
                    exc,
                    extra={"evt": "sweep_item_failed", "sweep": report.sweep},
                )
                report.count("failed")
                continue
            report.count("reclaimed" if changed else "skipped")

        self.log_operation("reconcile_refund_attempts", **report.to_dict())
        return report

    def _reconcile_attempt(self, attempt: RefundAttempt, cutoff: datetime) -> bool:
        with self.transaction():
            if attempt.status == RefundAttemptStatus.SUCCEEDED.value:
                moved = self.payment_repository.update_status_if(
                    attempt.payment_id,
                    PaymentStatus.PAID,
                    PaymentStatus.REFUNDED,
                    refunded_at=datetime.now(timezone.utc),
                )
                attempt.status = RefundAttemptStatus.APPLIED.value
                if moved:
                    self.logger.info("Applied refund %s to payment", attempt.idempotency_key)
                return True

            if ensure_utc(attempt.created_at) < cutoff:
                attempt.status = RefundAttemptStatus.FAILED.value
                attempt.error = "No gateway response recorded; check the gateway dashboard"
                self.logger.warning(
                    "Refund attempt %s timed out without a gateway answer",
                    attempt.idempotency_key,
                )
                return True
        return False
