"""
Payment Repository for the Medtik platform

Implements data access for Paymob-backed appointment payments and the
refund attempts made against them.

This repository handles:
- Payment record creation and lookup
- Conditional status transitions (only UNPAID rows can be settled)
- Stale reservation discovery for the sweep
- Refund attempt bookkeeping
"""

from datetime import datetime
import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.payment import Payment, PaymentStatus, RefundAttempt, RefundAttemptStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class PaymentRepository(BaseRepository[Payment]):
    """
    Repository for payment data access.

    Status changes go through ``update_status_if`` so a callback and the
    sweep racing on the same row resolve to exactly one winner.
    """

    def __init__(self, db: Session):
        super().__init__(db, Payment)
        self.logger = logging.getLogger(__name__)

    # ========== Payments ==========

    def update_status_if(
        self,
        payment_id: int,
        expected: PaymentStatus,
        target: PaymentStatus,
        **values,
    ) -> bool:
        """
        Move a payment from ``expected`` to ``target`` in one statement.

        Returns:
            True if this call performed the transition, False if another
            writer got there first or the payment no longer exists.
        """
        changes = {Payment.status: target.value}
        for key, value in values.items():
            changes[getattr(Payment, key)] = value
        try:
            updated = (
                self.db.query(Payment)
                .filter(Payment.id == payment_id, Payment.status == expected.value)
                .update(changes, synchronize_session="fetch")
            )
            return int(updated) == 1
        except IntegrityError as e:
            # gateway_transaction_id is unique; a replay under another payment lands here
            self.logger.error(f"Integrity error moving payment {payment_id}: {str(e)}")
            raise RepositoryException(f"Failed to update payment {payment_id}: {str(e)}")
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to update payment {payment_id}: {str(e)}")
            raise RepositoryException(f"Failed to update payment {payment_id}: {str(e)}")

    def list_for_patient(self, patient_id: int, limit: int = 50) -> List[Payment]:
        """Payments made by the patient, newest first."""
        return self._list_history(Payment.patient_id == patient_id, limit)

    def list_for_doctor(self, doctor_id: int, limit: int = 50) -> List[Payment]:
        """Payments taken for the doctor's appointments, newest first."""
        return self._list_history(Payment.doctor_id == doctor_id, limit)

    def _list_history(self, criterion, limit: int) -> List[Payment]:
        query = (
            self._build_query()
            .filter(criterion)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .limit(limit)
        )
        return self._execute_query(query)

    def find_stale_unpaid_ids(self, cutoff: datetime, limit: int) -> List[int]:
        """Ids of UNPAID payments created before ``cutoff``, oldest first."""
        try:
            rows = (
                self.db.query(Payment.id)
                .filter(
                    Payment.status == PaymentStatus.UNPAID.value,
                    Payment.created_at < cutoff,
                )
                .order_by(Payment.created_at)
                .limit(limit)
                .all()
            )
            return [row[0] for row in rows]
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to list stale payments: {str(e)}")
            raise RepositoryException(f"Failed to list stale payments: {str(e)}")

    def delete_if_unpaid(self, payment_id: int) -> bool:
        try:
            deleted = (
                self.db.query(Payment)
                .filter(Payment.id == payment_id, Payment.status == PaymentStatus.UNPAID.value)
                .delete(synchronize_session="fetch")
            )
            return bool(deleted)
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to delete payment {payment_id}: {str(e)}")
            raise RepositoryException(f"Failed to delete payment: {str(e)}")

    # ========== Refund Attempts ==========

    def get_refund_attempt(self, idempotency_key: str) -> Optional[RefundAttempt]:
        return (
            self.db.query(RefundAttempt)
            .filter(RefundAttempt.idempotency_key == idempotency_key)
            .first()
        )

    def create_refund_attempt(
        self, payment_id: int, idempotency_key: str, amount_cents: int
    ) -> RefundAttempt:
        try:
            attempt = RefundAttempt(
                payment_id=payment_id,
                idempotency_key=idempotency_key,
                amount_cents=amount_cents,
                status=RefundAttemptStatus.REQUESTED.value,
            )
            self.db.add(attempt)
            self.db.flush()
            return attempt
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to record refund attempt {idempotency_key}: {str(e)}")
            raise RepositoryException(f"Failed to record refund attempt: {str(e)}")

    def list_unsettled_refund_attempts(self, limit: int) -> List[RefundAttempt]:
        """Attempts still REQUESTED or SUCCEEDED (not yet applied locally)."""
        return (
            self.db.query(RefundAttempt)
            .filter(
                RefundAttempt.status.in_(
                    [RefundAttemptStatus.REQUESTED.value, RefundAttemptStatus.SUCCEEDED.value]
                )
            )
            .order_by(RefundAttempt.created_at)
            .limit(limit)
            .all()
        )
