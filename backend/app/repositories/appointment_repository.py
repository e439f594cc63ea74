# backend/app/repositories/appointment_repository.py
"""Data access for appointments."""

from datetime import datetime
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload

from ..core.exceptions import RepositoryException
from ..models.appointment import Appointment, AppointmentStatus
from ..models.payment import Payment
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AppointmentRepository(BaseRepository[Appointment]):
    def __init__(self, db: Session):
        super().__init__(db, Appointment)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            joinedload(Appointment.payment),
            joinedload(Appointment.doctor),
        )

    def get_for_patient(self, appointment_id: int, patient_id: int) -> Optional[Appointment]:
        """Appointment if it exists and belongs to the patient."""
        try:
            return (
                self._apply_eager_loading(self._build_query())
                .filter(Appointment.id == appointment_id, Appointment.patient_id == patient_id)
                .first()
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load appointment %s: %s", appointment_id, str(exc))
            raise RepositoryException("Failed to load appointment") from exc

    def list_for_patient(
        self, patient_id: int, status: Optional[str] = None, limit: int = 50
    ) -> List[Appointment]:
        """The patient's appointments, latest start first, with doctor and payment loaded."""
        query = self._apply_eager_loading(self._build_query()).filter(
            Appointment.patient_id == patient_id
        )
        if status:
            query = query.filter(Appointment.status == status)
        query = query.order_by(Appointment.start_time.desc(), Appointment.id.desc()).limit(limit)
        return self._execute_query(query)

    def get_status(self, appointment_id: int) -> Optional[str]:
        """Status as currently stored, bypassing the session's cached instance."""
        row = self.db.query(Appointment.status).filter(Appointment.id == appointment_id).first()
        return row[0] if row is not None else None

    def update_status_if(
        self, appointment_id: int, expected: AppointmentStatus, target: AppointmentStatus, **values
    ) -> bool:
        """Conditional status update; False when the row moved on already."""
        changes = {Appointment.status: target.value}
        for key, value in values.items():
            changes[getattr(Appointment, key)] = value
        try:
            updated = (
                self.db.query(Appointment)
                .filter(Appointment.id == appointment_id, Appointment.status == expected.value)
                .update(changes, synchronize_session="fetch")
            )
            return int(updated) == 1
        except SQLAlchemyError as exc:
            self.logger.error(
                "Failed to move appointment %s to %s: %s", appointment_id, target.value, str(exc)
            )
            raise RepositoryException("Failed to update appointment status") from exc

    def delete_if_pending(self, appointment_id: int) -> bool:
        """Remove an appointment only while it is still waiting for payment."""
        appointment = (
            self._build_query()
            .filter(
                Appointment.id == appointment_id,
                Appointment.status == AppointmentStatus.PENDING_PAYMENT.value,
            )
            .first()
        )
        if appointment is None:
            return False
        try:
            self.db.delete(appointment)
            self.db.flush()
            return True
        except SQLAlchemyError as exc:
            self.logger.error("Failed to delete appointment %s: %s", appointment_id, str(exc))
            raise RepositoryException("Failed to delete appointment") from exc

    def find_orphaned_pending_ids(self, cutoff: datetime, limit: int) -> List[int]:
        """PENDING_PAYMENT appointments older than ``cutoff`` that never got a payment row."""
        rows = (
            self.db.query(Appointment.id)
            .outerjoin(Payment, Payment.appointment_id == Appointment.id)
            .filter(
                Payment.id.is_(None),
                Appointment.status == AppointmentStatus.PENDING_PAYMENT.value,
                Appointment.created_at < cutoff,
            )
            .order_by(Appointment.created_at)
            .limit(limit)
            .all()
        )
        return [row[0] for row in rows]
