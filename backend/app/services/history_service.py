# backend/app/services/history_service.py
"""
Read-only appointment and payment history for patients and doctors.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.constants import DEFAULT_HISTORY_LIMIT, MAX_HISTORY_LIMIT
from ..core.exceptions import ValidationException
from ..models.appointment import Appointment, AppointmentStatus
from ..models.payment import Payment
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


def _clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return DEFAULT_HISTORY_LIMIT
    return max(1, min(int(limit), MAX_HISTORY_LIMIT))


class HistoryService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.appointment_repository = RepositoryFactory.create_appointment_repository(db)
        self.payment_repository = RepositoryFactory.create_payment_repository(db)

    @BaseService.measure_operation("list_patient_appointments")
    def list_patient_appointments(
        self, patient_id: int, status: Optional[str] = None, limit: Optional[int] = None
    ) -> List[Appointment]:
        """
        Appointments booked by the patient, latest first.

        Args:
            patient_id: Patient profile id
            status: Only appointments in this status (case-insensitive)
            limit: Page size, capped at MAX_HISTORY_LIMIT

        Raises:
            ValidationException: Unknown status
        """
        wanted = None
        if status:
            wanted = status.strip().upper()
            if wanted not in {s.value for s in AppointmentStatus}:
                raise ValidationException(
                    f"Unknown appointment status: {status}", code="INVALID_STATUS"
                )
        return self.appointment_repository.list_for_patient(
            patient_id, status=wanted, limit=_clamp_limit(limit)
        )

    @BaseService.measure_operation("list_patient_payments")
    def list_patient_payments(self, patient_id: int, limit: Optional[int] = None) -> List[Payment]:
        return self.payment_repository.list_for_patient(patient_id, limit=_clamp_limit(limit))

    @BaseService.measure_operation("list_doctor_payments")
    def list_doctor_payments(self, doctor_id: int, limit: Optional[int] = None) -> List[Payment]:
        return self.payment_repository.list_for_doctor(doctor_id, limit=_clamp_limit(limit))
