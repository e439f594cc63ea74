"""Lookups for doctors, patients and per-currency service prices."""

from typing import Optional

from sqlalchemy.orm import Session

from ..models.doctor import Doctor, DoctorPricing
from ..models.patient import Patient
from .base_repository import BaseRepository


class PricingRepository(BaseRepository[DoctorPricing]):
    def __init__(self, db: Session):
        super().__init__(db, DoctorPricing)

    def get_price(self, doctor_id: int, service: str, currency: str) -> Optional[DoctorPricing]:
        return (
            self._build_query()
            .filter(
                DoctorPricing.doctor_id == doctor_id,
                DoctorPricing.service == service,
                DoctorPricing.currency == currency,
            )
            .first()
        )

    def offered_services(self, doctor_id: int) -> set[str]:
        rows = (
            self.db.query(DoctorPricing.service)
            .filter(DoctorPricing.doctor_id == doctor_id)
            .distinct()
            .all()
        )
        return {row[0] for row in rows}

    def get_doctor_by_user_id(self, user_id: int) -> Optional[Doctor]:
        return self.db.query(Doctor).filter(Doctor.user_id == user_id).first()

    def get_patient(self, patient_id: int) -> Optional[Patient]:
        return self.db.get(Patient, patient_id)

    def get_patient_by_user_id(self, user_id: int) -> Optional[Patient]:
        return self.db.query(Patient).filter(Patient.user_id == user_id).first()
