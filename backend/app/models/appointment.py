# backend/app/models/appointment.py
"""
Appointment model for the Medtik platform.

An appointment is created in PENDING_PAYMENT by the reservation flow and
only becomes CONFIRMED once a verified payment callback arrives. The
slot's time window is copied onto the appointment so the booking stays
readable after the slot row is swept, while ``slot_id`` keeps the
explicit link used to release the slot.
"""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class AppointmentStatus(str, Enum):
    """Appointment lifecycle statuses."""

    PENDING_PAYMENT = "PENDING_PAYMENT"  # Slot held, waiting for the gateway
    CONFIRMED = "CONFIRMED"  # Paid
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"
    NO_SHOW = "NO_SHOW"


class Appointment(Base):
    """Patient booking against a doctor slot."""

    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    slot_id = Column(Integer, ForeignKey("doctor_slots.id", ondelete="SET NULL"), nullable=True)

    appointment_type = Column(String(10), nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)

    status = Column(
        String(20), nullable=False, default=AppointmentStatus.PENDING_PAYMENT.value, index=True
    )
    notes = Column(Text, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    doctor = relationship("Doctor")
    patient = relationship("Patient")
    slot = relationship("DoctorSlot")
    payment = relationship("Payment", back_populates="appointment", uselist=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING_PAYMENT', 'CONFIRMED', 'CANCELLED', 'COMPLETED', 'NO_SHOW')",
            name="ck_appointments_status",
        ),
        CheckConstraint(
            "appointment_type IN ('CHAT', 'VOICE', 'VIDEO')",
            name="ck_appointments_type",
        ),
        Index("ix_appointments_doctor_window", "doctor_id", "start_time", "end_time"),
    )

    def __repr__(self) -> str:
        return (
            f"<Appointment {self.id}: patient={self.patient_id}, doctor={self.doctor_id}, "
            f"type={self.appointment_type}, status={self.status}>"
        )
