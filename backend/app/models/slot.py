# backend/app/models/slot.py
"""
Doctor slot model.

A slot is a bookable window on a doctor's calendar. Its status is the
single point of mutual exclusion for reservations: every transition
AVAILABLE <-> RESERVED goes through a conditional UPDATE in
SlotRepository, never a read-modify-write on a loaded instance.
"""

from enum import Enum

from sqlalchemy import (
    Boolean,
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


class SlotStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"


class DoctorSlot(Base):
    """Bookable time window; start/end are stored in UTC."""

    __tablename__ = "doctor_slots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)

    chat = Column(Boolean, nullable=False, default=False)
    voice = Column(Boolean, nullable=False, default=False)
    video = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default=SlotStatus.AVAILABLE.value)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    doctor = relationship("Doctor", back_populates="slots")

    __table_args__ = (
        CheckConstraint("status IN ('AVAILABLE', 'RESERVED')", name="ck_doctor_slots_status"),
        CheckConstraint("start_time < end_time", name="ck_doctor_slots_time_order"),
        Index("ix_doctor_slots_doctor_date", "doctor_id", "date"),
        Index("ix_doctor_slots_status_end", "status", "end_time"),
    )

    def offers(self, service_type: str) -> bool:
        """Whether this slot was opened for the given consultation channel."""
        value = getattr(service_type, "value", service_type)
        return bool(getattr(self, str(value).lower(), False))

    def __repr__(self) -> str:
        return (
            f"<DoctorSlot {self.id}: doctor={self.doctor_id}, "
            f"{self.start_time}-{self.end_time}, status={self.status}>"
        )
