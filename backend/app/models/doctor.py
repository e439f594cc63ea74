# backend/app/models/doctor.py
"""
Doctor profile and pricing models.

Doctors price each consultation service per currency; a patient's
country decides which currency row applies to them.
"""

from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class ServiceType(str, Enum):
    """Consultation channels a slot can be booked for."""

    CHAT = "CHAT"
    VOICE = "VOICE"
    VIDEO = "VIDEO"


class Doctor(Base):
    """Doctor profile with the cancellation/refund policy patients see."""

    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, unique=True, index=True)
    full_name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True)

    cancellation_policy = Column(Text, nullable=True)
    refund_policy = Column(Text, nullable=True)
    # Minimum hours before the appointment for a cancellation to be refunded
    refund_policy_hours = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    pricing = relationship("DoctorPricing", back_populates="doctor", cascade="all, delete-orphan")
    slots = relationship("DoctorSlot", back_populates="doctor", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint(
            "refund_policy_hours IS NULL OR refund_policy_hours >= 0",
            name="ck_doctors_refund_policy_hours",
        ),
    )

    def __repr__(self) -> str:
        return f"<Doctor {self.id}: {self.full_name}>"


class DoctorPricing(Base):
    """Price of one service in one currency for one doctor."""

    __tablename__ = "doctor_pricing"

    id = Column(Integer, primary_key=True, autoincrement=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False)
    service = Column(String(10), nullable=False)
    currency = Column(String(3), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)

    doctor = relationship("Doctor", back_populates="pricing")

    __table_args__ = (
        UniqueConstraint("doctor_id", "service", "currency", name="uq_doctor_pricing_service_currency"),
        CheckConstraint("service IN ('CHAT', 'VOICE', 'VIDEO')", name="ck_doctor_pricing_service"),
        CheckConstraint("price >= 0", name="ck_doctor_pricing_price_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<DoctorPricing doctor={self.doctor_id} {self.service} {self.price} {self.currency}>"
