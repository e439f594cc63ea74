"""
Payment models for the Paymob integration.

This module defines the payment record tied 1:1 to an appointment and
the refund attempts made against it. Payments outlive their appointment
once they carry audit value (FAILED, PAID, REFUNDED).
"""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class PaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class RefundAttemptStatus(str, Enum):
    REQUESTED = "REQUESTED"  # Sent to the gateway, no answer recorded yet
    SUCCEEDED = "SUCCEEDED"  # Gateway accepted; payment row may still need updating
    APPLIED = "APPLIED"  # Payment marked REFUNDED locally
    FAILED = "FAILED"


class Payment(Base):
    """Money movement for one appointment, amount in the settlement currency."""

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    appointment_id = Column(
        Integer,
        ForeignKey("appointments.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)

    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    original_amount = Column(Numeric(12, 2), nullable=True)
    original_currency = Column(String(3), nullable=True)

    status = Column(String(20), nullable=False, default=PaymentStatus.UNPAID.value, index=True)

    merchant_order_id = Column(String(64), nullable=True, unique=True)
    gateway_order_id = Column(String(64), nullable=True)
    gateway_transaction_id = Column(String(64), nullable=True, unique=True)
    checkout_url = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now_utc)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    paid_at = Column(DateTime(timezone=True), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)

    appointment = relationship("Appointment", back_populates="payment")
    refund_attempts = relationship("RefundAttempt", back_populates="payment")

    __table_args__ = (
        CheckConstraint(
            "status IN ('UNPAID', 'PAID', 'FAILED', 'REFUNDED')",
            name="ck_payments_status",
        ),
        CheckConstraint("amount >= 0", name="ck_payments_amount_non_negative"),
        Index("ix_payments_status_created", "status", "created_at"),
    )

    @property
    def amount_cents(self) -> int:
        return int((self.amount * 100).to_integral_value())

    def __repr__(self) -> str:
        return (
            f"<Payment {self.id}: appointment={self.appointment_id}, "
            f"amount={self.amount} {self.currency}, status={self.status}>"
        )


class RefundAttempt(Base):
    """Refund request sent to the gateway, keyed for idempotent reconciliation."""

    __tablename__ = "refund_attempts"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    payment_id = Column(Integer, ForeignKey("payments.id"), nullable=False, index=True)
    idempotency_key = Column(String(64), nullable=False, unique=True)
    amount_cents = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=RefundAttemptStatus.REQUESTED.value)
    gateway_reference = Column(String(64), nullable=True)
    error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now_utc)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    payment = relationship("Payment", back_populates="refund_attempts")

    __table_args__ = (
        CheckConstraint(
            "status IN ('REQUESTED', 'SUCCEEDED', 'APPLIED', 'FAILED')",
            name="ck_refund_attempts_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<RefundAttempt {self.idempotency_key}: {self.status}>"
