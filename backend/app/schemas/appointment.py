# backend/app/schemas/appointment.py
"""
Appointment reservation and cancellation schemas.
"""

import datetime as dt
from decimal import Decimal
from typing import List, Optional

from pydantic import ConfigDict, Field, field_validator

from ..core.constants import MAX_REASON_LENGTH
from ._strict_base import StrictModel, StrictRequestModel

# ========== Request Models ==========


class ReserveSlotRequest(StrictRequestModel):
    """Patient asks to hold a slot for one service type."""

    slot_id: int = Field(..., ge=1, description="Slot to reserve")
    service_type: str = Field(..., description="CHAT, VOICE or VIDEO (case-insensitive)")
    patient_country: Optional[str] = Field(
        None,
        max_length=64,
        description="Country used for price lookup; defaults to the patient's profile",
    )

    @field_validator("service_type")
    @classmethod
    def _strip_service_type(cls, value: str) -> str:
        return value.strip()


class CancelAppointmentRequest(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=MAX_REASON_LENGTH)


# ========== Response Models ==========


class AppointmentResponse(StrictModel):
    model_config = ConfigDict(from_attributes=True, extra="forbid", validate_assignment=True)

    id: int
    doctor_id: int
    patient_id: int
    slot_id: Optional[int] = None
    appointment_type: str
    date: dt.date
    start_time: dt.datetime
    end_time: dt.datetime
    status: str
    cancelled_at: Optional[dt.datetime] = None


class PaymentSummary(StrictModel):
    model_config = ConfigDict(from_attributes=True, extra="forbid", validate_assignment=True)

    id: int
    amount: Decimal = Field(..., description="Amount in the settlement currency")
    currency: str
    original_amount: Optional[Decimal] = None
    original_currency: Optional[str] = None
    status: str


class ReservationResponse(StrictModel):
    """Held appointment plus the hosted checkout to complete payment."""

    appointment: AppointmentResponse
    payment: PaymentSummary
    checkout_url: str


class CancellationResponse(StrictModel):
    appointment: AppointmentResponse
    refund_status: str = Field(
        ..., description="not_applicable, not_eligible, refunded or failed"
    )


class DoctorSummary(StrictModel):
    model_config = ConfigDict(from_attributes=True, extra="forbid", validate_assignment=True)

    id: int
    full_name: str
    email: Optional[str] = None


class AppointmentHistoryItem(AppointmentResponse):
    notes: Optional[str] = None
    doctor: Optional[DoctorSummary] = None
    payment: Optional[PaymentSummary] = None


class AppointmentListResponse(StrictModel):
    appointments: List[AppointmentHistoryItem]
    total: int
