# backend/app/schemas/__init__.py
"""
Pydantic schemas for the Medtik platform.
"""

from .appointment import (
    AppointmentResponse,
    CancelAppointmentRequest,
    CancellationResponse,
    PaymentSummary,
    ReservationResponse,
    ReserveSlotRequest,
)
from .main_responses import HealthLiteResponse, HealthResponse
from .payment_schemas import WebhookResponse
from .slot import BookableSlotResponse, SlotCreate, SlotListResponse, SlotResponse

__all__ = [
    # Appointments
    "ReserveSlotRequest",
    "CancelAppointmentRequest",
    "AppointmentResponse",
    "PaymentSummary",
    "ReservationResponse",
    "CancellationResponse",
    # Slots
    "SlotCreate",
    "SlotResponse",
    "BookableSlotResponse",
    "SlotListResponse",
    # Service
    "HealthResponse",
    "HealthLiteResponse",
    "WebhookResponse",
]
