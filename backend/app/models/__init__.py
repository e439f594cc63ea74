"""
Database models for the Medtik platform.

This module exports all SQLAlchemy models used in the application:
- Doctor profiles, pricing and slots
- Patients
- Appointments and their payments / refund attempts
- In-app notifications and the webhook ledger
"""

from .appointment import Appointment, AppointmentStatus
from .doctor import Doctor, DoctorPricing, ServiceType
from .notification import Notification
from .patient import Patient
from .payment import Payment, PaymentStatus, RefundAttempt, RefundAttemptStatus
from .slot import DoctorSlot, SlotStatus
from .webhook_event import WebhookEvent

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "Doctor",
    "DoctorPricing",
    "DoctorSlot",
    "Notification",
    "Patient",
    "Payment",
    "PaymentStatus",
    "RefundAttempt",
    "RefundAttemptStatus",
    "ServiceType",
    "SlotStatus",
    "WebhookEvent",
]
