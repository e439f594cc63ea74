"""Application-wide constants for the Medtik platform."""

from __future__ import annotations

BRAND_NAME = "Medtik"
API_VERSION = "1.0.0"
API_TITLE = f"{BRAND_NAME} API"
API_DESCRIPTION = f"Backend API for {BRAND_NAME} - appointment reservations and payments"

# Gateway
PAYMOB_WEBHOOK_SOURCE = "paymob"
MERCHANT_ORDER_PREFIX = "PAY"

# Notification types
NOTIFICATION_APPOINTMENT_CONFIRMED = "APPOINTMENT_CONFIRMED"
NOTIFICATION_APPOINTMENT_BOOKED = "APPOINTMENT_BOOKED"
NOTIFICATION_APPOINTMENT_CANCELLED = "APPOINTMENT_CANCELLED"
NOTIFICATION_PAYMENT_REFUNDED = "PAYMENT_REFUNDED"

# Text constraints
MAX_REASON_LENGTH = 255
MAX_NOTES_LENGTH = 1000

# Query limits
SWEEP_BATCH_LIMIT = 500
DEFAULT_HISTORY_LIMIT = 50
MAX_HISTORY_LIMIT = 200
