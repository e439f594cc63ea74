# backend/app/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .auth import CurrentUser, get_current_doctor, get_current_patient, get_current_user
from .database import get_db
from .services import (
    get_cancellation_service,
    get_currency_service,
    get_notification_service,
    get_payment_callback_service,
    get_payment_gateway,
    get_pricing_service,
    get_reservation_service,
    get_slot_service,
)

__all__ = [
    # Auth
    "CurrentUser",
    "get_current_user",
    "get_current_patient",
    "get_current_doctor",
    # Database
    "get_db",
    # Services
    "get_currency_service",
    "get_payment_gateway",
    "get_notification_service",
    "get_slot_service",
    "get_pricing_service",
    "get_reservation_service",
    "get_cancellation_service",
    "get_payment_callback_service",
]
