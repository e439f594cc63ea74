# backend/app/repositories/__init__.py
"""
Repository Pattern Implementation for the Medtik platform

This package provides the repository layer for data access,
separating business logic from database queries.

Key Components:
- BaseRepository: Foundation for all repositories with generic CRUD operations
- IRepository: Interface defining required methods for all repositories
- RepositoryFactory: Factory for creating repository instances
- SlotRepository: Doctor slots and their conditional status updates
- AppointmentRepository: Appointment lookups and guarded transitions
- PaymentRepository: Payments and refund attempts
- PricingRepository: Doctor prices and profile lookups
- NotificationRepository: In-app notification rows
- WebhookEventRepository: Gateway callback ledger

Usage:
    from app.repositories import RepositoryFactory

    # In a service:
    slot_repository = RepositoryFactory.create_slot_repository(db)
    reserved = slot_repository.reserve(slot_id)
"""

from .appointment_repository import AppointmentRepository
from .base_repository import BaseRepository, IRepository
from .factory import RepositoryFactory
from .notification_repository import NotificationRepository
from .payment_repository import PaymentRepository
from .pricing_repository import PricingRepository
from .slot_repository import SlotRepository
from .webhook_event_repository import WebhookEventRepository

__all__ = [
    "AppointmentRepository",
    "BaseRepository",
    "IRepository",
    "NotificationRepository",
    "PaymentRepository",
    "PricingRepository",
    "RepositoryFactory",
    "SlotRepository",
    "WebhookEventRepository",
]
