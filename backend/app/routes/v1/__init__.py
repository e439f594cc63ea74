# backend/app/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import appointments, doctors, health, payments, prometheus

__all__ = [
    "appointments",
    "doctors",
    "health",
    "payments",
    "prometheus",
]
