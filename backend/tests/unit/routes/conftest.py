"""Shared fixtures for API route tests."""

from fastapi.testclient import TestClient
import pytest

from app.api.dependencies.database import get_db
from app.api.dependencies.services import get_currency_service, get_payment_gateway
from app.main import app


@pytest.fixture
def client(unit_db, gateway, currency_service):
    def _get_db():
        yield unit_db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_currency_service] = lambda: currency_service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def patient_headers(patient):
    return {"X-User-Id": str(patient.user_id), "X-User-Role": "patient"}


@pytest.fixture
def doctor_headers(doctor):
    return {"X-User-Id": str(doctor.user_id), "X-User-Role": "doctor"}
