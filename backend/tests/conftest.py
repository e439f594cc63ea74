# backend/tests/conftest.py
"""
Pytest configuration for the Medtik backend.

Every test gets its own in-memory SQLite database with all tables created,
so services can commit freely without leaking state between tests.
"""

import os

# Set test configuration BEFORE any app imports
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["PAYMOB_HMAC"] = "test-hmac-secret"
os.environ.pop("PAYMOB_API_KEY", None)

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable, Optional
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.database import Base

# Import models so Base.metadata is populated for create_all.
import app.models  # noqa: F401
from app.integrations.paymob_client import FakePaymobClient
from app.models.doctor import Doctor, DoctorPricing
from app.models.patient import Patient
from app.models.slot import DoctorSlot, SlotStatus
from app.services.currency_service import CurrencyService
from app.services.pricing_service import PricingService
from app.services.reservation_service import ReservationService


TEST_HMAC_SECRET = "test-hmac-secret"

# One settlement unit (EGP) buys this many units of each source currency
TEST_RATES = {"EGP": 1.0, "USD": 0.02, "AED": 0.075, "SAR": 0.08}


@pytest.fixture
def unit_engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(unit_engine):
    return sessionmaker(bind=unit_engine, autoflush=False, expire_on_commit=False, future=True)


@pytest.fixture
def unit_db(session_factory) -> Session:
    """Session on a fresh database; services commit through it like in production."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def rates_client():
    client = MagicMock()
    client.latest.return_value = dict(TEST_RATES)
    return client


@pytest.fixture
def currency_service(rates_client) -> CurrencyService:
    return CurrencyService(
        rates_client,
        settlement_currency="EGP",
        supported_currencies=("USD", "AED", "SAR"),
        ttl_seconds=3600,
    )


@pytest.fixture
def gateway() -> FakePaymobClient:
    return FakePaymobClient(iframe_url="https://pay.test/iframes/42")


@pytest.fixture
def pricing_service(unit_db, currency_service) -> PricingService:
    return PricingService(unit_db, currency_service)


@pytest.fixture
def reservation_service(unit_db, pricing_service, gateway) -> ReservationService:
    return ReservationService(unit_db, pricing_service, gateway)


@pytest.fixture
def doctor(unit_db) -> Doctor:
    doctor = Doctor(
        user_id=1001,
        full_name="Dr. Salma Nabil",
        email="salma@example.com",
        refund_policy_hours=24,
    )
    unit_db.add(doctor)
    unit_db.flush()
    unit_db.add_all(
        [
            DoctorPricing(doctor_id=doctor.id, service="CHAT", currency="EGP", price=Decimal("300.00")),
            DoctorPricing(doctor_id=doctor.id, service="VIDEO", currency="EGP", price=Decimal("500.00")),
            DoctorPricing(doctor_id=doctor.id, service="CHAT", currency="USD", price=Decimal("10.00")),
        ]
    )
    unit_db.commit()
    return doctor


@pytest.fixture
def patient(unit_db) -> Patient:
    patient = Patient(user_id=2001, full_name="Omar Adel", email="omar@example.com", country="Egypt")
    unit_db.add(patient)
    unit_db.commit()
    return patient


@pytest.fixture
def other_patient(unit_db) -> Patient:
    patient = Patient(user_id=2002, full_name="Mona Samir", email="mona@example.com", country="USA")
    unit_db.add(patient)
    unit_db.commit()
    return patient


@pytest.fixture
def make_slot(unit_db, doctor) -> Callable[..., DoctorSlot]:
    """Create a committed slot ``days_ahead`` days out, 30 minutes long."""

    def _make(
        *,
        days_ahead: float = 2,
        hour: int = 10,
        minutes: int = 30,
        chat: bool = True,
        voice: bool = False,
        video: bool = True,
        status: str = SlotStatus.AVAILABLE.value,
        doctor_id: Optional[int] = None,
        start: Optional[datetime] = None,
    ) -> DoctorSlot:
        if start is None:
            base = datetime.now(timezone.utc) + timedelta(days=days_ahead)
            start = base.replace(hour=hour, minute=0, second=0, microsecond=0)
        slot = DoctorSlot(
            doctor_id=doctor_id or doctor.id,
            date=start.date(),
            start_time=start,
            end_time=start + timedelta(minutes=minutes),
            chat=chat,
            voice=voice,
            video=video,
            status=status,
        )
        unit_db.add(slot)
        unit_db.commit()
        return slot

    return _make


@pytest.fixture
def slot(make_slot) -> DoctorSlot:
    return make_slot()
