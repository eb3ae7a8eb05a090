"""Shared pytest fixtures."""

import os

# Keep the module-level engine off the filesystem; tests use their own engine below
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clinic_app import models_invoice  # noqa: F401
from clinic_app.database import Base, get_db
from clinic_app.domain.billing.gateway import GatewayOrder, GatewayPayment
from clinic_app.domain.billing.reconciliation_service import SettlementReconciler
from clinic_app.domain.billing.router import get_gateway, get_reconciler
from clinic_app.exceptions import PaymentNotFound
from clinic_app.models import (
    STATE_UNPAID,
    Appointment,
    AppointmentType,
    Patient,
    Practitioner,
    ScheduleTemplate,
)

# 2024-03-04 is a Monday (weekday ordinal 1)
MONDAY = date(2024, 3, 4)


class Seeder:
    """Creates committed rows with sensible defaults"""

    def __init__(self, db):
        self.db = db

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def practitioner(self, specialty="cardiology", first_name="Ana", last_name="Rojas", **kwargs):
        return self._save(
            Practitioner(first_name=first_name, last_name=last_name, specialty=specialty, **kwargs)
        )

    def patient(self, email="patient@example.com", insurance_tier=None, insurance_verified=False, **kwargs):
        return self._save(
            Patient(
                first_name=kwargs.pop("first_name", "Pedro"),
                last_name=kwargs.pop("last_name", "Soto"),
                email=email,
                insurance_tier=insurance_tier,
                insurance_verified=insurance_verified,
                **kwargs,
            )
        )

    def appointment_type(self, specialty="cardiology", duration_minutes=30, price=10000, **kwargs):
        return self._save(
            AppointmentType(
                name=kwargs.pop("name", f"{specialty.title()} consultation"),
                specialty=specialty,
                duration_minutes=duration_minutes,
                price=price,
                **kwargs,
            )
        )

    def template(self, practitioner, weekday=1, start="09:00", end="12:00", break_start=None, break_end=None):
        return self._save(
            ScheduleTemplate(
                practitioner_id=practitioner.id,
                weekday=weekday,
                start_time=start,
                end_time=end,
                break_start=break_start,
                break_end=break_end,
            )
        )

    def appointment(
        self,
        practitioner,
        patient,
        appointment_type=None,
        day=MONDAY,
        start="09:00",
        end="09:30",
        state=STATE_UNPAID,
        is_active=True,
        **kwargs,
    ):
        return self._save(
            Appointment(
                practitioner_id=practitioner.id,
                patient_id=patient.id,
                appointment_type_id=appointment_type.id if appointment_type else None,
                motive=kwargs.pop("motive", practitioner.specialty),
                appointment_date=day,
                start_time=start,
                end_time=end,
                state=state,
                is_active=is_active,
                **kwargs,
            )
        )


class FakeGateway:
    """In-process stand-in for the payment gateway"""

    def __init__(self):
        self.payments = {}
        self.not_found_before = {}
        self.errors = {}
        self.lookups = []
        self.orders = []

    def add_payment(self, payment_id, status="approved", amount=7000.0, reference=None):
        self.payments[str(payment_id)] = GatewayPayment(
            id=payment_id, status=status, transaction_amount=amount, external_reference=reference
        )

    async def get_payment(self, payment_id):
        key = str(payment_id)
        self.lookups.append(key)
        if key in self.errors:
            raise self.errors[key]
        if self.not_found_before.get(key, 0) > 0:
            self.not_found_before[key] -= 1
            raise PaymentNotFound(f"Payment {payment_id} not found")
        if key not in self.payments:
            raise PaymentNotFound(f"Payment {payment_id} not found")
        return self.payments[key]

    async def create_order(self, **kwargs):
        self.orders.append(kwargs)
        return GatewayOrder(
            orderId=f"pref-{len(self.orders)}",
            approvalUrl="https://checkout.example.com/pay",
            sandboxApprovalUrl="https://sandbox.checkout.example.com/pay",
        )


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class RecordingNotifier:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def __call__(self, to, details):
        self.sent.append((to, details))
        if self.fail:
            raise RuntimeError("mail server down")
        return {"id": "email-1"}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seed(db):
    return Seeder(db)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def reconciler(session_factory, gateway, notifier, sleep):
    return SettlementReconciler(
        session_factory=session_factory,
        gateway=gateway,
        notifier=notifier,
        max_attempts=10,
        base_delay=5.0,
        sleep=sleep,
    )


@pytest.fixture
def client(session_factory, gateway, reconciler):
    from clinic_app.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_reconciler] = lambda: reconciler
    # No context manager: the lifespan would create tables on the configured database
    yield TestClient(app)
    app.dependency_overrides.clear()
