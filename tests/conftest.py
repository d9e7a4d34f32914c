import os

# Keep the app factory off the on-disk database during tests.
os.environ.setdefault("PERSIST_COMMITS", "False")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.lifecycle.deadlines import TimeWindows
from app.lifecycle.engine import LifecycleEngine
from app.lifecycle.entities import ConsultationType

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Injectable wall clock that only moves when told to."""

    def __init__(self, now: datetime = T0):
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current

    def set(self, now: datetime) -> datetime:
        self.current = now
        return self.current


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def windows():
    return TimeWindows()


@pytest.fixture
def engine(clock, windows):
    return LifecycleEngine(windows=windows, clock=clock)


def book(engine, client_id="USR-2026-0001", lawyer_id="LWR-003", fee="5000", selected_date=date(2026, 3, 5), **extra):
    fields = dict(
        client_id=client_id,
        lawyer_id=lawyer_id,
        client_name="Nimal Perera",
        lawyer_name="Adv. Silva",
        consultation_type=ConsultationType.VIDEO,
        case_type="Property Dispute",
        description="Boundary dispute with neighbour",
        selected_date=selected_date,
        selected_time="10:00 AM",
        consultation_fee=Decimal(fee),
    )
    fields.update(extra)
    return engine.book_appointment(**fields)


def pending_payment(engine, appointment_id):
    (payment,) = engine.payments_for_appointment(appointment_id)
    return payment


def confirmed_appointment(engine, **kwargs):
    appointment = book(engine, **kwargs)
    engine.approve_appointment(appointment.id)
    engine.confirm_payment(pending_payment(engine, appointment.id).id)
    return engine.get_appointment(appointment.id)


def completed_appointment(engine, **kwargs):
    appointment = confirmed_appointment(engine, **kwargs)
    return engine.complete_consultation(appointment.id)


def active_case(engine, estimated_fees="100000", **kwargs):
    appointment = completed_appointment(engine, **kwargs)
    return engine.start_case(appointment.id, title="Land boundary dispute", estimated_fees=Decimal(estimated_fees))
