import threading
from datetime import timedelta
from decimal import Decimal

import pytest

from app.lifecycle.engine import APPOINTMENT, CASE, LifecycleEngine, SweepTransition
from app.lifecycle.errors import DeadlinePassedError, InvalidTransitionError, LifecycleError
from app.lifecycle.status import AppointmentStatus, CaseStatus, PaymentStatus

from conftest import active_case, book, pending_payment


def test_sweep_expires_unanswered_request(engine, clock):
    appointment = book(engine)
    clock.advance(hours=24, seconds=1)

    transitions = engine.sweep_expired()

    assert transitions == [SweepTransition(
        APPOINTMENT, appointment.id,
        AppointmentStatus.PENDING_LAWYER_APPROVAL.value, AppointmentStatus.EXPIRED.value,
    )]
    expired = engine.get_appointment(appointment.id)
    assert expired.status == AppointmentStatus.EXPIRED
    assert expired.approval_deadline is None
    with pytest.raises(InvalidTransitionError):
        engine.approve_appointment(appointment.id)


def test_sweep_leaves_open_windows_alone(engine, clock):
    appointment = book(engine)
    clock.advance(hours=23, minutes=59)
    assert engine.sweep_expired() == []
    assert engine.get_appointment(appointment.id).status == AppointmentStatus.PENDING_LAWYER_APPROVAL


def test_sweep_is_idempotent(engine, clock):
    book(engine)
    book(engine, client_id="USR-2026-0002")
    clock.advance(days=2)

    assert len(engine.sweep_expired()) == 2
    snapshot = engine.snapshot()
    assert engine.sweep_expired() == []
    assert engine.snapshot() is snapshot


def test_sweep_expires_payment_window(engine, clock):
    appointment = book(engine)
    engine.approve_appointment(appointment.id)
    clock.advance(minutes=10)

    (transition,) = engine.sweep_expired()

    assert transition.to_status == AppointmentStatus.PAYMENT_EXPIRED.value
    lapsed = engine.get_appointment(appointment.id)
    assert lapsed.status == AppointmentStatus.PAYMENT_EXPIRED
    assert lapsed.payment_deadline is None
    payment = pending_payment(engine, appointment.id)
    assert payment.status == PaymentStatus.EXPIRED
    with pytest.raises(InvalidTransitionError):
        engine.confirm_payment(payment.id)


def test_sweep_marks_case_overdue_once(engine, clock):
    case = active_case(engine)
    engine.request_case_payment(case.id, Decimal("15000"), "Filing fee")
    clock.advance(days=7)

    assert engine.sweep_expired() == [SweepTransition(
        CASE, case.id, CaseStatus.PAYMENT_PENDING.value, CaseStatus.PAYMENT_OVERDUE.value,
    )]
    overdue = engine.get_case(case.id)
    assert overdue.status == CaseStatus.PAYMENT_OVERDUE
    assert overdue.next_payment_deadline is not None
    assert overdue.timeline[-1].event == "Payment overdue"

    clock.advance(days=30)
    assert engine.sweep_expired() == []


def test_sweep_skips_entity_that_moved_on(engine, clock):
    appointment = book(engine)
    clock.advance(days=2)
    engine.cancel_appointment(appointment.id)

    applied = []
    engine._sweep_one(applied, engine._expire_approval, appointment.id, clock())

    assert applied == []
    assert engine.get_appointment(appointment.id).status == AppointmentStatus.CANCELLED_BY_CLIENT


def _race(*actions):
    barrier = threading.Barrier(len(actions))
    outcomes = [None] * len(actions)

    def run(index, action):
        barrier.wait()
        try:
            outcomes[index] = action()
        except LifecycleError as e:
            outcomes[index] = e

    threads = [threading.Thread(target=run, args=(i, a)) for i, a in enumerate(actions)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return outcomes


@pytest.mark.parametrize("attempt", range(20))
def test_approve_and_decline_race_has_one_winner(engine, attempt):
    appointment = book(engine)

    outcomes = _race(
        lambda: engine.approve_appointment(appointment.id),
        lambda: engine.decline_appointment(appointment.id, "Busy"),
    )

    errors = [o for o in outcomes if isinstance(o, Exception)]
    assert len(errors) == 1
    assert isinstance(errors[0], InvalidTransitionError)
    final = engine.get_appointment(appointment.id)
    assert final.version == 2
    if final.status == AppointmentStatus.APPROVED_AWAITING_PAYMENT:
        assert len(engine.payments_for_appointment(appointment.id)) == 1
    else:
        assert final.status == AppointmentStatus.DECLINED_BY_LAWYER
        assert engine.payments_for_appointment(appointment.id) == []


@pytest.mark.parametrize("attempt", range(20))
def test_sweep_and_approve_race_at_deadline(clock, windows, attempt):
    engine = LifecycleEngine(windows=windows, clock=clock)
    appointment = book(engine)
    clock.advance(hours=24)

    outcomes = _race(
        lambda: engine.approve_appointment(appointment.id),
        engine.sweep_expired,
    )

    assert isinstance(outcomes[0], (DeadlinePassedError, InvalidTransitionError))
    assert engine.get_appointment(appointment.id).status == AppointmentStatus.EXPIRED
    assert engine.payments_for_appointment(appointment.id) == []


def test_confirm_and_cancel_race_keeps_payment_consistent(engine):
    appointment = book(engine)
    engine.approve_appointment(appointment.id)
    payment = pending_payment(engine, appointment.id)

    _race(
        lambda: engine.confirm_payment(payment.id),
        lambda: engine.cancel_appointment(appointment.id),
    )

    final = engine.get_appointment(appointment.id)
    payment = engine.get_payment(payment.id)
    if final.status == AppointmentStatus.CONFIRMED:
        assert payment.status == PaymentStatus.SUCCESS
    else:
        assert final.status == AppointmentStatus.CANCELLED_BY_CLIENT
        assert payment.status == PaymentStatus.FAILED


def test_concurrent_bookings_are_all_kept(engine):
    _race(*[lambda i=i: book(engine, client_id=f"USR-{i}") for i in range(16)])
    assert len(engine.snapshot().appointments) == 16


def test_readers_see_whole_commits(engine, clock):
    appointment = book(engine)
    engine.approve_appointment(appointment.id)
    clock.advance(minutes=10)
    engine.sweep_expired()

    snapshot = engine.snapshot()
    lapsed = snapshot.appointments[appointment.id]
    (payment,) = [p for p in snapshot.payments.values() if p.appointment_id == appointment.id]
    assert lapsed.status == AppointmentStatus.PAYMENT_EXPIRED
    assert payment.status == PaymentStatus.EXPIRED


def test_concurrent_readers_never_see_half_a_commit(engine, clock):
    appointments = [book(engine, client_id=f"USR-{i}") for i in range(200)]
    torn = []
    done = threading.Event()

    def read_continuously():
        while not done.is_set():
            snapshot = engine.snapshot()
            pending_for = {
                p.appointment_id for p in snapshot.payments.values() if p.status == PaymentStatus.PENDING
            }
            expired_for = {
                p.appointment_id for p in snapshot.payments.values() if p.status == PaymentStatus.EXPIRED
            }
            for appointment in snapshot.appointments.values():
                if (appointment.status == AppointmentStatus.APPROVED_AWAITING_PAYMENT
                        and appointment.id not in pending_for):
                    torn.append(appointment.id)
                if (appointment.status == AppointmentStatus.PAYMENT_EXPIRED
                        and appointment.id not in expired_for):
                    torn.append(appointment.id)

    reader = threading.Thread(target=read_continuously)
    reader.start()
    try:
        for appointment in appointments:
            engine.approve_appointment(appointment.id)
        clock.advance(minutes=10)
        engine.sweep_expired()
    finally:
        done.set()
        reader.join()

    assert torn == []
    assert all(
        engine.get_appointment(a.id).status == AppointmentStatus.PAYMENT_EXPIRED for a in appointments
    )
