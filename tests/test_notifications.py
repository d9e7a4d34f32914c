from decimal import Decimal

from app.lifecycle.notifications import NotificationFeed, NotificationType

from conftest import active_case, book, pending_payment


def test_feed_records_lifecycle_events_newest_first(engine, clock):
    feed = NotificationFeed(currency="LKR")
    feed.attach(engine)

    appointment = book(engine)
    clock.advance(minutes=1)
    engine.approve_appointment(appointment.id)

    titles = [n.title for n in feed.list()]
    assert titles == ["Appointment Approved", "Appointment Booked"]
    approved = feed.list()[0]
    assert approved.type == NotificationType.SUCCESS
    assert approved.appointment_id == appointment.id
    assert approved.timestamp == clock()


def test_payment_messages_use_currency(engine):
    feed = NotificationFeed(currency="LKR")
    feed.attach(engine)
    case = active_case(engine)

    engine.request_case_payment(case.id, Decimal("15000"), "Filing fee")

    latest = feed.list()[0]
    assert latest.title == "Payment Requested"
    assert "LKR 15,000" in latest.message
    assert latest.case_id == case.id


def test_sweep_transitions_are_announced(engine, clock):
    feed = NotificationFeed()
    feed.attach(engine)
    appointment = book(engine)
    engine.approve_appointment(appointment.id)
    clock.advance(minutes=11)

    engine.sweep_expired()

    latest = feed.list()[0]
    assert latest.title == "Payment Window Expired"
    assert latest.type == NotificationType.WARNING
    assert latest.payment_id == pending_payment(engine, appointment.id).id


def test_feed_keeps_only_the_latest(engine):
    feed = NotificationFeed(limit=3)
    feed.attach(engine)
    for i in range(5):
        book(engine, client_id=f"USR-{i}")
    assert len(feed.list()) == 3


def test_dismiss_and_clear(engine):
    feed = NotificationFeed()
    feed.attach(engine)
    book(engine)
    book(engine)

    first = feed.list()[0]
    assert feed.dismiss(first.id)
    assert not feed.dismiss(first.id)
    assert len(feed.list()) == 1

    feed.clear()
    assert feed.list() == []


def test_detached_feed_stops_receiving(engine):
    feed = NotificationFeed()
    detach = feed.attach(engine)
    detach()
    book(engine)
    assert feed.list() == []


def test_failing_hook_does_not_undo_commit(engine):
    def broken(event):
        raise RuntimeError("mail server down")

    engine.subscribe(broken)
    appointment = book(engine)
    assert engine.get_appointment(appointment.id) == appointment
