from datetime import timedelta

import pytest

from app.lifecycle.deadlines import (
    TimeWindows, UrgencyLevel, create_deadline, deadline_passed, format_countdown,
    format_payment_countdown, get_time_remaining, get_urgency_level,
)
from app.lifecycle.errors import ValidationError

from conftest import T0


@pytest.mark.parametrize("unit, expected", [
    ("seconds", timedelta(seconds=30)),
    ("minutes", timedelta(minutes=30)),
    ("hours", timedelta(hours=30)),
    ("days", timedelta(days=30)),
])
def test_create_deadline_units(unit, expected):
    assert create_deadline(30, unit, now=T0) == T0 + expected


def test_create_deadline_rejects_unknown_unit():
    with pytest.raises(ValidationError):
        create_deadline(1, "fortnights", now=T0)


def test_time_remaining_breakdown():
    deadline = T0 + timedelta(days=2, hours=3, minutes=4, seconds=5)
    remaining = get_time_remaining(deadline, now=T0)
    assert (remaining.days, remaining.hours, remaining.minutes, remaining.seconds) == (2, 3, 4, 5)
    assert not remaining.expired


def test_time_remaining_clamps_after_deadline():
    remaining = get_time_remaining(T0, now=T0 + timedelta(minutes=5))
    assert remaining.total == timedelta(0)
    assert remaining.expired


def test_deadline_reached_exactly_counts_as_passed():
    assert deadline_passed(T0, T0)
    assert not deadline_passed(None, T0)
    assert get_time_remaining(T0, now=T0).expired


@pytest.mark.parametrize("fraction, expected", [
    (0.10, UrgencyLevel.CRITICAL),
    (0.15, UrgencyLevel.CRITICAL),
    (0.30, UrgencyLevel.WARNING),
    (0.40, UrgencyLevel.WARNING),
    (0.80, UrgencyLevel.NORMAL),
])
def test_urgency_tiers(fraction, expected):
    total = timedelta(hours=10)
    deadline = T0 + total * fraction
    assert get_urgency_level(deadline, total, now=T0) == expected


def test_urgency_expired_when_nothing_remains():
    assert get_urgency_level(T0, timedelta(hours=10), now=T0) == UrgencyLevel.EXPIRED


def test_urgency_with_zero_duration_is_critical():
    deadline = T0 + timedelta(minutes=1)
    assert get_urgency_level(deadline, timedelta(0), now=T0) == UrgencyLevel.CRITICAL
    assert get_urgency_level(deadline, timedelta(seconds=-5), now=T0) == UrgencyLevel.CRITICAL


def test_urgency_thresholds_are_overridable():
    total = timedelta(hours=10)
    deadline = T0 + timedelta(hours=2)
    assert get_urgency_level(deadline, total, now=T0, critical=0.25, warning=0.5) == UrgencyLevel.CRITICAL


@pytest.mark.parametrize("delta, expected", [
    (timedelta(days=2, hours=3, minutes=15), "2d 3h"),
    (timedelta(hours=4, minutes=10), "4h 10m"),
    (timedelta(minutes=5, seconds=30), "5m 30s"),
    (timedelta(seconds=12), "12s"),
    (timedelta(0), "Expired"),
])
def test_format_countdown(delta, expected):
    assert format_countdown(T0 + delta, now=T0) == expected


def test_format_payment_countdown():
    assert format_payment_countdown(T0 + timedelta(minutes=9, seconds=5), now=T0) == "09:05"
    assert format_payment_countdown(T0, now=T0) == "00:00"


def test_default_windows():
    windows = TimeWindows()
    assert windows.approval_window == timedelta(hours=24)
    assert windows.payment_window == timedelta(minutes=10)
    assert windows.case_payment_window == timedelta(days=7)


def test_windows_reject_inverted_thresholds():
    with pytest.raises(ValueError):
        TimeWindows(critical_threshold=0.5, warning_threshold=0.3)
