"""Deadline creation and countdown classification.

All functions are pure: the current time is passed in (or taken from
``utc_now`` when omitted) and nothing is mutated.
"""
import enum
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from pydantic import BaseModel, Field, model_validator

from app import config
from app.lifecycle.errors import ValidationError

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TimeUnit(str, enum.Enum):
    SECONDS = "seconds"
    MINUTES = "minutes"
    HOURS = "hours"
    DAYS = "days"

class UrgencyLevel(str, enum.Enum):
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"
    EXPIRED = "expired"


_UNIT_SECONDS = {
    TimeUnit.SECONDS: 1,
    TimeUnit.MINUTES: 60,
    TimeUnit.HOURS: 60 * 60,
    TimeUnit.DAYS: 24 * 60 * 60,
}


class TimeWindows(BaseModel):
    """Default windows for the three time-bound flows, plus urgency thresholds."""

    lawyer_approval_hours: int = Field(24, gt=0)
    client_payment_minutes: int = Field(10, gt=0)
    case_payment_days: int = Field(7, gt=0)
    critical_threshold: float = Field(0.15, gt=0, lt=1)
    warning_threshold: float = Field(0.4, gt=0, lt=1)

    class Config:
        frozen = True

    @model_validator(mode="after")
    def check_thresholds(self):
        if self.critical_threshold >= self.warning_threshold:
            raise ValueError("critical_threshold must be lower than warning_threshold")
        return self

    @classmethod
    def from_settings(cls) -> "TimeWindows":
        return cls(
            lawyer_approval_hours=config.LAWYER_APPROVAL_HOURS,
            client_payment_minutes=config.CLIENT_PAYMENT_MINUTES,
            case_payment_days=config.CASE_PAYMENT_DAYS,
            critical_threshold=config.URGENCY_CRITICAL_THRESHOLD,
            warning_threshold=config.URGENCY_WARNING_THRESHOLD,
        )

    @property
    def approval_window(self) -> timedelta:
        return timedelta(hours=self.lawyer_approval_hours)

    @property
    def payment_window(self) -> timedelta:
        return timedelta(minutes=self.client_payment_minutes)

    @property
    def case_payment_window(self) -> timedelta:
        return timedelta(days=self.case_payment_days)


class TimeRemaining(BaseModel):
    total: timedelta
    days: int
    hours: int
    minutes: int
    seconds: int
    expired: bool


def create_deadline(amount: float, unit=TimeUnit.HOURS, now: Optional[datetime] = None) -> datetime:
    """Return the absolute timestamp ``amount`` units after ``now``."""
    try:
        unit = TimeUnit(unit)
    except ValueError:
        raise ValidationError(f"Unknown time unit: {unit!r}")
    if amount < 0:
        raise ValidationError("Deadline amount must not be negative")
    now = now or utc_now()
    return now + timedelta(seconds=amount * _UNIT_SECONDS[unit])


def deadline_passed(deadline: Optional[datetime], now: datetime) -> bool:
    return deadline is not None and deadline <= now


def get_time_remaining(deadline: datetime, now: Optional[datetime] = None) -> TimeRemaining:
    now = now or utc_now()
    total = max(timedelta(0), deadline - now)
    whole_seconds = int(total.total_seconds())
    return TimeRemaining(
        total=total,
        days=whole_seconds // 86400,
        hours=(whole_seconds // 3600) % 24,
        minutes=(whole_seconds // 60) % 60,
        seconds=whole_seconds % 60,
        expired=total <= timedelta(0),
    )


def get_urgency_level(
    deadline: datetime,
    total_duration: timedelta,
    now: Optional[datetime] = None,
    critical: float = 0.15,
    warning: float = 0.4,
) -> UrgencyLevel:
    remaining = get_time_remaining(deadline, now)
    if remaining.expired:
        return UrgencyLevel.EXPIRED
    if total_duration <= timedelta(0):
        return UrgencyLevel.CRITICAL
    fraction = remaining.total / total_duration
    if fraction <= critical:
        return UrgencyLevel.CRITICAL
    if fraction <= warning:
        return UrgencyLevel.WARNING
    return UrgencyLevel.NORMAL


def format_countdown(deadline: datetime, now: Optional[datetime] = None) -> str:
    """Two most significant units, e.g. ``2d 3h`` or ``5m 30s``."""
    r = get_time_remaining(deadline, now)
    if r.expired:
        return "Expired"
    if r.days > 0:
        return f"{r.days}d {r.hours}h"
    if r.hours > 0:
        return f"{r.hours}h {r.minutes}m"
    if r.minutes > 0:
        return f"{r.minutes}m {r.seconds}s"
    return f"{r.seconds}s"


def format_payment_countdown(deadline: datetime, now: Optional[datetime] = None) -> str:
    r = get_time_remaining(deadline, now)
    if r.expired:
        return "00:00"
    return f"{r.minutes:02d}:{r.seconds:02d}"
