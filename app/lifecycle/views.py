"""Read-only aggregation over a ``LifecycleSnapshot``.

Everything here is a pure function of its arguments. Nothing is cached; the
dashboards are cheap enough to rebuild on every read.
"""
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import List, NamedTuple, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel

from app.lifecycle.deadlines import (
    TimeWindows, UrgencyLevel, format_countdown, get_time_remaining, get_urgency_level,
)
from app.lifecycle.engine import LifecycleSnapshot
from app.lifecycle.entities import ActorRole, Appointment, Case, Payment
from app.lifecycle.errors import ValidationError
from app.lifecycle.status import CASE_BILLING_STATUSES, AppointmentStatus, CaseStatus, PaymentStatus


class ActorSlice(NamedTuple):
    appointments: List[Appointment]
    cases: List[Case]
    payments: List[Payment]


class DashboardStats(BaseModel):
    pending_requests: int = 0
    awaiting_payment: int = 0
    confirmed_appointments: int = 0
    completed_appointments: int = 0
    active_cases: int = 0
    payment_pending_cases: int = 0
    pending_payments: int = 0
    total_earned: Decimal = Decimal("0")


class DeadlineInfo(BaseModel):
    deadline: datetime
    total_duration: timedelta
    remaining: timedelta
    expired: bool
    urgency: UrgencyLevel
    countdown: str


class ActorDashboard(BaseModel):
    role: ActorRole
    actor_id: str
    today: date
    appointments: List[Appointment]
    cases: List[Case]
    payments: List[Payment]
    todays_appointments: List[Appointment]
    stats: DashboardStats


def _newest_first(items):
    return sorted(items, key=lambda item: item.created_at, reverse=True)


def slice_for_actor(snapshot: LifecycleSnapshot, role: ActorRole, actor_id: str) -> ActorSlice:
    """Appointments and cases owned by the actor, plus payments reachable through them."""
    owner = "lawyer_id" if ActorRole(role) == ActorRole.LAWYER else "client_id"
    appointments = [a for a in snapshot.appointments.values() if getattr(a, owner) == actor_id]
    cases = [c for c in snapshot.cases.values() if getattr(c, owner) == actor_id]

    appointment_ids = {a.id for a in appointments}
    case_ids = {c.id for c in cases}
    payments = [
        p for p in snapshot.payments.values()
        if p.appointment_id in appointment_ids or p.case_id in case_ids
    ]
    return ActorSlice(_newest_first(appointments), _newest_first(cases), _newest_first(payments))


def compute_stats(actor_slice: ActorSlice) -> DashboardStats:
    appointment_counts = {status: 0 for status in AppointmentStatus}
    for appointment in actor_slice.appointments:
        appointment_counts[appointment.status] += 1

    return DashboardStats(
        pending_requests=appointment_counts[AppointmentStatus.PENDING_LAWYER_APPROVAL],
        awaiting_payment=appointment_counts[AppointmentStatus.APPROVED_AWAITING_PAYMENT],
        confirmed_appointments=appointment_counts[AppointmentStatus.CONFIRMED],
        completed_appointments=appointment_counts[AppointmentStatus.COMPLETED],
        active_cases=sum(1 for c in actor_slice.cases if c.status == CaseStatus.ACTIVE),
        payment_pending_cases=sum(1 for c in actor_slice.cases if c.status in CASE_BILLING_STATUSES),
        pending_payments=sum(1 for p in actor_slice.payments if p.status == PaymentStatus.PENDING),
        total_earned=sum(
            (p.amount for p in actor_slice.payments if p.status == PaymentStatus.SUCCESS),
            Decimal("0"),
        ),
    )


def todays_appointments(appointments: List[Appointment], today: date) -> List[Appointment]:
    return [
        a for a in appointments
        if a.status == AppointmentStatus.CONFIRMED and a.selected_date == today
    ]


def today_for(now: datetime, tz_name: Optional[str] = None) -> date:
    """The calendar date of ``now`` as seen in the actor's timezone (UTC by default)."""
    if not tz_name:
        return now.astimezone(timezone.utc).date()
    try:
        return now.astimezone(ZoneInfo(tz_name)).date()
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown timezone: {tz_name}")


def deadline_info(entity: Union[Appointment, Case], now: datetime, windows: TimeWindows) -> Optional[DeadlineInfo]:
    """Countdown details for whichever deadline currently governs the entity."""
    if isinstance(entity, Case):
        deadline = entity.next_payment_deadline
        total = entity.next_payment_duration or windows.case_payment_window
    elif entity.approval_deadline is not None:
        deadline = entity.approval_deadline
        total = entity.approval_duration
    else:
        deadline = entity.payment_deadline
        total = entity.payment_duration or windows.payment_window
    if deadline is None:
        return None

    remaining = get_time_remaining(deadline, now)
    return DeadlineInfo(
        deadline=deadline,
        total_duration=total,
        remaining=remaining.total,
        expired=remaining.expired,
        urgency=get_urgency_level(
            deadline, total, now,
            critical=windows.critical_threshold,
            warning=windows.warning_threshold,
        ),
        countdown=format_countdown(deadline, now),
    )


def build_dashboard(snapshot: LifecycleSnapshot, role: ActorRole, actor_id: str, today: date) -> ActorDashboard:
    actor_slice = slice_for_actor(snapshot, role, actor_id)
    return ActorDashboard(
        role=role,
        actor_id=actor_id,
        today=today,
        appointments=actor_slice.appointments,
        cases=actor_slice.cases,
        payments=actor_slice.payments,
        todays_appointments=todays_appointments(actor_slice.appointments, today),
        stats=compute_stats(actor_slice),
    )
