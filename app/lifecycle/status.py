import enum
from typing import Dict, FrozenSet, Union

from app.lifecycle.errors import InvalidTransitionError

# =====================================================
# ENUMS
# =====================================================

class AppointmentStatus(str, enum.Enum):
    PENDING_LAWYER_APPROVAL = "PENDING_LAWYER_APPROVAL"
    APPROVED_AWAITING_PAYMENT = "APPROVED_AWAITING_PAYMENT"
    PAYMENT_EXPIRED = "PAYMENT_EXPIRED"
    CONFIRMED = "CONFIRMED"
    CANCELLED_BY_CLIENT = "CANCELLED_BY_CLIENT"
    DECLINED_BY_LAWYER = "DECLINED_BY_LAWYER"
    COMPLETED = "COMPLETED"
    EXPIRED = "EXPIRED"

class CaseStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    PAYMENT_PENDING = "PAYMENT_PENDING"
    PAYMENT_OVERDUE = "PAYMENT_OVERDUE"
    CLOSED_BY_LAWYER = "CLOSED_BY_LAWYER"
    ENDED_BY_CLIENT = "ENDED_BY_CLIENT"
    TERMINATED = "TERMINATED"

class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"
    REFUNDED = "REFUNDED"

AnyStatus = Union[AppointmentStatus, CaseStatus, PaymentStatus]

# =====================================================
# TRANSITION TABLES
# =====================================================

APPOINTMENT_TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    AppointmentStatus.PENDING_LAWYER_APPROVAL: frozenset({
        AppointmentStatus.APPROVED_AWAITING_PAYMENT,
        AppointmentStatus.DECLINED_BY_LAWYER,
        AppointmentStatus.EXPIRED,
        AppointmentStatus.CANCELLED_BY_CLIENT,
    }),
    AppointmentStatus.APPROVED_AWAITING_PAYMENT: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.PAYMENT_EXPIRED,
        AppointmentStatus.CANCELLED_BY_CLIENT,
    }),
    AppointmentStatus.CONFIRMED: frozenset({AppointmentStatus.COMPLETED}),
}

CASE_TRANSITIONS: Dict[CaseStatus, FrozenSet[CaseStatus]] = {
    CaseStatus.ACTIVE: frozenset({
        CaseStatus.PAYMENT_PENDING,
        CaseStatus.CLOSED_BY_LAWYER,
        CaseStatus.TERMINATED,
    }),
    CaseStatus.PAYMENT_PENDING: frozenset({
        CaseStatus.ACTIVE,
        CaseStatus.PAYMENT_OVERDUE,
        CaseStatus.TERMINATED,
    }),
    CaseStatus.PAYMENT_OVERDUE: frozenset({
        CaseStatus.ACTIVE,
        CaseStatus.TERMINATED,
    }),
}

PAYMENT_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({
        PaymentStatus.SUCCESS,
        PaymentStatus.FAILED,
        PaymentStatus.EXPIRED,
    }),
    PaymentStatus.SUCCESS: frozenset({PaymentStatus.REFUNDED}),
}

_TABLES = {
    AppointmentStatus: APPOINTMENT_TRANSITIONS,
    CaseStatus: CASE_TRANSITIONS,
    PaymentStatus: PAYMENT_TRANSITIONS,
}

# Cases awaiting a fee settlement carry a next payment deadline.
CASE_BILLING_STATUSES = frozenset({CaseStatus.PAYMENT_PENDING, CaseStatus.PAYMENT_OVERDUE})


def allowed_transitions(status: AnyStatus) -> FrozenSet[AnyStatus]:
    return _TABLES[type(status)].get(status, frozenset())


def can_transition(current: AnyStatus, target: AnyStatus) -> bool:
    if type(current) is not type(target):
        return False
    return target in allowed_transitions(current)


def is_terminal(status: AnyStatus) -> bool:
    return not allowed_transitions(status)


def ensure_transition(current: AnyStatus, target: AnyStatus, entity: str, entity_id: str) -> None:
    """Raise InvalidTransitionError unless ``current -> target`` is a listed edge."""
    if not can_transition(current, target):
        raise InvalidTransitionError(
            f"{entity} {entity_id} cannot move from {current.value} to {target.value}"
        )


def ensure_not_terminal(status: AnyStatus, entity: str, entity_id: str) -> None:
    if is_terminal(status):
        raise InvalidTransitionError(f"{entity} {entity_id} is {status.value} and can no longer change")
