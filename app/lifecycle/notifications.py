import enum
import logging
import threading
import uuid
from collections import deque
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel

from app.lifecycle.engine import CommitEvent, LifecycleEngine

logger = logging.getLogger(__name__)


class NotificationType(str, enum.Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Notification(BaseModel):
    id: str
    type: NotificationType
    title: str
    message: str
    timestamp: datetime
    appointment_id: Optional[str] = None
    case_id: Optional[str] = None
    payment_id: Optional[str] = None


def _short(entity_id: str) -> str:
    return entity_id[-6:]


def _describe(event: CommitEvent, currency: str) -> Optional[Tuple[NotificationType, str, str]]:
    appointment = event.appointments[0] if event.appointments else None
    case = event.cases[0] if event.cases else None
    payment = event.payments[0] if event.payments else None

    messages: Dict[str, Callable[[], Tuple[NotificationType, str, str]]] = {
        "book_appointment": lambda: (
            NotificationType.INFO, "Appointment Booked",
            f"Appointment request #{_short(appointment.id)} sent to {appointment.lawyer_name or appointment.lawyer_id}.",
        ),
        "approve_appointment": lambda: (
            NotificationType.SUCCESS, "Appointment Approved",
            f"Appointment #{_short(appointment.id)} approved. Payment is due by {appointment.payment_deadline:%H:%M} UTC.",
        ),
        "decline_appointment": lambda: (
            NotificationType.WARNING, "Appointment Declined",
            f"Appointment #{_short(appointment.id)} was declined."
            + (f" Reason: {appointment.decline_reason}" if appointment.decline_reason else ""),
        ),
        "cancel_appointment": lambda: (
            NotificationType.INFO, "Appointment Cancelled",
            f"Appointment #{_short(appointment.id)} has been cancelled.",
        ),
        "complete_consultation": lambda: (
            NotificationType.SUCCESS, "Consultation Completed",
            f"Appointment #{_short(appointment.id)} marked as completed.",
        ),
        "confirm_payment": lambda: (
            NotificationType.SUCCESS, "Payment Successful",
            f"Payment of {currency} {payment.amount:,} has been confirmed.",
        ),
        "refund_payment": lambda: (
            NotificationType.INFO, "Payment Refunded",
            f"Payment #{_short(payment.id)} of {currency} {payment.amount:,} was refunded.",
        ),
        "start_case": lambda: (
            NotificationType.SUCCESS, "Case Started",
            f'Case "{case.title}" has been created from consultation #{_short(case.appointment_id)}.',
        ),
        "request_case_payment": lambda: (
            NotificationType.INFO, "Payment Requested",
            f'{currency} {payment.amount:,} payment requested for case "{case.title}".',
        ),
        "close_case": lambda: (
            NotificationType.SUCCESS, "Case Closed",
            f"Case #{_short(case.id)} has been closed.",
        ),
        "terminate_case": lambda: (
            NotificationType.ERROR, "Case Terminated",
            f"Case #{_short(case.id)} has been terminated."
            + (f" Reason: {case.termination_reason}" if case.termination_reason else ""),
        ),
        "expire_approval": lambda: (
            NotificationType.WARNING, "Appointment Expired",
            f"Appointment #{_short(appointment.id)} expired. The lawyer did not respond in time.",
        ),
        "expire_payment_window": lambda: (
            NotificationType.WARNING, "Payment Window Expired",
            f"Payment deadline passed for appointment #{_short(appointment.id)}. Slot released.",
        ),
        "mark_case_overdue": lambda: (
            NotificationType.ERROR, "Case Payment Overdue",
            f'Payment for case "{case.title}" is now overdue.',
        ),
    }
    describe = messages.get(event.operation)
    return describe() if describe else None


class NotificationFeed:
    """Most recent lifecycle notifications, newest first."""

    def __init__(self, currency: str = "LKR", limit: int = 50):
        self.currency = currency
        self._items = deque(maxlen=limit)
        self._lock = threading.Lock()

    def attach(self, engine: LifecycleEngine) -> Callable[[], None]:
        return engine.subscribe(self.on_commit)

    def on_commit(self, event: CommitEvent) -> None:
        described = _describe(event, self.currency)
        if described is None:
            return
        kind, title, message = described
        notification = Notification(
            id=f"notif-{uuid.uuid4().hex[:12]}",
            type=kind,
            title=title,
            message=message,
            timestamp=event.committed_at,
            appointment_id=event.appointments[0].id if event.appointments else None,
            case_id=event.cases[0].id if event.cases else None,
            payment_id=event.payments[0].id if event.payments else None,
        )
        with self._lock:
            self._items.appendleft(notification)
        logger.debug("Notification %s: %s", notification.id, title)

    def list(self) -> List[Notification]:
        with self._lock:
            return list(self._items)

    def dismiss(self, notification_id: str) -> bool:
        with self._lock:
            for item in self._items:
                if item.id == notification_id:
                    self._items.remove(item)
                    return True
        return False

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
