import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.database import session_scope
from app.lifecycle.engine import CommitEvent
from app.lifecycle.entities import Appointment, Case, Payment
from app.models import AppointmentRecord, CaseRecord, PaymentRecord

logger = logging.getLogger(__name__)

_APPOINTMENT_COLUMNS = (
    "client_id", "lawyer_id", "client_name", "lawyer_name", "consultation_type", "case_type",
    "description", "selected_date", "selected_time", "consultation_fee", "status",
    "approval_deadline", "payment_deadline", "decline_reason", "cancel_reason", "created_at",
    "approved_at", "declined_at", "cancelled_at", "confirmed_at", "completed_at",
)
_CASE_COLUMNS = (
    "appointment_id", "client_id", "lawyer_id", "client_name", "lawyer_name", "title",
    "description", "case_type", "status", "total_fees", "paid_amount", "next_payment_deadline",
    "progress", "termination_reason", "created_at", "closed_at", "terminated_at",
)
_PAYMENT_COLUMNS = (
    "appointment_id", "case_id", "client_id", "lawyer_id", "amount", "kind", "description",
    "status", "created_at", "deadline", "paid_at",
)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands timestamps back without tzinfo; everything is stored as UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _seconds(value: Optional[timedelta]) -> Optional[int]:
    return int(value.total_seconds()) if value is not None else None


def _columns(record, names) -> dict:
    values = {}
    for name in names:
        value = getattr(record, name)
        values[name] = _aware(value) if isinstance(value, datetime) else value
    return values


class LifecycleStore:
    """Load/commit boundary between the lifecycle engine and the database."""

    def __init__(self, db: Session):
        self.db = db

    def load_all(self) -> Tuple[List[Appointment], List[Case], List[Payment]]:
        appointments = [self._appointment_from_record(r) for r in self.db.query(AppointmentRecord).all()]
        cases = [self._case_from_record(r) for r in self.db.query(CaseRecord).all()]
        payments = [self._payment_from_record(r) for r in self.db.query(PaymentRecord).all()]
        return appointments, cases, payments

    def save(self, event: CommitEvent) -> int:
        """Write every entity of a commit event in one transaction.

        Rows already holding the same or a newer version are left alone, so
        an older event arriving late does not roll an entity back.
        """
        written = 0
        for appointment in event.appointments:
            written += self._upsert(AppointmentRecord, appointment, self._appointment_values(appointment))
        for case in event.cases:
            written += self._upsert(CaseRecord, case, self._case_values(case))
        for payment in event.payments:
            written += self._upsert(PaymentRecord, payment, _columns(payment, _PAYMENT_COLUMNS))
        self.db.commit()
        logger.debug("Persisted %d row(s) for %s", written, event.operation)
        return written

    def _upsert(self, model, entity, values: dict) -> int:
        values = {**values, "version": entity.version}
        # Conditional UPDATE: the version check and the write are one statement
        updated = (
            self.db.query(model)
            .filter(model.id == entity.id, model.version < entity.version)
            .update(values, synchronize_session=False)
        )
        if updated:
            return 1
        if self.db.query(model.id).filter(model.id == entity.id).first() is not None:
            return 0
        self.db.add(model(id=entity.id, **values))
        return 1

    # =====================================================
    # ENTITY <-> ROW
    # =====================================================

    @staticmethod
    def _appointment_values(appointment: Appointment) -> dict:
        values = _columns(appointment, _APPOINTMENT_COLUMNS)
        values["approval_duration_seconds"] = _seconds(appointment.approval_duration)
        values["payment_duration_seconds"] = _seconds(appointment.payment_duration)
        return values

    @staticmethod
    def _case_values(case: Case) -> dict:
        values = _columns(case, _CASE_COLUMNS)
        values["next_payment_duration_seconds"] = _seconds(case.next_payment_duration)
        values["documents"] = [d.model_dump(mode="json") for d in case.documents]
        values["messages"] = [m.model_dump(mode="json") for m in case.messages]
        values["timeline"] = [t.model_dump(mode="json") for t in case.timeline]
        return values

    @staticmethod
    def _appointment_from_record(record: AppointmentRecord) -> Appointment:
        values = _columns(record, _APPOINTMENT_COLUMNS)
        values["description"] = values["description"] or ""
        values["approval_duration"] = timedelta(seconds=record.approval_duration_seconds)
        if record.payment_duration_seconds is not None:
            values["payment_duration"] = timedelta(seconds=record.payment_duration_seconds)
        return Appointment(id=record.id, version=record.version, **values)

    @staticmethod
    def _case_from_record(record: CaseRecord) -> Case:
        values = _columns(record, _CASE_COLUMNS)
        values["description"] = values["description"] or ""
        if record.next_payment_duration_seconds is not None:
            values["next_payment_duration"] = timedelta(seconds=record.next_payment_duration_seconds)
        return Case(
            id=record.id,
            version=record.version,
            documents=record.documents or [],
            messages=record.messages or [],
            timeline=record.timeline or [],
            **values,
        )

    @staticmethod
    def _payment_from_record(record: PaymentRecord) -> Payment:
        values = _columns(record, _PAYMENT_COLUMNS)
        values["description"] = values["description"] or ""
        return Payment(id=record.id, version=record.version, **values)


def persist_commits(session_factory: Callable[[], Session]) -> Callable[[CommitEvent], None]:
    """Build a post-commit hook writing each commit through a fresh session.

    Deliveries are serialized so that inserting a new row cannot race a
    concurrent write of the same entity.
    """
    lock = threading.Lock()

    def _persist(event: CommitEvent) -> None:
        with lock, session_scope(session_factory) as db:
            LifecycleStore(db).save(event)

    return _persist
