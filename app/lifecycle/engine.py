"""Lifecycle engine: the single owner and mutator of appointments, cases and payments.

Concurrency model
-----------------
* Every mutation holds a per-entity lock for each entity it reads-then-writes.
  Multi-entity commands take their locks in sorted key order.
* The committed state is an immutable ``LifecycleSnapshot``. A command builds
  the replacement entities while holding its locks, then swaps in a new
  snapshot under a short commit lock. Readers never lock and never observe a
  partially applied command.
* Post-commit hooks run after every lock has been released.
"""
import logging
import threading
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Mapping, NamedTuple, Optional, Tuple, Union

from app.lifecycle.deadlines import Clock, TimeWindows, deadline_passed, utc_now
from app.lifecycle.entities import (
    ActorRole, Appointment, Case, CaseDocument, CaseMessage, ConsultationType,
    Payment, PaymentKind, TimelineEntry, generate_id,
)
from app.lifecycle.errors import (
    DeadlinePassedError, DuplicateCaseError, InvalidTransitionError, NotFoundError,
    ValidationError,
)
from app.lifecycle.status import (
    CASE_BILLING_STATUSES, AppointmentStatus, CaseStatus, PaymentStatus,
    ensure_not_terminal, ensure_transition,
)

logger = logging.getLogger(__name__)

APPOINTMENT = "appointment"
CASE = "case"
PAYMENT = "payment"

Entity = Union[Appointment, Case, Payment]
LockKey = Tuple[str, str]


class LifecycleSnapshot(NamedTuple):
    appointments: Mapping[str, Appointment]
    cases: Mapping[str, Case]
    payments: Mapping[str, Payment]


class CommitEvent(NamedTuple):
    operation: str
    appointments: Tuple[Appointment, ...]
    cases: Tuple[Case, ...]
    payments: Tuple[Payment, ...]
    committed_at: datetime


class SweepTransition(NamedTuple):
    entity: str
    entity_id: str
    from_status: str
    to_status: str


def _freeze(items: Iterable[Entity]) -> Mapping[str, Entity]:
    return MappingProxyType({item.id: item for item in items})


def _money(value, field: str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a number, got {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite amount")
    return amount


class _EntityLocks:
    """Lazily created per-entity locks."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[LockKey, threading.Lock] = {}

    def _lock_for(self, key: LockKey) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, *keys: LockKey):
        acquired = []
        try:
            for key in sorted(set(keys)):
                lock = self._lock_for(key)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


class _Transaction:
    """Entities staged by one command; committed together or not at all."""

    def __init__(self, operation: str):
        self.operation = operation
        self.appointments: Dict[str, Appointment] = {}
        self.cases: Dict[str, Case] = {}
        self.payments: Dict[str, Payment] = {}

    def put(self, entity: Entity) -> Entity:
        entity = entity.model_copy(update={"version": entity.version + 1})
        if isinstance(entity, Appointment):
            self.appointments[entity.id] = entity
        elif isinstance(entity, Case):
            self.cases[entity.id] = entity
        else:
            self.payments[entity.id] = entity
        return entity


class LifecycleEngine:
    def __init__(
        self,
        windows: Optional[TimeWindows] = None,
        clock: Clock = utc_now,
        appointments: Iterable[Appointment] = (),
        cases: Iterable[Case] = (),
        payments: Iterable[Payment] = (),
    ):
        self.windows = windows or TimeWindows.from_settings()
        self._clock = clock
        self._locks = _EntityLocks()
        self._commit_lock = threading.Lock()
        self._subscribers: List[Callable[[CommitEvent], None]] = []
        self._state = LifecycleSnapshot(_freeze(appointments), _freeze(cases), _freeze(payments))

    # =====================================================
    # STATE ACCESS
    # =====================================================

    def now(self) -> datetime:
        return self._clock()

    def snapshot(self) -> LifecycleSnapshot:
        return self._state

    def load(self, appointments: Iterable[Appointment], cases: Iterable[Case], payments: Iterable[Payment]) -> None:
        """Replace the canonical collections with what the persistence boundary holds."""
        with self._commit_lock:
            self._state = LifecycleSnapshot(_freeze(appointments), _freeze(cases), _freeze(payments))
        logger.info(
            "Loaded %d appointments, %d cases, %d payments",
            len(self._state.appointments), len(self._state.cases), len(self._state.payments),
        )

    def subscribe(self, callback: Callable[[CommitEvent], None]) -> Callable[[], None]:
        """Register a post-commit hook. Returns a callable that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def update_windows(self, **changes) -> TimeWindows:
        """Apply new default windows. Existing deadlines are left untouched."""
        try:
            self.windows = TimeWindows(**{**self.windows.model_dump(), **changes})
        except ValueError as e:
            raise ValidationError(str(e))
        logger.info("Time windows updated: %s", self.windows.model_dump())
        return self.windows

    def get_appointment(self, appointment_id: str) -> Appointment:
        appointment = self._state.appointments.get(appointment_id)
        if appointment is None:
            raise NotFoundError(f"Appointment {appointment_id} not found")
        return appointment

    def get_case(self, case_id: str) -> Case:
        case = self._state.cases.get(case_id)
        if case is None:
            raise NotFoundError(f"Case {case_id} not found")
        return case

    def get_payment(self, payment_id: str) -> Payment:
        payment = self._state.payments.get(payment_id)
        if payment is None:
            raise NotFoundError(f"Payment {payment_id} not found")
        return payment

    def payments_for_appointment(self, appointment_id: str) -> List[Payment]:
        return [p for p in self._state.payments.values() if p.appointment_id == appointment_id]

    def payments_for_case(self, case_id: str) -> List[Payment]:
        return [p for p in self._state.payments.values() if p.case_id == case_id]

    def case_for_appointment(self, appointment_id: str) -> Optional[Case]:
        for case in self._state.cases.values():
            if case.appointment_id == appointment_id:
                return case
        return None

    # =====================================================
    # COMMIT PLUMBING
    # =====================================================

    @contextmanager
    def _transaction(self, operation: str, *keys: LockKey):
        tx = _Transaction(operation)
        with self._locks.hold(*keys):
            yield tx
            event = self._commit(tx)
        self._notify(event)

    def _commit(self, tx: _Transaction) -> CommitEvent:
        with self._commit_lock:
            state = self._state
            self._state = LifecycleSnapshot(
                MappingProxyType({**state.appointments, **tx.appointments}),
                MappingProxyType({**state.cases, **tx.cases}),
                MappingProxyType({**state.payments, **tx.payments}),
            )
        event = CommitEvent(
            operation=tx.operation,
            appointments=tuple(tx.appointments.values()),
            cases=tuple(tx.cases.values()),
            payments=tuple(tx.payments.values()),
            committed_at=self.now(),
        )
        logger.info(
            "Committed %s (appointments=%s cases=%s payments=%s)",
            tx.operation, list(tx.appointments), list(tx.cases), list(tx.payments),
        )
        return event

    def _notify(self, event: CommitEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Post-commit hook %r failed for %s", callback, event.operation)

    # =====================================================
    # APPOINTMENT COMMANDS
    # =====================================================

    def book_appointment(
        self,
        client_id: str,
        lawyer_id: str,
        consultation_type: ConsultationType,
        case_type: str,
        selected_date: date,
        selected_time: str,
        consultation_fee: Decimal,
        description: str = "",
        client_name: Optional[str] = None,
        lawyer_name: Optional[str] = None,
    ) -> Appointment:
        """Create a consultation request awaiting the lawyer's approval."""
        consultation_fee = _money(consultation_fee, "Consultation fee")
        if consultation_fee <= 0:
            raise ValidationError("Consultation fee must be greater than zero")
        now = self.now()
        window = self.windows.approval_window
        try:
            appointment = Appointment(
                id=generate_id("apt"),
                client_id=client_id,
                lawyer_id=lawyer_id,
                client_name=client_name,
                lawyer_name=lawyer_name,
                consultation_type=consultation_type,
                case_type=case_type,
                description=description,
                selected_date=selected_date,
                selected_time=selected_time,
                consultation_fee=consultation_fee,
                status=AppointmentStatus.PENDING_LAWYER_APPROVAL,
                approval_deadline=now + window,
                approval_duration=window,
                created_at=now,
            )
        except ValueError as e:
            raise ValidationError(str(e))

        with self._transaction("book_appointment", (APPOINTMENT, appointment.id)) as tx:
            appointment = tx.put(appointment)
        return appointment

    def approve_appointment(self, appointment_id: str) -> Appointment:
        with self._transaction("approve_appointment", (APPOINTMENT, appointment_id)) as tx:
            appointment = self.get_appointment(appointment_id)
            ensure_transition(
                appointment.status, AppointmentStatus.APPROVED_AWAITING_PAYMENT, "Appointment", appointment_id
            )
            now = self.now()
            if deadline_passed(appointment.approval_deadline, now):
                raise DeadlinePassedError(f"Approval window for appointment {appointment_id} has closed")

            window = self.windows.payment_window
            payment_deadline = now + window
            appointment = tx.put(appointment.model_copy(update={
                "status": AppointmentStatus.APPROVED_AWAITING_PAYMENT,
                "approval_deadline": None,
                "payment_deadline": payment_deadline,
                "payment_duration": window,
                "approved_at": now,
            }))
            tx.put(Payment(
                id=generate_id("pay"),
                appointment_id=appointment_id,
                client_id=appointment.client_id,
                lawyer_id=appointment.lawyer_id,
                amount=appointment.consultation_fee,
                kind=PaymentKind.CONSULTATION_FEE,
                description=f"Consultation fee for appointment with {appointment.lawyer_name or appointment.lawyer_id}",
                status=PaymentStatus.PENDING,
                created_at=now,
                deadline=payment_deadline,
            ))
        return appointment

    def decline_appointment(self, appointment_id: str, reason: str = "") -> Appointment:
        with self._transaction("decline_appointment", (APPOINTMENT, appointment_id)) as tx:
            appointment = self.get_appointment(appointment_id)
            ensure_transition(appointment.status, AppointmentStatus.DECLINED_BY_LAWYER, "Appointment", appointment_id)
            appointment = tx.put(appointment.model_copy(update={
                "status": AppointmentStatus.DECLINED_BY_LAWYER,
                "decline_reason": reason,
                "declined_at": self.now(),
                "approval_deadline": None,
                "payment_deadline": None,
            }))
        return appointment

    def cancel_appointment(self, appointment_id: str, reason: str = "") -> Appointment:
        with self._transaction("cancel_appointment", (APPOINTMENT, appointment_id)) as tx:
            appointment = self.get_appointment(appointment_id)
            ensure_transition(appointment.status, AppointmentStatus.CANCELLED_BY_CLIENT, "Appointment", appointment_id)
            appointment = tx.put(appointment.model_copy(update={
                "status": AppointmentStatus.CANCELLED_BY_CLIENT,
                "cancel_reason": reason,
                "cancelled_at": self.now(),
                "approval_deadline": None,
                "payment_deadline": None,
            }))
            for payment in self._pending_payments(appointment_id=appointment_id):
                tx.put(payment.model_copy(update={"status": PaymentStatus.FAILED}))
        return appointment

    def complete_consultation(self, appointment_id: str) -> Appointment:
        with self._transaction("complete_consultation", (APPOINTMENT, appointment_id)) as tx:
            appointment = self.get_appointment(appointment_id)
            ensure_transition(appointment.status, AppointmentStatus.COMPLETED, "Appointment", appointment_id)
            appointment = tx.put(appointment.model_copy(update={
                "status": AppointmentStatus.COMPLETED,
                "completed_at": self.now(),
            }))
        return appointment

    def _pending_payments(self, appointment_id: Optional[str] = None, case_id: Optional[str] = None) -> List[Payment]:
        # A PENDING payment only changes while its appointment or case lock is
        # held, so reading them under that lock is stable.
        if appointment_id is not None:
            payments = self.payments_for_appointment(appointment_id)
        else:
            payments = self.payments_for_case(case_id)
        return [p for p in payments if p.status == PaymentStatus.PENDING]

    # =====================================================
    # PAYMENT COMMANDS
    # =====================================================

    def confirm_payment(self, payment_id: str) -> Payment:
        payment = self.get_payment(payment_id)
        if payment.appointment_id:
            linked = (APPOINTMENT, payment.appointment_id)
        else:
            linked = (CASE, payment.case_id)

        with self._transaction("confirm_payment", (PAYMENT, payment_id), linked) as tx:
            payment = self.get_payment(payment_id)
            ensure_transition(payment.status, PaymentStatus.SUCCESS, "Payment", payment_id)
            now = self.now()
            if payment.appointment_id:
                self._settle_appointment(tx, payment, now)
            else:
                self._settle_case(tx, payment, now)
            payment = tx.put(payment.model_copy(update={"status": PaymentStatus.SUCCESS, "paid_at": now}))
        return payment

    def _settle_appointment(self, tx: _Transaction, payment: Payment, now: datetime) -> None:
        appointment = self.get_appointment(payment.appointment_id)
        if (appointment.status == AppointmentStatus.APPROVED_AWAITING_PAYMENT
                and deadline_passed(appointment.payment_deadline, now)):
            raise DeadlinePassedError(f"Payment window for appointment {appointment.id} has closed")
        ensure_transition(appointment.status, AppointmentStatus.CONFIRMED, "Appointment", appointment.id)
        tx.put(appointment.model_copy(update={
            "status": AppointmentStatus.CONFIRMED,
            "payment_deadline": None,
            "confirmed_at": now,
        }))

    def _settle_case(self, tx: _Transaction, payment: Payment, now: datetime) -> None:
        case = self.get_case(payment.case_id)
        ensure_not_terminal(case.status, "Case", case.id)
        paid_amount = case.paid_amount + payment.amount
        if paid_amount > case.total_fees:
            raise ValidationError(f"Payment {payment.id} exceeds the outstanding fees of case {case.id}")

        update = {"paid_amount": paid_amount}
        status = case.status
        if status in CASE_BILLING_STATUSES:
            ensure_transition(status, CaseStatus.ACTIVE, "Case", case.id)
            status = update["status"] = CaseStatus.ACTIVE
            update["next_payment_deadline"] = None
            update["next_payment_duration"] = None
        update["timeline"] = case.timeline + (
            TimelineEntry(event=f"Payment received: {payment.description}", date=now, status=status),
        )
        tx.put(case.model_copy(update=update))

    def refund_payment(self, payment_id: str) -> Payment:
        with self._transaction("refund_payment", (PAYMENT, payment_id)) as tx:
            payment = self.get_payment(payment_id)
            ensure_transition(payment.status, PaymentStatus.REFUNDED, "Payment", payment_id)
            payment = tx.put(payment.model_copy(update={"status": PaymentStatus.REFUNDED}))
        return payment

    # =====================================================
    # CASE COMMANDS
    # =====================================================

    def start_case(
        self,
        appointment_id: str,
        title: str,
        description: Optional[str] = None,
        case_type: Optional[str] = None,
        estimated_fees: Decimal = Decimal("0"),
    ) -> Case:
        """Open a case from a completed consultation. One case per appointment."""
        if not title or not title.strip():
            raise ValidationError("Case title is required")
        estimated_fees = _money(estimated_fees, "Estimated fees")
        if estimated_fees < 0:
            raise ValidationError("Estimated fees must not be negative")

        with self._transaction("start_case", (APPOINTMENT, appointment_id)) as tx:
            appointment = self.get_appointment(appointment_id)
            if appointment.status != AppointmentStatus.COMPLETED:
                raise InvalidTransitionError(
                    f"Appointment {appointment_id} is {appointment.status.value}; "
                    "a case can only be started from a completed consultation"
                )
            existing = self.case_for_appointment(appointment_id)
            if existing is not None:
                raise DuplicateCaseError(f"Appointment {appointment_id} already opened case {existing.id}")

            now = self.now()
            case = tx.put(Case(
                id=generate_id("case"),
                appointment_id=appointment_id,
                client_id=appointment.client_id,
                lawyer_id=appointment.lawyer_id,
                client_name=appointment.client_name,
                lawyer_name=appointment.lawyer_name,
                title=title.strip(),
                description=description if description is not None else appointment.description,
                case_type=case_type or appointment.case_type,
                status=CaseStatus.ACTIVE,
                total_fees=estimated_fees,
                paid_amount=Decimal("0"),
                progress=0,
                timeline=(TimelineEntry(event="Case opened", date=now, status=CaseStatus.ACTIVE),),
                created_at=now,
            ))
        return case

    def request_case_payment(self, case_id: str, amount: Decimal, description: str = "Additional case fee") -> Payment:
        amount = _money(amount, "Payment amount")
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than zero")

        with self._transaction("request_case_payment", (CASE, case_id)) as tx:
            case = self.get_case(case_id)
            ensure_transition(case.status, CaseStatus.PAYMENT_PENDING, "Case", case_id)
            now = self.now()
            window = self.windows.case_payment_window
            deadline = now + window
            payment = tx.put(Payment(
                id=generate_id("pay"),
                case_id=case_id,
                client_id=case.client_id,
                lawyer_id=case.lawyer_id,
                amount=amount,
                kind=PaymentKind.CASE_FEE,
                description=description,
                status=PaymentStatus.PENDING,
                created_at=now,
                deadline=deadline,
            ))
            tx.put(case.model_copy(update={
                "status": CaseStatus.PAYMENT_PENDING,
                "next_payment_deadline": deadline,
                "next_payment_duration": window,
                "total_fees": case.total_fees + payment.amount,
                "timeline": case.timeline + (
                    TimelineEntry(event=f"Payment requested: {description}", date=now, status=CaseStatus.PAYMENT_PENDING),
                ),
            }))
        return payment

    def close_case(self, case_id: str) -> Case:
        with self._transaction("close_case", (CASE, case_id)) as tx:
            case = self.get_case(case_id)
            ensure_transition(case.status, CaseStatus.CLOSED_BY_LAWYER, "Case", case_id)
            now = self.now()
            case = tx.put(case.model_copy(update={
                "status": CaseStatus.CLOSED_BY_LAWYER,
                "progress": 100,
                "closed_at": now,
                "timeline": case.timeline + (
                    TimelineEntry(event="Case closed by lawyer", date=now, status=CaseStatus.CLOSED_BY_LAWYER),
                ),
            }))
        return case

    def terminate_case(self, case_id: str, reason: str = "") -> Case:
        with self._transaction("terminate_case", (CASE, case_id)) as tx:
            case = self.get_case(case_id)
            ensure_transition(case.status, CaseStatus.TERMINATED, "Case", case_id)
            now = self.now()
            event = f"Case terminated: {reason}" if reason else "Case terminated"
            case = tx.put(case.model_copy(update={
                "status": CaseStatus.TERMINATED,
                "termination_reason": reason,
                "terminated_at": now,
                "next_payment_deadline": None,
                "next_payment_duration": None,
                "timeline": case.timeline + (
                    TimelineEntry(event=event, date=now, status=CaseStatus.TERMINATED),
                ),
            }))
            for payment in self._pending_payments(case_id=case_id):
                tx.put(payment.model_copy(update={"status": PaymentStatus.FAILED}))
        return case

    def update_case_progress(self, case_id: str, progress: int) -> Case:
        if not 0 <= progress <= 100:
            raise ValidationError("Progress must be between 0 and 100")
        with self._transaction("update_case_progress", (CASE, case_id)) as tx:
            case = self.get_case(case_id)
            ensure_not_terminal(case.status, "Case", case_id)
            case = tx.put(case.model_copy(update={"progress": progress}))
        return case

    def add_document_to_case(
        self,
        case_id: str,
        name: str,
        category: Optional[str] = None,
        url: Optional[str] = None,
        uploaded_by: Optional[str] = None,
    ) -> CaseDocument:
        if not name or not name.strip():
            raise ValidationError("Document name is required")
        with self._transaction("add_document_to_case", (CASE, case_id)) as tx:
            case = self.get_case(case_id)
            ensure_not_terminal(case.status, "Case", case_id)
            document = CaseDocument(
                id=generate_id("doc"),
                name=name.strip(),
                category=category,
                url=url,
                uploaded_by=uploaded_by,
                uploaded_at=self.now(),
            )
            tx.put(case.model_copy(update={"documents": case.documents + (document,)}))
        return document

    def remove_document_from_case(self, case_id: str, document_id: str) -> Case:
        with self._transaction("remove_document_from_case", (CASE, case_id)) as tx:
            case = self.get_case(case_id)
            ensure_not_terminal(case.status, "Case", case_id)
            documents = tuple(d for d in case.documents if d.id != document_id)
            if len(documents) == len(case.documents):
                raise NotFoundError(f"Document {document_id} not found on case {case_id}")
            case = tx.put(case.model_copy(update={"documents": documents}))
        return case

    def add_message_to_case(
        self,
        case_id: str,
        text: str,
        sender: ActorRole = ActorRole.CLIENT,
        sender_name: Optional[str] = None,
    ) -> CaseMessage:
        if not text or not text.strip():
            raise ValidationError("Message text is required")
        with self._transaction("add_message_to_case", (CASE, case_id)) as tx:
            case = self.get_case(case_id)
            ensure_not_terminal(case.status, "Case", case_id)
            message = CaseMessage(
                id=generate_id("msg"),
                sender=ActorRole(sender),
                sender_name=sender_name,
                text=text,
                timestamp=self.now(),
            )
            tx.put(case.model_copy(update={"messages": case.messages + (message,)}))
        return message

    # =====================================================
    # EXPIRY SWEEP
    # =====================================================

    def sweep_expired(self) -> List[SweepTransition]:
        """Apply every deadline expiry that is due.

        Candidates are picked from a snapshot and re-checked under their
        entity lock; an entity that moved on in the meantime is skipped.
        """
        now = self.now()
        state = self._state
        applied: List[SweepTransition] = []

        for appointment in list(state.appointments.values()):
            if (appointment.status == AppointmentStatus.PENDING_LAWYER_APPROVAL
                    and deadline_passed(appointment.approval_deadline, now)):
                self._sweep_one(applied, self._expire_approval, appointment.id, now)
            elif (appointment.status == AppointmentStatus.APPROVED_AWAITING_PAYMENT
                    and deadline_passed(appointment.payment_deadline, now)):
                self._sweep_one(applied, self._expire_payment_window, appointment.id, now)

        for case in list(state.cases.values()):
            if case.status == CaseStatus.PAYMENT_PENDING and deadline_passed(case.next_payment_deadline, now):
                self._sweep_one(applied, self._mark_case_overdue, case.id, now)

        if applied:
            logger.info("Expiry sweep applied %d transition(s)", len(applied))
        return applied

    def _sweep_one(self, applied: List[SweepTransition], expire, entity_id: str, now: datetime) -> None:
        try:
            applied.append(expire(entity_id, now))
        except (InvalidTransitionError, DeadlinePassedError) as e:
            logger.debug("Sweep skipped %s: %s", entity_id, e)

    def _expire_approval(self, appointment_id: str, now: datetime) -> SweepTransition:
        with self._transaction("expire_approval", (APPOINTMENT, appointment_id)) as tx:
            appointment = self.get_appointment(appointment_id)
            ensure_transition(appointment.status, AppointmentStatus.EXPIRED, "Appointment", appointment_id)
            if not deadline_passed(appointment.approval_deadline, now):
                raise InvalidTransitionError(f"Appointment {appointment_id} approval window is still open")
            tx.put(appointment.model_copy(update={
                "status": AppointmentStatus.EXPIRED,
                "approval_deadline": None,
            }))
        return SweepTransition(APPOINTMENT, appointment_id, appointment.status.value, AppointmentStatus.EXPIRED.value)

    def _expire_payment_window(self, appointment_id: str, now: datetime) -> SweepTransition:
        with self._transaction("expire_payment_window", (APPOINTMENT, appointment_id)) as tx:
            appointment = self.get_appointment(appointment_id)
            ensure_transition(appointment.status, AppointmentStatus.PAYMENT_EXPIRED, "Appointment", appointment_id)
            if not deadline_passed(appointment.payment_deadline, now):
                raise InvalidTransitionError(f"Appointment {appointment_id} payment window is still open")
            tx.put(appointment.model_copy(update={
                "status": AppointmentStatus.PAYMENT_EXPIRED,
                "payment_deadline": None,
            }))
            for payment in self._pending_payments(appointment_id=appointment_id):
                tx.put(payment.model_copy(update={"status": PaymentStatus.EXPIRED}))
        return SweepTransition(
            APPOINTMENT, appointment_id, appointment.status.value, AppointmentStatus.PAYMENT_EXPIRED.value
        )

    def _mark_case_overdue(self, case_id: str, now: datetime) -> SweepTransition:
        with self._transaction("mark_case_overdue", (CASE, case_id)) as tx:
            case = self.get_case(case_id)
            ensure_transition(case.status, CaseStatus.PAYMENT_OVERDUE, "Case", case_id)
            if not deadline_passed(case.next_payment_deadline, now):
                raise InvalidTransitionError(f"Case {case_id} payment is not yet due")
            tx.put(case.model_copy(update={
                "status": CaseStatus.PAYMENT_OVERDUE,
                "timeline": case.timeline + (
                    TimelineEntry(event="Payment overdue", date=now, status=CaseStatus.PAYMENT_OVERDUE),
                ),
            }))
        return SweepTransition(CASE, case_id, case.status.value, CaseStatus.PAYMENT_OVERDUE.value)
