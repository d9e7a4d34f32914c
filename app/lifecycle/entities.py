"""Immutable records for the three canonical collections.

The engine never mutates an entity in place. A committed change produces a
new instance through ``model_copy`` with ``version`` bumped by one.
"""
import enum
import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator

from app.lifecycle.status import AppointmentStatus, CaseStatus, PaymentStatus


def generate_id(prefix: str) -> str:
    """Generate a prefixed unique id, e.g. ``apt-3f9c1a2b7d4e``."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class ActorRole(str, enum.Enum):
    CLIENT = "client"
    LAWYER = "lawyer"

class ConsultationType(str, enum.Enum):
    VIDEO = "video"
    IN_OFFICE = "in-office"
    PHONE = "phone"

class PaymentKind(str, enum.Enum):
    CONSULTATION_FEE = "consultation_fee"
    CASE_FEE = "case_fee"


class _Entity(BaseModel):
    version: int = 0

    class Config:
        frozen = True


class Appointment(_Entity):
    id: str
    client_id: str
    lawyer_id: str
    client_name: Optional[str] = None
    lawyer_name: Optional[str] = None
    consultation_type: ConsultationType
    case_type: str
    description: str = ""
    selected_date: date
    selected_time: str
    consultation_fee: Decimal = Field(..., gt=0)
    status: AppointmentStatus = AppointmentStatus.PENDING_LAWYER_APPROVAL

    approval_deadline: Optional[datetime] = None
    approval_duration: timedelta
    payment_deadline: Optional[datetime] = None
    payment_duration: Optional[timedelta] = None

    decline_reason: Optional[str] = None
    cancel_reason: Optional[str] = None

    created_at: datetime
    approved_at: Optional[datetime] = None
    declined_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_deadlines(self):
        if self.approval_deadline is not None and self.payment_deadline is not None:
            raise ValueError("an appointment cannot carry approval and payment deadlines at once")
        return self


class CaseDocument(BaseModel):
    id: str
    name: str
    category: Optional[str] = None
    url: Optional[str] = None
    uploaded_by: Optional[str] = None
    uploaded_at: datetime

    class Config:
        frozen = True


class CaseMessage(BaseModel):
    id: str
    sender: ActorRole
    sender_name: Optional[str] = None
    text: str
    timestamp: datetime

    class Config:
        frozen = True


class TimelineEntry(BaseModel):
    event: str
    date: datetime
    status: CaseStatus

    class Config:
        frozen = True


class Case(_Entity):
    id: str
    appointment_id: str
    client_id: str
    lawyer_id: str
    client_name: Optional[str] = None
    lawyer_name: Optional[str] = None
    title: str
    description: str = ""
    case_type: str
    status: CaseStatus = CaseStatus.ACTIVE

    total_fees: Decimal = Decimal("0")
    paid_amount: Decimal = Decimal("0")
    progress: int = Field(0, ge=0, le=100)

    documents: Tuple[CaseDocument, ...] = ()
    messages: Tuple[CaseMessage, ...] = ()
    timeline: Tuple[TimelineEntry, ...] = ()

    next_payment_deadline: Optional[datetime] = None
    next_payment_duration: Optional[timedelta] = None
    termination_reason: Optional[str] = None

    created_at: datetime
    closed_at: Optional[datetime] = None
    terminated_at: Optional[datetime] = None

    @field_validator("total_fees", "paid_amount")
    @classmethod
    def non_negative(cls, value):
        if value < 0:
            raise ValueError("amounts must not be negative")
        return value

    @property
    def outstanding(self) -> Decimal:
        return self.total_fees - self.paid_amount


class Payment(_Entity):
    id: str
    appointment_id: Optional[str] = None
    case_id: Optional[str] = None
    client_id: str
    lawyer_id: str
    amount: Decimal = Field(..., gt=0)
    kind: PaymentKind
    description: str = ""
    status: PaymentStatus = PaymentStatus.PENDING
    created_at: datetime
    deadline: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_obligation(self):
        if (self.appointment_id is None) == (self.case_id is None):
            raise ValueError("a payment settles exactly one appointment or case")
        return self
