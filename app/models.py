from sqlalchemy import Column, Integer, String, Text, DateTime, Date, Enum, DECIMAL, JSON
from sqlalchemy.sql import func

from app.database import Base
from app.lifecycle.entities import ConsultationType, PaymentKind
from app.lifecycle.status import AppointmentStatus, CaseStatus, PaymentStatus

# =====================================================
# APPOINTMENTS
# =====================================================

class AppointmentRecord(Base):
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True)
    version = Column(Integer, nullable=False, default=0)
    client_id = Column(String(36), nullable=False, index=True)
    lawyer_id = Column(String(36), nullable=False, index=True)
    client_name = Column(String(255))
    lawyer_name = Column(String(255))

    consultation_type = Column(Enum(ConsultationType), nullable=False)
    case_type = Column(String(100), nullable=False)
    description = Column(Text)
    selected_date = Column(Date, nullable=False, index=True)
    selected_time = Column(String(20), nullable=False)
    consultation_fee = Column(DECIMAL(12, 2), nullable=False)
    status = Column(Enum(AppointmentStatus), nullable=False, index=True)

    # Deadlines
    approval_deadline = Column(DateTime(timezone=True), index=True)
    approval_duration_seconds = Column(Integer, nullable=False)
    payment_deadline = Column(DateTime(timezone=True), index=True)
    payment_duration_seconds = Column(Integer)

    decline_reason = Column(Text)
    cancel_reason = Column(Text)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False)
    approved_at = Column(DateTime(timezone=True))
    declined_at = Column(DateTime(timezone=True))
    cancelled_at = Column(DateTime(timezone=True))
    confirmed_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

# =====================================================
# CASES
# =====================================================

class CaseRecord(Base):
    __tablename__ = "cases"

    id = Column(String(36), primary_key=True)
    version = Column(Integer, nullable=False, default=0)
    appointment_id = Column(String(36), nullable=False, unique=True, index=True)
    client_id = Column(String(36), nullable=False, index=True)
    lawyer_id = Column(String(36), nullable=False, index=True)
    client_name = Column(String(255))
    lawyer_name = Column(String(255))

    title = Column(String(255), nullable=False)
    description = Column(Text)
    case_type = Column(String(100), nullable=False)
    status = Column(Enum(CaseStatus), nullable=False, index=True)

    # Billing
    total_fees = Column(DECIMAL(12, 2), nullable=False, default=0)
    paid_amount = Column(DECIMAL(12, 2), nullable=False, default=0)
    next_payment_deadline = Column(DateTime(timezone=True), index=True)
    next_payment_duration_seconds = Column(Integer)
    progress = Column(Integer, nullable=False, default=0)

    # Owned collections
    documents = Column(JSON)
    messages = Column(JSON)
    timeline = Column(JSON)

    termination_reason = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False)
    closed_at = Column(DateTime(timezone=True))
    terminated_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

# =====================================================
# PAYMENTS
# =====================================================

class PaymentRecord(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True)
    version = Column(Integer, nullable=False, default=0)
    appointment_id = Column(String(36), index=True)
    case_id = Column(String(36), index=True)
    client_id = Column(String(36), nullable=False, index=True)
    lawyer_id = Column(String(36), nullable=False, index=True)

    amount = Column(DECIMAL(12, 2), nullable=False)
    kind = Column(Enum(PaymentKind), nullable=False)
    description = Column(Text)
    status = Column(Enum(PaymentStatus), nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    deadline = Column(DateTime(timezone=True))
    paid_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())
