from fastapi import APIRouter, Depends, HTTPException, status
from typing import List, Optional

from app.appointments.schemas import (
    AppointmentCancel, AppointmentCreate, AppointmentDecline, AppointmentResponse,
)
from app.dependencies import get_engine
from app.lifecycle.engine import LifecycleEngine
from app.lifecycle.entities import Appointment, Payment
from app.lifecycle.views import DeadlineInfo, deadline_info

router = APIRouter(prefix="/appointments", tags=["Appointments"])


def to_response(appointment: Appointment, engine: LifecycleEngine) -> AppointmentResponse:
    return AppointmentResponse(
        **appointment.model_dump(),
        deadline=deadline_info(appointment, engine.now(), engine.windows),
    )

# =====================================================
# CLIENT ACTIONS
# =====================================================

@router.post("/", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    booking: AppointmentCreate,
    engine: LifecycleEngine = Depends(get_engine),
):
    """Request a consultation; the lawyer has the approval window to respond."""
    appointment = engine.book_appointment(**booking.model_dump())
    return to_response(appointment, engine)

@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: str,
    body: Optional[AppointmentCancel] = None,
    engine: LifecycleEngine = Depends(get_engine),
):
    reason = body.reason if body else ""
    return to_response(engine.cancel_appointment(appointment_id, reason), engine)

# =====================================================
# LAWYER ACTIONS
# =====================================================

@router.post("/{appointment_id}/approve", response_model=AppointmentResponse)
async def approve_appointment(appointment_id: str, engine: LifecycleEngine = Depends(get_engine)):
    return to_response(engine.approve_appointment(appointment_id), engine)

@router.post("/{appointment_id}/decline", response_model=AppointmentResponse)
async def decline_appointment(
    appointment_id: str,
    body: AppointmentDecline,
    engine: LifecycleEngine = Depends(get_engine),
):
    return to_response(engine.decline_appointment(appointment_id, body.reason), engine)

@router.post("/{appointment_id}/complete", response_model=AppointmentResponse)
async def complete_consultation(appointment_id: str, engine: LifecycleEngine = Depends(get_engine)):
    return to_response(engine.complete_consultation(appointment_id), engine)

# =====================================================
# QUERIES
# =====================================================

@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(appointment_id: str, engine: LifecycleEngine = Depends(get_engine)):
    return to_response(engine.get_appointment(appointment_id), engine)

@router.get("/{appointment_id}/deadline", response_model=DeadlineInfo)
async def get_appointment_deadline(appointment_id: str, engine: LifecycleEngine = Depends(get_engine)):
    """Countdown for whichever deadline currently governs the appointment."""
    info = deadline_info(engine.get_appointment(appointment_id), engine.now(), engine.windows)
    if info is None:
        raise HTTPException(status_code=404, detail="Appointment has no pending deadline")
    return info

@router.get("/{appointment_id}/payments", response_model=List[Payment])
async def list_appointment_payments(appointment_id: str, engine: LifecycleEngine = Depends(get_engine)):
    engine.get_appointment(appointment_id)
    return engine.payments_for_appointment(appointment_id)
