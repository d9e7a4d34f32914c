from fastapi import APIRouter, Depends

from app.dependencies import get_engine
from app.lifecycle.engine import LifecycleEngine
from app.lifecycle.entities import Payment
from app.lifecycle.status import PaymentStatus
from app.lifecycle.views import deadline_info
from app.payments.schemas import PaymentResponse

router = APIRouter(prefix="/payments", tags=["Payments"])


def to_response(payment: Payment, engine: LifecycleEngine) -> PaymentResponse:
    info = None
    if payment.status == PaymentStatus.PENDING:
        if payment.appointment_id:
            owner = engine.get_appointment(payment.appointment_id)
        else:
            owner = engine.get_case(payment.case_id)
        info = deadline_info(owner, engine.now(), engine.windows)
    return PaymentResponse(**payment.model_dump(), deadline_info=info)


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(payment_id: str, engine: LifecycleEngine = Depends(get_engine)):
    return to_response(engine.get_payment(payment_id), engine)

@router.post("/{payment_id}/confirm", response_model=PaymentResponse)
async def confirm_payment(payment_id: str, engine: LifecycleEngine = Depends(get_engine)):
    """Record a successful payment and settle the appointment or case it belongs to."""
    return to_response(engine.confirm_payment(payment_id), engine)

@router.post("/{payment_id}/refund", response_model=PaymentResponse)
async def refund_payment(payment_id: str, engine: LifecycleEngine = Depends(get_engine)):
    return to_response(engine.refund_payment(payment_id), engine)
