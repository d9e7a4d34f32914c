from fastapi import APIRouter, Depends, status
from typing import List

from app.cases.schemas import (
    CaseCreate, CaseDocumentCreate, CaseMessageCreate, CasePaymentRequest,
    CaseProgressUpdate, CaseResponse, CaseTermination,
)
from app.dependencies import get_engine
from app.lifecycle.engine import LifecycleEngine
from app.lifecycle.entities import Case, CaseDocument, CaseMessage, Payment
from app.lifecycle.views import deadline_info

router = APIRouter(prefix="/cases", tags=["Cases"])


def to_response(case: Case, engine: LifecycleEngine) -> CaseResponse:
    return CaseResponse(
        **case.model_dump(),
        outstanding_fees=case.outstanding,
        deadline=deadline_info(case, engine.now(), engine.windows),
    )

# =====================================================
# CASE LIFECYCLE
# =====================================================

@router.post("/", response_model=CaseResponse, status_code=status.HTTP_201_CREATED)
async def start_case(case_data: CaseCreate, engine: LifecycleEngine = Depends(get_engine)):
    """Open a case from a completed consultation."""
    case = engine.start_case(**case_data.model_dump())
    return to_response(case, engine)

@router.get("/{case_id}", response_model=CaseResponse)
async def get_case(case_id: str, engine: LifecycleEngine = Depends(get_engine)):
    return to_response(engine.get_case(case_id), engine)

@router.post("/{case_id}/close", response_model=CaseResponse)
async def close_case(case_id: str, engine: LifecycleEngine = Depends(get_engine)):
    return to_response(engine.close_case(case_id), engine)

@router.post("/{case_id}/terminate", response_model=CaseResponse)
async def terminate_case(
    case_id: str,
    body: CaseTermination,
    engine: LifecycleEngine = Depends(get_engine),
):
    return to_response(engine.terminate_case(case_id, body.reason), engine)

@router.put("/{case_id}/progress", response_model=CaseResponse)
async def update_case_progress(
    case_id: str,
    body: CaseProgressUpdate,
    engine: LifecycleEngine = Depends(get_engine),
):
    return to_response(engine.update_case_progress(case_id, body.progress), engine)

# =====================================================
# BILLING
# =====================================================

@router.post("/{case_id}/payment-requests", response_model=Payment, status_code=status.HTTP_201_CREATED)
async def request_case_payment(
    case_id: str,
    body: CasePaymentRequest,
    engine: LifecycleEngine = Depends(get_engine),
):
    """Ask the client for a further fee; the case waits in PAYMENT_PENDING until paid."""
    return engine.request_case_payment(case_id, body.amount, body.description)

@router.get("/{case_id}/payments", response_model=List[Payment])
async def list_case_payments(case_id: str, engine: LifecycleEngine = Depends(get_engine)):
    engine.get_case(case_id)
    return engine.payments_for_case(case_id)

# =====================================================
# DOCUMENTS & MESSAGES
# =====================================================

@router.post("/{case_id}/documents", response_model=CaseDocument, status_code=status.HTTP_201_CREATED)
async def add_document(
    case_id: str,
    document: CaseDocumentCreate,
    engine: LifecycleEngine = Depends(get_engine),
):
    return engine.add_document_to_case(case_id, **document.model_dump())

@router.delete("/{case_id}/documents/{document_id}", response_model=CaseResponse)
async def remove_document(case_id: str, document_id: str, engine: LifecycleEngine = Depends(get_engine)):
    return to_response(engine.remove_document_from_case(case_id, document_id), engine)

@router.post("/{case_id}/messages", response_model=CaseMessage, status_code=status.HTTP_201_CREATED)
async def add_message(
    case_id: str,
    message: CaseMessageCreate,
    engine: LifecycleEngine = Depends(get_engine),
):
    return engine.add_message_to_case(case_id, message.text, message.sender, message.sender_name)
