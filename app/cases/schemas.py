from pydantic import BaseModel, Field
from typing import Optional
from decimal import Decimal

from app.lifecycle.entities import ActorRole, Case
from app.lifecycle.views import DeadlineInfo


class CaseCreate(BaseModel):
    appointment_id: str
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    case_type: Optional[str] = Field(None, max_length=100)
    estimated_fees: Decimal = Field(Decimal("0"), ge=0)

class CasePaymentRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    description: str = Field("Additional case fee", max_length=255)

class CaseTermination(BaseModel):
    reason: str = ""

class CaseProgressUpdate(BaseModel):
    progress: int = Field(..., ge=0, le=100)

class CaseDocumentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    category: Optional[str] = None
    url: Optional[str] = None
    uploaded_by: Optional[str] = None

class CaseMessageCreate(BaseModel):
    text: str = Field(..., min_length=1)
    sender: ActorRole = ActorRole.CLIENT
    sender_name: Optional[str] = None

class CaseResponse(Case):
    outstanding_fees: Decimal
    deadline: Optional[DeadlineInfo] = None
