from pydantic import BaseModel, Field
from typing import Optional
from datetime import date
from decimal import Decimal

from app.lifecycle.entities import Appointment, ConsultationType
from app.lifecycle.views import DeadlineInfo


class AppointmentCreate(BaseModel):
    client_id: str = Field(..., min_length=1, max_length=36)
    lawyer_id: str = Field(..., min_length=1, max_length=36)
    client_name: Optional[str] = Field(None, max_length=255)
    lawyer_name: Optional[str] = Field(None, max_length=255)
    consultation_type: ConsultationType
    case_type: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    selected_date: date
    selected_time: str = Field(..., min_length=1, max_length=20)
    consultation_fee: Decimal = Field(..., gt=0)

class AppointmentDecline(BaseModel):
    reason: str = ""

class AppointmentCancel(BaseModel):
    reason: str = ""

class AppointmentResponse(Appointment):
    deadline: Optional[DeadlineInfo] = None
