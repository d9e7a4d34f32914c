from pydantic import BaseModel
from typing import List
from datetime import date

from app.lifecycle.entities import Appointment, Case, Payment
from app.lifecycle.views import DashboardStats


class ScheduleResponse(BaseModel):
    today: date
    appointments: List[Appointment]

class StatsResponse(BaseModel):
    today: date
    stats: DashboardStats

class ActorCollections(BaseModel):
    appointments: List[Appointment]
    cases: List[Case]
    payments: List[Payment]
