from fastapi import APIRouter, Depends, Query
from typing import Optional
from datetime import date

from app.dashboard.schemas import ActorCollections, ScheduleResponse, StatsResponse
from app.dependencies import get_engine
from app.lifecycle.engine import LifecycleEngine
from app.lifecycle.entities import ActorRole
from app.lifecycle.views import ActorDashboard, build_dashboard, compute_stats, slice_for_actor, today_for, todays_appointments

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


def resolve_today(engine: LifecycleEngine, today: Optional[date], tz: Optional[str]) -> date:
    return today or today_for(engine.now(), tz)


@router.get("/{role}/{actor_id}", response_model=ActorDashboard)
async def get_dashboard(
    role: ActorRole,
    actor_id: str,
    today: Optional[date] = Query(None, description="Override the actor's calendar date"),
    tz: Optional[str] = Query(None, description="IANA timezone of the actor, e.g. Asia/Colombo"),
    engine: LifecycleEngine = Depends(get_engine),
):
    """Everything a client or lawyer dashboard renders, computed from one snapshot."""
    return build_dashboard(engine.snapshot(), role, actor_id, resolve_today(engine, today, tz))

@router.get("/{role}/{actor_id}/records", response_model=ActorCollections)
async def get_actor_records(role: ActorRole, actor_id: str, engine: LifecycleEngine = Depends(get_engine)):
    actor_slice = slice_for_actor(engine.snapshot(), role, actor_id)
    return ActorCollections(**actor_slice._asdict())

@router.get("/{role}/{actor_id}/stats", response_model=StatsResponse)
async def get_actor_stats(
    role: ActorRole,
    actor_id: str,
    today: Optional[date] = None,
    tz: Optional[str] = None,
    engine: LifecycleEngine = Depends(get_engine),
):
    actor_slice = slice_for_actor(engine.snapshot(), role, actor_id)
    return StatsResponse(today=resolve_today(engine, today, tz), stats=compute_stats(actor_slice))

@router.get("/{role}/{actor_id}/today", response_model=ScheduleResponse)
async def get_todays_schedule(
    role: ActorRole,
    actor_id: str,
    today: Optional[date] = None,
    tz: Optional[str] = None,
    engine: LifecycleEngine = Depends(get_engine),
):
    day = resolve_today(engine, today, tz)
    actor_slice = slice_for_actor(engine.snapshot(), role, actor_id)
    return ScheduleResponse(today=day, appointments=todays_appointments(actor_slice.appointments, day))
