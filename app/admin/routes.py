from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from typing import List, Optional

from app.dependencies import get_engine, get_notifications
from app.lifecycle.deadlines import TimeWindows
from app.lifecycle.engine import LifecycleEngine
from app.lifecycle.notifications import Notification, NotificationFeed

router = APIRouter(prefix="/admin", tags=["Admin Tools"])


class TimeWindowsUpdate(BaseModel):
    lawyer_approval_hours: Optional[int] = Field(None, gt=0)
    client_payment_minutes: Optional[int] = Field(None, gt=0)
    case_payment_days: Optional[int] = Field(None, gt=0)
    critical_threshold: Optional[float] = Field(None, gt=0, lt=1)
    warning_threshold: Optional[float] = Field(None, gt=0, lt=1)

class SweepTransitionResponse(BaseModel):
    entity: str
    entity_id: str
    from_status: str
    to_status: str

# =====================================================
# CONFIG
# =====================================================

@router.get("/config", response_model=TimeWindows)
def get_config(engine: LifecycleEngine = Depends(get_engine)):
    return engine.windows

@router.put("/config", response_model=TimeWindows)
def update_config(update: TimeWindowsUpdate, engine: LifecycleEngine = Depends(get_engine)):
    """Change the default windows. Deadlines already set are not moved."""
    return engine.update_windows(**update.model_dump(exclude_unset=True))

# =====================================================
# EXPIRY
# =====================================================

@router.post("/sweep", response_model=List[SweepTransitionResponse])
def run_sweep(engine: LifecycleEngine = Depends(get_engine)):
    return [SweepTransitionResponse(**t._asdict()) for t in engine.sweep_expired()]

# =====================================================
# NOTIFICATIONS
# =====================================================

@router.get("/notifications", response_model=List[Notification])
def list_notifications(feed: NotificationFeed = Depends(get_notifications)):
    return feed.list()

@router.delete("/notifications/{notification_id}")
def dismiss_notification(notification_id: str, feed: NotificationFeed = Depends(get_notifications)):
    if not feed.dismiss(notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"message": "Notification dismissed"}

@router.delete("/notifications")
def clear_notifications(feed: NotificationFeed = Depends(get_notifications)):
    feed.clear()
    return {"message": "Notifications cleared"}
