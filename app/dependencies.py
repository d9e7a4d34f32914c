from fastapi import Request

from app.lifecycle.engine import LifecycleEngine
from app.lifecycle.errors import (
    DeadlinePassedError, DuplicateCaseError, InvalidTransitionError, LifecycleError,
    NotFoundError, ValidationError,
)
from app.lifecycle.notifications import NotificationFeed

# HTTP status for each lifecycle error kind
ERROR_STATUS_CODES = {
    NotFoundError: 404,
    InvalidTransitionError: 409,
    DuplicateCaseError: 409,
    DeadlinePassedError: 410,
    ValidationError: 422,
}


def status_code_for(error: LifecycleError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES.items():
        if isinstance(error, error_type):
            return status_code
    return 400


def get_engine(request: Request) -> LifecycleEngine:
    return request.app.state.engine


def get_notifications(request: Request) -> NotificationFeed:
    return request.app.state.notifications
