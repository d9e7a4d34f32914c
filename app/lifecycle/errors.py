"""Typed errors raised by the lifecycle engine.

Every error is recoverable at the call site. Errors carry a ``kind`` string
and a human-readable message, nothing else.
"""


class LifecycleError(Exception):
    kind = "lifecycle_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"error": self.kind, "detail": self.message}


class NotFoundError(LifecycleError):
    kind = "not_found"


class InvalidTransitionError(LifecycleError):
    kind = "invalid_transition"


class DeadlinePassedError(LifecycleError):
    """The action arrived after its governing deadline elapsed."""

    kind = "deadline_passed"


class DuplicateCaseError(LifecycleError):
    kind = "duplicate_case"


class ValidationError(LifecycleError):
    kind = "validation_error"
