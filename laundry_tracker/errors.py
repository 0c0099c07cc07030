"""
Error taxonomy for load lifecycle operations.

Transition errors are raised before anything is written, so a failed call
never leaves a load half-updated. NotificationDeliveryError is the only one
the engine swallows (after logging it).
"""
from typing import Optional


class LaundryTrackerError(Exception):
    """Base class; `reason` is a short machine-readable code."""
    kind = "error"

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.reason = reason

    def to_dict(self) -> dict:
        out = {"error": self.kind, "detail": self.message}
        if self.reason:
            out["reason"] = self.reason
        return out


class ValidationError(LaundryTrackerError):
    kind = "validation_error"


class PreconditionError(LaundryTrackerError):
    kind = "precondition_error"


class NotFoundError(LaundryTrackerError):
    kind = "not_found"


class NotificationDeliveryError(LaundryTrackerError):
    kind = "notification_delivery_error"
