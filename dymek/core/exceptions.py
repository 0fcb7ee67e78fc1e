"""
Error taxonomy shared by the stores, the status workflow and the HTTP layer.

Each error carries the HTTP status it maps to so routes never have to
translate domain errors by hand (see the handlers in dymek.main).
"""

from typing import Optional


class DymekError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(self, detail: str, field: Optional[str] = None):
        self.detail = detail
        self.field = field
        super().__init__(detail)


class ValidationError(DymekError):
    """Malformed input: bad coordinates, unsupported type/status, missing field."""

    status_code = 422
    error_code = "VALIDATION_ERROR"


class NotFoundError(DymekError):
    """Referenced record does not exist."""

    status_code = 404
    error_code = "NOT_FOUND"


class ConflictError(DymekError):
    """Version mismatch on a conditional write, or a duplicate storage key."""

    status_code = 409
    error_code = "CONFLICT"


class StoreUnavailableError(DymekError):
    """Underlying persistence failed. Safe to retry the whole operation."""

    status_code = 503
    error_code = "STORE_UNAVAILABLE"


class NotificationDeliveryError(DymekError):
    """Push delivery failed. Logged by the notifier, never surfaced to callers."""

    status_code = 502
    error_code = "NOTIFICATION_DELIVERY_FAILED"
