"""Error taxonomy shared by services and HTTP handlers.

Every error carries the HTTP status it maps to, a short ``error`` label and
optional ``details``. Handlers in ``turfbook.main`` render them as
``{"ok": false, "error": ..., "details": ...}``.
"""
from typing import Any, List, Optional


class BookingError(Exception):
    """Base class for all errors surfaced to API callers."""

    status_code = 500
    error = "Unexpected error occurred"

    def __init__(self, details: Any = None, error: Optional[str] = None):
        self.details = details
        if error is not None:
            self.error = error
        super().__init__(details if details is not None else self.error)

    def to_dict(self) -> dict:
        body = {"ok": False, "error": self.error}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(BookingError):
    """Malformed or missing request fields."""

    status_code = 400
    error = "Invalid request"


class ConfigurationError(BookingError):
    """Slot configuration that cannot produce a valid day grid."""

    status_code = 400
    error = "Invalid slot configuration"


class UnauthorizedError(BookingError):
    status_code = 401
    error = "Unauthorized"


class NotFoundError(BookingError):
    """A referenced station, customer or booking does not exist."""

    status_code = 404
    error = "Not found"


class ConflictError(BookingError):
    """The proposed interval overlaps an existing active booking."""

    status_code = 409
    error = "Booking conflict"

    def __init__(self, details: Any = None, conflicts: Optional[List[dict]] = None):
        super().__init__(details)
        self.conflicts = conflicts or []

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["conflicts"] = self.conflicts
        return body


class UpstreamError(BookingError):
    """The database or payment gateway call itself failed."""

    status_code = 500
    error = "Upstream failure"


class ValidatorUnavailableError(UpstreamError):
    """The conflict check could not run. Never equivalent to 'no conflict'."""

    error = "Conflict check failed"


class PaymentGatewayError(UpstreamError):
    error = "Payment gateway error"
