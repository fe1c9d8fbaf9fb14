"""
Custom exceptions for the scheduling core.
Raised in slots.py / resolver.py / engine.py / rescheduling.py and
translated to JSON error responses in views.py.

Each class carries the HTTP status the views answer with.
"""


class BookingEngineError(Exception):
    """Base exception for all scheduling core errors."""
    http_status = 500


class ValidationError(BookingEngineError):
    """Missing or malformed input: unknown service type, wrong slot count, blocked date."""
    http_status = 400


class NotFoundError(BookingEngineError):
    """A booking, slot, technician or blocked date id did not resolve."""
    http_status = 404


class ConflictError(BookingEngineError):
    """Slot collision, double-booking attempt, or deletion of a referenced slot."""
    http_status = 409


class InvalidStateError(BookingEngineError):
    """Illegal lifecycle transition, e.g. confirming an already confirmed booking."""
    http_status = 409
