# appointease/core/exceptions.py
"""
Scheduling error taxonomy.

Services raise these; the HTTP layer maps them onto status codes in a single
exception handler (see appointease.main). Every error carries a stable
machine-readable ``code`` plus optional ``details`` so callers can correct
the request or re-list slots.
"""
from typing import Any, Dict, Optional


class SchedulingError(Exception):
    """Base class for all scheduling engine errors"""

    code = "scheduling_error"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code, "details": self.details}


# ============================================================================
# Missing resources
# ============================================================================

class NotFound(SchedulingError):
    code = "not_found"
    status_code = 404


class BusinessNotFound(NotFound):
    code = "business_not_found"


class StaffNotFound(NotFound):
    code = "staff_not_found"


class ServiceNotFound(NotFound):
    code = "service_not_found"


class AppointmentNotFound(NotFound):
    code = "appointment_not_found"


# ============================================================================
# Malformed input (rejected before any store write)
# ============================================================================

class InvalidWindow(SchedulingError):
    code = "invalid_window"
    status_code = 422


class InvalidDuration(SchedulingError):
    code = "invalid_duration"
    status_code = 422


# ============================================================================
# Booking and lifecycle outcomes
# ============================================================================

class SlotUnavailable(SchedulingError):
    """The slot was taken since listing, or no longer fits. Callers should re-list."""

    code = "slot_unavailable"
    status_code = 409


class CustomerRequired(SchedulingError):
    code = "customer_required"
    status_code = 401


class AlreadyCanceled(SchedulingError):
    code = "already_canceled"
    status_code = 409


class InvalidTransition(SchedulingError):
    code = "invalid_transition"
    status_code = 409


# ============================================================================
# Infrastructure
# ============================================================================

class StoreUnavailable(SchedulingError):
    """Data store unreachable. Safe to retry the whole operation."""

    code = "store_unavailable"
    status_code = 503
