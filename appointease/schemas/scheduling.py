"""
Pydantic schemas for availability, slots, bookings and status transitions
"""
from datetime import date as date_type, datetime, time
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from appointease.models.appointment import AppointmentStatus, PaymentStatus


# ============================================================================
# Identity (explicit context passed into every core operation)
# ============================================================================

class BookingIdentity(BaseModel):
    """Authenticated caller as resolved by the identity collaborator"""
    model_config = ConfigDict(frozen=True)

    business_id: UUID
    customer_id: Optional[UUID] = None
    user_id: Optional[str] = None
    actor: Literal["customer", "business"] = "customer"


# ============================================================================
# Availability
# ============================================================================

class AvailabilityWindowIn(BaseModel):
    """One weekday of a staff member's schedule (0=Sunday ... 6=Saturday)"""
    day_of_week: int = Field(..., description="0=Sunday, 6=Saturday")
    start_time: time
    end_time: time
    is_available: bool = True


class WeeklyAvailabilityRequest(BaseModel):
    """Full week replacement; days left out are stored as closed"""
    windows: List[AvailabilityWindowIn] = Field(default_factory=list, max_length=7)


class AvailabilityWindowOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    staff_id: UUID
    day_of_week: int
    start_time: time
    end_time: time
    is_available: bool


# ============================================================================
# Slots
# ============================================================================

class SlotCandidate(BaseModel):
    """A bookable (start, duration) pair"""
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    duration_minutes: int
    remaining_capacity: int


class SlotListResponse(BaseModel):
    business_id: UUID
    service_id: UUID
    staff_id: UUID
    date: date_type
    slots: List[SlotCandidate]


# ============================================================================
# Bookings
# ============================================================================

def validate_local_start(v: datetime) -> datetime:
    """Starts are naive business-local wall-clock times on a whole minute"""
    if v.tzinfo is not None:
        raise ValueError("start must be a business-local time without a UTC offset")
    if v.second or v.microsecond:
        raise ValueError("start must be on a whole minute")
    return v


class BookingRequest(BaseModel):
    """Request to book one slot"""
    business_id: UUID
    service_id: UUID
    staff_id: UUID
    start: datetime = Field(..., description="Business-local start time")
    customer_id: Optional[UUID] = Field(None, description="Ignored for customer-token callers")
    notes: Optional[str] = Field(None, max_length=2000)
    require_upfront_payment: Optional[bool] = Field(
        None, description="Payment policy; None uses the business setting"
    )

    @field_validator("start")
    @classmethod
    def check_start(cls, v: datetime) -> datetime:
        return validate_local_start(v)


class RescheduleRequest(BaseModel):
    """Move an appointment to a new start with the same staff and service"""
    start: datetime = Field(..., description="New business-local start time")

    @field_validator("start")
    @classmethod
    def check_start(cls, v: datetime) -> datetime:
        return validate_local_start(v)


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    business_id: UUID
    customer_id: UUID
    staff_id: UUID
    service_id: UUID
    date: datetime
    duration_minutes: int
    status: AppointmentStatus
    payment_status: PaymentStatus
    reminder_sent: bool
    notes: Optional[str] = None
    canceled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None


class AppointmentListResponse(BaseModel):
    total: int
    appointments: List[AppointmentResponse]


# ============================================================================
# Payment gateway callback
# ============================================================================

class PaymentCallback(BaseModel):
    """Outcome reported by the payment gateway"""
    appointment_id: UUID
    payment_status: PaymentStatus
    gateway_reference: Optional[str] = Field(None, max_length=255)


# ============================================================================
# Booking pattern analysis
# ============================================================================

class BookingPatternAnalysis(BaseModel):
    hourly_count: dict
    day_of_week_count: dict
    peak_hours: List[int]
    peak_days: List[str]
    off_peak_hours: List[int]
    off_peak_days: List[str]
    total_appointments: int
