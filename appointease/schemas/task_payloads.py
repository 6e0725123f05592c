from __future__ import annotations
# appointease/schemas/task_payloads.py
from pydantic import BaseModel, Field
from typing import Optional, Literal
from datetime import datetime, timezone

NotificationEvent = Literal[
    "booking.created",
    "booking.canceled",
    "booking.confirmed",
    "booking.rescheduled",
    "booking.reminder",
    "payment.updated",
]


class AppointmentNotificationPayload(BaseModel):
    """Payload handed to the notification worker"""
    event_type: NotificationEvent = Field(..., description="Event name")
    appointment_id: str = Field(..., description="Appointment identifier")
    business_id: str = Field(..., description="Business identifier")
    customer_id: str = Field(..., description="Customer identifier")
    staff_id: str = Field(..., description="Staff member identifier")
    service_name: Optional[str] = Field(None, description="Service display name")
    customer_email: Optional[str] = Field(None, description="Customer email, when known")
    appointment_date: str = Field(..., description="Business-local ISO datetime")
    duration_minutes: int = Field(..., description="Appointment length")
    status: str = Field(..., description="Appointment status at dispatch time")
    payment_status: str = Field(..., description="Payment status at dispatch time")
    correlation_id: Optional[str] = Field(None, description="Request correlation ID")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
