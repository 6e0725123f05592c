# appointease/schemas/__init__.py
from .scheduling import (
    BookingIdentity,
    AvailabilityWindowIn,
    WeeklyAvailabilityRequest,
    AvailabilityWindowOut,
    SlotCandidate,
    SlotListResponse,
    BookingRequest,
    CancelRequest,
    AppointmentResponse,
    AppointmentListResponse,
    PaymentCallback,
    BookingPatternAnalysis,
)

from .task_payloads import (
    NotificationEvent,
    AppointmentNotificationPayload,
)
