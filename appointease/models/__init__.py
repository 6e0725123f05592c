# appointease/models/__init__.py
from .base import Base
from .business import Business, Staff, Customer, CustomerAccessToken
from .service import Service, ServiceType
from .availability import StaffAvailabilityWindow
from .appointment import Appointment, AppointmentSlotClaim, AppointmentStatus, PaymentStatus

__all__ = [
    "Base",
    "Business",
    "Staff",
    "Customer",
    "CustomerAccessToken",
    "Service",
    "ServiceType",
    "StaffAvailabilityWindow",
    "Appointment",
    "AppointmentSlotClaim",
    "AppointmentStatus",
    "PaymentStatus",
]
