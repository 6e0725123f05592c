# appointease/models/service.py
"""
Service Model - what a business sells and how it occupies a staff member's time
"""
import calendar
import enum
import uuid
from datetime import date, time
from typing import List

from sqlalchemy import (
    Column, String, Numeric, Integer, ForeignKey, Boolean, DateTime, Text, JSON, Enum, Uuid
)
from sqlalchemy.sql import func

from appointease.models.base import Base


class ServiceType(str, enum.Enum):
    INDIVIDUAL = "individual"
    CLASS = "class"
    RECURRING = "recurring"


class Service(Base):
    __tablename__ = "services"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    business_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Core service details
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=True)

    duration_minutes = Column(Integer, nullable=False)
    capacity = Column(Integer, nullable=False, default=1)
    service_type = Column(
        Enum(ServiceType, name="service_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ServiceType.INDIVIDUAL,
    )

    # Class / recurring schedule
    recurring_days = Column(JSON, nullable=True)  # [1, 3] = Monday, Wednesday (Sunday=0)
    recurring_times = Column(JSON, nullable=True)  # ["18:00", "19:30"]
    sessions_per_month = Column(Integer, nullable=True)

    is_active = Column(Boolean, default=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    def __repr__(self):
        return f"<Service(id={self.id}, name={self.name}, business_id={self.business_id})>"

    @property
    def is_scheduled_session(self) -> bool:
        """Class and recurring services are only bookable at their fixed session times"""
        return self.service_type in (ServiceType.CLASS, ServiceType.RECURRING)

    @property
    def effective_capacity(self) -> int:
        if self.service_type == ServiceType.INDIVIDUAL:
            return 1
        return max(self.capacity or 1, 1)

    @property
    def session_days(self) -> List[int]:
        return sorted({int(d) for d in (self.recurring_days or [])})

    @property
    def session_times(self) -> List[time]:
        return sorted(time.fromisoformat(t) for t in (self.recurring_times or []))

    def sessions_in_month(self, year: int, month: int) -> int:
        """Number of sessions this service runs in a calendar month"""
        if not self.is_scheduled_session:
            return 0

        days = set(self.session_days)
        per_day = len(self.session_times)
        _, last_day = calendar.monthrange(year, month)

        count = 0
        for day in range(1, last_day + 1):
            # date.weekday() is Monday=0; sessions use Sunday=0
            if (date(year, month, day).weekday() + 1) % 7 in days:
                count += per_day

        if self.sessions_per_month:
            return min(count, self.sessions_per_month)
        return count

    def to_dict(self):
        """Convert to dictionary for API responses"""
        return {
            "id": str(self.id),
            "business_id": str(self.business_id),
            "name": self.name,
            "description": self.description,
            "price": float(self.price) if self.price is not None else None,
            "duration_minutes": self.duration_minutes,
            "capacity": self.effective_capacity,
            "service_type": self.service_type.value,
            "recurring_days": self.session_days,
            "recurring_times": [t.strftime("%H:%M") for t in self.session_times],
            "sessions_per_month": self.sessions_per_month,
            "is_active": self.is_active,
        }
