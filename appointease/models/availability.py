# appointease/models/availability.py
from sqlalchemy import Column, Integer, Boolean, Time, ForeignKey, UniqueConstraint, CheckConstraint, Uuid
from sqlalchemy.orm import relationship
import uuid

from appointease.models.base import Base


class StaffAvailabilityWindow(Base):
    """Recurring weekly open/closed window for one staff member on one weekday"""
    __tablename__ = "staff_availability"
    __table_args__ = (
        UniqueConstraint("staff_id", "day_of_week", name="uq_staff_availability_staff_day"),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_staff_availability_day_range"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    staff_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("staff.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    day_of_week = Column(Integer, nullable=False)  # 0=Sunday, 6=Saturday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)

    staff = relationship("Staff", back_populates="availability")

    def __repr__(self):
        return (
            f"<StaffAvailabilityWindow(staff_id={self.staff_id}, day={self.day_of_week}, "
            f"{self.start_time}-{self.end_time}, available={self.is_available})>"
        )
