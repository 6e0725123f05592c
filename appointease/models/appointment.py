# appointease/models/appointment.py
import enum
import uuid

from sqlalchemy import (
    Column, Integer, Text, DateTime, Boolean, ForeignKey, Enum, UniqueConstraint, Index, Uuid
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from appointease.models.base import Base


class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELED = "canceled"


class PaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointments_staff_date", "staff_id", "date"),
        Index("ix_appointments_business_date", "business_id", "date"),
    )
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # References
    business_id = Column(Uuid(as_uuid=True), ForeignKey("businesses.id"), nullable=False)
    customer_id = Column(Uuid(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)
    staff_id = Column(Uuid(as_uuid=True), ForeignKey("staff.id"), nullable=False)
    service_id = Column(Uuid(as_uuid=True), ForeignKey("services.id"), nullable=False)

    # Business-local wall clock time, no tzinfo
    date = Column(DateTime(timezone=False), nullable=False)
    # Copied from the service at booking time; later service edits don't touch it
    duration_minutes = Column(Integer, nullable=False)
    notes = Column(Text, nullable=True)

    # Status tracking
    status = Column(
        Enum(AppointmentStatus, name="appointment_status", values_callable=_enum_values),
        nullable=False,
        default=AppointmentStatus.SCHEDULED,
    )
    payment_status = Column(
        Enum(PaymentStatus, name="payment_status", values_callable=_enum_values),
        nullable=False,
        default=PaymentStatus.UNPAID,
    )

    # Reminders & notifications
    reminder_sent = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    canceled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    claims = relationship(
        "AppointmentSlotClaim",
        back_populates="appointment",
        cascade="all, delete-orphan",
    )
    service = relationship("Service", lazy="joined")
    customer = relationship("Customer", lazy="joined")

    def __repr__(self):
        return f"<Appointment(id={self.id}, staff_id={self.staff_id}, date={self.date}, status={self.status})>"

    @property
    def is_active(self) -> bool:
        return self.status != AppointmentStatus.CANCELED

    def to_dict(self):
        """Convert to dictionary for API responses"""
        return {
            "id": str(self.id),
            "business_id": str(self.business_id),
            "customer_id": str(self.customer_id),
            "staff_id": str(self.staff_id),
            "service_id": str(self.service_id),
            "date": self.date.isoformat(),
            "duration_minutes": self.duration_minutes,
            "status": self.status.value,
            "payment_status": self.payment_status.value,
            "reminder_sent": self.reminder_sent,
            "notes": self.notes,
            "canceled_at": self.canceled_at.isoformat() if self.canceled_at else None,
            "cancellation_reason": self.cancellation_reason,
        }


class AppointmentSlotClaim(Base):
    """
    One capacity unit held by an appointment in one ledger bucket.

    The unique key (staff_id, bucket_start, slot_index) is what makes booking
    atomic: two transactions racing for the last unit of a bucket cannot both
    commit. Claims are deleted when the appointment is canceled; the
    appointment row itself is kept.
    """
    __tablename__ = "appointment_slot_claims"
    __table_args__ = (
        UniqueConstraint("staff_id", "bucket_start", "slot_index", name="uq_slot_claim_unit"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    appointment_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("appointments.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    staff_id = Column(Uuid(as_uuid=True), ForeignKey("staff.id"), nullable=False)
    bucket_start = Column(DateTime(timezone=False), nullable=False)
    slot_index = Column(Integer, nullable=False)

    appointment = relationship("Appointment", back_populates="claims")
