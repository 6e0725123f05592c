# ============================================================================
# appointease/services/appointment/booking_service.py
# ============================================================================
"""
Booking Transaction Manager.

A booking re-derives the day's slots from the store (never trusting a slot
list the client fetched earlier), then writes the appointment together with
one capacity claim per ledger bucket in a single commit. The unique key on
claims means two requests racing for the last unit cannot both commit; the
loser rolls back, re-derives, and ends in SlotUnavailable once the slot is
really gone. Rescheduling follows the same path, swapping an existing
appointment's claims for new ones in one commit.
"""
import logging
import uuid
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from appointease.config.settings import get_settings
from appointease.core.exceptions import (
    AppointmentNotFound, CustomerRequired, InvalidTransition, SlotUnavailable
)
from appointease.core.retry import translate_store_errors
from appointease.models.appointment import (
    Appointment, AppointmentSlotClaim, AppointmentStatus, PaymentStatus
)
from appointease.models.business import Customer
from appointease.schemas.scheduling import BookingIdentity, BookingRequest
from appointease.services.availability.ledger import ledger_buckets
from appointease.services.availability.slot_resolver import SlotContext, SlotResolver
from appointease.services.notification.notification_service import NotificationService

logger = logging.getLogger(__name__)

RESCHEDULABLE_STATUSES = (AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED)


class BookingService:
    """Creates appointments atomically against the Booking Ledger"""

    def __init__(self, db: AsyncSession, notifier: Optional[NotificationService] = None):
        self.db = db
        self.resolver = SlotResolver(db)
        self.notifier = notifier or NotificationService()
        self.settings = get_settings()

    @translate_store_errors
    async def book_appointment(
            self,
            request: BookingRequest,
            identity: BookingIdentity,
            now: Optional[datetime] = None
    ) -> Appointment:
        """
        Book one slot.

        Args:
            request: What to book and when (business-local start)
            identity: Authenticated caller; customers book for themselves,
                business users must name the customer
            now: Naive business-local "now" override

        Returns:
            The committed Appointment (status scheduled)

        Raises:
            CustomerRequired: no customer identity could be resolved
            ServiceNotFound / StaffNotFound / BusinessNotFound
            InvalidDuration: service duration <= 0
            SlotUnavailable: slot not offered, or lost to a concurrent booking
        """
        attempts = self.settings.BOOKING_CONFLICT_RETRIES
        for attempt in range(1, attempts + 1):
            try:
                # Reloaded every attempt: a rollback expires everything in the session
                customer = await self._resolve_customer(request, identity)
                appointment, context = await self._stage_booking(request, customer.id, now)
                await self.db.commit()
            except IntegrityError as e:
                await self.db.rollback()
                logger.info(
                    f"Booking conflict for staff {request.staff_id} at {request.start} "
                    f"(attempt {attempt}/{attempts}): {e.orig}"
                )
                continue

            logger.info(
                f"Booked appointment {appointment.id}: staff={request.staff_id} "
                f"service={request.service_id} start={appointment.date} customer={customer.id}"
            )
            await self.notifier.dispatch("booking.created", appointment, context.service, customer)
            return appointment

        raise SlotUnavailable(
            "This time slot was just taken. Please select a different time.",
            details={"staff_id": str(request.staff_id), "start": request.start.isoformat()},
        )

    @translate_store_errors
    async def reschedule(
            self,
            appointment_id: UUID,
            new_start: datetime,
            identity: BookingIdentity,
            now: Optional[datetime] = None
    ) -> Appointment:
        """
        Move an active appointment to a new start with the same staff and service.

        The appointment's own claims are ignored while re-deriving slots, so it
        may move into an interval that overlaps only itself. Old claims are
        released and new ones written in the same commit; the id, status and
        payment status carry over and the reminder is re-armed.

        Raises:
            AppointmentNotFound: unknown id, or not visible to the caller
            InvalidTransition: appointment is canceled or completed
            SlotUnavailable: new start not offered, or lost to a concurrent booking
        """
        attempts = self.settings.BOOKING_CONFLICT_RETRIES
        for attempt in range(1, attempts + 1):
            try:
                appointment, context, previous_start = await self._stage_reschedule(
                    appointment_id, new_start, identity, now
                )
                await self.db.commit()
            except IntegrityError as e:
                await self.db.rollback()
                logger.info(
                    f"Reschedule conflict for appointment {appointment_id} to {new_start} "
                    f"(attempt {attempt}/{attempts}): {e.orig}"
                )
                continue

            logger.info(f"Rescheduled appointment {appointment_id}: {previous_start} -> {appointment.date}")
            await self.notifier.dispatch("booking.rescheduled", appointment, context.service, appointment.customer)
            return appointment

        raise SlotUnavailable(
            "This time slot was just taken. Please select a different time.",
            details={"appointment_id": str(appointment_id), "start": new_start.isoformat()},
        )

    async def _stage_reschedule(
            self,
            appointment_id: UUID,
            new_start: datetime,
            identity: BookingIdentity,
            now: Optional[datetime]
    ) -> Tuple[Appointment, SlotContext, datetime]:
        query = select(Appointment).where(
            Appointment.id == appointment_id,
            Appointment.business_id == identity.business_id,
        )
        if identity.actor == "customer":
            query = query.where(Appointment.customer_id == identity.customer_id)

        result = await self.db.execute(query.with_for_update(of=Appointment))
        appointment = result.scalars().first()
        if not appointment:
            raise AppointmentNotFound(
                "Appointment not found or you don't have access to it",
                details={"appointment_id": str(appointment_id)},
            )
        if appointment.status not in RESCHEDULABLE_STATUSES:
            raise InvalidTransition(
                f"Cannot reschedule a {appointment.status.value} appointment",
                details={"appointment_id": str(appointment_id), "status": appointment.status.value},
            )

        context = await self.resolver.load_context(
            appointment.business_id,
            appointment.service_id,
            appointment.staff_id,
            new_start.date(),
            now,
            exclude_appointment_id=appointment.id,
        )
        if not context.offers(new_start):
            raise SlotUnavailable(
                "This time slot is not available. Please select a different time.",
                details={"staff_id": str(appointment.staff_id), "start": new_start.isoformat()},
            )

        claims = self._plan_claims(context, new_start)

        await self.db.execute(
            delete(AppointmentSlotClaim).where(AppointmentSlotClaim.appointment_id == appointment.id)
        )
        for bucket_start, slot_index in claims:
            self.db.add(AppointmentSlotClaim(
                appointment_id=appointment.id,
                staff_id=appointment.staff_id,
                bucket_start=bucket_start,
                slot_index=slot_index,
            ))

        previous_start = appointment.date
        appointment.date = new_start
        appointment.duration_minutes = context.service.duration_minutes
        appointment.reminder_sent = False
        return appointment, context, previous_start

    async def _resolve_customer(self, request: BookingRequest, identity: BookingIdentity) -> Customer:
        if identity.business_id != request.business_id:
            raise CustomerRequired("Credentials are not valid for this business")

        customer_id = identity.customer_id if identity.actor == "customer" else request.customer_id
        if customer_id is None:
            raise CustomerRequired("A customer is required to book an appointment")

        customer = await self.db.get(Customer, customer_id)
        if not customer or customer.business_id != request.business_id:
            raise CustomerRequired(
                "Customer not found for this business",
                details={"customer_id": str(customer_id)},
            )
        return customer

    async def _stage_booking(
            self,
            request: BookingRequest,
            customer_id: UUID,
            now: Optional[datetime]
    ) -> Tuple[Appointment, SlotContext]:
        """
        Validate against fresh store state and add the rows; the caller commits.

        Nothing is added to the session until every check has passed, so a
        SchedulingError leaves the session clean.
        """
        context = await self.resolver.load_context(
            request.business_id,
            request.service_id,
            request.staff_id,
            request.start.date(),
            now,
        )

        if not context.offers(request.start):
            raise SlotUnavailable(
                "This time slot is not available. Please select a different time.",
                details={"staff_id": str(request.staff_id), "start": request.start.isoformat()},
            )

        claims = self._plan_claims(context, request.start)

        upfront = request.require_upfront_payment
        if upfront is None:
            upfront = context.business.require_upfront_payment

        appointment = Appointment(
            id=uuid.uuid4(),
            business_id=request.business_id,
            customer_id=customer_id,
            staff_id=request.staff_id,
            service_id=request.service_id,
            date=request.start,
            duration_minutes=context.service.duration_minutes,
            status=AppointmentStatus.SCHEDULED,
            payment_status=PaymentStatus.PENDING if upfront else PaymentStatus.UNPAID,
            reminder_sent=False,
            notes=request.notes,
        )
        self.db.add(appointment)

        for bucket_start, slot_index in claims:
            self.db.add(AppointmentSlotClaim(
                appointment_id=appointment.id,
                staff_id=request.staff_id,
                bucket_start=bucket_start,
                slot_index=slot_index,
            ))

        return appointment, context

    @staticmethod
    def _plan_claims(context: SlotContext, start: datetime) -> List[Tuple[datetime, int]]:
        claims = []
        for bucket in ledger_buckets(start, context.service.duration_minutes, context.bucket_minutes):
            index = context.occupancy.free_index(bucket, context.capacity)
            if index is None:
                raise SlotUnavailable(
                    "This time slot is fully booked",
                    details={"bucket": bucket.isoformat()},
                )
            claims.append((bucket, index))
        return claims
