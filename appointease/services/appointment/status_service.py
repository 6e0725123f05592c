# ============================================================================
# appointease/services/appointment/status_service.py
# ============================================================================
"""
Appointment Status State Machine.

Two independent axes:

    status:          scheduled -> confirmed | canceled
                     confirmed -> completed | canceled
    payment_status:  unpaid  -> pending | paid
                     pending -> paid | refunded | unpaid
                     paid    -> refunded

Completed, canceled and refunded are terminal. Every transition goes
through the tables below, so a canceled appointment can never be confirmed
or completed no matter which caller asks.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, FrozenSet, List, Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from appointease.config.settings import get_settings
from appointease.core.exceptions import AlreadyCanceled, AppointmentNotFound, InvalidTransition
from appointease.core.retry import translate_store_errors
from appointease.models.appointment import (
    Appointment, AppointmentSlotClaim, AppointmentStatus, PaymentStatus
)
from appointease.models.business import Business
from appointease.services.availability.slot_resolver import business_now
from appointease.services.notification.notification_service import NotificationService

logger = logging.getLogger(__name__)

STATUS_TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELED}),
    AppointmentStatus.CONFIRMED: frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELED: frozenset(),
}

PAYMENT_TRANSITIONS: Dict[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.UNPAID: frozenset({PaymentStatus.PENDING, PaymentStatus.PAID}),
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.REFUNDED, PaymentStatus.UNPAID}),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.REFUNDED: frozenset(),
}


def ensure_status_transition(current: AppointmentStatus, target: AppointmentStatus) -> None:
    if current == AppointmentStatus.CANCELED and target == AppointmentStatus.CANCELED:
        raise AlreadyCanceled("Appointment is already canceled")
    if target not in STATUS_TRANSITIONS[current]:
        raise InvalidTransition(
            f"Cannot move appointment from {current.value} to {target.value}",
            details={"from": current.value, "to": target.value},
        )


def ensure_payment_transition(current: PaymentStatus, target: PaymentStatus) -> None:
    if target not in PAYMENT_TRANSITIONS[current]:
        raise InvalidTransition(
            f"Cannot move payment from {current.value} to {target.value}",
            details={"from": current.value, "to": target.value},
        )


class AppointmentStatusService:
    """Lifecycle transitions for single appointments"""

    def __init__(self, db: AsyncSession, notifier: Optional[NotificationService] = None):
        self.db = db
        self.notifier = notifier or NotificationService()
        self.settings = get_settings()

    async def _load_for_update(
            self,
            appointment_id: UUID,
            business_id: Optional[UUID] = None,
            customer_id: Optional[UUID] = None
    ) -> Appointment:
        """Row-lock the appointment for the rest of the transaction"""
        query = select(Appointment).where(Appointment.id == appointment_id)
        if business_id is not None:
            query = query.where(Appointment.business_id == business_id)
        if customer_id is not None:
            query = query.where(Appointment.customer_id == customer_id)

        result = await self.db.execute(query.with_for_update(of=Appointment))
        appointment = result.scalars().first()
        if not appointment:
            raise AppointmentNotFound(
                "Appointment not found or you don't have access to it",
                details={"appointment_id": str(appointment_id)},
            )
        return appointment

    async def _notify(self, event_type, appointment: Appointment) -> bool:
        return await self.notifier.dispatch(event_type, appointment, appointment.service, appointment.customer)

    @translate_store_errors
    async def confirm(self, appointment_id: UUID, business_id: Optional[UUID] = None) -> Appointment:
        appointment = await self._load_for_update(appointment_id, business_id)
        ensure_status_transition(appointment.status, AppointmentStatus.CONFIRMED)

        appointment.status = AppointmentStatus.CONFIRMED
        await self.db.commit()

        logger.info(f"Confirmed appointment {appointment_id}")
        await self._notify("booking.confirmed", appointment)
        return appointment

    @translate_store_errors
    async def complete(
            self,
            appointment_id: UUID,
            business_id: Optional[UUID] = None,
            now: Optional[datetime] = None
    ) -> Appointment:
        """Confirmed -> completed, only once the appointment's window has elapsed"""
        appointment = await self._load_for_update(appointment_id, business_id)
        ensure_status_transition(appointment.status, AppointmentStatus.COMPLETED)

        if now is None:
            now = business_now(await self.db.get(Business, appointment.business_id))
        ends_at = appointment.date + timedelta(minutes=appointment.duration_minutes)
        if ends_at > now:
            raise InvalidTransition(
                "Appointment cannot be completed before it ends",
                details={"ends_at": ends_at.isoformat()},
            )

        appointment.status = AppointmentStatus.COMPLETED
        await self.db.commit()

        logger.info(f"Completed appointment {appointment_id}")
        return appointment

    @translate_store_errors
    async def cancel(
            self,
            appointment_id: UUID,
            business_id: Optional[UUID] = None,
            customer_id: Optional[UUID] = None,
            reason: Optional[str] = None
    ) -> Appointment:
        """
        Cancel a scheduled or confirmed appointment.

        The capacity it held is released in the same commit, so the next
        slot listing already shows the interval as free. The row itself is
        kept for audit.

        Raises:
            AppointmentNotFound: unknown id, or not visible to the caller
            AlreadyCanceled: appointment was canceled before
            InvalidTransition: appointment is completed
        """
        appointment = await self._load_for_update(appointment_id, business_id, customer_id)
        ensure_status_transition(appointment.status, AppointmentStatus.CANCELED)

        appointment.status = AppointmentStatus.CANCELED
        appointment.canceled_at = datetime.now(timezone.utc)
        appointment.cancellation_reason = reason
        await self.db.execute(
            delete(AppointmentSlotClaim).where(AppointmentSlotClaim.appointment_id == appointment.id)
        )
        await self.db.commit()

        logger.info(f"Canceled appointment {appointment_id} (staff {appointment.staff_id}, {appointment.date})")
        await self._notify("booking.canceled", appointment)
        return appointment

    @translate_store_errors
    async def mark_reminder_sent(self, appointment_id: UUID, business_id: Optional[UUID] = None) -> Appointment:
        """Idempotent: a second call leaves the appointment untouched"""
        appointment = await self._load_for_update(appointment_id, business_id)
        if not appointment.reminder_sent:
            appointment.reminder_sent = True
            logger.info(f"Marked reminder sent for appointment {appointment_id}")
        await self.db.commit()
        return appointment

    @translate_store_errors
    async def send_reminder(self, appointment_id: UUID, business_id: Optional[UUID] = None) -> Appointment:
        """
        Queue a reminder for one appointment.

        The appointment is only flagged as reminded once the event is on the
        queue; a failed publish leaves it for the next reminder sweep.
        """
        appointment = await self._load_for_update(appointment_id, business_id)
        if not appointment.is_active:
            raise InvalidTransition("Cannot send a reminder for a canceled appointment")

        if await self._notify("booking.reminder", appointment):
            appointment.reminder_sent = True
        else:
            logger.warning(f"Reminder for appointment {appointment_id} not queued, left for the next sweep")
        await self.db.commit()
        return appointment

    @translate_store_errors
    async def record_payment(self, appointment_id: UUID, new_status: PaymentStatus) -> Appointment:
        """
        Record a payment-gateway outcome.

        Re-reporting the current status is a no-op. The appointment status is
        only changed when auto-confirm-on-payment is enabled for the business
        (Business.auto_confirm_on_payment, falling back to
        AUTO_CONFIRM_ON_PAYMENT).
        """
        appointment = await self._load_for_update(appointment_id)
        if not appointment.is_active:
            raise InvalidTransition(
                "Cannot record payment for a canceled appointment",
                details={"appointment_id": str(appointment_id)},
            )

        if appointment.payment_status == new_status:
            await self.db.commit()  # releases the row lock
            logger.info(f"Payment status for {appointment_id} already {new_status.value}, ignoring")
            return appointment

        ensure_payment_transition(appointment.payment_status, new_status)
        previous = appointment.payment_status
        appointment.payment_status = new_status

        confirmed = False
        if (
                new_status == PaymentStatus.PAID
                and appointment.status == AppointmentStatus.SCHEDULED
                and await self._auto_confirm_enabled(appointment.business_id)
        ):
            appointment.status = AppointmentStatus.CONFIRMED
            confirmed = True

        await self.db.commit()

        logger.info(f"Payment for appointment {appointment_id}: {previous.value} -> {new_status.value}")
        await self._notify("payment.updated", appointment)
        if confirmed:
            logger.info(f"Auto-confirmed appointment {appointment_id} on payment")
            await self._notify("booking.confirmed", appointment)
        return appointment

    async def _auto_confirm_enabled(self, business_id: UUID) -> bool:
        business = await self.db.get(Business, business_id)
        if business is not None and business.auto_confirm_on_payment is not None:
            return business.auto_confirm_on_payment
        return self.settings.AUTO_CONFIRM_ON_PAYMENT

    # ========================================================================
    # Sweeps (driven by the worker beat schedule)
    # ========================================================================

    async def _active_with_business(self, statuses, extra_filters=()) -> List[tuple]:
        # Business-local clocks differ per tenant, so the exact time check happens per row
        query = (
            select(Appointment, Business)
            .join(Business, Business.id == Appointment.business_id)
            .where(
                Appointment.status.in_(statuses),
                *extra_filters,
            )
        )
        result = await self.db.execute(query)
        return result.all()

    @translate_store_errors
    async def dispatch_due_reminders(self, now: Optional[datetime] = None) -> int:
        """Remind every active, un-reminded appointment starting within the lead time"""
        lead = timedelta(hours=self.settings.REMINDER_LEAD_HOURS)
        rows = await self._active_with_business(
            [AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED],
            [
                Appointment.reminder_sent.is_(False),
                Appointment.date >= datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(days=1),
            ],
        )

        due = []
        for appointment, business in rows:
            local_now = now or business_now(business)
            if local_now <= appointment.date <= local_now + lead:
                due.append(appointment)

        # Flag only what reached the queue; the rest is picked up next sweep
        sent = 0
        for appointment in due:
            if await self._notify("booking.reminder", appointment):
                appointment.reminder_sent = True
                sent += 1
        await self.db.commit()

        if sent < len(due):
            logger.warning(f"{len(due) - sent} of {len(due)} due reminder(s) could not be queued")
        return sent

    @translate_store_errors
    async def complete_elapsed(self, now: Optional[datetime] = None) -> int:
        """Complete confirmed appointments whose window has ended"""
        rows = await self._active_with_business([AppointmentStatus.CONFIRMED])

        completed = 0
        for appointment, business in rows:
            local_now = now or business_now(business)
            if appointment.date + timedelta(minutes=appointment.duration_minutes) <= local_now:
                appointment.status = AppointmentStatus.COMPLETED
                completed += 1
        await self.db.commit()

        if completed:
            logger.info(f"Completed {completed} elapsed appointment(s)")
        return completed
