"""Tests for the Booking Transaction Manager."""

import uuid
from datetime import time, timedelta

import pytest
from sqlalchemy import func, select

from appointease.core.exceptions import (
    CustomerRequired, InvalidDuration, ServiceNotFound, SlotUnavailable, StaffNotFound
)
from appointease.models import (
    Appointment, AppointmentSlotClaim, AppointmentStatus, PaymentStatus
)
from appointease.schemas.scheduling import AvailabilityWindowIn, BookingIdentity
from appointease.services.appointment.booking_service import BookingService
from appointease.services.appointment.status_service import AppointmentStatusService
from appointease.services.availability import slot_resolver
from appointease.services.availability.availability_service import AvailabilityService
from appointease.services.availability.ledger import LedgerOccupancy


async def count_appointments(db, status=None):
    query = select(func.count()).select_from(Appointment)
    if status is not None:
        query = query.where(Appointment.status == status)
    return await db.scalar(query)


class TestBookAppointment:
    async def test_success(self, db, seeded, customer_identity, make_request, notifications):
        appointment = await BookingService(db).book_appointment(
            make_request("10:00", notes="First visit"), customer_identity, now=seeded.now
        )

        assert appointment.status == AppointmentStatus.SCHEDULED
        assert appointment.payment_status == PaymentStatus.UNPAID
        assert appointment.customer_id == seeded.customer.id
        assert appointment.duration_minutes == 60
        assert appointment.notes == "First visit"
        assert appointment.reminder_sent is False

        claims = await db.scalar(
            select(func.count()).select_from(AppointmentSlotClaim)
            .where(AppointmentSlotClaim.appointment_id == appointment.id)
        )
        assert claims == 12  # 60 minutes of 5-minute buckets

        notifications.delay.assert_called_once()
        payload = notifications.delay.call_args.args[0]
        assert payload["event_type"] == "booking.created"
        assert payload["appointment_id"] == str(appointment.id)
        assert payload["service_name"] == "Haircut"
        assert payload["customer_email"] == "carla@example.com"

    async def test_upfront_payment_marks_pending(self, db, seeded, customer_identity, make_request):
        appointment = await BookingService(db).book_appointment(
            make_request("10:00", require_upfront_payment=True), customer_identity, now=seeded.now
        )
        assert appointment.payment_status == PaymentStatus.PENDING

    async def test_business_policy_used_when_request_is_silent(self, db, seeded, customer_identity, make_request):
        seeded.business.require_upfront_payment = True
        await db.commit()

        appointment = await BookingService(db).book_appointment(
            make_request("10:00"), customer_identity, now=seeded.now
        )
        assert appointment.payment_status == PaymentStatus.PENDING

    async def test_monday_sequence(self, db, seeded, customer_identity, make_request):
        """10:00 ok, 10:00 again fails, 10:30 fails, 11:00 ok."""
        service = BookingService(db)

        await service.book_appointment(make_request("10:00"), customer_identity, now=seeded.now)
        with pytest.raises(SlotUnavailable):
            await service.book_appointment(make_request("10:00"), customer_identity, now=seeded.now)
        with pytest.raises(SlotUnavailable):
            await service.book_appointment(make_request("10:30"), customer_identity, now=seeded.now)
        await service.book_appointment(make_request("11:00"), customer_identity, now=seeded.now)

        assert await count_appointments(db) == 2

    async def test_class_capacity(self, db, seeded, customer_identity, make_request):
        """Capacity 3 at Monday 18:00: three bookings succeed, the fourth fails."""
        service = BookingService(db)
        request = make_request("18:00", service=seeded.yoga, staff=seeded.instructor)

        for _ in range(3):
            await service.book_appointment(request, customer_identity, now=seeded.now)
        with pytest.raises(SlotUnavailable):
            await service.book_appointment(request, customer_identity, now=seeded.now)

        indexes = (await db.execute(select(AppointmentSlotClaim.slot_index).distinct())).scalars().all()
        assert sorted(indexes) == [0, 1, 2]

    async def test_class_off_session_time(self, db, seeded, customer_identity, make_request):
        with pytest.raises(SlotUnavailable):
            await BookingService(db).book_appointment(
                make_request("17:00", service=seeded.yoga, staff=seeded.instructor),
                customer_identity,
                now=seeded.now,
            )

    async def test_off_grid_start(self, db, seeded, customer_identity, make_request):
        with pytest.raises(SlotUnavailable):
            await BookingService(db).book_appointment(make_request("10:05"), customer_identity, now=seeded.now)

    async def test_partial_window_overlap(self, db, seeded, customer_identity, make_request):
        with pytest.raises(SlotUnavailable):
            await BookingService(db).book_appointment(make_request("16:30"), customer_identity, now=seeded.now)

    async def test_cancel_then_rebook(self, db, seeded, customer_identity, make_request):
        service = BookingService(db)
        first = await service.book_appointment(make_request("10:00"), customer_identity, now=seeded.now)
        await AppointmentStatusService(db).cancel(first.id)

        second = await service.book_appointment(make_request("10:00"), customer_identity, now=seeded.now)
        assert second.id != first.id
        assert await count_appointments(db, AppointmentStatus.SCHEDULED) == 1

    async def test_no_overlap_after_mixed_sequence(self, db, seeded, customer_identity, make_request):
        """Capacity-1: non-canceled appointments of one staff member never overlap."""
        service = BookingService(db)
        status = AppointmentStatusService(db)
        booked = []
        for hhmm in ("09:00", "09:30", "10:00", "10:15", "11:45", "12:00", "12:45", "13:00"):
            try:
                booked.append(await service.book_appointment(make_request(hhmm), customer_identity, now=seeded.now))
            except SlotUnavailable:
                pass
        await status.cancel(booked[1].id)
        for hhmm in ("10:00", "10:30", "11:00"):
            try:
                await service.book_appointment(make_request(hhmm), customer_identity, now=seeded.now)
            except SlotUnavailable:
                pass

        result = await db.execute(
            select(Appointment)
            .where(Appointment.status != AppointmentStatus.CANCELED)
            .order_by(Appointment.date)
        )
        active = result.scalars().all()
        for earlier, later in zip(active, active[1:]):
            assert earlier.date + timedelta(minutes=earlier.duration_minutes) <= later.date


class TestIdentity:
    async def test_customer_identity_required(self, db, seeded, make_request):
        anonymous = BookingIdentity(business_id=seeded.business.id, actor="customer")
        with pytest.raises(CustomerRequired):
            await BookingService(db).book_appointment(make_request("10:00"), anonymous, now=seeded.now)

    async def test_business_must_name_customer(self, db, seeded, business_identity, make_request):
        with pytest.raises(CustomerRequired):
            await BookingService(db).book_appointment(make_request("10:00"), business_identity, now=seeded.now)

    async def test_business_books_for_customer(self, db, seeded, business_identity, make_request):
        appointment = await BookingService(db).book_appointment(
            make_request("10:00", customer_id=seeded.other_customer.id), business_identity, now=seeded.now
        )
        assert appointment.customer_id == seeded.other_customer.id

    async def test_customer_cannot_book_for_someone_else(self, db, seeded, customer_identity, make_request):
        appointment = await BookingService(db).book_appointment(
            make_request("10:00", customer_id=seeded.other_customer.id), customer_identity, now=seeded.now
        )
        assert appointment.customer_id == seeded.customer.id

    async def test_foreign_business(self, db, seeded, make_request):
        identity = BookingIdentity(business_id=uuid.uuid4(), customer_id=seeded.customer.id)
        with pytest.raises(CustomerRequired):
            await BookingService(db).book_appointment(make_request("10:00"), identity, now=seeded.now)


class TestValidation:
    async def test_unknown_service(self, db, seeded, customer_identity, make_request):
        request = make_request("10:00").model_copy(update={"service_id": uuid.uuid4()})
        with pytest.raises(ServiceNotFound):
            await BookingService(db).book_appointment(request, customer_identity, now=seeded.now)

    async def test_unknown_staff(self, db, seeded, customer_identity, make_request):
        request = make_request("10:00").model_copy(update={"staff_id": uuid.uuid4()})
        with pytest.raises(StaffNotFound):
            await BookingService(db).book_appointment(request, customer_identity, now=seeded.now)

    async def test_zero_duration(self, db, seeded, customer_identity, make_request):
        seeded.haircut.duration_minutes = 0
        await db.commit()
        with pytest.raises(InvalidDuration):
            await BookingService(db).book_appointment(make_request("10:00"), customer_identity, now=seeded.now)

    async def test_closed_day(self, db, seeded, customer_identity, make_request):
        await AvailabilityService(db).set_weekly_windows(
            seeded.stylist.id,
            [AvailabilityWindowIn(day_of_week=1, start_time=time(9), end_time=time(17), is_available=False)],
        )
        with pytest.raises(SlotUnavailable):
            await BookingService(db).book_appointment(make_request("10:00"), customer_identity, now=seeded.now)


class TestLostRace:
    """
    A concurrent writer commits between our read and our insert. The stale
    read is simulated by hiding existing claims from the resolver.
    """

    async def test_stale_read_rejected_by_claim_constraint(
            self, db, seeded, customer_identity, make_request, monkeypatch, notifications
    ):
        service = BookingService(db)
        await service.book_appointment(make_request("10:00"), customer_identity, now=seeded.now)
        notifications.reset_mock()

        async def stale_occupancy(*args, **kwargs):
            return LedgerOccupancy()

        monkeypatch.setattr(slot_resolver, "load_occupancy", stale_occupancy)

        with pytest.raises(SlotUnavailable):
            await service.book_appointment(make_request("10:00"), customer_identity, now=seeded.now)

        assert await count_appointments(db) == 1
        notifications.delay.assert_not_called()

    async def test_retry_takes_next_free_unit(self, db, seeded, customer_identity, make_request, monkeypatch):
        """First attempt collides on unit 0; the re-derived attempt claims unit 1."""
        service = BookingService(db)
        request = make_request("18:00", service=seeded.yoga, staff=seeded.instructor)
        await service.book_appointment(request, customer_identity, now=seeded.now)

        real_load = slot_resolver.load_occupancy
        calls = []

        async def stale_then_fresh(*args, **kwargs):
            calls.append(1)
            if len(calls) == 1:
                return LedgerOccupancy()
            return await real_load(*args, **kwargs)

        monkeypatch.setattr(slot_resolver, "load_occupancy", stale_then_fresh)

        second = await service.book_appointment(request, customer_identity, now=seeded.now)

        assert len(calls) == 2
        indexes = (await db.execute(
            select(AppointmentSlotClaim.slot_index)
            .where(AppointmentSlotClaim.appointment_id == second.id)
            .distinct()
        )).scalars().all()
        assert indexes == [1]
