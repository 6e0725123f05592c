"""Tests for the Slot Resolver."""

import uuid
from datetime import datetime, time, timedelta

import pytest

from appointease.core.exceptions import (
    BusinessNotFound, InvalidDuration, ServiceNotFound, StaffNotFound
)
from appointease.models import Service, ServiceType
from appointease.schemas.scheduling import AvailabilityWindowIn
from appointease.services.appointment.booking_service import BookingService
from appointease.services.appointment.status_service import AppointmentStatusService
from appointease.services.availability.availability_service import AvailabilityService
from appointease.services.availability.ledger import ledger_buckets
from appointease.services.availability.slot_resolver import SlotResolver, sunday_based_weekday


async def slot_times(db, seeded, service=None, staff=None, day=None, now=None):
    slots = await SlotResolver(db).list_available_slots(
        seeded.business.id,
        (service or seeded.haircut).id,
        (staff or seeded.stylist).id,
        day or seeded.monday,
        now=now or seeded.now,
    )
    return [slot.start.strftime("%H:%M") for slot in slots]


class TestGrid:
    async def test_individual_service_fills_window(self, db, seeded):
        """60-minute service in 09:00-17:00 on a 15-minute grid: 09:00 ... 16:00."""
        times = await slot_times(db, seeded)

        assert times[0] == "09:00"
        assert times[-1] == "16:00"
        assert "16:15" not in times
        assert len(times) == 29

    async def test_business_granularity(self, db, seeded):
        seeded.business.slot_granularity_minutes = 30
        await db.commit()

        times = await slot_times(db, seeded)
        assert times[:3] == ["09:00", "09:30", "10:00"]
        assert len(times) == 15

    async def test_window_not_on_grid_rounds_up(self, db, seeded):
        await AvailabilityService(db).set_weekly_windows(
            seeded.stylist.id,
            [AvailabilityWindowIn(day_of_week=1, start_time=time(9, 10), end_time=time(11, 0))],
        )
        assert await slot_times(db, seeded) == ["09:15", "09:30", "09:45", "10:00"]

    async def test_slots_carry_end_and_capacity(self, db, seeded):
        slots = list(await SlotResolver(db).list_available_slots(
            seeded.business.id, seeded.haircut.id, seeded.stylist.id, seeded.monday, now=seeded.now
        ))
        first = slots[0]
        assert first.end - first.start == timedelta(minutes=60)
        assert first.duration_minutes == 60
        assert first.remaining_capacity == 1

    async def test_sequence_is_restartable(self, db, seeded):
        slots = await SlotResolver(db).list_available_slots(
            seeded.business.id, seeded.haircut.id, seeded.stylist.id, seeded.monday, now=seeded.now
        )
        assert list(slots) == list(slots)
        assert datetime.combine(seeded.monday, time(10, 0)) in slots
        assert datetime.combine(seeded.monday, time(10, 5)) not in slots


class TestClosedAndPast:
    async def test_unavailable_day_is_empty(self, db, seeded):
        await AvailabilityService(db).set_weekly_windows(
            seeded.stylist.id,
            [AvailabilityWindowIn(day_of_week=1, start_time=time(9), end_time=time(17), is_available=False)],
        )
        assert await slot_times(db, seeded) == []

    async def test_day_without_window_is_empty(self, db, seeded):
        tuesday = seeded.monday + timedelta(days=1)
        assert await slot_times(db, seeded, day=tuesday) == []

    async def test_past_date_is_empty(self, db, seeded):
        now = datetime.combine(seeded.monday + timedelta(days=7), time(8, 0))
        assert await slot_times(db, seeded, now=now) == []

    async def test_today_drops_elapsed_starts(self, db, seeded):
        now = datetime.combine(seeded.monday, time(13, 5))
        times = await slot_times(db, seeded, now=now)
        assert times[0] == "13:15"
        assert times[-1] == "16:00"


class TestScheduledSessions:
    async def test_class_only_at_session_time(self, db, seeded):
        times = await slot_times(db, seeded, service=seeded.yoga, staff=seeded.instructor)
        assert times == ["18:00"]

    async def test_class_not_offered_on_other_days(self, db, seeded):
        await AvailabilityService(db).set_weekly_windows(
            seeded.instructor.id,
            [AvailabilityWindowIn(day_of_week=day, start_time=time(17), end_time=time(20)) for day in (1, 2)],
        )
        tuesday = seeded.monday + timedelta(days=1)
        assert await slot_times(db, seeded, service=seeded.yoga, staff=seeded.instructor, day=tuesday) == []

    async def test_session_outside_window_is_not_offered(self, db, seeded):
        """The stylist works 09:00-17:00, so an 18:00 class cannot fit."""
        assert await slot_times(db, seeded, service=seeded.yoga) == []

    async def test_class_reports_remaining_capacity(self, db, seeded, customer_identity, make_request):
        await BookingService(db).book_appointment(
            make_request("18:00", service=seeded.yoga, staff=seeded.instructor),
            customer_identity,
            now=seeded.now,
        )
        slots = list(await SlotResolver(db).list_available_slots(
            seeded.business.id, seeded.yoga.id, seeded.instructor.id, seeded.monday, now=seeded.now
        ))
        assert [s.remaining_capacity for s in slots] == [2]


class TestOccupancy:
    async def test_booking_blocks_overlapping_starts(self, db, seeded, customer_identity, make_request):
        await BookingService(db).book_appointment(make_request("10:00"), customer_identity, now=seeded.now)

        times = await slot_times(db, seeded)
        for blocked in ("09:15", "09:30", "09:45", "10:00", "10:15", "10:30", "10:45"):
            assert blocked not in times
        assert "09:00" in times
        assert "11:00" in times

    async def test_cancel_releases_slot(self, db, seeded, customer_identity, make_request):
        appointment = await BookingService(db).book_appointment(
            make_request("10:00"), customer_identity, now=seeded.now
        )
        assert "10:00" not in await slot_times(db, seeded)

        await AppointmentStatusService(db).cancel(appointment.id)
        assert "10:00" in await slot_times(db, seeded)

    async def test_occupancy_counts_across_services(self, db, seeded, customer_identity, make_request):
        """Another service booked with the same staff member still blocks the slot."""
        massage = Service(
            business_id=seeded.business.id, name="Massage", duration_minutes=30,
            capacity=1, service_type=ServiceType.INDIVIDUAL,
        )
        db.add(massage)
        await db.commit()

        await BookingService(db).book_appointment(
            make_request("10:15", service=massage), customer_identity, now=seeded.now
        )
        times = await slot_times(db, seeded)
        assert "10:00" not in times
        assert "09:30" not in times
        assert "09:15" in times
        assert "10:45" in times


class TestErrors:
    async def test_unknown_business(self, db, seeded):
        with pytest.raises(BusinessNotFound):
            await SlotResolver(db).list_available_slots(
                uuid.uuid4(), seeded.haircut.id, seeded.stylist.id, seeded.monday, now=seeded.now
            )

    async def test_unknown_service(self, db, seeded):
        with pytest.raises(ServiceNotFound):
            await SlotResolver(db).list_available_slots(
                seeded.business.id, uuid.uuid4(), seeded.stylist.id, seeded.monday, now=seeded.now
            )

    async def test_unknown_staff(self, db, seeded):
        with pytest.raises(StaffNotFound):
            await SlotResolver(db).list_available_slots(
                seeded.business.id, seeded.haircut.id, uuid.uuid4(), seeded.monday, now=seeded.now
            )

    async def test_zero_duration(self, db, seeded):
        seeded.haircut.duration_minutes = 0
        await db.commit()
        with pytest.raises(InvalidDuration):
            await slot_times(db, seeded)


class TestHelpers:
    def test_sunday_based_weekday(self, seeded):
        assert sunday_based_weekday(seeded.monday) == 1
        assert sunday_based_weekday(seeded.monday - timedelta(days=1)) == 0
        assert sunday_based_weekday(seeded.monday + timedelta(days=5)) == 6

    def test_ledger_buckets_round_outward(self):
        start = datetime(2030, 1, 7, 10, 7)
        buckets = ledger_buckets(start, 10, 5)
        assert buckets == [
            datetime(2030, 1, 7, 10, 5),
            datetime(2030, 1, 7, 10, 10),
            datetime(2030, 1, 7, 10, 15),
        ]
