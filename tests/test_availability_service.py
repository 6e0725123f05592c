"""Tests for the Availability Store."""

import uuid
from datetime import time

import pytest

from appointease.core.exceptions import InvalidWindow, StaffNotFound
from appointease.schemas.scheduling import AvailabilityWindowIn
from appointease.services.availability.availability_service import AvailabilityService
from appointease.services.availability.slot_resolver import SlotResolver


def window(day, start="09:00", end="17:00", available=True):
    return AvailabilityWindowIn(
        day_of_week=day,
        start_time=time.fromisoformat(start),
        end_time=time.fromisoformat(end),
        is_available=available,
    )


class TestGetWeeklyWindows:
    async def test_always_seven_days_sunday_first(self, db, seeded):
        """Days without a stored row come back closed."""
        week = await AvailabilityService(db).get_weekly_windows(seeded.stylist.id)

        assert [w.day_of_week for w in week] == list(range(7))
        assert week[1].is_available is True
        assert week[1].start_time == time(9, 0)
        assert all(not w.is_available for i, w in enumerate(week) if i != 1)

    async def test_unknown_staff(self, db, seeded):
        with pytest.raises(StaffNotFound):
            await AvailabilityService(db).get_weekly_windows(uuid.uuid4())

    async def test_staff_scoped_to_business(self, db, seeded):
        with pytest.raises(StaffNotFound):
            await AvailabilityService(db).get_weekly_windows(seeded.stylist.id, business_id=uuid.uuid4())


class TestSetWeeklyWindows:
    async def test_replaces_whole_week(self, db, seeded):
        """Monday is dropped from the payload, so it ends up closed."""
        service = AvailabilityService(db)
        week = await service.set_weekly_windows(
            seeded.stylist.id,
            [window(2, "10:00", "14:00"), window(5, available=False)],
        )

        assert week[1].is_available is False
        assert week[2].is_available is True
        assert (week[2].start_time, week[2].end_time) == (time(10, 0), time(14, 0))
        assert week[5].is_available is False

    async def test_start_after_end_rejected_without_writes(self, db, seeded):
        service = AvailabilityService(db)
        with pytest.raises(InvalidWindow):
            await service.set_weekly_windows(seeded.stylist.id, [window(3, "17:00", "09:00")])

        week = await service.get_weekly_windows(seeded.stylist.id)
        assert week[1].is_available is True

    async def test_equal_start_and_end_rejected(self, db, seeded):
        with pytest.raises(InvalidWindow):
            await AvailabilityService(db).set_weekly_windows(seeded.stylist.id, [window(3, "09:00", "09:00")])

    async def test_closed_window_times_are_not_checked(self, db, seeded):
        week = await AvailabilityService(db).set_weekly_windows(
            seeded.stylist.id, [window(0, "17:00", "09:00", available=False)]
        )
        assert week[0].is_available is False

    @pytest.mark.parametrize("day", [-1, 7])
    async def test_day_out_of_range(self, db, seeded, day):
        with pytest.raises(InvalidWindow):
            await AvailabilityService(db).set_weekly_windows(seeded.stylist.id, [window(day)])

    async def test_duplicate_day(self, db, seeded):
        with pytest.raises(InvalidWindow):
            await AvailabilityService(db).set_weekly_windows(
                seeded.stylist.id, [window(1), window(1, "12:00", "13:00")]
            )


class TestRemoveStaff:
    async def test_removed_staff_is_no_longer_bookable(self, db, seeded):
        await AvailabilityService(db).remove_staff(seeded.stylist.id, business_id=seeded.business.id)

        with pytest.raises(StaffNotFound):
            await SlotResolver(db).list_available_slots(
                seeded.business.id, seeded.haircut.id, seeded.stylist.id, seeded.monday, now=seeded.now
            )
