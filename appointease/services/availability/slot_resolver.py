# appointease/services/availability/slot_resolver.py
"""
Slot Resolver: bookable start times for (business, service, staff, date).

A candidate start is offered when:
  1. the staff member's weekday window is open and fully contains
     [start, start + duration];
  2. the peak ledger occupancy over that interval is below the service's
     capacity;
  3. for class/recurring services, the start is one of the service's
     session times on one of its session days.

Candidates sit on the business granularity grid measured from midnight.
The resolver reads the store once and hands back a SlotSequence that can be
iterated any number of times without touching the database again.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterator, Optional
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from appointease.config.settings import get_settings
from appointease.core.exceptions import BusinessNotFound, InvalidDuration, ServiceNotFound
from appointease.core.retry import translate_store_errors
from appointease.models.availability import StaffAvailabilityWindow
from appointease.models.business import Business, Staff
from appointease.models.service import Service
from appointease.schemas.scheduling import SlotCandidate
from appointease.services.availability.availability_service import AvailabilityService
from appointease.services.availability.ledger import LedgerOccupancy, ledger_buckets, load_occupancy

logger = logging.getLogger(__name__)


def sunday_based_weekday(day: date) -> int:
    """0=Sunday ... 6=Saturday"""
    return (day.weekday() + 1) % 7


def business_now(business: Business) -> datetime:
    """Current naive wall-clock time in the business timezone"""
    tz_name = business.timezone or get_settings().DEFAULT_TIMEZONE
    return datetime.now(ZoneInfo(tz_name)).replace(tzinfo=None)


@dataclass
class SlotContext:
    """Everything needed to decide slots for one day, read in a single pass"""
    business: Business
    service: Service
    staff: Staff
    day: date
    window: StaffAvailabilityWindow
    occupancy: LedgerOccupancy
    granularity_minutes: int
    bucket_minutes: int
    now: datetime

    @property
    def capacity(self) -> int:
        return self.service.effective_capacity

    @property
    def duration(self) -> timedelta:
        return timedelta(minutes=self.service.duration_minutes)

    def _window_bounds(self):
        return (
            datetime.combine(self.day, self.window.start_time),
            datetime.combine(self.day, self.window.end_time),
        )

    def _first_grid_point(self, window_start: datetime) -> datetime:
        midnight = datetime.combine(self.day, datetime.min.time())
        offset = int((window_start - midnight).total_seconds() // 60)
        remainder = offset % self.granularity_minutes
        if remainder:
            offset += self.granularity_minutes - remainder
        return midnight + timedelta(minutes=offset)

    def _matches_session(self, start: datetime) -> bool:
        if not self.service.is_scheduled_session:
            return True
        return (
            sunday_based_weekday(self.day) in self.service.session_days
            and start.time() in self.service.session_times
        )

    def remaining_at(self, start: datetime) -> int:
        buckets = ledger_buckets(start, self.service.duration_minutes, self.bucket_minutes)
        return self.capacity - self.occupancy.peak(buckets)

    def iter_slots(self) -> Iterator[SlotCandidate]:
        if not self.window.is_available or self.day < self.now.date():
            return

        window_start, window_end = self._window_bounds()
        step = timedelta(minutes=self.granularity_minutes)

        start = self._first_grid_point(window_start)
        while start + self.duration <= window_end:
            if start >= self.now and self._matches_session(start):
                remaining = self.remaining_at(start)
                if remaining > 0:
                    yield SlotCandidate(
                        start=start,
                        end=start + self.duration,
                        duration_minutes=self.service.duration_minutes,
                        remaining_capacity=remaining,
                    )
            start += step

    def offers(self, start: datetime) -> bool:
        """True if ``start`` is one of this day's bookable slots"""
        return any(slot.start == start for slot in self.iter_slots())


class SlotSequence:
    """Finite, restartable view over a day's slots"""

    def __init__(self, context: SlotContext):
        self.context = context

    def __iter__(self) -> Iterator[SlotCandidate]:
        return self.context.iter_slots()

    def __contains__(self, start: datetime) -> bool:
        return self.context.offers(start)


class SlotResolver:
    """Computes bookable slots from the Availability Store and Booking Ledger"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.availability = AvailabilityService(db)
        self.settings = get_settings()

    @translate_store_errors
    async def list_available_slots(
            self,
            business_id: UUID,
            service_id: UUID,
            staff_id: UUID,
            day: date,
            now: Optional[datetime] = None
    ) -> SlotSequence:
        """
        Get bookable slots for one day.

        Args:
            business_id: Tenant the service and staff must belong to
            service_id: Service being booked
            staff_id: Staff member providing it
            day: Business-local calendar date
            now: Naive business-local "now" (defaults to the real clock)

        Returns:
            SlotSequence; empty for past dates and closed days
        """
        context = await self.load_context(business_id, service_id, staff_id, day, now)
        return SlotSequence(context)

    async def load_context(
            self,
            business_id: UUID,
            service_id: UUID,
            staff_id: UUID,
            day: date,
            now: Optional[datetime] = None,
            exclude_appointment_id: Optional[UUID] = None
    ) -> SlotContext:
        business = await self.db.get(Business, business_id)
        if not business or not business.is_active:
            raise BusinessNotFound("Business not found", details={"business_id": str(business_id)})

        service = await self.get_service(business_id, service_id)
        staff = await self.availability.get_staff(staff_id, business_id)

        week = await self.availability.load_week(staff_id)
        window = week[sunday_based_weekday(day)]

        bucket_minutes = self.settings.LEDGER_BUCKET_MINUTES
        day_start = datetime.combine(day, datetime.min.time())
        # Claims are stored per bucket, so spill-over from the previous day is included
        occupancy = await load_occupancy(
            self.db,
            staff_id,
            day_start,
            day_start + timedelta(days=1),
            exclude_appointment_id=exclude_appointment_id,
        )

        return SlotContext(
            business=business,
            service=service,
            staff=staff,
            day=day,
            window=window,
            occupancy=occupancy,
            granularity_minutes=business.slot_granularity_minutes
            or self.settings.DEFAULT_SLOT_GRANULARITY_MINUTES,
            bucket_minutes=bucket_minutes,
            now=now or business_now(business),
        )

    async def get_service(self, business_id: UUID, service_id: UUID) -> Service:
        service = await self.db.get(Service, service_id)
        if not service or not service.is_active or service.business_id != business_id:
            raise ServiceNotFound("Service not found", details={"service_id": str(service_id)})
        if not service.duration_minutes or service.duration_minutes <= 0:
            raise InvalidDuration(
                "Service duration must be greater than zero",
                details={"service_id": str(service_id), "duration_minutes": service.duration_minutes},
            )
        return service
