# appointease/services/availability/availability_service.py
"""Staff weekly availability: read, wholesale replace, and staff removal"""
import logging
from datetime import time
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from appointease.core.exceptions import InvalidWindow, StaffNotFound
from appointease.core.retry import translate_store_errors
from appointease.models.availability import StaffAvailabilityWindow
from appointease.models.business import Staff
from appointease.schemas.scheduling import AvailabilityWindowIn

logger = logging.getLogger(__name__)

DAYS_OF_WEEK = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

CLOSED_START = time(0, 0)
CLOSED_END = time(0, 0)


class AvailabilityService:
    """Availability Store for staff weekly schedules"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_staff(self, staff_id: UUID, business_id: Optional[UUID] = None) -> Staff:
        """Load an active staff member, optionally scoped to a business"""
        staff = await self.db.get(Staff, staff_id)
        if not staff or not staff.is_active:
            raise StaffNotFound("Staff member not found", details={"staff_id": str(staff_id)})
        if business_id is not None and staff.business_id != business_id:
            raise StaffNotFound(
                "Staff member not found for this business",
                details={"staff_id": str(staff_id), "business_id": str(business_id)},
            )
        return staff

    @translate_store_errors
    async def get_weekly_windows(
            self,
            staff_id: UUID,
            business_id: Optional[UUID] = None
    ) -> List[StaffAvailabilityWindow]:
        """
        Get a staff member's week, Sunday first.

        Always returns seven entries; weekdays with no stored row come back
        as closed windows (not persisted).
        """
        await self.get_staff(staff_id, business_id)
        return await self.load_week(staff_id)

    async def load_week(self, staff_id: UUID) -> List[StaffAvailabilityWindow]:
        """Seven windows for staff_id without the staff existence check"""
        result = await self.db.execute(
            select(StaffAvailabilityWindow).where(StaffAvailabilityWindow.staff_id == staff_id)
        )
        by_day = {w.day_of_week: w for w in result.scalars().all()}

        return [
            by_day.get(day) or StaffAvailabilityWindow(
                staff_id=staff_id,
                day_of_week=day,
                start_time=CLOSED_START,
                end_time=CLOSED_END,
                is_available=False,
            )
            for day in range(7)
        ]

    @translate_store_errors
    async def set_weekly_windows(
            self,
            staff_id: UUID,
            windows: Iterable[AvailabilityWindowIn],
            business_id: Optional[UUID] = None
    ) -> List[StaffAvailabilityWindow]:
        """
        Replace a staff member's whole week in one commit.

        Partial updates are not supported: the stored week is deleted and
        rewritten, and days missing from ``windows`` end up closed.

        Raises:
            StaffNotFound: unknown, inactive or foreign staff member
            InvalidWindow: bad weekday, duplicate weekday, or start >= end
                on an available window (checked before any write)
        """
        windows = list(windows)
        self.validate_windows(windows)

        await self.get_staff(staff_id, business_id)

        await self.db.execute(
            delete(StaffAvailabilityWindow).where(StaffAvailabilityWindow.staff_id == staff_id)
        )
        for window in windows:
            self.db.add(StaffAvailabilityWindow(
                staff_id=staff_id,
                day_of_week=window.day_of_week,
                start_time=window.start_time if window.is_available else CLOSED_START,
                end_time=window.end_time if window.is_available else CLOSED_END,
                is_available=window.is_available,
            ))

        await self.db.commit()

        open_days = [DAYS_OF_WEEK[w.day_of_week] for w in windows if w.is_available]
        logger.info(f"Replaced weekly availability for staff {staff_id}: open on {open_days or 'no days'}")

        return await self.load_week(staff_id)

    @staticmethod
    def validate_windows(windows: List[AvailabilityWindowIn]) -> None:
        seen = set()
        for window in windows:
            if not 0 <= window.day_of_week <= 6:
                raise InvalidWindow(
                    "day_of_week must be between 0 (Sunday) and 6 (Saturday)",
                    details={"day_of_week": window.day_of_week},
                )
            if window.day_of_week in seen:
                raise InvalidWindow(
                    f"Duplicate window for {DAYS_OF_WEEK[window.day_of_week]}",
                    details={"day_of_week": window.day_of_week},
                )
            seen.add(window.day_of_week)

            if window.is_available and window.start_time >= window.end_time:
                raise InvalidWindow(
                    f"{DAYS_OF_WEEK[window.day_of_week]}: start_time must be before end_time",
                    details={
                        "day_of_week": window.day_of_week,
                        "start_time": window.start_time.isoformat(),
                        "end_time": window.end_time.isoformat(),
                    },
                )

    @translate_store_errors
    async def remove_staff(self, staff_id: UUID, business_id: Optional[UUID] = None) -> None:
        """Deactivate a staff member and drop their schedule; appointments are kept"""
        staff = await self.get_staff(staff_id, business_id)

        await self.db.execute(
            delete(StaffAvailabilityWindow).where(StaffAvailabilityWindow.staff_id == staff_id)
        )
        staff.is_active = False
        await self.db.commit()

        logger.info(f"Removed staff {staff_id} and cleared their availability")
