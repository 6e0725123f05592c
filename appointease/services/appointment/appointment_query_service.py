# ============================================================================
# appointease/services/appointment/appointment_query_service.py
# Read-only appointment queries - no FastAPI dependencies
# ============================================================================
import math
from collections import OrderedDict
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from appointease.core.exceptions import AppointmentNotFound
from appointease.core.retry import translate_store_errors
from appointease.models.appointment import Appointment, AppointmentStatus
from appointease.schemas.scheduling import BookingIdentity
from appointease.services.availability.availability_service import DAYS_OF_WEEK
from appointease.services.availability.slot_resolver import sunday_based_weekday

ANALYSIS_HOURS = range(8, 20)
PEAK_HOUR_SHARE = 0.3
PEAK_DAY_SHARE = 0.4


class AppointmentQueryService:
    """Service layer for appointment listings and booking analytics."""

    @staticmethod
    @translate_store_errors
    async def list_appointments(
            db: AsyncSession,
            business_id: UUID,
            start_date: Optional[date] = None,
            end_date: Optional[date] = None,
            status: Optional[AppointmentStatus] = None,
            staff_id: Optional[UUID] = None,
            customer_id: Optional[UUID] = None,
            skip: int = 0,
            limit: int = 50
    ) -> Dict[str, Any]:
        """Get paginated list of appointments with filters."""
        query = select(Appointment).where(Appointment.business_id == business_id)

        if start_date:
            query = query.where(Appointment.date >= datetime.combine(start_date, datetime.min.time()))
        if end_date:
            query = query.where(
                Appointment.date < datetime.combine(end_date + timedelta(days=1), datetime.min.time())
            )
        if status:
            query = query.where(Appointment.status == status)
        if staff_id:
            query = query.where(Appointment.staff_id == staff_id)
        if customer_id:
            query = query.where(Appointment.customer_id == customer_id)

        total = await db.scalar(select(func.count()).select_from(query.subquery()))
        result = await db.execute(
            query.order_by(Appointment.date.asc()).offset(skip).limit(limit)
        )
        appointments = result.scalars().all()

        return {
            "business_id": str(business_id),
            "total": total,
            "page": {
                "skip": skip,
                "limit": limit,
                "total_pages": (total + limit - 1) // limit if total > 0 else 0
            },
            "appointments": [appt.to_dict() for appt in appointments],
        }

    @staticmethod
    @translate_store_errors
    async def get_appointment(
            db: AsyncSession,
            business_id: UUID,
            appointment_id: UUID
    ) -> Appointment:
        """Get a single appointment scoped to a business."""
        result = await db.execute(
            select(Appointment).where(
                Appointment.id == appointment_id,
                Appointment.business_id == business_id,
            )
        )
        appointment = result.scalars().first()
        if not appointment:
            raise AppointmentNotFound(
                "Appointment not found or you don't have access to it",
                details={"appointment_id": str(appointment_id)},
            )
        return appointment

    @staticmethod
    @translate_store_errors
    async def list_customer_appointments(db: AsyncSession, identity: BookingIdentity):
        """Appointments belonging to the calling customer, newest first."""
        result = await db.execute(
            select(Appointment)
            .where(
                Appointment.business_id == identity.business_id,
                Appointment.customer_id == identity.customer_id,
            )
            .order_by(Appointment.date.desc())
        )
        return result.scalars().all()

    @staticmethod
    @translate_store_errors
    async def analyze_booking_patterns(db: AsyncSession, business_id: UUID) -> Dict[str, Any]:
        """
        Busy hours and weekdays for a business.

        Hours 08-19 and all weekdays are counted from non-canceled
        appointments. The top 30% of hours and top 40% of days by count are
        reported as peak; the rest are off-peak.
        """
        result = await db.execute(
            select(Appointment.date).where(
                Appointment.business_id == business_id,
                Appointment.status != AppointmentStatus.CANCELED,
            )
        )
        dates = result.scalars().all()

        hourly_count = OrderedDict((hour, 0) for hour in ANALYSIS_HOURS)
        day_count = OrderedDict((day, 0) for day in DAYS_OF_WEEK)

        for appointment_date in dates:
            if appointment_date.hour in hourly_count:
                hourly_count[appointment_date.hour] += 1
            day_count[DAYS_OF_WEEK[sunday_based_weekday(appointment_date.date())]] += 1

        # sorted() is stable, so ties keep chronological order
        ranked_hours = sorted(hourly_count.items(), key=lambda item: item[1], reverse=True)
        ranked_days = sorted(day_count.items(), key=lambda item: item[1], reverse=True)
        peak_hour_count = math.ceil(len(ranked_hours) * PEAK_HOUR_SHARE)
        peak_day_count = math.ceil(len(ranked_days) * PEAK_DAY_SHARE)

        return {
            "hourly_count": dict(hourly_count),
            "day_of_week_count": dict(day_count),
            "peak_hours": [hour for hour, _ in ranked_hours[:peak_hour_count]],
            "peak_days": [day for day, _ in ranked_days[:peak_day_count]],
            "off_peak_hours": [hour for hour, _ in ranked_hours[peak_hour_count:]],
            "off_peak_days": [day for day, _ in ranked_days[peak_day_count:]],
            "total_appointments": len(dates),
        }
