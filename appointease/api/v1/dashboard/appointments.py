# ============================================================================
# FILE: appointease/api/v1/dashboard/appointments.py
# JWT authenticated appointment endpoints - thin HTTP layer
# ============================================================================
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from appointease.api.dependencies import get_business_identity, get_notifier
from appointease.config.database import get_db
from appointease.core.retry import with_store_retry
from appointease.models.appointment import AppointmentStatus
from appointease.schemas.scheduling import (
    AppointmentResponse, BookingIdentity, BookingPatternAnalysis, BookingRequest, CancelRequest,
    RescheduleRequest,
)
from appointease.services.appointment.appointment_query_service import AppointmentQueryService
from appointease.services.appointment.booking_service import BookingService
from appointease.services.appointment.status_service import AppointmentStatusService
from appointease.services.notification.notification_service import NotificationService

router = APIRouter(prefix="/appointments", tags=["dashboard-appointments"])


@router.get("")
async def list_appointments(
        start_date: Optional[date] = Query(None, description="Filter appointments on or after this date"),
        end_date: Optional[date] = Query(None, description="Filter appointments on or before this date"),
        appointment_status: Optional[AppointmentStatus] = Query(None, alias="status", description="Filter by status"),
        staff_id: Optional[UUID] = Query(None, description="Filter by staff member"),
        customer_id: Optional[UUID] = Query(None, description="Filter by customer"),
        skip: int = Query(0, ge=0, description="Number of records to skip"),
        limit: int = Query(50, ge=1, le=100, description="Number of records to return"),
        identity: BookingIdentity = Depends(get_business_identity),
        db: AsyncSession = Depends(get_db)
):
    """
    Get a list of all appointments for your business.
    Requires authenticated session.
    """
    return await with_store_retry(
        lambda: AppointmentQueryService.list_appointments(
            db=db,
            business_id=identity.business_id,
            start_date=start_date,
            end_date=end_date,
            status=appointment_status,
            staff_id=staff_id,
            customer_id=customer_id,
            skip=skip,
            limit=limit
        ),
        db=db,
    )


@router.get("/stats/patterns", response_model=BookingPatternAnalysis)
async def get_booking_patterns(
        identity: BookingIdentity = Depends(get_business_identity),
        db: AsyncSession = Depends(get_db)
):
    """
    Busiest hours and weekdays for your business.
    Canceled appointments are not counted.
    """
    return await with_store_retry(
        lambda: AppointmentQueryService.analyze_booking_patterns(db, identity.business_id),
        db=db,
    )


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
        appointment_id: UUID = Path(..., description="The appointment ID"),
        identity: BookingIdentity = Depends(get_business_identity),
        db: AsyncSession = Depends(get_db)
):
    """
    Get detailed information about a specific appointment.
    Requires authenticated session.
    """
    return await with_store_retry(
        lambda: AppointmentQueryService.get_appointment(db, identity.business_id, appointment_id),
        db=db,
    )


@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def create_appointment(
        request: BookingRequest,
        identity: BookingIdentity = Depends(get_business_identity),
        notifier: NotificationService = Depends(get_notifier),
        db: AsyncSession = Depends(get_db)
):
    """
    Book on behalf of a customer (customer_id is required).
    Returns 409 if the slot is no longer available.
    """
    service = BookingService(db, notifier)
    return await with_store_retry(lambda: service.book_appointment(request, identity), db=db)


@router.post("/{appointment_id}/confirm", response_model=AppointmentResponse)
async def confirm_appointment(
        appointment_id: UUID = Path(..., description="The appointment ID"),
        identity: BookingIdentity = Depends(get_business_identity),
        notifier: NotificationService = Depends(get_notifier),
        db: AsyncSession = Depends(get_db)
):
    """Scheduled -> confirmed."""
    service = AppointmentStatusService(db, notifier)
    return await with_store_retry(
        lambda: service.confirm(appointment_id, business_id=identity.business_id),
        db=db,
    )


@router.post("/{appointment_id}/complete", response_model=AppointmentResponse)
async def complete_appointment(
        appointment_id: UUID = Path(..., description="The appointment ID"),
        identity: BookingIdentity = Depends(get_business_identity),
        notifier: NotificationService = Depends(get_notifier),
        db: AsyncSession = Depends(get_db)
):
    """Confirmed -> completed, once the appointment has ended."""
    service = AppointmentStatusService(db, notifier)
    return await with_store_retry(
        lambda: service.complete(appointment_id, business_id=identity.business_id),
        db=db,
    )


@router.post("/{appointment_id}/reschedule", response_model=AppointmentResponse)
async def reschedule_appointment(
        request: RescheduleRequest,
        appointment_id: UUID = Path(..., description="The appointment ID"),
        identity: BookingIdentity = Depends(get_business_identity),
        notifier: NotificationService = Depends(get_notifier),
        db: AsyncSession = Depends(get_db)
):
    """
    Move an appointment to a new start with the same staff and service.
    Returns 409 if the new slot is not available.
    """
    service = BookingService(db, notifier)
    return await with_store_retry(
        lambda: service.reschedule(appointment_id, request.start, identity),
        db=db,
    )


@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
        appointment_id: UUID = Path(..., description="The appointment ID"),
        body: Optional[CancelRequest] = None,
        identity: BookingIdentity = Depends(get_business_identity),
        notifier: NotificationService = Depends(get_notifier),
        db: AsyncSession = Depends(get_db)
):
    """Cancel an appointment and release its slot."""
    service = AppointmentStatusService(db, notifier)
    return await with_store_retry(
        lambda: service.cancel(
            appointment_id,
            business_id=identity.business_id,
            reason=body.reason if body else None,
        ),
        db=db,
    )


@router.post("/{appointment_id}/reminder", response_model=AppointmentResponse)
async def send_reminder(
        appointment_id: UUID = Path(..., description="The appointment ID"),
        identity: BookingIdentity = Depends(get_business_identity),
        notifier: NotificationService = Depends(get_notifier),
        db: AsyncSession = Depends(get_db)
):
    """Queue a reminder now and mark the appointment as reminded."""
    service = AppointmentStatusService(db, notifier)
    return await with_store_retry(
        lambda: service.send_reminder(appointment_id, business_id=identity.business_id),
        db=db,
    )
