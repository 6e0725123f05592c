# ============================================================================
# FILE: appointease/api/v1/public/bookings.py
# Customer-token authenticated booking endpoints - thin HTTP layer
# ============================================================================
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from appointease.api.dependencies import get_customer_identity, get_notifier
from appointease.config.database import get_db
from appointease.core.retry import with_store_retry
from appointease.schemas.scheduling import (
    AppointmentListResponse, AppointmentResponse, BookingIdentity, BookingRequest, CancelRequest
)
from appointease.services.appointment.appointment_query_service import AppointmentQueryService
from appointease.services.appointment.booking_service import BookingService
from appointease.services.appointment.status_service import AppointmentStatusService
from appointease.services.notification.notification_service import NotificationService

router = APIRouter(prefix="/bookings", tags=["public-bookings"])


@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def book_appointment(
        request: BookingRequest,
        identity: BookingIdentity = Depends(get_customer_identity),
        notifier: NotificationService = Depends(get_notifier),
        db: AsyncSession = Depends(get_db)
):
    """
    Book a slot for the calling customer.
    Returns 409 if the slot was taken since it was listed.
    """
    service = BookingService(db, notifier)
    return await with_store_retry(lambda: service.book_appointment(request, identity), db=db)


@router.get("", response_model=AppointmentListResponse)
async def list_my_appointments(
        identity: BookingIdentity = Depends(get_customer_identity),
        db: AsyncSession = Depends(get_db)
):
    """Get the calling customer's appointments, newest first."""
    appointments = await with_store_retry(
        lambda: AppointmentQueryService.list_customer_appointments(db, identity),
        db=db,
    )
    return AppointmentListResponse(total=len(appointments), appointments=appointments)


@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_my_appointment(
        appointment_id: UUID = Path(..., description="The appointment ID"),
        body: Optional[CancelRequest] = None,
        identity: BookingIdentity = Depends(get_customer_identity),
        notifier: NotificationService = Depends(get_notifier),
        db: AsyncSession = Depends(get_db)
):
    """
    Cancel one of the calling customer's appointments.
    The slot is released immediately.
    """
    service = AppointmentStatusService(db, notifier)
    return await with_store_retry(
        lambda: service.cancel(
            appointment_id,
            business_id=identity.business_id,
            customer_id=identity.customer_id,
            reason=body.reason if body else None,
        ),
        db=db,
    )
