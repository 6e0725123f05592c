# ============================================================================
# FILE: appointease/api/v1/dashboard/availability.py
# Staff weekly availability - JWT authenticated
# ============================================================================
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from appointease.api.dependencies import get_business_identity
from appointease.config.database import get_db
from appointease.core.retry import with_store_retry
from appointease.schemas.scheduling import AvailabilityWindowOut, BookingIdentity, WeeklyAvailabilityRequest
from appointease.services.availability.availability_service import AvailabilityService

router = APIRouter(prefix="/staff", tags=["dashboard-availability"])


@router.get("/{staff_id}/availability", response_model=List[AvailabilityWindowOut])
async def get_staff_availability(
        staff_id: UUID = Path(..., description="The staff member ID"),
        identity: BookingIdentity = Depends(get_business_identity),
        db: AsyncSession = Depends(get_db)
):
    """
    Get a staff member's weekly schedule, Sunday first.
    Days without a stored window are returned as closed.
    """
    service = AvailabilityService(db)
    return await with_store_retry(
        lambda: service.get_weekly_windows(staff_id, business_id=identity.business_id),
        db=db,
    )


@router.put("/{staff_id}/availability", response_model=List[AvailabilityWindowOut])
async def set_staff_availability(
        payload: WeeklyAvailabilityRequest,
        staff_id: UUID = Path(..., description="The staff member ID"),
        identity: BookingIdentity = Depends(get_business_identity),
        db: AsyncSession = Depends(get_db)
):
    """
    Replace a staff member's whole week.
    Days left out of the payload become closed.
    """
    service = AvailabilityService(db)
    return await with_store_retry(
        lambda: service.set_weekly_windows(staff_id, payload.windows, business_id=identity.business_id),
        db=db,
    )


@router.delete("/{staff_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_staff(
        staff_id: UUID = Path(..., description="The staff member ID"),
        identity: BookingIdentity = Depends(get_business_identity),
        db: AsyncSession = Depends(get_db)
):
    """Deactivate a staff member and clear their schedule. Existing appointments are kept."""
    service = AvailabilityService(db)
    await with_store_retry(
        lambda: service.remove_staff(staff_id, business_id=identity.business_id),
        db=db,
    )
