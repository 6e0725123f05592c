# ============================================================================
# FILE: appointease/api/v1/public/slots.py
# Public slot listing - no authentication required
# ============================================================================
from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from appointease.config.database import get_db
from appointease.core.retry import with_store_retry
from appointease.schemas.scheduling import SlotListResponse
from appointease.services.availability.slot_resolver import SlotResolver

router = APIRouter(tags=["public-slots"])


@router.get("/businesses/{business_id}/slots", response_model=SlotListResponse)
async def list_available_slots(
        business_id: UUID = Path(..., description="The business ID"),
        service_id: UUID = Query(..., description="Service to book"),
        staff_id: UUID = Query(..., description="Staff member providing the service"),
        day: date = Query(..., alias="date", description="Business-local date (YYYY-MM-DD)"),
        db: AsyncSession = Depends(get_db)
):
    """
    Get bookable start times for one service, staff member and day.
    Past dates and closed days return an empty list.
    """
    resolver = SlotResolver(db)
    slots = await with_store_retry(
        lambda: resolver.list_available_slots(business_id, service_id, staff_id, day),
        db=db,
    )

    return SlotListResponse(
        business_id=business_id,
        service_id=service_id,
        staff_id=staff_id,
        date=day,
        slots=list(slots),
    )
