# appointease/services/availability/ledger.py
"""
Ledger bucket arithmetic and occupancy reads.

Appointments hold capacity in fixed-size buckets (LEDGER_BUCKET_MINUTES).
An interval [start, start + duration) claims every bucket it touches, rounded
outward, so the slot resolver and the claim constraint always agree on what
overlaps.
"""
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from appointease.models.appointment import AppointmentSlotClaim


def floor_to_bucket(moment: datetime, bucket_minutes: int) -> datetime:
    midnight = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    minutes = int((moment - midnight).total_seconds() // 60)
    return midnight + timedelta(minutes=minutes - minutes % bucket_minutes)


def ledger_buckets(start: datetime, duration_minutes: int, bucket_minutes: int) -> List[datetime]:
    """Bucket starts covered by [start, start + duration)"""
    end = start + timedelta(minutes=duration_minutes)
    step = timedelta(minutes=bucket_minutes)

    buckets = []
    current = floor_to_bucket(start, bucket_minutes)
    while current < end:
        buckets.append(current)
        current += step
    return buckets


class LedgerOccupancy:
    """Capacity units already claimed per bucket for one staff member"""

    def __init__(self, taken: Optional[Dict[datetime, Set[int]]] = None):
        self.taken: Dict[datetime, Set[int]] = defaultdict(set, taken or {})

    def count(self, bucket: datetime) -> int:
        return len(self.taken.get(bucket, ()))

    def peak(self, buckets: Iterable[datetime]) -> int:
        """Highest simultaneous booking count across the buckets"""
        return max((self.count(b) for b in buckets), default=0)

    def free_index(self, bucket: datetime, capacity: int) -> Optional[int]:
        """Lowest unclaimed slot index below capacity, or None when full"""
        used = self.taken.get(bucket, set())
        for index in range(capacity):
            if index not in used:
                return index
        return None


async def load_occupancy(
        db: AsyncSession,
        staff_id: UUID,
        range_start: datetime,
        range_end: datetime,
        exclude_appointment_id: Optional[UUID] = None,
) -> LedgerOccupancy:
    """
    Read claims for staff_id with bucket_start in [range_start, range_end).

    exclude_appointment_id leaves one appointment's own claims out, so an
    appointment being moved does not collide with itself.
    """
    query = select(AppointmentSlotClaim.bucket_start, AppointmentSlotClaim.slot_index).where(
        AppointmentSlotClaim.staff_id == staff_id,
        AppointmentSlotClaim.bucket_start >= range_start,
        AppointmentSlotClaim.bucket_start < range_end,
    )
    if exclude_appointment_id is not None:
        query = query.where(AppointmentSlotClaim.appointment_id != exclude_appointment_id)

    result = await db.execute(query)

    taken: Dict[datetime, Set[int]] = defaultdict(set)
    for bucket_start, slot_index in result.all():
        taken[bucket_start].add(slot_index)
    return LedgerOccupancy(taken)
