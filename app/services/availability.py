"""
Slot availability checks.

A slot is the half-open interval ``[start, start + duration)``. It is free when
no active booking (PENDING, CONFIRMED, CHECKED_IN) and no blocked slot on the
same branch/date overlaps it. Touching intervals do not overlap.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.booking import ACTIVE_STATUSES, Booking
from app.models.branch import BlockedSlot


def intervals_overlap(
    start_a: datetime,
    end_a: datetime,
    start_b: datetime,
    end_b: datetime,
) -> bool:
    """Half-open interval overlap test"""
    return start_a < end_b and end_a > start_b


class AvailabilityChecker:
    """Decides whether a branch (or one of its tables) is free for a slot"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def check_availability(
        self,
        branch_id: UUID,
        table_id: Optional[UUID],
        booking_date: date,
        time_slot: time,
        duration_minutes: Optional[int] = None,
        exclude_booking_id: Optional[UUID] = None,
    ) -> bool:
        """
        Return True when nothing occupies the requested window.

        With ``table_id`` None every active booking at the branch counts, so the
        check is venue-wide and coarser than a per-table query.
        ``exclude_booking_id`` removes a booking's own occupancy (reschedules).
        """
        duration = duration_minutes or settings.booking_default_duration_minutes
        start = datetime.combine(booking_date, time_slot)
        end = start + timedelta(minutes=duration)

        query = select(Booking.booking_date, Booking.time_slot, Booking.duration_minutes).where(
            Booking.branch_id == branch_id,
            Booking.booking_date == booking_date,
            Booking.status.in_(ACTIVE_STATUSES),
        )
        if table_id is not None:
            query = query.where(Booking.table_id == table_id)
        if exclude_booking_id is not None:
            query = query.where(Booking.id != exclude_booking_id)

        result = await self.db.execute(query)
        for existing_date, existing_time, existing_duration in result.all():
            existing_start = datetime.combine(existing_date, existing_time)
            existing_end = existing_start + timedelta(minutes=existing_duration or duration)
            if intervals_overlap(existing_start, existing_end, start, end):
                return False

        result = await self.db.execute(
            select(BlockedSlot).where(
                BlockedSlot.branch_id == branch_id,
                BlockedSlot.date == booking_date,
            )
        )
        for slot in result.scalars().all():
            blocked_start = datetime.combine(slot.date, slot.start_time)
            blocked_end = datetime.combine(slot.date, slot.end_time)
            if intervals_overlap(blocked_start, blocked_end, start, end):
                return False

        return True
