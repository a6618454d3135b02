"""
Branch analytics: a one-day summary and a per-day status trend.

Occupancy is seated guests over the branch's active seating capacity, capped
at 1. Rates are 0 when there is nothing to divide by.
"""

from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.errors import NotFoundError
from app.models.booking import Booking, BookingStatus
from app.models.branch import Branch, Table
from app.models.user import User
from app.services.permissions import PermissionService

logger = structlog.get_logger()

MAX_TREND_DAYS = 30


class AnalyticsService:
    """Read-only booking metrics per branch"""

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = datetime.now):
        self.db = db
        self.clock = clock

    async def _get_branch(self, branch_id: UUID) -> Branch:
        branch = await self.db.get(Branch, branch_id)
        if branch is None:
            raise NotFoundError("Branch not found")
        return branch

    async def _seating_capacity(self, branch_id: UUID) -> int:
        result = await self.db.execute(
            select(func.sum(Table.capacity)).where(Table.branch_id == branch_id, Table.is_active.is_(True))
        )
        return result.scalar() or 0

    async def branch_summary(
        self,
        user: User,
        branch_id: UUID,
        reference: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        PermissionService.assert_allowed(user, "analytics", "view", branch_id)
        await self._get_branch(branch_id)
        now = reference or self.clock()
        day = now.date()

        result = await self.db.execute(
            select(Booking.status, Booking.party_size, Booking.time_slot).where(
                Booking.branch_id == branch_id,
                Booking.booking_date == day,
            )
        )
        rows = result.all()

        counts = {status: 0 for status in BookingStatus}
        checked_in_guests = 0
        upcoming_arrivals = 0
        for status, party_size, time_slot in rows:
            counts[status] += 1
            if status == BookingStatus.CHECKED_IN:
                checked_in_guests += party_size or 0
            elif status in (BookingStatus.PENDING, BookingStatus.CONFIRMED):
                if datetime.combine(day, time_slot) >= now:
                    upcoming_arrivals += 1

        total = len(rows)
        capacity = await self._seating_capacity(branch_id)
        return {
            "branch_id": branch_id,
            "date": day,
            "total_bookings": total,
            "completed_bookings": counts[BookingStatus.COMPLETED],
            "cancelled_bookings": counts[BookingStatus.CANCELLED],
            "no_show_bookings": counts[BookingStatus.NO_SHOW],
            "no_show_rate": counts[BookingStatus.NO_SHOW] / total if total else 0.0,
            "upcoming_arrivals": upcoming_arrivals,
            "checked_in_guests": checked_in_guests,
            "total_capacity": capacity,
            "occupancy_rate": min(checked_in_guests / capacity, 1.0) if capacity else 0.0,
        }

    async def branch_trends(
        self,
        user: User,
        branch_id: UUID,
        days: int = 7,
        reference: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        """Per-day status counts for the ``days`` days ending on ``reference``"""
        PermissionService.assert_allowed(user, "analytics", "view", branch_id)
        await self._get_branch(branch_id)
        days = max(1, min(days, MAX_TREND_DAYS))
        end = reference or self.clock().date()
        start = end - timedelta(days=days - 1)

        result = await self.db.execute(
            select(Booking.booking_date, Booking.status, func.count(Booking.id))
            .where(
                Booking.branch_id == branch_id,
                Booking.booking_date >= start,
                Booking.booking_date <= end,
            )
            .group_by(Booking.booking_date, Booking.status)
        )
        per_day: Dict[date, Dict[BookingStatus, int]] = {}
        for booking_date, status, count in result.all():
            per_day.setdefault(booking_date, {})[status] = count

        trend = []
        for offset in range(days):
            day = start + timedelta(days=offset)
            counts = per_day.get(day, {})
            trend.append(
                {
                    "date": day,
                    "total_bookings": sum(counts.values()),
                    "completed": counts.get(BookingStatus.COMPLETED, 0),
                    "cancelled": counts.get(BookingStatus.CANCELLED, 0),
                    "no_show": counts.get(BookingStatus.NO_SHOW, 0),
                }
            )
        logger.debug("Branch trends computed", branch_id=str(branch_id), days=days)
        return trend
