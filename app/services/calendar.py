"""Branch opening hours and table lookups"""

from datetime import date, time
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.branch import OperatingHour, Table
from app.services.availability import AvailabilityChecker


def day_of_week(value: date) -> int:
    """Day index used by operating hours: 0 = Sunday ... 6 = Saturday"""
    return (value.weekday() + 1) % 7


class BranchCalendar:
    """Answers "is the branch open" and "which tables can seat this party" """

    def __init__(self, db: AsyncSession, availability: Optional[AvailabilityChecker] = None):
        self.db = db
        self.availability = availability or AvailabilityChecker(db)

    async def get_operating_hours(self, branch_id: UUID, weekday: int) -> Optional[OperatingHour]:
        result = await self.db.execute(
            select(OperatingHour).where(
                OperatingHour.branch_id == branch_id,
                OperatingHour.day_of_week == weekday,
            )
        )
        return result.scalar_one_or_none()

    async def is_open(self, branch_id: UUID, booking_date: date, time_slot: time) -> bool:
        """Strictly between open and close; boundary instants count as closed"""
        hours = await self.get_operating_hours(branch_id, day_of_week(booking_date))
        if hours is None or hours.is_closed:
            return False
        if hours.open_time is None or hours.close_time is None:
            return False
        return hours.open_time < time_slot < hours.close_time

    async def get_available_tables(
        self,
        branch_id: UUID,
        booking_date: date,
        time_slot: time,
        party_size: int,
    ) -> List[Table]:
        """Active tables that fit the party and are free, smallest first"""
        result = await self.db.execute(
            select(Table)
            .where(
                Table.branch_id == branch_id,
                Table.capacity >= party_size,
                Table.is_active == True,
            )
            .order_by(Table.capacity.asc(), Table.table_number.asc())
        )
        tables = result.scalars().all()

        available = []
        for table in tables:
            if await self.availability.check_availability(
                branch_id, table.id, booking_date, time_slot, 120
            ):
                available.append(table)
        return available

    async def count_active_tables(self, branch_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(Table.id)).where(
                Table.branch_id == branch_id,
                Table.is_active == True,
            )
        )
        return result.scalar() or 0
