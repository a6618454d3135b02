"""Branch administration: tables, operating hours and blocked slots"""

from datetime import date, time
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.errors import ConflictError, NotFoundError, ValidationError
from app.models.branch import BlockedSlot, Branch, OperatingHour, Table, TableType
from app.models.user import User
from app.services.permissions import PermissionService

logger = structlog.get_logger()


def tables_combinable(table_a: Table, table_b: Table) -> bool:
    """Two distinct active tables in the same branch, both flagged combinable"""
    return (
        table_a.id != table_b.id
        and table_a.branch_id == table_b.branch_id
        and all(bool(t.is_combinable) and bool(t.is_active) for t in (table_a, table_b))
    )


class BranchService:
    """Branch-scoped administration"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_branch(self, branch_id: UUID) -> Branch:
        branch = await self.db.get(Branch, branch_id)
        if branch is None:
            raise NotFoundError("Branch not found")
        return branch

    async def _get_table(self, table_id: UUID) -> Table:
        table = await self.db.get(Table, table_id)
        if table is None:
            raise NotFoundError("Table not found")
        return table

    async def list_branches(self, user: User) -> List[Branch]:
        PermissionService.assert_allowed(user, "branches", "read")
        query = select(Branch).where(Branch.is_active == True).order_by(Branch.name)
        accessible = PermissionService.accessible_branches(user)
        if accessible is not None:
            query = query.where(Branch.id.in_(accessible))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_branch(self, user: User, branch_id: UUID) -> Branch:
        PermissionService.assert_allowed(user, "branches", "read", branch_id)
        return await self._get_branch(branch_id)

    # Tables

    async def list_tables(self, user: User, branch_id: UUID) -> List[Table]:
        PermissionService.assert_allowed(user, "tables", "read", branch_id)
        result = await self.db.execute(
            select(Table)
            .where(Table.branch_id == branch_id)
            .order_by(Table.capacity.asc(), Table.table_number.asc())
        )
        return list(result.scalars().all())

    async def create_table(
        self,
        user: User,
        branch_id: UUID,
        table_number: str,
        capacity: int,
        min_capacity: int = 1,
        table_type: TableType = TableType.REGULAR,
        position_x: Optional[int] = None,
        position_y: Optional[int] = None,
        floor: int = 1,
        is_combinable: bool = False,
    ) -> Table:
        PermissionService.assert_allowed(user, "tables", "create", branch_id)
        await self._get_branch(branch_id)
        if capacity < 1:
            raise ValidationError("Capacity must be at least 1")
        if min_capacity < 1 or min_capacity > capacity:
            raise ValidationError(
                "Minimum capacity must be between 1 and capacity",
                details={"min_capacity": min_capacity, "capacity": capacity},
            )

        existing = await self.db.execute(
            select(Table.id).where(Table.branch_id == branch_id, Table.table_number == table_number)
        )
        if existing.first() is not None:
            raise ConflictError(f"Table {table_number} already exists in this branch")

        table = Table(
            branch_id=branch_id,
            table_number=table_number,
            capacity=capacity,
            min_capacity=min_capacity,
            table_type=table_type,
            position_x=position_x,
            position_y=position_y,
            floor=floor,
            is_combinable=is_combinable,
            is_active=True,
        )
        self.db.add(table)
        await self.db.commit()
        await self.db.refresh(table)
        logger.info("Table created", branch_id=str(branch_id), table_id=str(table.id))
        return table

    async def can_combine(self, table_a_id: UUID, table_b_id: UUID) -> bool:
        table_a = await self._get_table(table_a_id)
        table_b = await self._get_table(table_b_id)
        return tables_combinable(table_a, table_b)

    async def combine(self, user: User, branch_id: UUID, table_ids: Sequence[UUID]) -> Dict[str, Any]:
        """Validate a table combination and return its seating capacity"""
        PermissionService.assert_allowed(user, "tables", "combine", branch_id)
        unique_ids = list(dict.fromkeys(table_ids))
        if len(unique_ids) < 2:
            raise ValidationError("At least two tables are required to combine")

        result = await self.db.execute(select(Table).where(Table.id.in_(unique_ids)))
        tables = list(result.scalars().all())
        if len(tables) != len(unique_ids):
            raise NotFoundError("Table not found")

        foreign = [str(t.id) for t in tables if t.branch_id != branch_id]
        if foreign:
            raise ConflictError("Tables belong to a different branch", details={"table_ids": foreign})
        first, rest = tables[0], tables[1:]
        if not all(tables_combinable(first, other) for other in rest):
            raise ConflictError(
                "Tables cannot be combined",
                details={"tables": sorted(t.table_number for t in tables if not (t.is_combinable and t.is_active))},
            )

        return {
            "branch_id": branch_id,
            "table_ids": [t.id for t in tables],
            "table_numbers": [t.table_number for t in tables],
            "combined_capacity": sum(t.capacity for t in tables),
        }

    # Operating hours

    async def get_operating_hours(self, user: User, branch_id: UUID) -> List[OperatingHour]:
        PermissionService.assert_allowed(user, "branches", "read", branch_id)
        result = await self.db.execute(
            select(OperatingHour)
            .where(OperatingHour.branch_id == branch_id)
            .order_by(OperatingHour.day_of_week)
        )
        return list(result.scalars().all())

    async def set_operating_hours(
        self,
        user: User,
        branch_id: UUID,
        hours: Sequence[Dict[str, Any]],
    ) -> List[OperatingHour]:
        """Replace the weekly schedule; at most one row per day of week"""
        PermissionService.assert_allowed(user, "branches", "operating_hours", branch_id)
        await self._get_branch(branch_id)

        days = [h["day_of_week"] for h in hours]
        if len(days) != len(set(days)):
            raise ValidationError("Duplicate day_of_week in operating hours")
        for h in hours:
            if not 0 <= h["day_of_week"] <= 6:
                raise ValidationError("day_of_week must be between 0 (Sunday) and 6 (Saturday)")
            if not h.get("is_closed"):
                open_time, close_time = h.get("open_time"), h.get("close_time")
                if open_time is None or close_time is None or open_time >= close_time:
                    raise ValidationError(
                        "Open time must be before close time",
                        details={"day_of_week": h["day_of_week"]},
                    )

        try:
            await self.db.execute(delete(OperatingHour).where(OperatingHour.branch_id == branch_id))
            rows = [
                OperatingHour(
                    branch_id=branch_id,
                    day_of_week=h["day_of_week"],
                    open_time=h.get("open_time"),
                    close_time=h.get("close_time"),
                    break_start=h.get("break_start"),
                    break_end=h.get("break_end"),
                    is_closed=bool(h.get("is_closed", False)),
                )
                for h in hours
            ]
            self.db.add_all(rows)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Operating hours replaced", branch_id=str(branch_id), days=len(rows))
        return sorted(rows, key=lambda row: row.day_of_week)

    # Blocked slots

    async def list_blocked_slots(
        self,
        user: User,
        branch_id: UUID,
        on_date: Optional[date] = None,
    ) -> List[BlockedSlot]:
        PermissionService.assert_allowed(user, "blocked_slots", "read", branch_id)
        query = select(BlockedSlot).where(BlockedSlot.branch_id == branch_id)
        if on_date is not None:
            query = query.where(BlockedSlot.date == on_date)
        result = await self.db.execute(query.order_by(BlockedSlot.date, BlockedSlot.start_time))
        return list(result.scalars().all())

    async def create_blocked_slot(
        self,
        user: User,
        branch_id: UUID,
        on_date: date,
        start_time: time,
        end_time: time,
        reason: Optional[str] = None,
    ) -> BlockedSlot:
        PermissionService.assert_allowed(user, "blocked_slots", "manage", branch_id)
        await self._get_branch(branch_id)
        if start_time >= end_time:
            raise ValidationError("Blocked slot start must be before its end")

        slot = BlockedSlot(
            branch_id=branch_id,
            date=on_date,
            start_time=start_time,
            end_time=end_time,
            reason=reason,
            created_by_id=user.id,
        )
        self.db.add(slot)
        await self.db.commit()
        await self.db.refresh(slot)
        logger.info(
            "Blocked slot created",
            branch_id=str(branch_id),
            date=on_date.isoformat(),
            start=start_time.isoformat(),
            end=end_time.isoformat(),
        )
        return slot

    async def delete_blocked_slot(self, user: User, branch_id: UUID, slot_id: UUID) -> None:
        PermissionService.assert_allowed(user, "blocked_slots", "manage", branch_id)
        slot = await self.db.get(BlockedSlot, slot_id)
        if slot is None or slot.branch_id != branch_id:
            raise NotFoundError("Blocked slot not found")
        await self.db.delete(slot)
        await self.db.commit()
        logger.info("Blocked slot deleted", branch_id=str(branch_id), slot_id=str(slot_id))
